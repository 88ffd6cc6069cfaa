# /test/test_tx_builder.py
# End-to-end assembly of SafeTransactions against the mock chain.
import asyncio

import pytest

from saferelay.adapters.mock import MockWeb3
from saferelay.core.balance import BalanceGuard
from saferelay.core.errors import EstimationSimulationFailed, GasEstimationFailed, InsufficientBalance
from saferelay.core.fee_oracle import FeeOracle
from saferelay.core.gas_estimator import GasEstimator
from saferelay.core.models import MetaTransaction, OperationType, ZERO_ADDRESS
from saferelay.core.multisend import decode_multisend
from saferelay.core.simulation import SimulationEstimator
from saferelay.core.tx import EstimationStrategy, SafeTxBuilder

WALLET = "0x" + "12" * 20
TARGET_A = "0x" + "aa" * 20
TARGET_B = "0x" + "bb" * 20
MULTISEND = "0xa238cbeb142c10ef7ad8442c6d1f9e89e07e7761"
SINGLETON = "0x3e5c63644e683549055b9be8653de26e0b4cd36e"
ACCESSOR = "0x59ad6735bcd8152b84860cb256dd9e96b85f69da"
BASE_GAS = 80_000


def revert_payload(gas: int) -> bytes:
    payload = bytearray(192)
    payload[92:97] = gas.to_bytes(5, "big")
    return bytes(payload)


@pytest.fixture
def w3():
    return MockWeb3()


@pytest.fixture
def builder(w3):
    return SafeTxBuilder(
        fee_oracle=FeeOracle(w3, reward_percentile=80),
        gas_estimator=GasEstimator(w3),
        simulation_estimator=SimulationEstimator(w3, MULTISEND, SINGLETON, ACCESSOR),
        balance_guard=BalanceGuard(w3),
        base_gas=BASE_GAS,
    )


@pytest.mark.asyncio
async def test_single_call_with_simulation(w3, builder):
    w3.eth.set_simulation_revert(revert_payload(45_000))
    tx = MetaTransaction(to="0x" + "AA" * 20, value="0", data="0x")

    safe_tx = await builder.build(WALLET, [tx], nonce=0, strategy=EstimationStrategy.SIMULATE)

    assert safe_tx.to == tx.to
    assert safe_tx.value == "0"
    assert safe_tx.data == "0x"
    assert safe_tx.operation is OperationType.CALL
    assert safe_tx.nonce == 0
    assert safe_tx.safe_tx_gas == 54_000
    assert safe_tx.base_gas == BASE_GAS
    assert safe_tx.gas_price == 23_100_000_000
    assert safe_tx.gas_token == ZERO_ADDRESS
    assert safe_tx.refund_receiver == ZERO_ADDRESS
    assert safe_tx.total_gas_cost == (54_000 + BASE_GAS) * 23_100_000_000
    assert safe_tx.estimate.total_gas_cost == safe_tx.total_gas_cost


@pytest.mark.asyncio
async def test_single_call_direct(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 21_000}

    safe_tx = await builder.build(WALLET, [MetaTransaction(to=TARGET_A)], nonce=4, strategy="direct")

    assert safe_tx.safe_tx_gas == 21_000
    assert safe_tx.nonce == 4
    assert w3.eth.calls == []


@pytest.mark.asyncio
async def test_batch_goes_through_multisend(w3, builder):
    w3.eth.set_simulation_revert(revert_payload(90_000))
    legs = [MetaTransaction(to=TARGET_A, value="1"), MetaTransaction(to=TARGET_B, data="0x1234")]

    safe_tx = await builder.build(WALLET, legs, nonce=1)

    assert safe_tx.operation is OperationType.DELEGATE_CALL
    assert safe_tx.to.lower() == MULTISEND
    assert safe_tx.value == "0"
    assert decode_multisend(safe_tx.data) == legs


@pytest.mark.asyncio
async def test_direct_estimation_does_not_fall_back(w3, builder):
    with pytest.raises(GasEstimationFailed):
        await builder.build(WALLET, [MetaTransaction(to=TARGET_A)], nonce=0, strategy=EstimationStrategy.DIRECT)
    assert w3.eth.calls == []


@pytest.mark.asyncio
async def test_simulation_failure_does_not_fall_back(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 21_000}
    w3.eth.call_result = b""

    with pytest.raises(EstimationSimulationFailed):
        await builder.build(WALLET, [MetaTransaction(to=TARGET_A)], nonce=0)
    assert w3.eth.estimate_requests == []


@pytest.mark.asyncio
async def test_base_gas_can_be_overridden(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 21_000}

    safe_tx = await builder.set_transaction_gas([MetaTransaction(to=TARGET_A)], 0, WALLET, base_gas=0)

    assert safe_tx.base_gas == 0


@pytest.mark.asyncio
async def test_calculate_max_fees(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 21_000}

    total = await builder.calculate_max_fees(WALLET, TARGET_A, "500", "0x", nonce=0)

    assert total == (21_000 + BASE_GAS) * 23_100_000_000 + 500


@pytest.mark.asyncio
async def test_balance_check_on_built_transaction(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 20_000}
    safe_tx = await builder.build(WALLET, [MetaTransaction(to=TARGET_A, value="5")], 0, EstimationStrategy.DIRECT)
    required = (20_000 + BASE_GAS) * 23_100_000_000 + 5

    w3.eth.balances[WALLET] = required
    assert await builder.verify_has_enough_balance(WALLET, safe_tx) == required

    w3.eth.balances[WALLET] = required - 1
    with pytest.raises(InsufficientBalance):
        await builder.verify_has_enough_balance(WALLET, safe_tx)


@pytest.mark.asyncio
async def test_batch_balance_check_uses_leg_values(w3, builder):
    w3.eth.set_simulation_revert(revert_payload(10_000))
    legs = [MetaTransaction(to=TARGET_A, value="3"), MetaTransaction(to=TARGET_B, value="4")]
    safe_tx = await builder.build(WALLET, legs, 0)
    w3.eth.balances[WALLET] = safe_tx.total_gas_cost + 6

    with pytest.raises(InsufficientBalance) as exc_info:
        await builder.verify_has_enough_balance(WALLET, safe_tx, transfer_value=7)
    assert exc_info.value.required == safe_tx.total_gas_cost + 7


@pytest.mark.asyncio
async def test_batch_balance_check_defaults_to_summed_leg_values(w3, builder):
    w3.eth.set_simulation_revert(revert_payload(10_000))
    legs = [MetaTransaction(to=TARGET_A, value="3"), MetaTransaction(to=TARGET_B, value="4")]
    safe_tx = await builder.build(WALLET, legs, 0)

    assert safe_tx.value == "0"
    assert builder.transferred_value(safe_tx) == 7

    w3.eth.balances[WALLET] = safe_tx.total_gas_cost + 6
    with pytest.raises(InsufficientBalance) as exc_info:
        await builder.verify_has_enough_balance(WALLET, safe_tx)
    assert exc_info.value.required == safe_tx.total_gas_cost + 7

    w3.eth.balances[WALLET] = safe_tx.total_gas_cost + 7
    assert await builder.verify_has_enough_balance(WALLET, safe_tx) == safe_tx.total_gas_cost + 7


@pytest.mark.asyncio
async def test_failed_estimate_cancels_pending_fee_query(w3, builder, monkeypatch):
    cancelled = []

    async def stalled_fee_history(*_):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
    monkeypatch.setattr(w3.eth, "fee_history", stalled_fee_history)

    with pytest.raises(GasEstimationFailed):
        await builder.build(WALLET, [MetaTransaction(to=TARGET_A)], 0, EstimationStrategy.DIRECT)
    assert cancelled == [True]


@pytest.mark.asyncio
async def test_every_build_queries_fresh_fees(w3, builder):
    w3.eth.gas_estimates = {TARGET_A: 21_000}
    tx = MetaTransaction(to=TARGET_A)

    first = await builder.build(WALLET, [tx], 0, EstimationStrategy.DIRECT)
    w3.eth.base_fee_per_gas = 40_000_000_000
    second = await builder.build(WALLET, [tx], 0, EstimationStrategy.DIRECT)

    assert len(w3.eth.fee_history_requests) == 2
    assert second.gas_price > first.gas_price


def test_from_settings_threads_configuration(w3, monkeypatch):
    from saferelay.core.config import settings
    monkeypatch.setattr(settings, "BASE_GAS", 12_345)
    monkeypatch.setattr(settings, "REWARD_PERCENTILE", 50)

    builder = SafeTxBuilder.from_settings(w3)

    assert builder.base_gas == 12_345
    assert builder.fee_oracle.reward_percentile == 50
    assert builder.simulation_estimator.multisend_address == settings.MULTISEND_ADDRESS
