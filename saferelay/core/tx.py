# /saferelay/core/tx.py
# Single-pass assembly of a SafeTransaction: gas estimate (direct or simulated)
# and fee query run concurrently, base gas comes from configuration.
import asyncio
from enum import Enum
from typing import Sequence

from saferelay.core.balance import BalanceGuard, required_cost
from saferelay.core.config import settings
from saferelay.core.fee_oracle import FeeOracle
from saferelay.core.gas_estimator import GasEstimator
from saferelay.core.logger import get_logger, GAS_ESTIMATES
from saferelay.core.models import MetaTransaction, OperationType, SafeTransaction
from saferelay.core.multisend import decode_multisend, encode_multisend
from saferelay.core.simulation import SimulationEstimator

log = get_logger(__name__)

class EstimationStrategy(str, Enum):
    DIRECT = "direct"
    SIMULATE = "simulate"

class SafeTxBuilder:
    """Builds the SafeTransaction for one relay attempt. Holds no per-attempt state."""
    def __init__(
        self,
        fee_oracle: FeeOracle,
        gas_estimator: GasEstimator,
        simulation_estimator: SimulationEstimator,
        balance_guard: BalanceGuard,
        base_gas: int | None = None,
    ):
        self.fee_oracle = fee_oracle
        self.gas_estimator = gas_estimator
        self.simulation_estimator = simulation_estimator
        self.balance_guard = balance_guard
        self.base_gas = settings.BASE_GAS if base_gas is None else base_gas

    @classmethod
    def from_settings(cls, w3) -> "SafeTxBuilder":
        return cls(
            fee_oracle=FeeOracle(w3, settings.REWARD_PERCENTILE),
            gas_estimator=GasEstimator(w3),
            simulation_estimator=SimulationEstimator(
                w3,
                multisend_address=settings.MULTISEND_ADDRESS,
                singleton_address=settings.SINGLETON_ADDRESS,
                simulate_tx_accessor_address=settings.SIMULATE_TX_ACCESSOR_ADDRESS,
            ),
            balance_guard=BalanceGuard(w3),
            base_gas=settings.BASE_GAS,
        )

    def _envelope(self, transactions: Sequence[MetaTransaction]) -> MetaTransaction:
        return encode_multisend(transactions, self.simulation_estimator.multisend_address)

    async def _estimate_with_gas_price(self, estimate) -> list:
        """Runs ``estimate`` next to the fee query; when either fails the other is cancelled."""
        tasks = [asyncio.ensure_future(estimate), asyncio.ensure_future(self.fee_oracle.get_gas_price())]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def set_transaction_gas(
        self,
        transactions: Sequence[MetaTransaction],
        nonce: int,
        sender: str,
        base_gas: int | None = None,
    ) -> SafeTransaction:
        """Direct estimation. Every target must already be deployed."""
        envelope = self._envelope(transactions)
        safe_tx_gas, gas_price = await self._estimate_with_gas_price(
            self.gas_estimator.estimate_transaction_gas(transactions, sender)
        )
        GAS_ESTIMATES.labels(EstimationStrategy.DIRECT.value).inc()
        return self._assemble(envelope, nonce, safe_tx_gas, self.base_gas if base_gas is None else base_gas, gas_price)

    async def set_transaction_gas_with_simulate(
        self,
        transactions: Sequence[MetaTransaction],
        nonce: int,
        wallet_address: str,
        is_deployed: bool,
    ) -> SafeTransaction:
        """Simulated estimation through the SimulateTxAccessor."""
        envelope = self._envelope(transactions)
        safe_tx_gas, gas_price = await self._estimate_with_gas_price(
            self.simulation_estimator.estimate_safe_tx_gas(wallet_address, transactions, is_deployed)
        )
        GAS_ESTIMATES.labels(EstimationStrategy.SIMULATE.value).inc()
        return self._assemble(envelope, nonce, safe_tx_gas, self.base_gas, gas_price)

    async def build(
        self,
        wallet_address: str,
        transactions: Sequence[MetaTransaction],
        nonce: int,
        strategy: EstimationStrategy = EstimationStrategy.SIMULATE,
        is_deployed: bool = False,
    ) -> SafeTransaction:
        strategy = EstimationStrategy(strategy)
        if strategy is EstimationStrategy.DIRECT:
            safe_tx = await self.set_transaction_gas(transactions, nonce, wallet_address)
        else:
            safe_tx = await self.set_transaction_gas_with_simulate(transactions, nonce, wallet_address, is_deployed)
        log.info(
            "SAFE_TX_BUILT",
            strategy=strategy.value,
            legs=len(transactions),
            nonce=nonce,
            safe_tx_gas=safe_tx.safe_tx_gas,
            base_gas=safe_tx.base_gas,
            gas_price=safe_tx.gas_price,
        )
        return safe_tx

    async def calculate_max_fees(
        self,
        sender: str,
        to: str,
        value: str,
        data: str,
        nonce: int,
        base_gas: int | None = None,
    ) -> int:
        """Worst-case cost of sending ``value`` to ``to``: gas at direct estimate plus value."""
        tx = MetaTransaction(to=to, value=value, data=data)
        safe_tx = await self.set_transaction_gas([tx], nonce, sender, base_gas)
        return required_cost(safe_tx.estimate, safe_tx.value)

    async def verify_has_enough_balance(
        self, wallet_address: str, safe_tx: SafeTransaction, transfer_value: int | str | None = None
    ) -> int:
        """Balance check for an already built transaction.

        ``transfer_value`` defaults to :meth:`transferred_value`.
        """
        value = self.transferred_value(safe_tx) if transfer_value is None else transfer_value
        return await self.balance_guard.verify_has_enough_balance(
            wallet_address, required_cost(safe_tx.estimate, value)
        )

    def transferred_value(self, safe_tx: SafeTransaction) -> int:
        """Value leaving the wallet: the legs' total for a MultiSend batch, else the envelope value."""
        is_batch = (
            safe_tx.operation is OperationType.DELEGATE_CALL
            and safe_tx.to.lower() == self.simulation_estimator.multisend_address.lower()
        )
        if is_batch:
            return sum(leg.value_wei for leg in decode_multisend(safe_tx.data))
        return safe_tx.value_wei

    @staticmethod
    def _assemble(
        envelope: MetaTransaction, nonce: int, safe_tx_gas: int, base_gas: int, gas_price: int
    ) -> SafeTransaction:
        return SafeTransaction(
            to=envelope.to,
            value=envelope.value,
            data=envelope.data,
            operation=envelope.operation,
            safe_tx_gas=safe_tx_gas,
            base_gas=base_gas,
            gas_price=gas_price,
            nonce=nonce,
        )
