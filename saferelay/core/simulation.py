# /saferelay/core/simulation.py
"""safeTxGas estimation through the SimulateTxAccessor.

The Safe (or its singleton when the wallet is not deployed yet) is asked to
``simulateAndRevert`` a call to the accessor's ``simulate``. The accessor
measures the gas used by the transaction and the Safe reverts with the raw
result, which is the only way to get it out of the delegatecall context.

The measured gas sits in a fixed 5-byte big-endian field of the revert data,
read by :func:`decode_safe_tx_gas` alone.
"""
from typing import Sequence

from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from saferelay.abis import SAFE_ABI, SIMULATE_TX_ACCESSOR_ABI, encode_function_call
from saferelay.core.errors import DecodeFailure, EstimationSimulationFailed, NetworkFailure
from saferelay.core.logger import get_logger, ESTIMATION_FAILURES
from saferelay.core.models import MetaTransaction
from saferelay.core.multisend import encode_multisend
from saferelay.core.rpc import TRANSPORT_ERRORS

log = get_logger(__name__)

SAFE_TX_GAS_OFFSET = 92
SAFE_TX_GAS_LENGTH = 5
MIN_REVERT_PAYLOAD_LENGTH = SAFE_TX_GAS_OFFSET + SAFE_TX_GAS_LENGTH

# Reverts carrying these selectors are ordinary failures, not accessor output.
ERROR_STRING_SELECTOR = HexBytes("0x08c379a0")
PANIC_SELECTOR = HexBytes("0x4e487b71")

def decode_safe_tx_gas(payload: bytes) -> int:
    """Raw gas measured by the accessor, read from its fixed slot in the revert data.

    The slot is bytes 92..97 of the payload. Laid over the abi-encoded
    ``simulateAndRevert`` result (success word, length word, then the
    ``estimate`` word) that window reads ``estimate << 8``; the low five bytes
    of ``estimate`` start at byte 91. Check the offset against revert data from
    a live accessor before relying on the value.
    """
    if len(payload) < MIN_REVERT_PAYLOAD_LENGTH:
        raise DecodeFailure(
            f"revert payload is {len(payload)} bytes, at least {MIN_REVERT_PAYLOAD_LENGTH} required"
        )
    return int.from_bytes(payload[SAFE_TX_GAS_OFFSET:MIN_REVERT_PAYLOAD_LENGTH], "big")

def add_extra_gas_for_safety(safe_tx_gas: int) -> int:
    """ceil(safe_tx_gas * 1.2), exact in integers."""
    return -(-safe_tx_gas * 6 // 5)

def _revert_payload(error: ContractLogicError) -> bytes:
    data = getattr(error, "data", None)
    if not isinstance(data, (str, bytes)) or not data or data == "no data":
        raise EstimationSimulationFailed(f"simulation reverted without data: {error}")
    payload = bytes(HexBytes(data))
    if payload[:4] in (ERROR_STRING_SELECTOR, PANIC_SELECTOR):
        raise EstimationSimulationFailed(f"simulation reverted with an unrelated reason: {error}")
    return payload

class SimulationEstimator:
    """
    Simulated estimation. Works for wallets that are not deployed yet, which
    makes it the default for a wallet's first transaction.
    """
    def __init__(self, w3, multisend_address: str, singleton_address: str, simulate_tx_accessor_address: str):
        self.w3 = w3
        self.multisend_address = multisend_address
        self.singleton_address = AsyncWeb3.to_checksum_address(singleton_address)
        self.simulate_tx_accessor_address = AsyncWeb3.to_checksum_address(simulate_tx_accessor_address)

    def build_simulation_call(self, wallet_address: str, transaction: MetaTransaction, is_deployed: bool) -> dict:
        simulate_data = encode_function_call(
            SIMULATE_TX_ACCESSOR_ABI,
            "simulate",
            [transaction.to, transaction.value_wei, transaction.data_bytes, int(transaction.operation)],
        )
        simulate_and_revert_data = encode_function_call(
            SAFE_ABI, "simulateAndRevert", [self.simulate_tx_accessor_address, simulate_data]
        )
        # An undeployed Safe has no code yet; its singleton exposes the same interface.
        target = AsyncWeb3.to_checksum_address(wallet_address) if is_deployed else self.singleton_address
        return {"to": target, "data": "0x" + simulate_and_revert_data.hex(), "value": 0}

    async def estimate_safe_tx_gas(
        self, wallet_address: str, transactions: Sequence[MetaTransaction], is_deployed: bool
    ) -> int:
        transaction = encode_multisend(transactions, self.multisend_address)
        call = self.build_simulation_call(wallet_address, transaction, is_deployed)

        try:
            result = await self.w3.eth.call(call)
        except ContractLogicError as e:
            try:
                raw_gas = decode_safe_tx_gas(_revert_payload(e))
            except DecodeFailure:
                ESTIMATION_FAILURES.labels("decode").inc()
                raise
            except EstimationSimulationFailed:
                ESTIMATION_FAILURES.labels("simulation_revert").inc()
                log.error("SIMULATION_UNEXPECTED_REVERT", target=call["to"], error=str(e))
                raise
            estimate = add_extra_gas_for_safety(raw_gas)
            log.info("SIMULATED_GAS_ESTIMATED", raw_gas=raw_gas, safe_tx_gas=estimate, deployed=is_deployed)
            return estimate
        except TRANSPORT_ERRORS as e:
            raise NetworkFailure(f"simulation call transport failure: {e}") from e
        except (ValueError, Web3Exception) as e:
            ESTIMATION_FAILURES.labels("simulation_rpc_error").inc()
            raise EstimationSimulationFailed(f"simulation call rejected by the node: {e}") from e

        ESTIMATION_FAILURES.labels("simulation_returned").inc()
        log.error("SIMULATION_DID_NOT_REVERT", target=call["to"], result=HexBytes(result).hex())
        raise EstimationSimulationFailed("Error while estimating gas: simulateAndRevert returned without reverting")
