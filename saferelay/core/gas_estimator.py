# /saferelay/core/gas_estimator.py
# Direct safeTxGas estimation: eth_estimateGas per leg, summed.
# Only works when every target is already deployed.
import asyncio
from typing import Sequence

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from saferelay.core.errors import GasEstimationFailed, NetworkFailure
from saferelay.core.logger import get_logger, ESTIMATION_FAILURES
from saferelay.core.models import MetaTransaction
from saferelay.core.rpc import TRANSPORT_ERRORS

log = get_logger(__name__)

class GasEstimator:
    def __init__(self, w3):
        self.w3 = w3

    async def estimate_leg(self, tx: MetaTransaction, sender: str) -> int:
        call = {
            "from": AsyncWeb3.to_checksum_address(sender),
            "to": tx.to,
            "data": tx.data,
            "value": tx.value_wei,
        }
        try:
            return int(await self.w3.eth.estimate_gas(call))
        except TRANSPORT_ERRORS as e:
            raise NetworkFailure(f"estimate_gas transport failure: {e}") from e
        except (ContractLogicError, ValueError, Web3Exception) as e:
            # Nodes reject estimation against missing code the same way as a revert.
            ESTIMATION_FAILURES.labels("direct_revert").inc()
            log.warning("DIRECT_GAS_ESTIMATION_REVERTED", to=tx.to, error=str(e))
            raise GasEstimationFailed(f"eth_estimateGas failed for {tx.to}: {e}") from e

    async def estimate_transaction_gas(self, transactions: Sequence[MetaTransaction], sender: str) -> int:
        """Sum of the per-leg estimates. Legs are independent, so they run concurrently."""
        estimates = await asyncio.gather(*(self.estimate_leg(tx, sender) for tx in transactions))
        total = sum(estimates)
        log.debug("DIRECT_GAS_ESTIMATED", legs=len(estimates), safe_tx_gas=total)
        return total
