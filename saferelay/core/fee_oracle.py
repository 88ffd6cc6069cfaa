# /saferelay/core/fee_oracle.py
# Gas price for relayed Safe transactions, derived from the latest block's
# fee history with a 10% safety buffer.

from saferelay.core.config import settings
from saferelay.core.errors import FeeQueryFailed
from saferelay.core.logger import get_logger
from saferelay.core.models import FeeSample
from saferelay.core.rpc import RPC_ERRORS

log = get_logger(__name__)

FEE_BUFFER_DIVISOR = 10

def apply_fee_buffer(reward: int, base_fee: int) -> int:
    """reward + baseFee plus a tenth of it, rounded half up, never less than 1 wei."""
    observed = reward + base_fee
    return observed + max(1, (observed + FEE_BUFFER_DIVISOR // 2) // FEE_BUFFER_DIVISOR)

class FeeOracle:
    """
    Queries recent fee-market data through an AsyncWeb3-compatible handle.
    Every call hits the node; nothing is cached and nothing is retried.
    """
    def __init__(self, w3, reward_percentile: float | None = None):
        self.w3 = w3
        self.reward_percentile = settings.REWARD_PERCENTILE if reward_percentile is None else reward_percentile

    async def get_fee_sample(self) -> FeeSample:
        """Fetches base fee and the priority-fee reward of the most recent block."""
        try:
            history = await self.w3.eth.fee_history(1, "latest", [self.reward_percentile])
        except RPC_ERRORS as e:
            log.error("FEE_HISTORY_QUERY_FAILED", percentile=self.reward_percentile, error=str(e))
            raise FeeQueryFailed(f"fee history query failed: {e}") from e

        try:
            reward = history["reward"][0][0]
            base_fee = history["baseFeePerGas"][0]
        except (KeyError, IndexError, TypeError) as e:
            log.error("FEE_HISTORY_MALFORMED", history=str(history))
            raise FeeQueryFailed("fee history response is missing reward or baseFeePerGas") from e

        return FeeSample(base_fee_per_gas=int(base_fee), priority_fee_reward=int(reward))

    async def get_gas_price(self) -> int:
        sample = await self.get_fee_sample()
        gas_price = apply_fee_buffer(sample.priority_fee_reward, sample.base_fee_per_gas)
        log.debug(
            "GAS_PRICE_DERIVED",
            base_fee=sample.base_fee_per_gas,
            reward=sample.priority_fee_reward,
            gas_price=gas_price,
        )
        return gas_price
