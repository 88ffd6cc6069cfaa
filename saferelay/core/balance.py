# /saferelay/core/balance.py
from typing import Iterable

from web3 import AsyncWeb3

from saferelay.core.errors import InsufficientBalance, NetworkFailure
from saferelay.core.logger import get_logger, BALANCE_CHECKS
from saferelay.core.models import GasEstimate
from saferelay.core.rpc import RPC_ERRORS

log = get_logger(__name__)

def required_cost(estimate: GasEstimate, value: int | str = 0) -> int:
    """Total the wallet must hold: gas cost of ``estimate`` plus the transferred value."""
    return estimate.total_gas_cost + int(value)

def is_sponsored(address: str, sponsored_addresses: Iterable[str]) -> bool:
    """Whether the relay pays gas for calls to ``address``."""
    target = address.lower()
    return any(target == s.lower() for s in sponsored_addresses)

class BalanceGuard:
    def __init__(self, w3):
        self.w3 = w3

    async def verify_has_enough_balance(self, wallet_address: str, required: int) -> int:
        """
        Compares ``required`` against the wallet's current balance.

        Returns:
            The available balance, when it covers ``required`` (equality passes).

        Raises:
            InsufficientBalance: when the balance is strictly lower than ``required``.
        """
        try:
            available = int(await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(wallet_address)))
        except RPC_ERRORS as e:
            log.error("BALANCE_QUERY_FAILED", wallet=wallet_address, error=str(e))
            raise NetworkFailure(f"balance query failed for {wallet_address}: {e}") from e

        if available < required:
            BALANCE_CHECKS.labels("insufficient").inc()
            log.warning("INSUFFICIENT_BALANCE", wallet=wallet_address, required=required, available=available)
            raise InsufficientBalance(required=required, available=available)

        BALANCE_CHECKS.labels("ok").inc()
        return available
