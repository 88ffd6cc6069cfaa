# /saferelay/adapters/mock.py
# In-process stand-ins for an AsyncWeb3 handle. They answer the handful of
# eth_* calls the gas pipeline makes and record what was asked.

from typing import Any, Dict, List

from web3.exceptions import ContractCustomError, ContractLogicError

from saferelay.core.logger import get_logger

log = get_logger(__name__)

class _MockContractCall:
    def __init__(self, value: int):
        self.value = value

    async def call(self) -> int:
        return self.value

class _MockSafeFunctions:
    def __init__(self, nonce: int):
        self._nonce = nonce

    def nonce(self) -> _MockContractCall:
        return _MockContractCall(self._nonce)

class _MockSafeContract:
    def __init__(self, nonce: int):
        self.functions = _MockSafeFunctions(nonce)

class MockEth:
    """
    Scriptable ``w3.eth``. Configure the attributes, then hand the owning
    MockWeb3 to any pipeline component.
    """
    def __init__(self):
        self.base_fee_per_gas = 20_000_000_000
        self.priority_fee_reward = 1_000_000_000
        self.fee_history_error: Exception | None = None
        self.balances: Dict[str, int | Exception] = {}
        self.codes: Dict[str, bytes | Exception] = {}
        self.safe_nonces: Dict[str, int] = {}
        self.gas_estimates: Dict[str, int | Exception] = {}
        self.call_result: bytes | Exception = b""
        self.calls: List[Dict[str, Any]] = []
        self.estimate_requests: List[Dict[str, Any]] = []
        self.fee_history_requests: List[tuple] = []

    def set_simulation_revert(self, payload: bytes):
        """Make eth_call revert the way simulateAndRevert does."""
        data = "0x" + payload.hex()
        self.call_result = ContractCustomError(data, data=data)

    def set_revert_reason(self, reason: str):
        self.call_result = ContractLogicError(f"execution reverted: {reason}", data="0x08c379a0")

    async def fee_history(self, block_count: int, newest_block: str, reward_percentiles: list) -> dict:
        self.fee_history_requests.append((block_count, newest_block, list(reward_percentiles)))
        if self.fee_history_error is not None:
            raise self.fee_history_error
        return {
            "baseFeePerGas": [self.base_fee_per_gas, self.base_fee_per_gas],
            "reward": [[self.priority_fee_reward]],
            "oldestBlock": 1,
            "gasUsedRatio": [0.5],
        }

    @staticmethod
    def _outcome(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def get_balance(self, address: str) -> int:
        return self._outcome(self.balances.get(address.lower(), 0))

    async def get_code(self, address: str) -> bytes:
        return self._outcome(self.codes.get(address.lower(), b""))

    async def estimate_gas(self, tx: dict) -> int:
        self.estimate_requests.append(tx)
        outcome = self.gas_estimates.get(tx["to"].lower())
        if outcome is None:
            raise ContractLogicError("execution reverted")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def call(self, tx: dict) -> bytes:
        self.calls.append(tx)
        log.debug("MOCK_ETH_CALL", to=tx.get("to"))
        if isinstance(self.call_result, Exception):
            raise self.call_result
        return self.call_result

    def contract(self, address: str, abi: list) -> _MockSafeContract:
        return _MockSafeContract(self.safe_nonces.get(address.lower(), 0))

class MockWeb3:
    def __init__(self):
        self.eth = MockEth()

    async def is_connected(self) -> bool:
        return True
