"""ABI fragments of the Safe contracts and a small calldata encoder over them."""

from eth_abi import encode
from web3 import Web3

from saferelay.abis.safe import MULTISEND_ABI, SAFE_ABI, SIMULATE_TX_ACCESSOR_ABI

__all__ = [
    "MULTISEND_ABI",
    "SAFE_ABI",
    "SIMULATE_TX_ACCESSOR_ABI",
    "encode_function_call",
    "function_selector",
]


def _function_abi(abi: list, name: str) -> dict:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == name:
            return entry
    raise KeyError(f"function {name!r} not found in ABI")


def function_selector(abi: list, name: str) -> bytes:
    """4-byte selector of ``name`` as declared in ``abi``."""
    fn = _function_abi(abi, name)
    signature = f"{name}({','.join(i['type'] for i in fn['inputs'])})"
    return Web3.keccak(text=signature)[:4]


def encode_function_call(abi: list, name: str, args: list) -> bytes:
    fn = _function_abi(abi, name)
    return function_selector(abi, name) + encode([i["type"] for i in fn["inputs"]], args)
