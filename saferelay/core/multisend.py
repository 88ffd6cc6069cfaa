# /saferelay/core/multisend.py
"""Batching of several MetaTransactions into one MultiSend delegatecall.

Each leg is packed as::

    uint8 operation | address to | uint256 value | uint256 len(data) | data

and the concatenation is passed as the single ``bytes`` argument of
``multiSend(bytes)`` on the MultiSend contract.
"""
from typing import List, Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from saferelay.abis import MULTISEND_ABI, encode_function_call, function_selector
from saferelay.core.errors import DecodeFailure
from saferelay.core.models import MetaTransaction, OperationType

OPERATION_SIZE = 1
ADDRESS_SIZE = 20
UINT256_SIZE = 32
RECORD_HEADER_SIZE = OPERATION_SIZE + ADDRESS_SIZE + UINT256_SIZE + UINT256_SIZE

MULTISEND_SELECTOR = function_selector(MULTISEND_ABI, "multiSend")


def encode_multisend_transactions(transactions: Sequence[MetaTransaction]) -> bytes:
    """Packed concatenation of the legs, in input order."""
    packed = bytearray()
    for tx in transactions:
        data = tx.data_bytes
        packed += int(tx.operation).to_bytes(OPERATION_SIZE, "big")
        packed += bytes.fromhex(tx.to[2:])
        packed += tx.value_wei.to_bytes(UINT256_SIZE, "big")
        packed += len(data).to_bytes(UINT256_SIZE, "big")
        packed += data
    return bytes(packed)


def encode_multisend(transactions: Sequence[MetaTransaction], multisend_address: str) -> MetaTransaction:
    """Reduce ``transactions`` to the single MetaTransaction a Safe executes.

    One leg is returned as-is with ``operation`` forced to CALL; two or more are
    wrapped in a delegatecall to ``multisend_address``.
    """
    if not transactions:
        raise ValueError("at least one transaction is required")
    if len(transactions) == 1:
        return transactions[0].model_copy(update={"operation": OperationType.CALL})

    calldata = encode_function_call(MULTISEND_ABI, "multiSend", [encode_multisend_transactions(transactions)])
    return MetaTransaction(
        to=multisend_address,
        value="0",
        data=calldata,
        operation=OperationType.DELEGATE_CALL,
    )


def decode_multisend_transactions(packed: bytes) -> List[MetaTransaction]:
    """Inverse of :func:`encode_multisend_transactions`."""
    transactions = []
    offset = 0
    while offset < len(packed):
        if len(packed) - offset < RECORD_HEADER_SIZE:
            raise DecodeFailure(f"truncated MultiSend record header at byte {offset}")
        operation = packed[offset]
        offset += OPERATION_SIZE
        to = Web3.to_checksum_address("0x" + packed[offset:offset + ADDRESS_SIZE].hex())
        offset += ADDRESS_SIZE
        value = int.from_bytes(packed[offset:offset + UINT256_SIZE], "big")
        offset += UINT256_SIZE
        length = int.from_bytes(packed[offset:offset + UINT256_SIZE], "big")
        offset += UINT256_SIZE
        if len(packed) - offset < length:
            raise DecodeFailure(f"MultiSend record data overruns payload at byte {offset}")
        data = packed[offset:offset + length]
        offset += length
        try:
            op = OperationType(operation)
        except ValueError as e:
            raise DecodeFailure(f"unknown operation {operation} in MultiSend record") from e
        transactions.append(MetaTransaction(to=to, value=str(value), data=data, operation=op))
    return transactions


def decode_multisend(calldata: str | bytes) -> List[MetaTransaction]:
    """Decode full ``multiSend(bytes)`` calldata back into its legs."""
    raw = bytes.fromhex(calldata[2:]) if isinstance(calldata, str) else bytes(calldata)
    if raw[:4] != MULTISEND_SELECTOR:
        raise DecodeFailure("calldata is not a multiSend(bytes) call")
    try:
        (packed,) = decode(["bytes"], raw[4:])
    except DecodingError as e:
        raise DecodeFailure(f"malformed multiSend argument: {e}") from e
    return decode_multisend_transactions(packed)
