# /test/test_multisend.py
import pytest
from eth_abi import decode

from saferelay.core.errors import DecodeFailure
from saferelay.core.models import MetaTransaction, OperationType
from saferelay.core.multisend import (
    MULTISEND_SELECTOR,
    RECORD_HEADER_SIZE,
    decode_multisend,
    decode_multisend_transactions,
    encode_multisend,
    encode_multisend_transactions,
)

MULTISEND = "0xa238cbeb142c10ef7ad8442c6d1f9e89e07e7761"
TARGET_A = "0x" + "aa" * 20
TARGET_B = "0x" + "bb" * 20
TARGET_C = "0x" + "cc" * 20


def test_selector_is_multisend_bytes():
    assert MULTISEND_SELECTOR.hex() == "8d80ff0a"


@pytest.mark.parametrize("operation", [OperationType.CALL, OperationType.DELEGATE_CALL])
def test_single_transaction_passes_through_as_call(operation):
    tx = MetaTransaction(to=TARGET_A, value="12", data="0xdeadbeef", operation=operation)

    result = encode_multisend([tx], MULTISEND)

    assert result == tx.model_copy(update={"operation": OperationType.CALL})
    assert result.to == tx.to
    assert result.operation is OperationType.CALL


def test_empty_batch_is_rejected():
    with pytest.raises(ValueError):
        encode_multisend([], MULTISEND)


def test_record_layout():
    tx = MetaTransaction(to=TARGET_A, value="5", data="0x0102", operation=OperationType.DELEGATE_CALL)

    packed = encode_multisend_transactions([tx])

    assert len(packed) == RECORD_HEADER_SIZE + 2
    assert packed[0] == 1
    assert packed[1:21] == bytes.fromhex("aa" * 20)
    assert int.from_bytes(packed[21:53], "big") == 5
    assert int.from_bytes(packed[53:85], "big") == 2
    assert packed[85:] == b"\x01\x02"


def test_batch_targets_multisend_with_delegatecall():
    txs = [
        MetaTransaction(to=TARGET_A, value="1", data="0x"),
        MetaTransaction(to=TARGET_B, value="0", data="0xa9059cbb" + "00" * 64),
    ]

    result = encode_multisend(txs, MULTISEND)

    assert result.operation is OperationType.DELEGATE_CALL
    assert result.to.lower() == MULTISEND
    assert result.value == "0"
    assert result.data_bytes[:4] == MULTISEND_SELECTOR
    (packed,) = decode(["bytes"], result.data_bytes[4:])
    assert packed == encode_multisend_transactions(txs)


def test_batch_round_trip_preserves_order():
    txs = [
        MetaTransaction(to=TARGET_C, value="1000000000000000000", data="0x"),
        MetaTransaction(to=TARGET_A, value="0", data="0x095ea7b3" + "11" * 64),
        MetaTransaction(to=TARGET_B, value="7", data="0xff", operation=OperationType.DELEGATE_CALL),
    ]

    result = encode_multisend(txs, MULTISEND)

    assert decode_multisend(result.data) == txs


def test_truncated_records_fail_to_decode():
    packed = encode_multisend_transactions([MetaTransaction(to=TARGET_A, data="0x010203")])

    with pytest.raises(DecodeFailure):
        decode_multisend_transactions(packed[:-1])
    with pytest.raises(DecodeFailure):
        decode_multisend_transactions(packed[:RECORD_HEADER_SIZE - 1])


def test_decode_rejects_foreign_calldata():
    with pytest.raises(DecodeFailure):
        decode_multisend("0x12345678" + "00" * 64)
