# /saferelay/core/models.py
# Value types flowing through the pipeline. All are frozen: they are built by
# the caller or by a single pipeline step and never mutated afterwards.
from enum import IntEnum
from typing import Any, Dict

from hexbytes import HexBytes
from pydantic import BaseModel, Field, field_validator
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class OperationType(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1


class MetaTransaction(BaseModel):
    """A single call a Safe should perform."""
    to: str
    value: str = "0"
    data: str = "0x"
    operation: OperationType = OperationType.CALL

    class Config:
        frozen = True

    @field_validator("to")
    @classmethod
    def _checksum_to(cls, v: str) -> str:
        return Web3.to_checksum_address(v)

    @field_validator("value", mode="before")
    @classmethod
    def _decimal_value(cls, v: Any) -> str:
        text = str(v).strip()
        if not text.isdigit():
            raise ValueError(f"value must be a non-negative decimal integer, got {v!r}")
        return str(int(text))

    @field_validator("data", mode="before")
    @classmethod
    def _hex_data(cls, v: Any) -> str:
        if isinstance(v, (bytes, bytearray)):
            return "0x" + bytes(v).hex()
        text = str(v).strip() or "0x"
        if not text.startswith(("0x", "0X")):
            text = "0x" + text
        try:
            return "0x" + bytes.fromhex(text[2:]).hex()
        except ValueError as e:
            raise ValueError(f"data must be a hex byte string, got {v!r}") from e

    @property
    def value_wei(self) -> int:
        return int(self.value)

    @property
    def data_bytes(self) -> bytes:
        return bytes(HexBytes(self.data))


class GasEstimate(BaseModel):
    safe_tx_gas: int = Field(ge=0)
    base_gas: int = Field(ge=0)
    gas_price: int = Field(gt=0)

    class Config:
        frozen = True

    @property
    def total_gas_cost(self) -> int:
        return (self.safe_tx_gas + self.base_gas) * self.gas_price


class SafeTransaction(MetaTransaction):
    """A MetaTransaction with its gas parameters, ready to be signed."""
    safe_tx_gas: int = Field(ge=0)
    base_gas: int = Field(ge=0)
    gas_price: int = Field(gt=0)
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    nonce: int = Field(ge=0)

    @property
    def estimate(self) -> GasEstimate:
        return GasEstimate(safe_tx_gas=self.safe_tx_gas, base_gas=self.base_gas, gas_price=self.gas_price)

    @property
    def total_gas_cost(self) -> int:
        return (self.safe_tx_gas + self.base_gas) * self.gas_price


class FeeSample(BaseModel):
    """Base fee and priority-fee reward of one block at the requested percentile."""
    base_fee_per_gas: int = Field(ge=0)
    priority_fee_reward: int = Field(ge=0)

    class Config:
        frozen = True


class RelayEnvelope(BaseModel):
    """Body posted to the relay endpoint. Gas values travel as decimal strings."""
    to: str
    value: str
    data: str
    operation: int
    safe_tx_gas: str = Field(alias="safeTxGas")
    base_gas: str = Field(alias="baseGas")
    gas_price: str = Field(alias="gasPrice")
    gas_token: str = Field(alias="gasToken")
    refund_receiver: str = Field(alias="refundReceiver")
    nonce: int
    signatures: str

    class Config:
        frozen = True
        populate_by_name = True

    @classmethod
    def from_safe_transaction(cls, safe_tx: SafeTransaction, signatures: str) -> "RelayEnvelope":
        return cls(
            to=safe_tx.to,
            value=safe_tx.value,
            data=safe_tx.data,
            operation=int(safe_tx.operation),
            safe_tx_gas=str(safe_tx.safe_tx_gas),
            base_gas=str(safe_tx.base_gas),
            gas_price=str(safe_tx.gas_price),
            gas_token=safe_tx.gas_token,
            refund_receiver=safe_tx.refund_receiver,
            nonce=safe_tx.nonce,
            signatures=signatures,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class SponsoredAddress(BaseModel):
    target_address: str = Field(alias="targetAddress")

    class Config:
        populate_by_name = True
        extra = "ignore"
