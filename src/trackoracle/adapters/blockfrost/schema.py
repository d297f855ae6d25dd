"""Pydantic models describing the Blockfrost API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, TypeAdapter

LOVELACE_UNIT = "lovelace"


class BlockfrostBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AmountPayload(BlockfrostBaseModel):
    unit: str
    quantity: int


class UtxoPayload(BlockfrostBaseModel):
    address: str
    tx_hash: str
    output_index: int
    amount: list[AmountPayload]
    data_hash: str | None = None
    inline_datum: str | None = None
    reference_script_hash: str | None = None

    @property
    def lovelace(self) -> int:
        return sum(item.quantity for item in self.amount if item.unit == LOVELACE_UNIT)


class ErrorPayload(BlockfrostBaseModel):
    status_code: int
    error: str
    message: str = ""


UtxoPage = TypeAdapter(list[UtxoPayload])
