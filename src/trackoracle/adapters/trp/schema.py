"""Pydantic models for the TRP JSON-RPC envelope."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"


class TrpBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TirEnvelope(TrpBaseModel):
    content: str
    encoding: str = "hex"
    version: str


class ResolveParams(TrpBaseModel):
    tir: TirEnvelope
    args: dict[str, str | int]


class JsonRpcRequest(TrpBaseModel):
    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: ResolveParams
    id: int


class JsonRpcErrorPayload(TrpBaseModel):
    code: int
    message: str
    data: object | None = None


class ResolvedTransaction(TrpBaseModel):
    tx: str
    tx_hash: str = Field(alias="hash")


class JsonRpcResponse(TrpBaseModel):
    id: int | str | None = None
    result: ResolvedTransaction | None = None
    error: JsonRpcErrorPayload | None = None
