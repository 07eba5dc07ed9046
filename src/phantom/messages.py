from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from phantom.errors import ProtocolError


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SIGNING = "signing"


class WalletPayload(BaseModel):  # type: ignore
    model_config = ConfigDict(extra="ignore")


class ConnectPayload(WalletPayload):
    public_key: str = Field(..., min_length=1, strict=True)
    session: str = Field(..., min_length=1, strict=True)


class SignRequestPayload(WalletPayload):
    message: str  # base58 of the utf-8 message
    session: str
    display: Literal["utf8", "hex"] = "utf8"


class SignResponsePayload(WalletPayload):
    signature: str = Field(..., min_length=1, strict=True)


class OutgoingRequest(BaseModel):
    action: Literal["connect", "signMessage"]
    url: str
    params: dict[str, str]


class ProtocolResult(BaseModel):
    error: ProtocolError | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def ok(self) -> bool:
        return self.error is None


class ConnectResult(ProtocolResult):
    public_key: str | None = None
    session: str | None = None


class SignResult(ProtocolResult):
    signature: str | None = None


class SessionEvent(BaseModel):
    state: SessionState
    wallet_public_key: str | None = None
    signature: str | None = None
    error: ProtocolError | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
