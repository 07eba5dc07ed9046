import re
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, field_validator

Cluster = Literal["mainnet-beta", "testnet", "devnet"]

_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")


class DappConfig(BaseModel):
    """Static settings identifying the dapp to the wallet."""

    app_url: str = "https://myapp.com"
    redirect_scheme: str = "phantomconnect"
    wallet_base_url: str = "https://phantom.app/ul/v1"
    cluster: Cluster = "mainnet-beta"

    model_config = ConfigDict(frozen=True)

    @field_validator("app_url", "wallet_base_url")
    @classmethod
    def _absolute_http_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Expected an absolute http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("redirect_scheme")
    @classmethod
    def _valid_scheme(cls, value: str) -> str:
        if not _SCHEME.match(value):
            raise ValueError(f"Invalid URL scheme: {value!r}")
        return value.lower()

    def redirect_link(self, host: str) -> str:
        return f"{self.redirect_scheme}://{host}"
