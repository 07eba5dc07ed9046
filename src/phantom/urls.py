from urllib.parse import parse_qs, quote, urlencode, urlparse

from pydantic import BaseModel

from phantom.config import DappConfig
from phantom.errors import MalformedResponse, UrlConstructionFailed
from phantom.messages import OutgoingRequest

ERROR_CODE = "errorCode"
ERROR_MESSAGE = "errorMessage"


class CallbackUrl(BaseModel):
    scheme: str
    host: str
    params: dict[str, str]

    def peer_error(self) -> tuple[str, str] | None:
        """The wallet's (code, message) pair, if the callback reports one."""
        if ERROR_CODE not in self.params and ERROR_MESSAGE not in self.params:
            return None
        return self.params.get(ERROR_CODE, ""), self.params.get(ERROR_MESSAGE, "")

    def require(self, *names: str) -> list[str]:
        missing = [name for name in names if not self.params.get(name)]
        if missing:
            raise MalformedResponse(f"Missing required response parameters: {', '.join(missing)}")
        return [self.params[name] for name in names]


def build_request(config: DappConfig, action: str, params: dict[str, str]) -> OutgoingRequest:
    """
    Build the universal link that asks the wallet to perform `action`.

    Every value is percent-encoded in full, so reserved characters inside
    nested URLs (app_url, redirect_link) survive the round trip.
    """
    empty = [name for name, value in params.items() if not value]
    if empty:
        raise UrlConstructionFailed(f"Empty query parameters: {', '.join(empty)}")

    try:
        query = urlencode(params, quote_via=quote)
    except (TypeError, UnicodeEncodeError) as e:
        raise UrlConstructionFailed(f"Cannot percent-encode query for {action}") from e

    url = f"{config.wallet_base_url}/{action}?{query}"
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise UrlConstructionFailed(f"Invalid request URL: {url}")

    return OutgoingRequest(action=action, url=url, params=dict(params))


def parse_callback(url: str) -> CallbackUrl:
    try:
        parsed = urlparse(url)
        query = parse_qs(parsed.query, keep_blank_values=True)
    except (TypeError, ValueError) as e:
        raise MalformedResponse(f"Invalid response URL: {url!r}") from e

    return CallbackUrl(
        scheme=parsed.scheme.lower(),
        host=(parsed.hostname or "").lower(),
        params={name: values[0] for name, values in query.items()},
    )
