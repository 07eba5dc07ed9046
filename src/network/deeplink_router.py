import logging
from collections.abc import Callable
from typing import Any, TypeAlias
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

OnCallback: TypeAlias = Callable[[str], Any]


class DeepLinkRouter:
    """Dispatches callback URLs handed over by the OS to a handler per host."""

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme.lower()
        self.handlers: dict[str, OnCallback] = {}

    def register(self, host: str, on_callback: OnCallback) -> None:
        host = host.lower()
        if host in self.handlers:
            raise ValueError(f"Handler for host {host} already registered")
        self.handlers[host] = on_callback

    def unregister(self, host: str) -> None:
        self.handlers.pop(host.lower(), None)

    def can_handle(self, url: str) -> bool:
        parsed = urlparse(url)
        return parsed.scheme.lower() == self.scheme and (parsed.hostname or "") in self.handlers

    def dispatch(self, url: str) -> Any | None:
        parsed = urlparse(url)
        if parsed.scheme.lower() != self.scheme:
            logger.error("Invalid callback scheme: %s", parsed.scheme or "<none>")
            return None

        host = parsed.hostname or ""
        handler = self.handlers.get(host)
        if handler is None:
            logger.error("Unknown callback host: %s", host or "<none>")
            return None

        logger.debug("Routing callback to %s", host)
        return handler(url)
