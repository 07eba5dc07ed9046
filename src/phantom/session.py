import logging
import threading
from collections.abc import Callable
from typing import TypeAlias, TypeVar

from nacl.public import PrivateKey, PublicKey
from pydantic import BaseModel, ConfigDict, ValidationError

from codec import base58
from crypto_utils import (
    SecretBytes,
    derive_shared_secret,
    generate_keypair,
    open_box,
    open_secretbox,
    seal_secretbox,
)
from crypto_utils import verify_signature as verify_ed25519
from network.deeplink_router import DeepLinkRouter
from phantom.config import DappConfig
from phantom.errors import (
    AuthenticationFailed,
    DecryptionFailed,
    HandshakeFailed,
    InvalidInput,
    MalformedPayload,
    MalformedResponse,
    NotConnected,
    PeerRejected,
    ProtocolError,
)
from phantom.messages import (
    ConnectPayload,
    ConnectResult,
    OutgoingRequest,
    SessionEvent,
    SessionState,
    SignRequestPayload,
    SignResponsePayload,
    SignResult,
    WalletPayload,
)
from phantom.urls import CallbackUrl, build_request, parse_callback

logger = logging.getLogger(__name__)

CONNECTED_HOST = "connected"
SIGNED_HOST = "signed"

Listener: TypeAlias = Callable[[SessionEvent], None]
P = TypeVar("P", bound=WalletPayload)


def _parse_payload(plaintext: bytes, model: type[P]) -> P:
    try:
        return model.model_validate_json(plaintext)
    except ValidationError as e:
        raise MalformedPayload(f"Invalid {model.__name__}: {e.error_count()} error(s)") from e


class PendingHandshake(BaseModel):  # type: ignore
    dapp_private: PrivateKey
    dapp_public: PublicKey

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def receive_response(self, callback: CallbackUrl) -> "ReadySession":
        peer_b58, nonce_b58, data_b58 = callback.require(
            "phantom_encryption_public_key", "nonce", "data"
        )
        peer_public = base58.decode(peer_b58)
        nonce = base58.decode(nonce_b58)
        ciphertext = base58.decode(data_b58)

        shared = derive_shared_secret(self.dapp_private, peer_public)
        try:
            plaintext = open_box(ciphertext, nonce, peer_public, self.dapp_private)
        except AuthenticationFailed as e:
            raise HandshakeFailed("Connect response does not match the pending keypair") from e

        payload = _parse_payload(plaintext, ConnectPayload)
        return ReadySession(
            dapp_private=self.dapp_private,
            dapp_public=self.dapp_public,
            wallet_encryption_key=peer_public,
            session_key=SecretBytes(shared.session_key),
            session_token=payload.session,
            wallet_public_key=payload.public_key,
        )


class ReadySession(BaseModel):  # type: ignore
    dapp_private: PrivateKey
    dapp_public: PublicKey
    wallet_encryption_key: bytes
    session_key: SecretBytes
    session_token: str
    wallet_public_key: str
    pending_message: bytes | None = None
    last_signed_message: bytes | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def encrypt_sign_request(self, message: bytes, display: str) -> tuple[str, str]:
        payload = SignRequestPayload(
            message=base58.encode(message),
            session=self.session_token,
            display=display,
        )
        sealed = seal_secretbox(payload.model_dump_json().encode("utf-8"), self.session_key)
        return base58.encode(sealed.nonce), base58.encode(sealed.ciphertext)

    def receive_signature(self, callback: CallbackUrl) -> str:
        nonce_b58, data_b58 = callback.require("nonce", "data")
        nonce = base58.decode(nonce_b58)
        ciphertext = base58.decode(data_b58)

        try:
            plaintext = open_secretbox(ciphertext, nonce, self.session_key)
        except AuthenticationFailed as e:
            raise DecryptionFailed("Sign response failed authentication") from e

        return _parse_payload(plaintext, SignResponsePayload).signature

    def wipe(self) -> None:
        self.session_key.wipe()
        self.session_token = ""
        self.wallet_encryption_key = b""


Session: TypeAlias = PendingHandshake | ReadySession


class PhantomSession:
    """
    One dapp-to-wallet session driven entirely through deep links.

    Outgoing operations return the URL to open and raise on misuse. Response
    handlers never raise a ProtocolError; they return it inside the result
    and leave the session in a consistent state.
    """

    def __init__(self, config: DappConfig | None = None) -> None:
        self.config = config or DappConfig()
        self._lock = threading.RLock()
        self._session: Session | None = None
        self._listeners: list[Listener] = []
        self.last_error: ProtocolError | None = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            session = self._session
            if isinstance(session, PendingHandshake):
                return SessionState.CONNECTING
            if isinstance(session, ReadySession):
                if session.pending_message is not None:
                    return SessionState.SIGNING
                return SessionState.CONNECTED
            return SessionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state in (SessionState.CONNECTED, SessionState.SIGNING)

    @property
    def dapp_public_key(self) -> str | None:
        with self._lock:
            if self._session is None:
                return None
            return base58.encode(self._session.dapp_public.encode())

    @property
    def wallet_public_key(self) -> str | None:
        with self._lock:
            if isinstance(self._session, ReadySession):
                return self._session.wallet_public_key
            return None

    @property
    def session_token(self) -> str | None:
        with self._lock:
            if isinstance(self._session, ReadySession):
                return self._session.session_token
            return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def attach(self, router: DeepLinkRouter) -> None:
        router.register(CONNECTED_HOST, self.handle_connect_response)
        router.register(SIGNED_HOST, self.handle_sign_response)

    # -- connect ---------------------------------------------------------

    def begin_connect(self) -> OutgoingRequest:
        with self._lock:
            self._wipe()
            dapp_private, dapp_public = generate_keypair()
            try:
                request = build_request(
                    self.config,
                    "connect",
                    {
                        "app_url": self.config.app_url,
                        "dapp_encryption_public_key": base58.encode(dapp_public.encode()),
                        "redirect_link": self.config.redirect_link(CONNECTED_HOST),
                        "cluster": self.config.cluster,
                    },
                )
            except ProtocolError as e:
                self._set(None, error=self._report(e))
                raise
            self._set(PendingHandshake(dapp_private=dapp_private, dapp_public=dapp_public))
            logger.debug("Connect request built for cluster %s", self.config.cluster)
            return request

    def handle_connect_response(self, url: str) -> ConnectResult:
        with self._lock:
            session = self._session
            if not isinstance(session, PendingHandshake):
                return ConnectResult(error=self._report(NotConnected("No connection attempt in progress")))

            try:
                callback = parse_callback(url)
                rejected = callback.peer_error()
                if rejected is not None:
                    raise PeerRejected(*rejected)
                ready = session.receive_response(callback)
            except ProtocolError as e:
                self._wipe()
                self._set(None, error=e)
                return ConnectResult(error=self._report(e))

            self.last_error = None
            self._set(ready)
            logger.info("Connected to wallet %s", ready.wallet_public_key)
            return ConnectResult(public_key=ready.wallet_public_key, session=ready.session_token)

    # -- sign ------------------------------------------------------------

    def begin_sign(self, message: str | bytes, display: str = "utf8") -> OutgoingRequest:
        with self._lock:
            session = self._session
            if not isinstance(session, ReadySession):
                raise self._report(NotConnected("Not connected to wallet"))
            if session.pending_message is not None:
                raise self._report(NotConnected("A sign request is already awaiting a response"))

            raw = message.encode("utf-8") if isinstance(message, str) else bytes(message)
            try:
                nonce_b58, payload_b58 = session.encrypt_sign_request(raw, display)
            except ValidationError as e:
                error = InvalidInput(f"Unsupported display encoding: {display!r}")
                raise self._report(error) from e
            try:
                request = build_request(
                    self.config,
                    "signMessage",
                    {
                        "dapp_encryption_public_key": base58.encode(session.dapp_public.encode()),
                        "nonce": nonce_b58,
                        "redirect_link": self.config.redirect_link(SIGNED_HOST),
                        "payload": payload_b58,
                    },
                )
            except ProtocolError as e:
                self._report(e)
                raise
            session.pending_message = raw
            self._set(session)
            logger.debug("Sign request built for %d byte message", len(raw))
            return request

    def handle_sign_response(self, url: str) -> SignResult:
        with self._lock:
            session = self._session
            if not isinstance(session, ReadySession):
                return SignResult(error=self._report(NotConnected("Not connected to wallet")))

            message = session.pending_message
            session.pending_message = None
            try:
                callback = parse_callback(url)
                rejected = callback.peer_error()
                if rejected is not None:
                    raise PeerRejected(*rejected)
                signature = session.receive_signature(callback)
            except ProtocolError as e:
                self._set(session, error=e)
                return SignResult(error=self._report(e))

            if message is not None:
                session.last_signed_message = message
            self.last_error = None
            self._set(session, signature=signature)
            logger.info("Message signed by wallet %s", session.wallet_public_key)
            return SignResult(signature=signature)

    def verify_signature(self, signature: str, message: str | bytes | None = None) -> bool:
        """
        Check a base58 signature against the connected wallet address.

        Defaults to the last message the wallet signed in this session.
        """
        with self._lock:
            session = self._session
            if not isinstance(session, ReadySession):
                raise NotConnected("Not connected to wallet")
            if message is None:
                message = session.last_signed_message
            if message is None:
                return False
            if not (base58.is_base58(signature) and base58.is_base58(session.wallet_public_key)):
                return False
            raw = message.encode("utf-8") if isinstance(message, str) else bytes(message)
            verify_key = base58.decode(session.wallet_public_key)
            return verify_ed25519(verify_key, raw, base58.decode(signature))

    # -- routing / teardown ----------------------------------------------

    def handle_callback(self, url: str) -> ConnectResult | SignResult:
        """
        Route a callback URL to the matching response handler by host.

        Callbacks that belong to neither handler come back as a ConnectResult
        carrying MalformedResponse.
        """
        try:
            callback = parse_callback(url)
        except ProtocolError as e:
            return ConnectResult(error=self._report(e))

        if callback.scheme != self.config.redirect_scheme:
            error = MalformedResponse(f"Unexpected callback scheme: {callback.scheme!r}")
            return ConnectResult(error=self._report(error))
        if callback.host == CONNECTED_HOST:
            return self.handle_connect_response(url)
        if callback.host == SIGNED_HOST:
            return self.handle_sign_response(url)
        error = MalformedResponse(f"Unknown callback host: {callback.host!r}")
        return ConnectResult(error=self._report(error))

    def disconnect(self) -> None:
        with self._lock:
            was = self.state
            self._wipe()
            self.last_error = None
            if was is not SessionState.DISCONNECTED:
                self._set(None)
            logger.debug("Disconnected (was %s)", was.value)

    # -- internals -------------------------------------------------------

    def _wipe(self) -> None:
        if isinstance(self._session, ReadySession):
            self._session.wipe()
        self._session = None

    def _report(self, error: ProtocolError) -> ProtocolError:
        self.last_error = error
        logger.warning("%s: %s", type(error).__name__, error)
        return error

    def _set(
        self,
        session: Session | None,
        signature: str | None = None,
        error: ProtocolError | None = None,
    ) -> None:
        self._session = session
        event = SessionEvent(
            state=self.state,
            wallet_public_key=self.wallet_public_key,
            signature=signature,
            error=error,
        )
        logger.debug("Session state: %s", event.state.value)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener %r failed", listener)
