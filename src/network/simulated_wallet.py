import logging
import secrets
from urllib.parse import parse_qs, quote, urlencode, urlparse

from nacl.public import PrivateKey
from nacl.signing import SigningKey
from nacl.utils import random

from codec import base58
from crypto_utils import (
    NONCE_SIZE,
    SymmetricKey,
    derive_shared_secret,
    generate_keypair,
    open_secretbox,
    seal_box,
    seal_secretbox,
    sign_message,
)
from phantom.messages import ConnectPayload, SignRequestPayload, SignResponsePayload

logger = logging.getLogger(__name__)

USER_REJECTED = "4001"


class SimulatedWallet:
    """
    In-process stand-in for the wallet app on the other side of the deep links.

    It answers requests the way the real wallet does: the connect response is
    sealed with box under a fresh wallet keypair, later responses with
    secretbox under the box precomputed key.
    """

    def __init__(self, signing_key: SigningKey | None = None) -> None:
        self.signing_key = signing_key or SigningKey.generate()
        self.address = base58.encode(self.signing_key.verify_key.encode())
        self.encryption_private: PrivateKey | None = None
        self.session_keys: dict[str, SymmetricKey] = {}
        self.sessions: set[str] = set()

    @staticmethod
    def _query(request_url: str) -> tuple[str, dict[str, str]]:
        parsed = urlparse(request_url)
        action = parsed.path.rsplit("/", 1)[-1]
        params = {name: values[0] for name, values in parse_qs(parsed.query).items()}
        return action, params

    @staticmethod
    def _callback(redirect_link: str, params: dict[str, str]) -> str:
        return f"{redirect_link}?{urlencode(params, quote_via=quote)}"

    def handle(self, request_url: str) -> str:
        """Approve whatever the request asks for and return the callback URL."""
        action, _ = self._query(request_url)
        if action == "connect":
            return self.approve_connect(request_url)
        if action == "signMessage":
            return self.approve_sign(request_url)
        raise ValueError(f"Unsupported wallet action: {action}")

    def approve_connect(self, request_url: str) -> str:
        _, params = self._query(request_url)
        dapp_public = base58.decode(params["dapp_encryption_public_key"])

        self.encryption_private, encryption_public = generate_keypair()
        session = base58.encode(secrets.token_bytes(32))
        self.sessions.add(session)

        plaintext = ConnectPayload(public_key=self.address, session=session).model_dump_json()
        nonce = random(NONCE_SIZE)
        ciphertext = seal_box(plaintext.encode("utf-8"), nonce, dapp_public, self.encryption_private)

        shared = derive_shared_secret(self.encryption_private, dapp_public)
        self.session_keys[params["dapp_encryption_public_key"]] = shared.session_key
        logger.debug("Wallet approved connect for cluster %s", params.get("cluster"))

        return self._callback(
            params["redirect_link"],
            {
                "phantom_encryption_public_key": base58.encode(encryption_public.encode()),
                "nonce": base58.encode(nonce),
                "data": base58.encode(ciphertext),
            },
        )

    def approve_sign(self, request_url: str) -> str:
        _, params = self._query(request_url)
        key = self.session_keys.get(params["dapp_encryption_public_key"])
        if key is None:
            raise ValueError("Sign request from a dapp that never connected")

        plaintext = open_secretbox(
            base58.decode(params["payload"]), base58.decode(params["nonce"]), key
        )
        request = SignRequestPayload.model_validate_json(plaintext)
        if request.session not in self.sessions:
            return self.reject(request_url, USER_REJECTED, "Invalid session")

        signature = sign_message(self.signing_key, base58.decode(request.message))
        response = SignResponsePayload(signature=base58.encode(signature)).model_dump_json()
        sealed = seal_secretbox(response.encode("utf-8"), key)
        logger.debug("Wallet signed %s message", request.display)

        return self._callback(
            params["redirect_link"],
            {"nonce": base58.encode(sealed.nonce), "data": base58.encode(sealed.ciphertext)},
        )

    def reject(
        self, request_url: str, code: str = USER_REJECTED, message: str = "User rejected the request."
    ) -> str:
        _, params = self._query(request_url)
        return self._callback(params["redirect_link"], {"errorCode": code, "errorMessage": message})

    def revoke(self, session: str) -> None:
        self.sessions.discard(session)
