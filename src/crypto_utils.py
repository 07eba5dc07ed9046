from typing import TypeAlias

from nacl.bindings import crypto_scalarmult
from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.secret import SecretBox
from nacl.signing import SigningKey, VerifyKey
from nacl.utils import random
from pydantic import BaseModel, ConfigDict, Field

from phantom.errors import AuthenticationFailed, InvalidInput, KeyAgreementFailed

Nonce: TypeAlias = bytes
Signature: TypeAlias = bytes
SymmetricKey: TypeAlias = bytes

KEY_SIZE = SecretBox.KEY_SIZE
NONCE_SIZE = SecretBox.NONCE_SIZE
PUBLIC_KEY_SIZE = PublicKey.SIZE


class SharedSecret(BaseModel):
    # X25519 output, the key material behind the handshake box
    raw_point: bytes = Field(..., min_length=KEY_SIZE, max_length=KEY_SIZE)
    # box precomputation (crypto_box_beforenm), reused as the secretbox key
    session_key: SymmetricKey = Field(..., min_length=KEY_SIZE, max_length=KEY_SIZE)

    model_config = ConfigDict(frozen=True)


class SealedEnvelope(BaseModel):
    ciphertext: bytes
    nonce: Nonce = Field(..., min_length=NONCE_SIZE, max_length=NONCE_SIZE)

    model_config = ConfigDict(frozen=True)


class SecretBytes:
    """Mutable holder for key material that can be overwritten in place."""

    def __init__(self, data: bytes) -> None:
        self._buffer = bytearray(data)

    def __bytes__(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return f"SecretBytes(<{len(self._buffer)} bytes>)"

    def wipe(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer.clear()


def _as_public_key(key: PublicKey | bytes) -> PublicKey:
    if isinstance(key, PublicKey):
        return key
    if len(key) != PUBLIC_KEY_SIZE:
        raise KeyAgreementFailed(
            f"Peer public key must be {PUBLIC_KEY_SIZE} bytes, got {len(key)}"
        )
    return PublicKey(bytes(key))


def _box(own_private: PrivateKey, peer_public: PublicKey | bytes) -> Box:
    try:
        return Box(own_private, _as_public_key(peer_public))
    except CryptoError as e:
        raise KeyAgreementFailed("Key agreement with peer public key failed") from e


def _check_key(key: SymmetricKey | SecretBytes) -> None:
    if len(key) != KEY_SIZE:
        raise InvalidInput(f"Key must be {KEY_SIZE} bytes, got {len(key)}")


def generate_keypair() -> tuple[PrivateKey, PublicKey]:
    private = PrivateKey.generate()
    return private, private.public_key


def derive_shared_secret(
    own_private: PrivateKey, peer_public: PublicKey | bytes
) -> SharedSecret:
    """
    Run X25519 against the peer key and derive the session key from it.

    The session key is the NaCl box precomputed key (HSalsa20 over the raw
    point), which is what the wallet uses for every secretbox after the
    handshake.
    """
    box = _box(own_private, peer_public)
    try:
        raw_point = crypto_scalarmult(own_private.encode(), _as_public_key(peer_public).encode())
    except CryptoError as e:
        raise KeyAgreementFailed("X25519 produced an invalid shared point") from e
    return SharedSecret(raw_point=raw_point, session_key=box.shared_key())


def seal_box(
    message: bytes, nonce: Nonce, peer_public: PublicKey | bytes, own_private: PrivateKey
) -> bytes:
    if len(nonce) != NONCE_SIZE:
        raise InvalidInput(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    encrypted = _box(own_private, peer_public).encrypt(message, nonce)
    return encrypted.ciphertext  # type: ignore


def open_box(
    ciphertext: bytes, nonce: Nonce, peer_public: PublicKey | bytes, own_private: PrivateKey
) -> bytes:
    if len(nonce) != NONCE_SIZE:
        raise AuthenticationFailed(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    box = _box(own_private, peer_public)
    try:
        plaintext: bytes = box.decrypt(ciphertext, nonce)
    except CryptoError as e:
        raise AuthenticationFailed("Box decryption failed") from e
    return plaintext


def seal_secretbox(message: bytes, key: SymmetricKey | SecretBytes) -> SealedEnvelope:
    _check_key(key)
    nonce = random(NONCE_SIZE)
    encrypted = SecretBox(bytes(key)).encrypt(message, nonce)
    return SealedEnvelope(ciphertext=encrypted.ciphertext, nonce=nonce)


def open_secretbox(
    ciphertext: bytes, nonce: Nonce, key: SymmetricKey | SecretBytes
) -> bytes:
    """
    Open a secretbox sent as separate nonce and ciphertext.

    Some wallets put nonce || ciphertext into the data field instead, so when
    the separate pair fails to authenticate the ciphertext is retried in that
    combined layout.
    """
    _check_key(key)
    if len(nonce) != NONCE_SIZE:
        raise AuthenticationFailed(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    box = SecretBox(bytes(key))
    try:
        plaintext: bytes = box.decrypt(ciphertext, nonce)
    except CryptoError as e:
        if len(ciphertext) <= NONCE_SIZE:
            raise AuthenticationFailed("SecretBox decryption failed") from e
        try:
            plaintext = box.decrypt(ciphertext)
        except CryptoError:
            raise AuthenticationFailed("SecretBox decryption failed") from e
    return plaintext


def sign_message(signing_key: SigningKey, message: bytes) -> Signature:
    return signing_key.sign(message).signature  # type: ignore


def verify_signature(verify_key: VerifyKey | bytes, message: bytes, signature: Signature) -> bool:
    try:
        if not isinstance(verify_key, VerifyKey):
            verify_key = VerifyKey(bytes(verify_key))
        verify_key.verify(message, signature)
        return True
    except CryptoError:
        return False
