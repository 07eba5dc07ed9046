import os
import secrets

import pytest
from nacl.public import PrivateKey, PublicKey
from nacl.secret import SecretBox
from nacl.signing import SigningKey

from crypto_utils import (
    KEY_SIZE,
    NONCE_SIZE,
    SecretBytes,
    derive_shared_secret,
    generate_keypair,
    open_box,
    open_secretbox,
    seal_box,
    seal_secretbox,
    sign_message,
    verify_signature,
)
from phantom.errors import AuthenticationFailed, InvalidInput, KeyAgreementFailed


@pytest.fixture  # type: ignore
def alice() -> tuple[PrivateKey, PublicKey]:
    return generate_keypair()


@pytest.fixture  # type: ignore
def bob() -> tuple[PrivateKey, PublicKey]:
    return generate_keypair()


@pytest.fixture  # type: ignore
def key() -> bytes:
    return secrets.token_bytes(KEY_SIZE)


def flip_bit(data: bytes, index: int = 0) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1 :]


class TestKeyAgreement:
    def test_generate_keypair(self) -> None:
        private, public = generate_keypair()
        assert public == private.public_key
        assert len(public.encode()) == 32

    def test_keypairs_are_fresh(self) -> None:
        assert generate_keypair()[1] != generate_keypair()[1]

    def test_shared_secret_is_commutative(self, alice, bob) -> None:
        alice_private, alice_public = alice
        bob_private, bob_public = bob

        ours = derive_shared_secret(alice_private, bob_public)
        theirs = derive_shared_secret(bob_private, alice_public)

        assert ours == theirs
        assert len(ours.raw_point) == KEY_SIZE
        assert len(ours.session_key) == KEY_SIZE

    def test_session_key_differs_from_raw_point(self, alice, bob) -> None:
        secret = derive_shared_secret(alice[0], bob[1])
        assert secret.session_key != secret.raw_point

    def test_accepts_raw_public_key_bytes(self, alice, bob) -> None:
        assert derive_shared_secret(alice[0], bob[1].encode()) == derive_shared_secret(
            alice[0], bob[1]
        )

    @pytest.mark.parametrize("size", [0, 31, 33, 64])
    def test_wrong_length_peer_key(self, alice, size: int) -> None:
        with pytest.raises(KeyAgreementFailed):
            derive_shared_secret(alice[0], os.urandom(size))

    def test_low_order_peer_key(self, alice) -> None:
        with pytest.raises(KeyAgreementFailed):
            derive_shared_secret(alice[0], bytes(32))


class TestBox:
    def test_seal_and_open(self, alice, bob) -> None:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = seal_box(b"handshake", nonce, bob[1], alice[0])

        assert open_box(ciphertext, nonce, alice[1], bob[0]) == b"handshake"

    def test_open_with_wrong_keypair(self, alice, bob) -> None:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = seal_box(b"handshake", nonce, bob[1], alice[0])
        stranger, _ = generate_keypair()

        with pytest.raises(AuthenticationFailed):
            open_box(ciphertext, nonce, alice[1], stranger)

    def test_open_tampered_ciphertext(self, alice, bob) -> None:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = seal_box(b"handshake", nonce, bob[1], alice[0])

        with pytest.raises(AuthenticationFailed):
            open_box(flip_bit(ciphertext, 20), nonce, alice[1], bob[0])

    def test_open_with_short_nonce(self, alice, bob) -> None:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = seal_box(b"handshake", nonce, bob[1], alice[0])

        with pytest.raises(AuthenticationFailed):
            open_box(ciphertext, nonce[:-1], alice[1], bob[0])

    def test_seal_with_short_nonce(self, alice, bob) -> None:
        with pytest.raises(InvalidInput):
            seal_box(b"handshake", os.urandom(12), bob[1], alice[0])

    def test_box_key_matches_secretbox_session_key(self, alice, bob) -> None:
        # A box sealed by one side opens as a secretbox under the derived session key
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = seal_box(b"shared", nonce, bob[1], alice[0])
        session_key = derive_shared_secret(bob[0], alice[1]).session_key

        assert open_secretbox(ciphertext, nonce, session_key) == b"shared"


class TestSecretBox:
    @pytest.mark.parametrize("message", [b"", b"hello", os.urandom(1024)])
    def test_seal_and_open(self, key: bytes, message: bytes) -> None:
        sealed = seal_secretbox(message, key)

        assert len(sealed.nonce) == NONCE_SIZE
        assert open_secretbox(sealed.ciphertext, sealed.nonce, key) == message

    def test_fresh_nonce_per_call(self, key: bytes) -> None:
        first = seal_secretbox(b"same", key)
        second = seal_secretbox(b"same", key)

        assert first.nonce != second.nonce
        assert first.ciphertext != second.ciphertext

    def test_wrong_key(self, key: bytes) -> None:
        sealed = seal_secretbox(b"secret", key)

        with pytest.raises(AuthenticationFailed):
            open_secretbox(sealed.ciphertext, sealed.nonce, secrets.token_bytes(KEY_SIZE))

    def test_flipped_ciphertext_bit(self, key: bytes) -> None:
        sealed = seal_secretbox(b"secret", key)

        with pytest.raises(AuthenticationFailed):
            open_secretbox(flip_bit(sealed.ciphertext), sealed.nonce, key)

    def test_wrong_nonce(self, key: bytes) -> None:
        sealed = seal_secretbox(b"secret", key)

        with pytest.raises(AuthenticationFailed):
            open_secretbox(sealed.ciphertext, flip_bit(sealed.nonce), key)

    @pytest.mark.parametrize("size", [0, 16, 23, 25, 48])
    def test_nonce_length_mismatch(self, key: bytes, size: int) -> None:
        sealed = seal_secretbox(b"secret", key)

        with pytest.raises(AuthenticationFailed):
            open_secretbox(sealed.ciphertext, os.urandom(size), key)

    def test_truncated_ciphertext(self, key: bytes) -> None:
        sealed = seal_secretbox(b"secret", key)

        with pytest.raises(AuthenticationFailed):
            open_secretbox(sealed.ciphertext[:10], sealed.nonce, key)

    def test_combined_nonce_and_ciphertext(self, key: bytes) -> None:
        combined = SecretBox(key).encrypt(b"combined")

        assert open_secretbox(bytes(combined), os.urandom(NONCE_SIZE), key) == b"combined"

    def test_combined_layout_with_wrong_key(self, key: bytes) -> None:
        combined = SecretBox(secrets.token_bytes(KEY_SIZE)).encrypt(b"combined")

        with pytest.raises(AuthenticationFailed):
            open_secretbox(bytes(combined), combined.nonce, key)

    @pytest.mark.parametrize("size", [0, 16, 31, 33])
    def test_key_length_mismatch(self, size: int) -> None:
        with pytest.raises(InvalidInput):
            seal_secretbox(b"secret", os.urandom(size))
        with pytest.raises(InvalidInput):
            open_secretbox(b"x" * 32, os.urandom(NONCE_SIZE), os.urandom(size))

    def test_accepts_secret_bytes(self, key: bytes) -> None:
        holder = SecretBytes(key)
        sealed = seal_secretbox(b"wrapped", holder)

        assert open_secretbox(sealed.ciphertext, sealed.nonce, key) == b"wrapped"


class TestSecretBytes:
    def test_wipe(self) -> None:
        holder = SecretBytes(b"\x01" * KEY_SIZE)
        buffer = holder._buffer
        holder.wipe()

        assert len(holder) == 0
        assert bytes(buffer) == b""

    def test_repr_hides_contents(self) -> None:
        assert "abc" not in repr(SecretBytes(b"abc"))

    def test_wiped_key_cannot_be_used(self) -> None:
        holder = SecretBytes(os.urandom(KEY_SIZE))
        holder.wipe()

        with pytest.raises(InvalidInput):
            seal_secretbox(b"late", holder)


class TestSignatures:
    def test_sign_and_verify(self) -> None:
        signing_key = SigningKey.generate()
        signature = sign_message(signing_key, b"hello")

        assert len(signature) == 64
        assert verify_signature(signing_key.verify_key, b"hello", signature)
        assert verify_signature(signing_key.verify_key.encode(), b"hello", signature)

    def test_verify_rejects_other_message(self) -> None:
        signing_key = SigningKey.generate()
        signature = sign_message(signing_key, b"hello")

        assert not verify_signature(signing_key.verify_key, b"goodbye", signature)

    def test_verify_rejects_malformed_inputs(self) -> None:
        signing_key = SigningKey.generate()

        assert not verify_signature(signing_key.verify_key, b"hello", b"short")
        assert not verify_signature(b"not a key", b"hello", bytes(64))
