class ProtocolError(Exception):
    """Base class for every failure the deep-link protocol can report."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__)

    @property
    def message(self) -> str:
        return str(self)


class InvalidCharacter(ProtocolError, ValueError):
    """Input contains a character outside the base58 alphabet."""

    def __init__(self, char: str, position: int) -> None:
        super().__init__(f"Invalid base58 character {char!r} at position {position}")
        self.char = char
        self.position = position


class InvalidInput(ProtocolError, ValueError):
    """Key or nonce has the wrong size for the primitive."""


class KeyAgreementFailed(ProtocolError):
    """Peer public key cannot be used for X25519 key agreement."""


class AuthenticationFailed(ProtocolError):
    """Ciphertext failed authentication."""


class DecryptionFailed(ProtocolError):
    """Response could not be decrypted with the session key."""


class HandshakeFailed(ProtocolError):
    """Handshake response could not be opened with the pending keypair."""


class UrlConstructionFailed(ProtocolError):
    """Request URL could not be built."""


class MalformedResponse(ProtocolError):
    """Callback URL is missing required parameters."""


class MalformedPayload(ProtocolError):
    """Decrypted payload is not the expected JSON object."""


class NotConnected(ProtocolError):
    """No session key material is available for this operation."""


class PeerRejected(ProtocolError):
    """The wallet answered with an error."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{message} (Code: {code})")
        self.code = code
        self.peer_message = message
