from typing import Final

from phantom.errors import InvalidCharacter

ALPHABET: Final[str] = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE: Final[int] = len(ALPHABET)

_INDEX: Final[dict[str, int]] = {char: i for i, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """
    Encode bytes as a Bitcoin-style base58 string.

    Every leading zero byte becomes a leading '1'. The remaining bytes are
    read as one big-endian integer and written most significant digit first.
    """
    zeros = len(data) - len(data.lstrip(b"\x00"))

    num = int.from_bytes(data, "big")
    digits: list[str] = []
    while num > 0:
        num, remainder = divmod(num, BASE)
        digits.append(ALPHABET[remainder])

    return ALPHABET[0] * zeros + "".join(reversed(digits))


def decode(text: str) -> bytes:
    """
    Decode a base58 string back into bytes.

    Raises:
        InvalidCharacter: If any character is not part of the alphabet.
    """
    zeros = len(text) - len(text.lstrip(ALPHABET[0]))

    num = 0
    for position, char in enumerate(text):
        digit = _INDEX.get(char)
        if digit is None:
            raise InvalidCharacter(char, position)
        num = num * BASE + digit

    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * zeros + body


def is_base58(text: str) -> bool:
    """Whether `decode` accepts `text`. The empty string counts as valid."""
    return all(char in _INDEX for char in text)
