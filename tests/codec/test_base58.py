import os
import unittest

import pytest
from parameterized import parameterized

from codec import base58
from phantom.errors import InvalidCharacter, ProtocolError


class TestBase58Vectors(unittest.TestCase):
    @parameterized.expand([
        # (name, hex input, expected encoding)
        ("empty", "", ""),
        ("single_byte", "61", "2g"),
        ("three_bytes_b", "626262", "a3gV"),
        ("three_bytes_c", "636363", "aPEr"),
        ("long_ascii", "73696d706c792061206c6f6e6720737472696e67", "2cFupjhnEsSn59qHXstmK2ffpLv2"),
        ("five_bytes", "516b6fcd0f", "ABnLTmg"),
        ("four_bytes", "572e4794", "3EFU7m"),
        ("small_int", "10c8511e", "Rt5zm"),
        ("all_zero", "00000000000000000000", "1111111111"),
    ])
    def test_encode(self, name, hex_input, expected):
        self.assertEqual(base58.encode(bytes.fromhex(hex_input)), expected)

    @parameterized.expand([
        ("empty", "", ""),
        ("single_byte", "2g", "61"),
        ("long_ascii", "2cFupjhnEsSn59qHXstmK2ffpLv2", "73696d706c792061206c6f6e6720737472696e67"),
        ("all_zero", "1111111111", "00000000000000000000"),
    ])
    def test_decode(self, name, text, expected_hex):
        self.assertEqual(base58.decode(text), bytes.fromhex(expected_hex))


def test_leading_zeros_preserved() -> None:
    data = b"\x00\x00\x01\x02"
    encoded = base58.encode(data)

    assert encoded.startswith("11")
    assert not encoded.startswith("111")
    assert base58.decode(encoded) == data


def test_single_zero_byte() -> None:
    assert base58.encode(b"\x00") == "1"
    assert base58.decode("1") == b"\x00"


@pytest.mark.parametrize("size", [1, 24, 32, 64, 257])
def test_random_bytes_survive_round_trip(size: int) -> None:
    data = os.urandom(size)
    assert base58.decode(base58.encode(data)) == data


def test_decoded_value_has_no_extra_leading_zero() -> None:
    # 0xff encodes to "5Q"; decoding must not pad the numeric part
    assert base58.encode(b"\xff") == "5Q"
    assert base58.decode("5Q") == b"\xff"


@pytest.mark.parametrize("char", ["0", "O", "I", "l", "+", " ", "é"])
def test_invalid_character(char: str) -> None:
    with pytest.raises(InvalidCharacter) as exc_info:
        base58.decode("abc" + char + "def")

    assert exc_info.value.char == char
    assert exc_info.value.position == 3
    assert isinstance(exc_info.value, ProtocolError)
    assert isinstance(exc_info.value, ValueError)


def test_is_base58() -> None:
    assert base58.is_base58("3EFU7m")
    assert base58.is_base58("")
    assert not base58.is_base58("0OIl")
