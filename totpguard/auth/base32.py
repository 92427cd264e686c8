"""
Base32 codec for TOTP secrets.

Decoding follows RFC 4648 (alphabet A-Z2-7, no padding required) and is
tolerant of the separators authenticator apps and users insert when
copying secrets by hand. Encoding is specialised for secret generation:
one output character per input byte.
"""
from typing import Iterable

from .errors import DecodeFailure

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

# Generated secrets are 16 characters (80 bits once decoded)
SECRET_LENGTH = 16
MIN_SECRET_LENGTH = 10
MAX_SECRET_LENGTH = 16

_SEPARATORS = frozenset(" \t\r\n-")
_VALID_CHARS = frozenset(BASE32_ALPHABET + BASE32_ALPHABET[:26].lower())


def _char_value(char: str) -> int:
    if "A" <= char <= "Z":
        return ord(char) - ord("A")
    if "a" <= char <= "z":
        return ord(char) - ord("a")
    if "2" <= char <= "7":
        return ord(char) - ord("2") + 26
    return -1


def encode_secret_bytes(random_bytes: Iterable[int]) -> str:
    """
    Map each byte onto the base32 alphabet (byte mod 32).

    This is not a general-purpose base32 encoder. It produces exactly one
    character per input byte and is only meant for turning fresh random
    bytes into a secret string.

    Args:
        random_bytes: Random bytes (16 for a standard secret).

    Returns:
        Base32 secret string of the same length as the input.
    """
    return "".join(BASE32_ALPHABET[byte % 32] for byte in random_bytes)


def decode(secret: str) -> bytes:
    """
    Decode a base32 secret into raw key bytes.

    Spaces, tabs, CR, LF and hyphens are skipped. Lowercase letters are
    accepted. Trailing bits that do not fill a whole byte are discarded.

    Args:
        secret: Base32 secret string.

    Returns:
        Decoded key bytes.

    Raises:
        DecodeFailure: If the string contains a character outside the
            base32 alphabet.
    """
    output = bytearray()
    buffer = 0
    bits_left = 0

    for char in secret:
        if char in _SEPARATORS:
            continue

        value = _char_value(char)
        if value < 0:
            raise DecodeFailure(f"Invalid base32 character: {char!r}")

        buffer = ((buffer << 5) | value) & 0xFFFF
        bits_left += 5

        if bits_left >= 8:
            output.append((buffer >> (bits_left - 8)) & 0xFF)
            bits_left -= 8

    return bytes(output)


def is_valid_secret(secret: str) -> bool:
    """
    Check a secret before it is stored.

    Accepts 10 to 16 characters drawn only from the base32 alphabet
    (case-insensitive). Separators are not allowed here.
    """
    if not isinstance(secret, str):
        return False
    if not MIN_SECRET_LENGTH <= len(secret) <= MAX_SECRET_LENGTH:
        return False
    return all(char in _VALID_CHARS for char in secret)
