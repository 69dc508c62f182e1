"""
Validation and normalization primitives for JSON-RPC values.

Every value accepted from a caller or from the node passes through one of
these helpers before it is used. Quantities are Python ints (arbitrary
precision); hex strings are the wire form.
"""
from __future__ import annotations

import re
from typing import Any, Optional, Pattern, Union

from eth_utils import keccak, to_checksum_address

from .exceptions import (
    InvalidAddressError,
    InvalidBlockNumberError,
    InvalidBytesError,
    InvalidHashError,
    InvalidUnsignedError,
)

# =============================================================================
# Regex Patterns
# =============================================================================

ETH_ADDRESS_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]{40}$")
HASH_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]{64}$")
HEX_PATTERN: Pattern[str] = re.compile(r"^0x[a-fA-F0-9]*$")
UNSIGNED_PATTERN: Pattern[str] = re.compile(r"^[0-9]+$")

BLOCK_TAGS = frozenset({"latest", "pending", "earliest"})

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

Quantity = Union[int, str, bytes]
BlockDirective = Union[int, str]


def is_address(value: Any) -> bool:
    """Whether ``value`` is a well-formed 20-byte hex address (any casing)."""
    return isinstance(value, str) and ETH_ADDRESS_PATTERN.match(value) is not None


def as_address(value: Any) -> str:
    """Validate an address and return its checksummed form."""
    if isinstance(value, (bytes, bytearray)) and len(value) == 20:
        return to_checksum_address(bytes(value))
    if not is_address(value):
        raise InvalidAddressError(value)
    return to_checksum_address(value)


def is_hash(value: Any) -> bool:
    return isinstance(value, str) and HASH_PATTERN.match(value) is not None


def as_hash(value: Any) -> str:
    """Validate a 32-byte hash and return it as lowercase hex."""
    if isinstance(value, (bytes, bytearray)) and len(value) == 32:
        return "0x" + bytes(value).hex()
    if not is_hash(value):
        raise InvalidHashError(value)
    return value.lower()


def as_bytes(value: Any) -> str:
    """Validate a byte string and return it as 0x-prefixed lowercase hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        if value == "0x":
            return value
        if not HEX_PATTERN.match(value):
            raise InvalidBytesError(value)
        digits = value[2:].lower()
        if len(digits) % 2:
            digits = "0" + digits
        return "0x" + digits
    raise InvalidBytesError(value)


def to_int(value: Any) -> int:
    """Decode an unsigned quantity from int, hex string, decimal string or bytes."""
    if isinstance(value, bool):
        raise InvalidUnsignedError(value)
    if isinstance(value, int):
        if value < 0:
            raise InvalidUnsignedError(value)
        return value
    if isinstance(value, str):
        if HEX_PATTERN.match(value):
            return int(value[2:], 16) if len(value) > 2 else 0
        if UNSIGNED_PATTERN.match(value):
            return int(value)
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    raise InvalidUnsignedError(value)


def to_number(value: Any) -> Optional[int]:
    """Like :func:`to_int` but passes ``None`` through for optional fields."""
    if value is None:
        return None
    return to_int(value)


def to_hex(value: Any) -> str:
    """Encode an unsigned quantity as a minimal 0x-prefixed hex string."""
    return hex(to_int(value))


def to_word(value: Any) -> str:
    """Encode an unsigned quantity as a 32-byte hex word (storage slots/values)."""
    n = to_int(value)
    if n >= 1 << 256:
        raise InvalidUnsignedError(value)
    return "0x" + n.to_bytes(32, "big").hex()


def as_block_number(value: Any) -> str:
    """Encode a resolved block reference for the wire.

    Negative offsets must be resolved against the chain head first.
    """
    if value is None:
        return "latest"
    if isinstance(value, str) and value in BLOCK_TAGS:
        return value
    if isinstance(value, bool):
        raise InvalidBlockNumberError(value)
    if isinstance(value, int) and value < 0:
        raise InvalidBlockNumberError(value)
    try:
        return to_hex(value)
    except InvalidUnsignedError:
        raise InvalidBlockNumberError(value) from None


def checksum_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return as_address(value)


def keccak_hex(data: bytes) -> str:
    return "0x" + keccak(data).hex()
