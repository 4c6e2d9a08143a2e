"""SCALE helpers: compact integers and wrappers around already encoded bytes."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

# The compact mode with the widest payload carries up to 67 bytes.
_MAX_COMPACT_PAYLOAD = 67


def encode_compact(value: int) -> bytes:
    """SCALE encode a non-negative integer in compact form."""
    if value < 0:
        raise ValueError("compact integers cannot be negative")
    if value < 1 << 6:
        return bytes([value << 2])
    if value < 1 << 14:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < 1 << 30:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = (value.bit_length() + 7) // 8
    if length > _MAX_COMPACT_PAYLOAD:
        raise ValueError("integer too large for compact encoding")
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def decode_compact(data: bytes) -> tuple[int, int]:
    """Decode a compact integer from the start of ``data``.

    Returns the value and the number of bytes it took up. Raises
    ``ValueError`` for truncated or non-canonical input.
    """
    data = bytes(data)
    if not data:
        raise ValueError("no bytes to decode a compact integer from")
    first = data[0]
    mode = first & 0b11
    if mode == 0b00:
        return first >> 2, 1
    if mode == 0b01:
        width, start, minimum, shift = 2, 0, 1 << 6, 2
    elif mode == 0b10:
        width, start, minimum, shift = 4, 0, 1 << 14, 2
    else:
        width = (first >> 2) + 4
        start, shift = 1, 0
        minimum = max(1 << 30, 1 << (8 * (width - 1)))
    end = start + width
    if len(data) < end:
        raise ValueError("not enough bytes for compact integer")
    value = int.from_bytes(data[start:end], "little") >> shift
    if value < minimum:
        raise ValueError("compact integer is not canonically encoded")
    return value, end


@dataclass(frozen=True)
class Encoded:
    """Bytes that are already SCALE encoded and are emitted unchanged."""

    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    def encode(self) -> bytes:
        """Return the wrapped bytes as they are."""
        return self.data


@dataclass(frozen=True)
class WrapperKeepOpaque(Generic[T]):
    """Holds a value only in its encoded form, encoding like a byte vector."""

    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_encoded(cls, data: bytes) -> "WrapperKeepOpaque[T]":
        """Create from the given encoded bytes."""
        return cls(data)

    def try_decode(self, decoder: Callable[[bytes], T]) -> T | None:
        """Decode the wrapped bytes with ``decoder``; ``None`` if that fails."""
        try:
            return decoder(self.data)
        except (ValueError, IndexError, struct.error):
            return None

    def encoded_len(self) -> int:
        """Length of the encoded value."""
        return len(self.data)

    def encoded(self) -> bytes:
        """The encoded value."""
        return self.data

    def encode(self) -> bytes:
        """SCALE encode as a length-prefixed byte vector."""
        return encode_compact(len(self.data)) + self.data