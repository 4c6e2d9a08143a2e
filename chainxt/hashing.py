"""Hash functions used to build storage keys."""

from __future__ import annotations

import hashlib
import struct

_MASK = (1 << 64) - 1
_P1 = 0x9E3779B185EBCA87
_P2 = 0xC2B2AE3D27D4EB4F
_P3 = 0x165667B19E3779F9
_P4 = 0x85EBCA77C2B2AE63
_P5 = 0x27D4EB2F165667C5


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def _xxh64(data: bytes, seed: int) -> int:
    length = len(data)
    stripes_end = length - length % 32
    if length >= 32:
        v1 = (seed + _P1 + _P2) & _MASK
        v2 = (seed + _P2) & _MASK
        v3 = seed
        v4 = (seed - _P1) & _MASK
        for a, b, c, d in struct.iter_unpack("<4Q", data[:stripes_end]):
            v1 = _round(v1, a)
            v2 = _round(v2, b)
            v3 = _round(v3, c)
            v4 = _round(v4, d)
        acc = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for lane in (v1, v2, v3, v4):
            acc = _merge(acc, lane)
    else:
        acc = (seed + _P5) & _MASK
    acc = (acc + length) & _MASK

    tail = data[stripes_end:]
    words_end = len(tail) - len(tail) % 8
    for (word,) in struct.iter_unpack("<Q", tail[:words_end]):
        acc ^= _round(0, word)
        acc = (_rotl(acc, 27) * _P1 + _P4) & _MASK
    rest = tail[words_end:]
    if len(rest) >= 4:
        (half,) = struct.unpack_from("<I", rest)
        acc ^= (half * _P1) & _MASK
        acc = (_rotl(acc, 23) * _P2 + _P3) & _MASK
        rest = rest[4:]
    for byte in rest:
        acc ^= (byte * _P5) & _MASK
        acc = (_rotl(acc, 11) * _P1) & _MASK

    acc ^= acc >> 33
    acc = (acc * _P2) & _MASK
    acc ^= acc >> 29
    acc = (acc * _P3) & _MASK
    acc ^= acc >> 32
    return acc


def _twox(data: bytes, seeds: int) -> bytes:
    data = bytes(data)
    return b"".join(_xxh64(data, seed).to_bytes(8, "little") for seed in range(seeds))


def twox_64(data: bytes) -> bytes:
    """8-byte xxHash64 with seed 0, little endian."""
    return _twox(data, 1)


def twox_128(data: bytes) -> bytes:
    """16-byte twox hash: xxHash64 with seeds 0 and 1."""
    return _twox(data, 2)


def twox_256(data: bytes) -> bytes:
    """32-byte twox hash: xxHash64 with seeds 0 to 3."""
    return _twox(data, 4)


def blake2_128(data: bytes) -> bytes:
    """16-byte BLAKE2b digest."""
    return hashlib.blake2b(bytes(data), digest_size=16).digest()


def blake2_256(data: bytes) -> bytes:
    """32-byte BLAKE2b digest."""
    return hashlib.blake2b(bytes(data), digest_size=32).digest()