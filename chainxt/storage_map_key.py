"""Storage map keys and the hashers applied to them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable

from .hashing import blake2_128, blake2_256, twox_64, twox_128, twox_256


class StorageHasher(enum.Enum):
    """How the encoded bytes of a map key are hashed."""

    BLAKE2_128 = "Blake2_128"
    BLAKE2_256 = "Blake2_256"
    BLAKE2_128_CONCAT = "Blake2_128Concat"
    TWOX_128 = "Twox128"
    TWOX_256 = "Twox256"
    TWOX_64_CONCAT = "Twox64Concat"
    IDENTITY = "Identity"


_OPAQUE: dict[StorageHasher, Callable[[bytes], bytes]] = {
    StorageHasher.BLAKE2_128: blake2_128,
    StorageHasher.BLAKE2_256: blake2_256,
    StorageHasher.TWOX_128: twox_128,
    StorageHasher.TWOX_256: twox_256,
}

_CONCAT: dict[StorageHasher, Callable[[bytes], bytes]] = {
    StorageHasher.BLAKE2_128_CONCAT: blake2_128,
    StorageHasher.TWOX_64_CONCAT: twox_64,
}


def hash_bytes(data: bytes, hasher: StorageHasher | str) -> bytes:
    """Hash SCALE encoded ``data`` as ``hasher`` prescribes."""
    data = bytes(data)
    hasher = StorageHasher(hasher)
    if hasher is StorageHasher.IDENTITY:
        return data
    if hasher in _CONCAT:
        return _CONCAT[hasher](data) + data
    return _OPAQUE[hasher](data)


@dataclass(frozen=True)
class StorageMapKey:
    """A pre-encoded map key paired with its hasher.

    ``value`` is either SCALE encoded bytes or an object whose ``encode()``
    returns them.
    """

    value: Any
    hasher: StorageHasher

    def __post_init__(self) -> None:
        value = self.value
        if isinstance(value, str):
            raise TypeError("map key values must be encoded bytes, not str")
        if isinstance(value, (bytes, bytearray, memoryview)):
            encoded = bytes(value)
        elif callable(getattr(value, "encode", None)):
            encoded = bytes(value.encode())
        else:
            raise TypeError(f"cannot encode map key value of type {type(value).__name__}")
        object.__setattr__(self, "value", encoded)
        object.__setattr__(self, "hasher", StorageHasher(self.hasher))

    def to_bytes(self) -> bytes:
        """The hashed key bytes to append to a storage address."""
        return hash_bytes(self.value, self.hasher)