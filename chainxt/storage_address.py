"""Storage addresses: where an entry lives and how its lookup key is built.

Metadata passed to these functions is expected to provide:

* ``pallet(name)`` returning pallet metadata whose ``storage(name)`` returns
  an entry with an ``entry_type`` (:class:`PlainEntryType` or
  :class:`MapEntryType`); lookups that fail raise their own errors.
* ``resolve_type(type_id)`` returning the type definition, or ``None`` when
  the id is unknown. A tuple type is given as a ``tuple`` of its field type ids.

Dynamic keys are either already SCALE encoded bytes or objects with an
``encode_with_metadata(type_id, metadata)`` method returning bytes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Union

from .hashing import twox_128
from .storage_map_key import StorageHasher, StorageMapKey, hash_bytes


class StorageAddressError(Exception):
    """A storage address does not fit the entry described by the metadata.

    ``kind`` is one of ``"wrong_number_of_keys"``, ``"type_not_found"`` or
    ``"wrong_number_of_hashers"``; ``details`` holds the numbers involved.
    """

    def __init__(self, kind: str, message: str, **details: int) -> None:
        super().__init__(message)
        self.kind = kind
        self.details = details


def _wrong_number_of_keys(expected: int, actual: int) -> StorageAddressError:
    return StorageAddressError(
        "wrong_number_of_keys",
        f"storage lookup requires {expected} keys but got {actual}",
        expected=expected,
        actual=actual,
    )


def _type_not_found(type_id: int) -> StorageAddressError:
    return StorageAddressError(
        "type_not_found", f"type with id {type_id} not found", type_id=type_id
    )


def _wrong_number_of_hashers(hashers: int, fields: int) -> StorageAddressError:
    return StorageAddressError(
        "wrong_number_of_hashers",
        f"storage entry has {hashers} hashers but {fields} key fields",
        hashers=hashers,
        fields=fields,
    )


@dataclass(frozen=True)
class PlainEntryType:
    """A storage entry holding a single value."""

    value_type: int


@dataclass(frozen=True)
class MapEntryType:
    """A storage map entry."""

    hashers: tuple[StorageHasher, ...]
    key_type: int
    value_type: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "hashers", tuple(StorageHasher(h) for h in self.hashers))


EntryType = Union[PlainEntryType, MapEntryType]


class StorageAddress(ABC):
    """Anything that names a storage entry and can produce its key bytes."""

    pallet_name: str
    entry_name: str
    # Hash checked against node metadata, when present.
    validation_hash: bytes | None = None
    # What the stored value decodes into; ``None`` means dynamic decoding.
    target: Any = None
    is_fetchable: bool = True
    is_defaultable: bool = True
    is_iterable: bool = True

    @abstractmethod
    def append_entry_bytes(self, metadata: Any) -> bytes:
        """The bytes following the root, digging into maps."""


def storage_address_root_bytes(address: StorageAddress) -> bytes:
    """Hash of the pallet name followed by the hash of the entry name."""
    return twox_128(address.pallet_name.encode()) + twox_128(address.entry_name.encode())


def storage_address_bytes(address: StorageAddress, metadata: Any) -> bytes:
    """The root bytes plus any bytes describing a lookup into a map."""
    return storage_address_root_bytes(address) + address.append_entry_bytes(metadata)


@dataclass(frozen=True)
class StaticStorageAddress(StorageAddress):
    """A storage address whose keys were encoded ahead of time."""

    pallet_name: str
    entry_name: str
    storage_entry_keys: tuple[StorageMapKey, ...]
    validation_hash: bytes | None
    target: Any = field(default=None, kw_only=True)
    is_fetchable: bool = field(default=True, kw_only=True)
    is_defaultable: bool = field(default=True, kw_only=True)
    is_iterable: bool = field(default=True, kw_only=True)

    def __post_init__(self) -> None:
        object.__setattr__(self, "storage_entry_keys", tuple(self.storage_entry_keys))
        if self.validation_hash is not None:
            digest = bytes(self.validation_hash)
            if len(digest) != 32:
                raise ValueError("validation hash must be 32 bytes")
            object.__setattr__(self, "validation_hash", digest)

    def unvalidated(self) -> "StaticStorageAddress":
        """A copy that is not checked against metadata before use."""
        return replace(self, validation_hash=None)

    def to_bytes(self) -> bytes:
        """The full key bytes of this entry."""
        return storage_address_root_bytes(self) + self.append_entry_bytes(None)

    def to_root_bytes(self) -> bytes:
        """The key bytes of the entry root (pallet and entry name hashes)."""
        return storage_address_root_bytes(self)

    def append_entry_bytes(self, metadata: Any) -> bytes:
        return b"".join(key.to_bytes() for key in self.storage_entry_keys)


def _encode_key(key: Any, type_id: int, metadata: Any) -> bytes:
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    return bytes(key.encode_with_metadata(type_id, metadata))


@dataclass(frozen=True)
class DynamicStorageAddress(StorageAddress):
    """A storage address whose keys are encoded using runtime metadata."""

    pallet_name: str
    entry_name: str
    storage_entry_keys: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "storage_entry_keys", tuple(self.storage_entry_keys))

    def append_entry_bytes(self, metadata: Any) -> bytes:
        entry = metadata.pallet(self.pallet_name).storage(self.entry_name)
        entry_type = entry.entry_type
        keys = self.storage_entry_keys

        if isinstance(entry_type, PlainEntryType):
            if keys:
                raise _wrong_number_of_keys(0, len(keys))
            return b""
        if not isinstance(entry_type, MapEntryType):
            raise TypeError(f"unknown storage entry type {entry_type!r}")

        resolved = metadata.resolve_type(entry_type.key_type)
        if resolved is None:
            raise _type_not_found(entry_type.key_type)
        # A tuple key takes one value per field; anything else takes one value.
        type_ids = list(resolved) if isinstance(resolved, tuple) else [entry_type.key_type]

        if len(type_ids) != len(keys):
            raise _wrong_number_of_keys(len(type_ids), len(keys))

        hashers = entry_type.hashers
        if len(hashers) == 1:
            joined = b"".join(
                _encode_key(key, type_id, metadata) for key, type_id in zip(keys, type_ids)
            )
            return hash_bytes(joined, hashers[0])
        if len(hashers) == len(type_ids):
            return b"".join(
                hash_bytes(_encode_key(key, type_id, metadata), hasher)
                for key, type_id, hasher in zip(keys, type_ids, hashers)
            )
        raise _wrong_number_of_hashers(len(hashers), len(type_ids))


def dynamic(
    pallet_name: str, entry_name: str, storage_entry_keys: Iterable[Any]
) -> DynamicStorageAddress:
    """A dynamic lookup of an entry with the given keys."""
    return DynamicStorageAddress(pallet_name, entry_name, tuple(storage_entry_keys))


def dynamic_root(pallet_name: str, entry_name: str) -> DynamicStorageAddress:
    """A dynamic lookup of the root of an entry."""
    return DynamicStorageAddress(pallet_name, entry_name, ())