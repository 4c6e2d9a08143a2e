"""Reading runtime storage: fetching single entries and iterating over maps.

The client handed to :class:`StorageClient` is expected to provide:

* ``metadata()`` returning the runtime metadata. It offers
  ``storage_hash(pallet, entry)`` returning the 32-byte hash of an entry and
  ``pallet(name).storage(name)`` returning an entry with an ``entry_type``
  (:class:`~chainxt.storage_address.PlainEntryType` or
  :class:`~chainxt.storage_address.MapEntryType`) and its ``default`` bytes.
* ``rpc``, an object with the coroutines ``storage(key, block_hash)``,
  ``storage_keys_paged(key, count, start_key, block_hash)``,
  ``block_hash(number)`` and ``query_storage_at(keys, block_hash)``. The last
  returns change sets, each with a ``changes`` sequence of ``(key, value)``
  pairs where ``value`` is ``None`` for an absent entry.

An address's ``target`` decodes values through
``decode_with_metadata(data, type_id, metadata)``. A ``target`` of ``None``
leaves values as their raw encoded bytes.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

from .storage_address import (
    EntryType,
    MapEntryType,
    PlainEntryType,
    StorageAddress,
    storage_address_bytes,
    storage_address_root_bytes,
)


class IncompatibleStorageMetadata(Exception):
    """A storage address does not match the entry in the node's metadata."""

    def __init__(self, pallet_name: str, entry_name: str) -> None:
        super().__init__(
            f"storage entry {pallet_name}.{entry_name} has incompatible metadata"
        )
        self.pallet_name = pallet_name
        self.entry_name = entry_name


def return_type_from_entry_type(entry_type: EntryType) -> int:
    """The type id of the value stored under an entry."""
    if isinstance(entry_type, (PlainEntryType, MapEntryType)):
        return entry_type.value_type
    raise TypeError(f"unknown storage entry type {entry_type!r}")


def _lookup_return_type(metadata: Any, pallet: str, entry: str) -> int:
    return return_type_from_entry_type(metadata.pallet(pallet).storage(entry).entry_type)


def _decode(target: Any, data: bytes, type_id: int, metadata: Any) -> Any:
    if target is None:
        return bytes(data)
    return target.decode_with_metadata(bytes(data), type_id, metadata)


def _require(address: StorageAddress, flag: str, action: str) -> None:
    if not getattr(address, flag, True):
        raise TypeError(
            f"storage address {address.pallet_name}.{address.entry_name} cannot be {action}"
        )


class StorageClient:
    """Query the runtime storage of a node."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def validate(self, address: StorageAddress) -> None:
        """Check the address against node metadata when it carries a hash.

        Raises :class:`IncompatibleStorageMetadata` on a mismatch; metadata
        lookups that fail raise their own errors.
        """
        expected = address.validation_hash
        if expected is None:
            return
        metadata = self.client.metadata()
        actual = metadata.storage_hash(address.pallet_name, address.entry_name)
        if bytes(actual) != bytes(expected):
            raise IncompatibleStorageMetadata(address.pallet_name, address.entry_name)

    async def fetch_raw(self, key: bytes, block_hash: Any = None) -> bytes | None:
        """The raw encoded value stored at ``key``, or ``None`` if absent."""
        data = await self.client.rpc.storage(bytes(key), block_hash)
        return None if data is None else bytes(data)

    async def fetch(self, address: StorageAddress, block_hash: Any = None) -> Any:
        """The decoded value at ``address``, or ``None`` if nothing is stored."""
        _require(address, "is_fetchable", "fetched")
        self.validate(address)
        metadata = self.client.metadata()
        lookup = storage_address_bytes(address, metadata)
        data = await self.fetch_raw(lookup, block_hash)
        if data is None:
            return None
        type_id = _lookup_return_type(metadata, address.pallet_name, address.entry_name)
        return _decode(address.target, data, type_id, metadata)

    async def fetch_or_default(self, address: StorageAddress, block_hash: Any = None) -> Any:
        """The decoded value at ``address``, or the entry's default value."""
        _require(address, "is_fetchable", "fetched")
        _require(address, "is_defaultable", "defaulted")
        value = await self.fetch(address, block_hash)
        if value is not None:
            return value
        metadata = self.client.metadata()
        entry = metadata.pallet(address.pallet_name).storage(address.entry_name)
        type_id = return_type_from_entry_type(entry.entry_type)
        return _decode(address.target, bytes(entry.default), type_id, metadata)

    async def fetch_keys(
        self,
        key: bytes,
        count: int,
        start_key: bytes | None = None,
        block_hash: Any = None,
    ) -> list[bytes]:
        """Up to ``count`` keys under ``key`` in lexicographic order, after ``start_key``."""
        start = None if start_key is None else bytes(start_key)
        keys = await self.client.rpc.storage_keys_paged(bytes(key), count, start, block_hash)
        return [bytes(k) for k in keys]

    async def iter(
        self, address: StorageAddress, page_size: int, block_hash: Any = None
    ) -> "KeyIter":
        """An iterator over the key/value pairs under ``address``.

        Without ``block_hash`` the current best block is pinned so that the
        whole iteration sees one consistent state.
        """
        _require(address, "is_iterable", "iterated")
        self.validate(address)
        if block_hash is None:
            block_hash = await self.client.rpc.block_hash(None)
            if block_hash is None:
                raise RuntimeError("node did not return a hash for the latest block")
        metadata = self.client.metadata()
        return_type_id = _lookup_return_type(
            metadata, address.pallet_name, address.entry_name
        )
        return KeyIter(
            client=self,
            address_root_bytes=storage_address_root_bytes(address),
            metadata=metadata,
            return_type_id=return_type_id,
            block_hash=block_hash,
            count=page_size,
            target=address.target,
        )


class KeyIter:
    """Iterates over the key/value pairs of a storage map, a page at a time."""

    def __init__(
        self,
        client: StorageClient,
        address_root_bytes: bytes,
        metadata: Any,
        return_type_id: int,
        block_hash: Any,
        count: int,
        target: Any = None,
    ) -> None:
        self.client = client
        self.address_root_bytes = bytes(address_root_bytes)
        self.metadata = metadata
        self.return_type_id = return_type_id
        self.block_hash = block_hash
        self.count = count
        self.target = target
        self._start_key: bytes | None = None
        self._buffer: list[tuple[bytes, bytes]] = []

    async def next(self) -> tuple[bytes, Any] | None:
        """The next key and decoded value, or ``None`` when exhausted."""
        while True:
            if self._buffer:
                key, value = self._buffer.pop()
                decoded = _decode(self.target, value, self.return_type_id, self.metadata)
                return key, decoded

            start_key, self._start_key = self._start_key, None
            keys = await self.client.fetch_keys(
                self.address_root_bytes, self.count, start_key, self.block_hash
            )
            if not keys:
                return None
            self._start_key = keys[-1]

            change_sets = await self.client.client.rpc.query_storage_at(
                keys, self.block_hash
            )
            self._buffer.extend(
                (bytes(key), bytes(value))
                for change_set in change_sets
                for key, value in change_set.changes
                if value is not None
            )

    def __aiter__(self) -> AsyncIterator[tuple[bytes, Any]]:
        return self

    async def __anext__(self) -> tuple[bytes, Any]:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item