"""Following a submitted transaction until it is in a block, and reading its events.

The subscription given to :class:`TxProgress` is an async iterator. It yields
``(kind, data)`` pairs, where ``kind`` is a :class:`TxStatusKind` or its
value. ``data`` is a list of peers for ``broadcast``, a block hash for
``inBlock``, ``retracted``, ``finalityTimeout``, ``finalized`` and
``usurped``, and ``None`` otherwise.

The client handed around here is expected to provide:

* ``rpc.block(block_hash)``, a coroutine returning a block whose
  ``extrinsics`` holds the encoded extrinsics, or ``None`` if the block is
  unknown.
* ``events(block_hash)``, a coroutine returning the events of a block. The
  events have a ``block_hash`` attribute and iterate over event details. A
  detail has ``pallet_name``, ``variant_name``, ``field_bytes``, a ``phase``
  equal to ``("ApplyExtrinsic", index)`` for events raised by an extrinsic,
  and ``as_event(event_type)`` returning the decoded event or ``None`` when
  it is of another type. A decoding failure may be yielded as an exception
  instance; it is raised when reached.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterator

from .hashing import blake2_256


class TransactionError(Exception):
    """Something went wrong while following a transaction.

    ``kind`` is ``"finality_subscription_timeout"`` or ``"block_hash_not_found"``.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def _finality_timeout() -> TransactionError:
    return TransactionError(
        "finality_subscription_timeout",
        "the finality subscription timed out before the block was finalized",
    )


def _block_hash_not_found() -> TransactionError:
    return TransactionError(
        "block_hash_not_found", "the block containing the transaction could not be found"
    )


class SubscriptionDropped(Exception):
    """The status subscription ended before the awaited status arrived."""

    def __init__(self) -> None:
        super().__init__("RPC subscription dropped")


class ExtrinsicFailed(Exception):
    """The transaction made it into a block but its dispatch failed."""

    def __init__(self, event: Any) -> None:
        super().__init__("the extrinsic failed to dispatch")
        self.event = event
        self.field_bytes = bytes(event.field_bytes)


class TxStatusKind(enum.Enum):
    """The statuses a transaction goes through in the pool and on chain."""

    FUTURE = "future"
    READY = "ready"
    BROADCAST = "broadcast"
    IN_BLOCK = "inBlock"
    RETRACTED = "retracted"
    FINALITY_TIMEOUT = "finalityTimeout"
    FINALIZED = "finalized"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"


_HASH_KINDS = {
    TxStatusKind.RETRACTED,
    TxStatusKind.FINALITY_TIMEOUT,
    TxStatusKind.USURPED,
}
_FINAL_KINDS = {TxStatusKind.FINALIZED, TxStatusKind.FINALITY_TIMEOUT}


@dataclass(frozen=True)
class TxStatus:
    """One status update of a transaction.

    ``value`` holds the peers for ``BROADCAST``, a :class:`TxInBlock` for
    ``IN_BLOCK`` and ``FINALIZED``, a block hash for ``RETRACTED``,
    ``FINALITY_TIMEOUT`` and ``USURPED``, and ``None`` otherwise.
    """

    kind: TxStatusKind
    value: Any = None

    def as_finalized(self) -> "TxInBlock | None":
        """The block details if this status is ``FINALIZED``."""
        return self.value if self.kind is TxStatusKind.FINALIZED else None

    def as_in_block(self) -> "TxInBlock | None":
        """The block details if this status is ``IN_BLOCK``."""
        return self.value if self.kind is TxStatusKind.IN_BLOCK else None


class TxProgress:
    """A subscription to the progress of a submitted transaction."""

    def __init__(self, sub: AsyncIterator[Any], client: Any, ext_hash: bytes) -> None:
        self._sub: AsyncIterator[Any] | None = sub
        self.client = client
        self.extrinsic_hash = bytes(ext_hash)

    def _convert(self, raw: Any) -> TxStatus:
        kind_value, data = raw
        kind = TxStatusKind(kind_value)
        if kind in _FINAL_KINDS:
            # Only these statuses end the subscription.
            self._sub = None
        if kind in (TxStatusKind.IN_BLOCK, TxStatusKind.FINALIZED):
            return TxStatus(kind, TxInBlock(data, self.extrinsic_hash, self.client))
        if kind is TxStatusKind.BROADCAST:
            return TxStatus(kind, list(data))
        if kind in _HASH_KINDS:
            return TxStatus(kind, data)
        return TxStatus(kind)

    async def next_item(self) -> TxStatus | None:
        """The next status, or ``None`` when the subscription has ended."""
        if self._sub is None:
            return None
        try:
            raw = await self._sub.__anext__()
        except StopAsyncIteration:
            self._sub = None
            return None
        return self._convert(raw)

    def __aiter__(self) -> "TxProgress":
        return self

    async def __anext__(self) -> TxStatus:
        status = await self.next_item()
        if status is None:
            raise StopAsyncIteration
        return status

    async def wait_for_in_block(self) -> "TxInBlock":
        """Wait until the transaction is in a block, finalized or not.

        ``INVALID``, ``USURPED`` and ``DROPPED`` are ignored, since the
        transaction may still make it into a block.
        """
        async for status in self:
            if status.kind in (TxStatusKind.IN_BLOCK, TxStatusKind.FINALIZED):
                return status.value
            if status.kind is TxStatusKind.FINALITY_TIMEOUT:
                raise _finality_timeout()
        raise SubscriptionDropped()

    async def wait_for_finalized(self) -> "TxInBlock":
        """Wait until the block holding the transaction is finalized."""
        async for status in self:
            if status.kind is TxStatusKind.FINALIZED:
                return status.value
            if status.kind is TxStatusKind.FINALITY_TIMEOUT:
                raise _finality_timeout()
        raise SubscriptionDropped()

    async def wait_for_finalized_success(self) -> "TxEvents":
        """Wait for finalization and return the events of a successful transaction."""
        in_block = await self.wait_for_finalized()
        return await in_block.wait_for_success()

    def __repr__(self) -> str:
        return f"TxProgress(extrinsic_hash={self.extrinsic_hash.hex()})"


class TxInBlock:
    """A transaction that has made it into a block."""

    def __init__(self, block_hash: Any, ext_hash: bytes, client: Any) -> None:
        self.block_hash = block_hash
        self.extrinsic_hash = bytes(ext_hash)
        self.client = client

    async def wait_for_success(self) -> "TxEvents":
        """The transaction's events, or :class:`ExtrinsicFailed` if it failed."""
        events = await self.fetch_events()
        for event in events.iter():
            if event.pallet_name == "System" and event.variant_name == "ExtrinsicFailed":
                raise ExtrinsicFailed(event)
        return events

    async def fetch_events(self) -> "TxEvents":
        """All events of the transaction, whether it succeeded or not."""
        block = await self.client.rpc.block(self.block_hash)
        if block is None:
            raise _block_hash_not_found()
        index = next(
            (
                position
                for position, extrinsic in enumerate(block.extrinsics)
                if blake2_256(bytes(extrinsic)) == self.extrinsic_hash
            ),
            None,
        )
        if index is None:
            raise _block_hash_not_found()
        events = await self.client.events(self.block_hash)
        return TxEvents(self.extrinsic_hash, index, events)

    def __repr__(self) -> str:
        return (
            f"TxInBlock(block_hash={self.block_hash!r}, "
            f"extrinsic_hash={self.extrinsic_hash.hex()})"
        )


class TxEvents:
    """The events in a block that belong to one transaction."""

    def __init__(self, ext_hash: bytes, ext_idx: int, events: Any) -> None:
        self.extrinsic_hash = bytes(ext_hash)
        self.extrinsic_index = ext_idx
        self.all_events_in_block = events

    @property
    def block_hash(self) -> Any:
        """Hash of the block the transaction made it into."""
        return self.all_events_in_block.block_hash

    def iter(self) -> Iterator[Any]:
        """The events raised by this transaction; decoding errors are raised."""
        phase = ("ApplyExtrinsic", self.extrinsic_index)
        for event in self.all_events_in_block:
            if isinstance(event, BaseException):
                raise event
            if event.phase == phase:
                yield event

    def __iter__(self) -> Iterator[Any]:
        return self.iter()

    def find(self, event_type: Any) -> Iterator[Any]:
        """The transaction's events decoded as ``event_type``."""
        for event in self.iter():
            decoded = event.as_event(event_type)
            if decoded is not None:
                yield decoded

    def find_first(self, event_type: Any) -> Any:
        """The first of the transaction's events of ``event_type``, or ``None``."""
        return next(self.find(event_type), None)

    def has(self, event_type: Any) -> bool:
        """Whether the transaction raised an event of ``event_type``."""
        return self.find_first(event_type) is not None

    def __repr__(self) -> str:
        return (
            f"TxEvents(extrinsic_hash={self.extrinsic_hash.hex()}, "
            f"extrinsic_index={self.extrinsic_index})"
        )