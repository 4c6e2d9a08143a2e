from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from chainxt.hashing import blake2_256
from chainxt.tx_progress import (
    ExtrinsicFailed,
    SubscriptionDropped,
    TransactionError,
    TxEvents,
    TxInBlock,
    TxProgress,
    TxStatus,
    TxStatusKind,
)

EXT = b"\x10\x04\x01\x02\x03"
EXT_HASH = blake2_256(EXT)
BLOCK = b"\xaa" * 32


async def _sub(items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


@dataclass
class FakeEvent:
    pallet_name: str
    variant_name: str
    phase: tuple
    field_bytes: bytes = b""

    def as_event(self, event_type):
        if (self.pallet_name, self.variant_name) == (event_type.PALLET, event_type.EVENT):
            return event_type(self)
        return None


@dataclass
class Transfer:
    PALLET = "Balances"
    EVENT = "Transfer"
    source: FakeEvent


@dataclass
class Remarked:
    PALLET = "System"
    EVENT = "Remarked"
    source: FakeEvent


@dataclass
class FakeEvents:
    block_hash: bytes
    items: list = field(default_factory=list)

    def __iter__(self):
        return iter(self.items)


class FakeRpc:
    def __init__(self, blocks):
        self.blocks = blocks

    async def block(self, block_hash):
        return self.blocks.get(block_hash)


class FakeClient:
    def __init__(self, extrinsics=(b"other", EXT), events=()):
        self.rpc = FakeRpc({BLOCK: SimpleNamespace(extrinsics=list(extrinsics))})
        self._events = list(events)

    async def events(self, block_hash):
        return FakeEvents(block_hash, self._events)


def _progress(items, client=None):
    return TxProgress(_sub(items), client or FakeClient(), EXT_HASH)


@pytest.mark.asyncio
async def test_next_item_converts_statuses_and_stops_after_finalized():
    progress = _progress(
        [
            ("ready", None),
            ("broadcast", ["peer1"]),
            ("inBlock", BLOCK),
            ("finalized", BLOCK),
            ("ready", None),
        ]
    )
    kinds = [status.kind async for status in progress]
    assert kinds == [
        TxStatusKind.READY,
        TxStatusKind.BROADCAST,
        TxStatusKind.IN_BLOCK,
        TxStatusKind.FINALIZED,
    ]
    assert await progress.next_item() is None


@pytest.mark.asyncio
async def test_broadcast_and_hash_statuses_keep_their_data():
    progress = _progress([("broadcast", ["a", "b"]), ("usurped", BLOCK)])
    broadcast = await progress.next_item()
    usurped = await progress.next_item()
    assert broadcast.value == ["a", "b"]
    assert usurped == TxStatus(TxStatusKind.USURPED, BLOCK)


@pytest.mark.asyncio
async def test_as_finalized_and_as_in_block():
    progress = _progress([("inBlock", BLOCK), ("finalized", BLOCK)])
    in_block = await progress.next_item()
    finalized = await progress.next_item()
    assert in_block.as_in_block().block_hash == BLOCK
    assert in_block.as_finalized() is None
    assert finalized.as_finalized().extrinsic_hash == EXT_HASH
    assert finalized.as_in_block() is None


@pytest.mark.asyncio
async def test_wait_for_in_block_ignores_invalid_and_usurped():
    progress = _progress([("invalid", None), ("usurped", b"\x01" * 32), ("inBlock", BLOCK)])
    result = await progress.wait_for_in_block()
    assert result.block_hash == BLOCK


@pytest.mark.asyncio
async def test_wait_for_finalized_skips_in_block():
    other = b"\xbb" * 32
    progress = _progress([("inBlock", other), ("finalized", BLOCK)])
    result = await progress.wait_for_finalized()
    assert result.block_hash == BLOCK


@pytest.mark.asyncio
async def test_finality_timeout_raises():
    progress = _progress([("finalityTimeout", BLOCK)])
    with pytest.raises(TransactionError) as info:
        await progress.wait_for_finalized()
    assert info.value.kind == "finality_subscription_timeout"


@pytest.mark.asyncio
async def test_dropped_subscription_raises():
    progress = _progress([("ready", None), ("dropped", None)])
    with pytest.raises(SubscriptionDropped, match="RPC subscription dropped"):
        await progress.wait_for_in_block()


@pytest.mark.asyncio
async def test_subscription_error_propagates():
    progress = _progress([("ready", None), ConnectionError("gone")])
    with pytest.raises(ConnectionError):
        await progress.wait_for_in_block()


@pytest.mark.asyncio
async def test_unknown_status_kind_rejected():
    progress = _progress([("bogus", None)])
    with pytest.raises(ValueError):
        await progress.next_item()


@pytest.mark.asyncio
async def test_fetch_events_locates_extrinsic_index():
    events = await TxInBlock(BLOCK, EXT_HASH, FakeClient()).fetch_events()
    assert events.extrinsic_index == 1
    assert events.block_hash == BLOCK
    assert events.extrinsic_hash == EXT_HASH


@pytest.mark.asyncio
async def test_fetch_events_missing_extrinsic():
    client = FakeClient(extrinsics=[b"other"])
    with pytest.raises(TransactionError) as info:
        await TxInBlock(BLOCK, EXT_HASH, client).fetch_events()
    assert info.value.kind == "block_hash_not_found"


@pytest.mark.asyncio
async def test_fetch_events_missing_block():
    with pytest.raises(TransactionError) as info:
        await TxInBlock(b"\x00" * 32, EXT_HASH, FakeClient()).fetch_events()
    assert info.value.kind == "block_hash_not_found"


@pytest.mark.asyncio
async def test_wait_for_finalized_success_returns_events():
    mine = FakeEvent("Balances", "Transfer", ("ApplyExtrinsic", 1))
    client = FakeClient(events=[mine, FakeEvent("System", "ExtrinsicFailed", ("ApplyExtrinsic", 0))])
    events = await _progress([("finalized", BLOCK)], client).wait_for_finalized_success()
    assert list(events.iter()) == [mine]


@pytest.mark.asyncio
async def test_wait_for_success_raises_extrinsic_failed():
    failed = FakeEvent("System", "ExtrinsicFailed", ("ApplyExtrinsic", 1), b"\x03\x02")
    client = FakeClient(events=[failed])
    with pytest.raises(ExtrinsicFailed) as info:
        await TxInBlock(BLOCK, EXT_HASH, client).wait_for_success()
    assert info.value.field_bytes == b"\x03\x02"
    assert info.value.event is failed


def test_tx_events_find_filters_by_phase_and_type():
    ours = FakeEvent("Balances", "Transfer", ("ApplyExtrinsic", 2))
    theirs = FakeEvent("Balances", "Transfer", ("ApplyExtrinsic", 3))
    finalization = FakeEvent("System", "Remarked", ("Finalization",))
    events = TxEvents(EXT_HASH, 2, FakeEvents(BLOCK, [theirs, ours, finalization]))
    assert [t.source for t in events.find(Transfer)] == [ours]
    assert events.find_first(Transfer).source is ours
    assert events.has(Transfer) is True
    assert events.has(Remarked) is False
    assert events.find_first(Remarked) is None


def test_tx_events_iter_raises_decode_errors():
    events = TxEvents(EXT_HASH, 0, FakeEvents(BLOCK, [ValueError("bad event")]))
    with pytest.raises(ValueError, match="bad event"):
        list(events.iter())


@pytest.mark.asyncio
async def test_extrinsic_hash_kept_on_progress():
    progress = _progress([])
    assert progress.extrinsic_hash == EXT_HASH
    with pytest.raises(SubscriptionDropped):
        await progress.wait_for_finalized()