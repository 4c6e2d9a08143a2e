from types import SimpleNamespace

import pytest

from chainxt.hashing import blake2_256
from chainxt.signer import PairSigner
from chainxt.tx_client import IncompatibleCallMetadata, SubmittableExtrinsic, TxClient
from chainxt.tx_params import PolkadotExtrinsicParamsBuilder, SubstrateExtrinsicParamsBuilder
from chainxt.tx_payload import StaticTxPayload
from chainxt.tx_progress import TxStatusKind
from chainxt.utils import encode_compact

ALICE = bytes.fromhex("d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d")
CALL_HASH = bytes(range(32))
GENESIS = b"\x0a" * 32


class FakePallet:
    index = 6

    def call_index(self, name):
        if name != "transfer":
            raise LookupError(name)
        return 0


class FakeMetadata:
    def pallet(self, name):
        if name != "Balances":
            raise LookupError(name)
        return FakePallet()

    def call_hash(self, pallet, call):
        return CALL_HASH


class FakeRpc:
    def __init__(self):
        self.calls = []

    async def system_account_next_index(self, account_id):
        self.calls.append(("nonce", account_id))
        return 7

    async def watch_extrinsic(self, data):
        self.calls.append(("watch", data))

        async def statuses():
            yield ("ready", None)

        return statuses()

    async def submit_extrinsic(self, data):
        self.calls.append(("submit", data))
        return b"\xee" * 32

    async def dry_run(self, data, at):
        self.calls.append(("dry_run", data, at))
        return "ok"


class FakeClient:
    def __init__(self):
        self.rpc = FakeRpc()

    def metadata(self):
        return FakeMetadata()

    def runtime_version(self):
        return SimpleNamespace(spec_version=1, transaction_version=2)

    def genesis_hash(self):
        return GENESIS


class FakePair:
    def __init__(self):
        self.signed = []

    def public(self):
        return b"\x11" * 32

    def sign(self, payload):
        self.signed.append(payload)
        return b"\x22" * 64


def transfer(to=ALICE, amount=12345, validation_hash=None):
    return StaticTxPayload(
        "Balances", "transfer", b"\x00" + to + encode_compact(amount), validation_hash
    )


def test_unsigned_extrinsic_is_same_shape_as_polkadotjs():
    api = TxClient(FakeClient())
    actual = api.create_unsigned(transfer()).encoded
    expected = bytes.fromhex(
        "9804060000d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27de5c0"
    )
    assert actual == expected


def test_call_data_is_pallet_call_and_args():
    api = TxClient(FakeClient())
    assert api.call_data(transfer()) == b"\x06\x00\x00" + ALICE + b"\xe5\xc0"


def test_validate_mismatch_raises():
    api = TxClient(FakeClient())
    with pytest.raises(IncompatibleCallMetadata) as info:
        api.create_unsigned(transfer(validation_hash=b"\xff" * 32))
    assert info.value.pallet_name == "Balances"
    assert info.value.call_name == "transfer"


def test_validate_matching_and_unvalidated_calls_pass():
    api = TxClient(FakeClient())
    good = api.create_unsigned(transfer(validation_hash=CALL_HASH))
    skipped = api.create_unsigned(transfer(validation_hash=b"\xff" * 32).unvalidated())
    assert good.encoded == skipped.encoded


def test_signed_extrinsic_layout_and_payload():
    api = TxClient(FakeClient())
    pair = FakePair()
    signer = PairSigner(pair)
    call = transfer()
    ext = api.create_signed_with_nonce(call, signer, 5, SubstrateExtrinsicParamsBuilder())

    call_data = b"\x06\x00\x00" + ALICE + b"\xe5\xc0"
    extra = b"\x00" + b"\x14" + b"\x00\x00"
    additional = b"\x01\x00\x00\x00" + b"\x02\x00\x00\x00" + GENESIS + GENESIS
    assert pair.signed == [call_data + extra + additional]

    inner = b"\x84" + b"\x00" + b"\x11" * 32 + b"\x01" + b"\x22" * 64 + extra + call_data
    assert ext.encoded == encode_compact(len(inner)) + inner


def test_polkadot_params_encode_plain_tip():
    api = TxClient(FakeClient())
    pair = FakePair()
    api.create_signed_with_nonce(
        transfer(), PairSigner(pair), 0, PolkadotExtrinsicParamsBuilder().tip(3)
    )
    call_len = len(b"\x06\x00\x00" + ALICE + b"\xe5\xc0")
    assert pair.signed[0][call_len : call_len + 3] == b"\x00\x00\x0c"


def test_long_payload_is_hashed_before_signing():
    api = TxClient(FakeClient())
    pair = FakePair()
    call = StaticTxPayload("Balances", "transfer", b"\x33" * 300, None)
    api.create_signed_with_nonce(call, PairSigner(pair), 0, SubstrateExtrinsicParamsBuilder())
    call_data = b"\x06\x00" + b"\x33" * 300
    extra = b"\x00\x00\x00\x00"
    additional = b"\x01\x00\x00\x00\x02\x00\x00\x00" + GENESIS + GENESIS
    assert pair.signed == [blake2_256(call_data + extra + additional)]


@pytest.mark.asyncio
async def test_create_signed_asks_node_for_nonce():
    client = FakeClient()
    api = TxClient(client)
    pair = FakePair()
    signer = PairSigner(pair)
    await api.create_signed(transfer(), signer, SubstrateExtrinsicParamsBuilder())
    assert client.rpc.calls == [("nonce", b"\x11" * 32)]
    call_len = len(b"\x06\x00\x00" + ALICE + b"\xe5\xc0")
    assert pair.signed[0][call_len + 1] == 7 << 2


@pytest.mark.asyncio
async def test_create_signed_uses_signer_nonce():
    client = FakeClient()
    api = TxClient(client)
    pair = FakePair()
    signer = PairSigner(pair)
    signer.set_nonce(9)
    await api.create_signed(transfer(), signer, SubstrateExtrinsicParamsBuilder())
    assert client.rpc.calls == []
    call_len = len(b"\x06\x00\x00" + ALICE + b"\xe5\xc0")
    assert pair.signed[0][call_len + 1] == 9 << 2


@pytest.mark.asyncio
async def test_sign_and_submit_default_returns_node_hash():
    client = FakeClient()
    api = TxClient(client)
    result = await api.sign_and_submit_default(transfer(), PairSigner(FakePair()))
    assert result == b"\xee" * 32
    assert client.rpc.calls[-1][0] == "submit"


@pytest.mark.asyncio
async def test_submit_and_watch_tracks_extrinsic_hash():
    client = FakeClient()
    api = TxClient(client)
    progress = await api.sign_and_submit_then_watch_default(
        transfer(), PairSigner(FakePair())
    )
    submitted = client.rpc.calls[-1][1]
    assert progress.extrinsic_hash == blake2_256(submitted)
    status = await progress.next_item()
    assert status.kind is TxStatusKind.READY


@pytest.mark.asyncio
async def test_dry_run_passes_bytes_and_block():
    client = FakeClient()
    ext = SubmittableExtrinsic.from_bytes(client, b"\x01\x02")
    assert await ext.dry_run(b"\x05" * 32) == "ok"
    assert client.rpc.calls == [("dry_run", b"\x01\x02", b"\x05" * 32)]


def test_from_bytes_round_trip():
    ext = SubmittableExtrinsic.from_bytes(FakeClient(), bytearray(b"\xab\xcd"))
    assert ext.encoded == b"\xab\xcd"
    assert ext.into_encoded() == b"\xab\xcd"