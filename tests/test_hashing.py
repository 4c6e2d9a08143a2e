import pytest

from chainxt.hashing import blake2_128, blake2_256, twox_64, twox_128, twox_256


def test_twox_64_of_empty_input():
    assert twox_64(b"") == bytes.fromhex("99e9d85137db46ef")


def test_twox_128_of_well_known_storage_prefixes():
    assert twox_128(b"System") == bytes.fromhex("26aa394eea5630e07c48ae0c9558cef7")
    assert twox_128(b"Account") == bytes.fromhex("b99d880ec681799c0cf30e8886371da9")


@pytest.mark.parametrize(
    "data",
    [b"", b"a", b"abcd", b"abcdefgh", b"Timestamp", bytes(range(31)), bytes(range(32)), bytes(range(100))],
)
def test_twox_lengths_and_prefixes(data):
    short = twox_64(data)
    mid = twox_128(data)
    wide = twox_256(data)
    assert (len(short), len(mid), len(wide)) == (8, 16, 32)
    assert mid[:8] == short
    assert wide[:16] == mid


def test_twox_seeds_give_different_halves():
    digest = twox_128(bytes(range(64)))
    assert len(digest) == 16
    assert digest[:8] != digest[8:]


def test_twox_is_sensitive_to_each_byte():
    data = bytearray(range(40))
    base = twox_64(bytes(data))
    data[37] ^= 1
    assert twox_64(bytes(data)) != base
    assert len(base) == 8


def test_hashes_accept_bytes_like():
    payload = b"storage-key-payload-longer-than-thirty-two-bytes"
    assert twox_128(bytearray(payload)) == twox_128(payload)
    assert blake2_256(memoryview(payload)) == blake2_256(payload)


def test_blake2_lengths_and_determinism():
    assert len(blake2_128(b"abc")) == 16
    assert len(blake2_256(b"abc")) == 32
    assert blake2_128(b"abc") == blake2_128(b"abc")
    assert blake2_256(b"abc") != blake2_256(b"abd")