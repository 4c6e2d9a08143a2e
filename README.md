# chainxt

chainxt builds storage lookup keys and transactions (extrinsics) for chains that
describe their runtime through metadata. It follows submitted transactions until
they land in a block and picks out the events that belong to them. It uses only
the standard library.

## Modules

- `chainxt.utils`: SCALE compact integers (`encode_compact`, `decode_compact`).
  `Encoded` wraps bytes that are already encoded. `WrapperKeepOpaque` keeps a
  value in encoded form and encodes it as a length-prefixed byte vector.
- `chainxt.hashing`: `twox_64`, `twox_128`, `twox_256` (xxHash64 with
  consecutive seeds) and `blake2_128`, `blake2_256` (BLAKE2b).
- `chainxt.storage_map_key`: `StorageHasher` (Identity, Blake2 and Twox
  variants), `hash_bytes`, and `StorageMapKey`, a pre-encoded key paired with its
  hasher.
- `chainxt.storage_address`: `StaticStorageAddress` holds keys encoded ahead of
  time. `DynamicStorageAddress`, built with `dynamic` and `dynamic_root`, encodes
  its keys from metadata. The module also has the entry descriptions
  `PlainEntryType` and `MapEntryType`, the `StorageAddressError` exception, and
  `storage_address_root_bytes` / `storage_address_bytes`.
- `chainxt.storage_client`: `StorageClient` validates addresses against metadata
  hashes. It fetches raw or decoded values, falls back to the entry's default, and
  pages through keys. `StorageClient.iter` returns a `KeyIter` that walks a map at
  one pinned block. A mismatched hash raises `IncompatibleStorageMetadata`.
- `chainxt.tx_params`: `Era` (immortal or mortal), the tips `PlainTip` and
  `AssetTip`, the builders `BaseExtrinsicParamsBuilder`,
  `SubstrateExtrinsicParamsBuilder` (asset tips) and
  `PolkadotExtrinsicParamsBuilder` (plain tips), and `BaseExtrinsicParams`, which
  encodes the "signed extra" and "additional" bytes.
- `chainxt.signer`: the `Signer` interface and `PairSigner`. `PairSigner` wraps a
  key pair and produces an `Id` multi-address and multi-signature bytes for
  ed25519, sr25519 or ecdsa (`SignatureScheme`).
- `chainxt.tx_payload`: `StaticTxPayload` and `DynamicTxPayload` (built with
  `dynamic`) encode call data from pallet and call indices. `ValidationDetails`
  carries what is needed to check a call against metadata.
- `chainxt.tx_client`: `TxClient` validates calls and encodes call data. It
  creates unsigned extrinsics and signed ones, taking the nonce from the signer
  or else asking the node. Signing payloads longer than 256 bytes are hashed with
  BLAKE2b-256 before signing. `SubmittableExtrinsic` submits, watches or dry-runs
  an extrinsic. A mismatched call hash raises `IncompatibleCallMetadata`.
- `chainxt.tx_progress`: `TxProgress` yields `TxStatus` updates
  (`TxStatusKind`). It can wait until the transaction is in a block or finalized.
  `TxInBlock` fetches the transaction's events. `TxEvents` filters a block's
  events to the transaction and finds events by type. Failures raise
  `TransactionError`, `SubscriptionDropped` or `ExtrinsicFailed`.

## Building a storage key

```python
from chainxt.storage_address import StaticStorageAddress
from chainxt.storage_map_key import StorageHasher, StorageMapKey

address = StaticStorageAddress(
    pallet_name="System",
    entry_name="Account",
    storage_entry_keys=[StorageMapKey(b"\x01" * 32, StorageHasher.BLAKE2_128_CONCAT)],
    validation_hash=bytes(32),
)
key = address.to_bytes()        # twox_128("System") + twox_128("Account") + hashed key
root = address.to_root_bytes()  # just the pallet/entry prefix
```

## Transaction parameters

```python
from chainxt.tx_params import BaseExtrinsicParams, Era, PolkadotExtrinsicParamsBuilder

builder = PolkadotExtrinsicParamsBuilder().tip(1_000).era(Era.mortal(64, 1000), bytes(32))
params = BaseExtrinsicParams.from_builder(
    spec_version=100,
    transaction_version=1,
    nonce=0,
    genesis_hash=bytes(32),
    other_params=builder,
)
extra = params.encode_extra()            # era, compact nonce, tip
additional = params.encode_additional()  # versions, genesis hash, checkpoint
```

If no checkpoint is set, the genesis hash is used as the mortality checkpoint.

## Clients

`StorageClient` and `TxClient` wrap a client object that you supply. The module
docstrings of `chainxt.storage_client`, `chainxt.tx_client` and
`chainxt.tx_progress` list what that object must provide: metadata lookups, the
runtime version, the genesis hash, and an `rpc` object with async methods.

## What the package does not do

- It has no network transport. It does not connect to a node; every RPC call
  goes through the client object you pass in.
- It does not parse or decode runtime metadata, and it does not encode values
  against metadata types. Metadata objects and value decoders are supplied by
  the caller.
- It does not generate keys or compute signatures. `PairSigner` calls the
  `public()` and `sign()` methods of a key pair object you provide.
- It has no command-line interface.

## Running the tests

```
pip install -e ".[test]"
pytest
```