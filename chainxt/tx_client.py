"""Building, signing and submitting transactions.

The client handed to :class:`TxClient` is expected to provide:

* ``metadata()`` returning runtime metadata. It offers
  ``call_hash(pallet, call)``, the 32-byte hash of a call, plus whatever the
  payloads need to encode their call data.
* ``runtime_version()`` returning an object with integer ``spec_version``
  and ``transaction_version`` attributes.
* ``genesis_hash()`` returning the hash of the genesis block.
* ``rpc``, an object with the coroutines
  ``system_account_next_index(account_id)``, ``watch_extrinsic(data)``
  (returning a status subscription as :class:`~chainxt.tx_progress.TxProgress`
  expects it), ``submit_extrinsic(data)`` and ``dry_run(data, at)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .hashing import blake2_256
from .signer import Signer
from .tx_params import BaseExtrinsicParams, SubstrateExtrinsicParamsBuilder
from .tx_payload import TxPayload
from .tx_progress import TxProgress
from .utils import Encoded, encode_compact

logger = logging.getLogger(__name__)

# Transaction protocol version, and the bit marking a signed transaction.
_TX_VERSION = 4
_SIGNED_BIT = 0b1000_0000
_MAX_EXTRINSIC_LEN = (1 << 32) - 1
# Payloads longer than this are hashed before being signed.
_MAX_UNHASHED_PAYLOAD = 256


class IncompatibleCallMetadata(Exception):
    """A call does not match the call in the node's metadata."""

    def __init__(self, pallet_name: str, call_name: str) -> None:
        super().__init__(f"call {pallet_name}.{call_name} has incompatible metadata")
        self.pallet_name = pallet_name
        self.call_name = call_name


def _length_prefixed(inner: bytes) -> bytes:
    if len(inner) > _MAX_EXTRINSIC_LEN:
        raise ValueError("extrinsic size expected to be under 4GB")
    return encode_compact(len(inner)) + inner


class TxClient:
    """Create and submit signed or unsigned transactions.

    ``params_type`` builds the signed extra and additional parameters from a
    builder; ``default_params`` creates the builder used by the ``*_default``
    methods.
    """

    def __init__(
        self,
        client: Any,
        params_type: Any = BaseExtrinsicParams,
        default_params: Callable[[], Any] = SubstrateExtrinsicParamsBuilder,
    ) -> None:
        self.client = client
        self.params_type = params_type
        self.default_params = default_params

    def validate(self, call: TxPayload) -> None:
        """Check the call against node metadata when it carries a hash.

        Raises :class:`IncompatibleCallMetadata` on a mismatch; metadata
        lookups that fail raise their own errors.
        """
        details = call.validation_details()
        if details is None:
            return
        expected = self.client.metadata().call_hash(details.pallet_name, details.call_name)
        if bytes(details.hash) != bytes(expected):
            raise IncompatibleCallMetadata(details.pallet_name, details.call_name)

    def call_data(self, call: TxPayload) -> bytes:
        """The SCALE encoded call data of the transaction."""
        return bytes(call.encode_call_data(self.client.metadata()))

    def create_unsigned(self, call: TxPayload) -> "SubmittableExtrinsic":
        """An unsigned extrinsic for ``call``, not yet submitted."""
        self.validate(call)
        inner = bytes([_TX_VERSION]) + self.call_data(call)
        return SubmittableExtrinsic.from_bytes(self.client, _length_prefixed(inner))

    def create_signed_with_nonce(
        self,
        call: TxPayload,
        signer: Signer,
        account_nonce: int,
        other_params: Any,
    ) -> "SubmittableExtrinsic":
        """A signed extrinsic using the given nonce, not yet submitted."""
        self.validate(call)
        call_data = Encoded(self.call_data(call))

        runtime = self.client.runtime_version()
        params = self.params_type.from_builder(
            runtime.spec_version,
            runtime.transaction_version,
            account_nonce,
            self.client.genesis_hash(),
            other_params,
        )
        logger.debug("tx additional_and_extra_params: %r", params)

        extra = params.encode_extra()
        payload = call_data.encode() + extra + params.encode_additional()
        if len(payload) > _MAX_UNHASHED_PAYLOAD:
            payload = blake2_256(payload)
        signature = bytes(signer.sign(payload))
        logger.debug("tx signature: %s", signature.hex())

        inner = (
            bytes([_SIGNED_BIT + _TX_VERSION])
            + bytes(signer.address())
            + signature
            + extra
            + call_data.encode()
        )
        return SubmittableExtrinsic.from_bytes(self.client, _length_prefixed(inner))

    async def create_signed(
        self, call: TxPayload, signer: Signer, other_params: Any
    ) -> "SubmittableExtrinsic":
        """A signed extrinsic; the nonce comes from the signer or else the node."""
        nonce = signer.nonce
        if nonce is None:
            nonce = await self.client.rpc.system_account_next_index(signer.account_id)
        return self.create_signed_with_nonce(call, signer, nonce, other_params)

    async def sign_and_submit_then_watch_default(
        self, call: TxPayload, signer: Signer
    ) -> TxProgress:
        """Sign with default parameters, submit, and follow the progress."""
        return await self.sign_and_submit_then_watch(call, signer, self.default_params())

    async def sign_and_submit_then_watch(
        self, call: TxPayload, signer: Signer, other_params: Any
    ) -> TxProgress:
        """Sign, submit, and follow the progress of the transaction."""
        extrinsic = await self.create_signed(call, signer, other_params)
        return await extrinsic.submit_and_watch()

    async def sign_and_submit_default(self, call: TxPayload, signer: Signer) -> Any:
        """Sign with default parameters and submit; returns the extrinsic hash.

        Success means only that the pool accepted the transaction.
        """
        return await self.sign_and_submit(call, signer, self.default_params())

    async def sign_and_submit(
        self, call: TxPayload, signer: Signer, other_params: Any
    ) -> Any:
        """Sign and submit; returns the extrinsic hash reported by the node.

        Success means only that the pool accepted the transaction.
        """
        extrinsic = await self.create_signed(call, signer, other_params)
        return await extrinsic.submit()


@dataclass(frozen=True)
class SubmittableExtrinsic:
    """A prepared extrinsic, ready to submit."""

    client: Any
    _encoded: Encoded

    @classmethod
    def from_bytes(cls, client: Any, tx_bytes: bytes) -> "SubmittableExtrinsic":
        """Wrap already prepared extrinsic bytes."""
        return cls(client, Encoded(bytes(tx_bytes)))

    @property
    def encoded(self) -> bytes:
        """The SCALE encoded extrinsic."""
        return self._encoded.data

    def into_encoded(self) -> bytes:
        """The SCALE encoded extrinsic bytes."""
        return self._encoded.data

    async def submit_and_watch(self) -> TxProgress:
        """Submit and return a :class:`TxProgress` following the transaction."""
        ext_hash = blake2_256(self.encoded)
        sub = await self.client.rpc.watch_extrinsic(self.encoded)
        return TxProgress(sub, self.client, ext_hash)

    async def submit(self) -> Any:
        """Submit for block inclusion; returns the extrinsic hash."""
        return await self.client.rpc.submit_extrinsic(self.encoded)

    async def dry_run(self, at: Any = None) -> Any:
        """Ask the node whether applying the extrinsic would succeed."""
        return await self.client.rpc.dry_run(self.encoded, at)