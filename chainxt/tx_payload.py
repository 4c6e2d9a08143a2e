"""Transaction payloads: the call a transaction makes, and how to encode it.

Metadata passed to these classes is expected to provide ``pallet(name)``,
returning pallet metadata with an integer ``index``, a ``call_index(name)``
method and a ``call_ty_id`` attribute (``None`` when the pallet has no
calls). Dynamic payloads also need ``encode_as_type(value, type_id)``, which
encodes ``value`` as the type with that id and returns the bytes. The value
given is an unnamed variant as a ``(name, fields)`` tuple.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Iterable


class CallNotFound(LookupError):
    """The pallet defines no calls."""


@dataclass(frozen=True)
class ValidationDetails:
    """What is needed to check a call against node metadata."""

    pallet_name: str
    call_name: str
    hash: bytes


class TxPayload(ABC):
    """A call that can be submitted to a node."""

    @abstractmethod
    def encode_call_data(self, metadata: Any) -> bytes:
        """The SCALE encoded call data."""

    def validation_details(self) -> ValidationDetails | None:
        """Details to validate the call with, or ``None`` to skip validation."""
        return None


def _encode(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    encode = getattr(value, "encode", None)
    if isinstance(value, str) or not callable(encode):
        raise TypeError(f"cannot encode call data of type {type(value).__name__}")
    return bytes(encode())


@dataclass(frozen=True)
class StaticTxPayload(TxPayload):
    """A call whose arguments were prepared ahead of time.

    ``call_data`` is either encoded bytes or an object whose ``encode()``
    returns them.
    """

    pallet_name: str
    call_name: str
    call_data: Any
    validation_hash: bytes | None

    def __post_init__(self) -> None:
        if self.validation_hash is not None:
            digest = bytes(self.validation_hash)
            if len(digest) != 32:
                raise ValueError("validation hash must be 32 bytes")
            object.__setattr__(self, "validation_hash", digest)

    def unvalidated(self) -> "StaticTxPayload":
        """A copy that is not checked against metadata before submission."""
        return replace(self, validation_hash=None)

    def encode_call_data(self, metadata: Any) -> bytes:
        pallet = metadata.pallet(self.pallet_name)
        call_index = pallet.call_index(self.call_name)
        return bytes([pallet.index, call_index]) + _encode(self.call_data)

    def validation_details(self) -> ValidationDetails | None:
        if self.validation_hash is None:
            return None
        return ValidationDetails(self.pallet_name, self.call_name, self.validation_hash)


@dataclass(frozen=True)
class DynamicTxPayload(TxPayload):
    """A call whose arguments are encoded using runtime metadata."""

    pallet_name: str
    call_name: str
    fields: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))

    def encode_call_data(self, metadata: Any) -> bytes:
        pallet = metadata.pallet(self.pallet_name)
        call_type = pallet.call_ty_id
        if call_type is None:
            raise CallNotFound(f"pallet {self.pallet_name} has no calls")
        call_value = (self.call_name, list(self.fields))
        return bytes([pallet.index]) + bytes(metadata.encode_as_type(call_value, call_type))


def dynamic(pallet_name: str, call_name: str, fields: Iterable[Any]) -> DynamicTxPayload:
    """A dynamic call to ``call_name`` in ``pallet_name`` with the given fields."""
    return DynamicTxPayload(pallet_name, call_name, tuple(fields))