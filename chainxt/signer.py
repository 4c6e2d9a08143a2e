"""Signers provide the sending account and sign transaction payloads."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any

from .hashing import blake2_256


class SignatureScheme(enum.Enum):
    """Signature schemes, valued by their index in a multi-signature."""

    ED25519 = 0
    SR25519 = 1
    ECDSA = 2


_SIGNATURE_LENGTHS = {
    SignatureScheme.ED25519: 64,
    SignatureScheme.SR25519: 64,
    SignatureScheme.ECDSA: 65,
}


class Signer(ABC):
    """Provides the sending account, optionally its nonce, and signatures."""

    nonce: int | None
    account_id: bytes

    @abstractmethod
    def address(self) -> bytes:
        """The SCALE encoded address of the sending account."""

    @abstractmethod
    def sign(self, payload: bytes) -> bytes:
        """The SCALE encoded signature of ``payload``."""


class PairSigner(Signer):
    """A signer built on a key pair.

    The pair provides ``public()`` returning its public key bytes and
    ``sign(payload)`` returning the raw signature bytes. Addresses and
    signatures are produced in their multi-address and multi-signature
    encodings.
    """

    def __init__(self, pair: Any, scheme: SignatureScheme = SignatureScheme.SR25519) -> None:
        self.signer = pair
        self.scheme = SignatureScheme(scheme)
        public = bytes(pair.public())
        if self.scheme is SignatureScheme.ECDSA:
            if len(public) != 33:
                raise ValueError("an ecdsa public key must be 33 bytes")
            self.account_id = blake2_256(public)
        else:
            if len(public) != 32:
                raise ValueError(f"a {self.scheme.name.lower()} public key must be 32 bytes")
            self.account_id = public
        self.nonce: int | None = None

    def set_nonce(self, nonce: int) -> None:
        """Use ``nonce`` instead of asking the node for one."""
        if nonce < 0:
            raise ValueError("nonce cannot be negative")
        self.nonce = nonce

    def increment_nonce(self) -> None:
        """Add one to the nonce, if one is set."""
        if self.nonce is not None:
            self.nonce += 1

    def address(self) -> bytes:
        """The account as an ``Id`` multi-address."""
        return b"\x00" + self.account_id

    def sign(self, payload: bytes) -> bytes:
        """Sign ``payload`` and return the signature as a multi-signature."""
        signature = bytes(self.signer.sign(bytes(payload)))
        expected = _SIGNATURE_LENGTHS[self.scheme]
        if len(signature) != expected:
            raise ValueError(
                f"{self.scheme.name.lower()} signature must be {expected} bytes, "
                f"got {len(signature)}"
            )
        return bytes([self.scheme.value]) + signature

    def __repr__(self) -> str:
        return (
            f"PairSigner(account_id={self.account_id.hex()}, "
            f"scheme={self.scheme.name}, nonce={self.nonce})"
        )