"""The "signed extra" and "additional" parameters that go with a transaction.

:class:`BaseExtrinsicParams` holds these parameters in the shape that
Substrate and Polkadot nodes expect. The two differ only in how tips are
paid. :class:`SubstrateExtrinsicParamsBuilder` pays tips with an
:class:`AssetTip` and :class:`PolkadotExtrinsicParamsBuilder` with a
:class:`PlainTip`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar

from .utils import encode_compact

_MIN_PERIOD = 4
_MAX_PERIOD = 1 << 16
_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1
_U128_MAX = (1 << 128) - 1


def _check_range(name: str, value: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer")
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} out of range: {value}")
    return value


@dataclass(frozen=True)
class Era:
    """How long a transaction stays valid.

    A ``period`` of 0 means immortal. Otherwise the transaction is valid for
    ``period`` blocks, counted from the block whose number modulo ``period``
    is ``phase``.
    """

    period: int = 0
    phase: int = 0

    def __post_init__(self) -> None:
        _check_range("period", self.period, _MAX_PERIOD)
        _check_range("phase", self.phase, _U64_MAX)
        if self.period == 0:
            if self.phase != 0:
                raise ValueError("an immortal era has no phase")
            return
        if self.period < _MIN_PERIOD or self.period & (self.period - 1):
            raise ValueError(f"era period must be a power of two from 4 to 65536, got {self.period}")
        if self.phase >= self.period:
            raise ValueError("era phase must be smaller than its period")

    @classmethod
    def immortal(cls) -> "Era":
        """An era that never ends."""
        return cls()

    @classmethod
    def mortal(cls, period: int, current: int) -> "Era":
        """A mortal era of about ``period`` blocks starting at block ``current``.

        The period is rounded up to a power of two and kept between 4 and
        65536; the phase is quantized for long periods.
        """
        _check_range("period", period, _U64_MAX)
        _check_range("current", current, _U64_MAX)
        rounded = 1 if period == 0 else 1 << (period - 1).bit_length()
        if rounded > _U64_MAX:
            rounded = _MAX_PERIOD
        rounded = min(max(rounded, _MIN_PERIOD), _MAX_PERIOD)
        phase = current % rounded
        factor = max(rounded >> 12, 1)
        return cls(rounded, phase // factor * factor)

    @property
    def is_immortal(self) -> bool:
        """Whether the era never ends."""
        return self.period == 0

    def encode(self) -> bytes:
        """SCALE encode: one zero byte when immortal, two bytes otherwise."""
        if self.is_immortal:
            return b"\x00"
        factor = max(self.period >> 12, 1)
        trailing_zeros = (self.period & -self.period).bit_length() - 1
        low = min(max(trailing_zeros - 1, 1), 15)
        return (low | ((self.phase // factor) << 4)).to_bytes(2, "little")


@dataclass(frozen=True)
class PlainTip:
    """A tip paid in the native currency."""

    tip: int = 0

    def __post_init__(self) -> None:
        _check_range("tip", self.tip, _U128_MAX)

    def encode(self) -> bytes:
        """SCALE encode the tip as a compact integer."""
        return encode_compact(self.tip)


@dataclass(frozen=True)
class AssetTip:
    """A tip that may be paid in a specific asset class."""

    tip: int = 0
    asset: int | None = None

    def __post_init__(self) -> None:
        _check_range("tip", self.tip, _U128_MAX)
        if self.asset is not None:
            _check_range("asset", self.asset, _U32_MAX)

    def of_asset(self, asset: int) -> "AssetTip":
        """The same tip paid in the given asset rather than the native currency."""
        return replace(self, asset=asset)

    def encode(self) -> bytes:
        """SCALE encode: compact amount followed by an optional asset id."""
        if self.asset is None:
            return encode_compact(self.tip) + b"\x00"
        return encode_compact(self.tip) + b"\x01" + self.asset.to_bytes(4, "little")


@dataclass(frozen=True)
class BaseExtrinsicParamsBuilder:
    """The parameters a caller chooses when building a transaction.

    By default the transaction is immortal, checkpointed at the genesis
    block, and carries a zero tip of the builder's ``tip_type``.
    """

    tip_type: ClassVar[type] = PlainTip

    selected_era: Era = field(default_factory=Era.immortal)
    mortality_checkpoint: bytes | None = None
    tip_payment: Any = None

    def __post_init__(self) -> None:
        if self.tip_payment is None:
            object.__setattr__(self, "tip_payment", self.tip_type())
        if self.mortality_checkpoint is not None:
            object.__setattr__(self, "mortality_checkpoint", bytes(self.mortality_checkpoint))

    def era(self, era: Era, checkpoint: bytes) -> "BaseExtrinsicParamsBuilder":
        """Set the era and the block hash after which the transaction is valid."""
        return replace(self, selected_era=era, mortality_checkpoint=bytes(checkpoint))

    def tip(self, tip: Any) -> "BaseExtrinsicParamsBuilder":
        """Set the tip for the block author; an integer becomes a ``tip_type``."""
        if isinstance(tip, int) and not isinstance(tip, bool):
            tip = self.tip_type(tip)
        return replace(self, tip_payment=tip)


@dataclass(frozen=True)
class SubstrateExtrinsicParamsBuilder(BaseExtrinsicParamsBuilder):
    """Builder for Substrate nodes, whose tips are :class:`AssetTip`."""

    tip_type: ClassVar[type] = AssetTip


@dataclass(frozen=True)
class PolkadotExtrinsicParamsBuilder(BaseExtrinsicParamsBuilder):
    """Builder for Polkadot nodes, whose tips are :class:`PlainTip`."""

    tip_type: ClassVar[type] = PlainTip


@dataclass(frozen=True)
class BaseExtrinsicParams:
    """The signed extra and additional parameters of one transaction."""

    era: Era
    nonce: int
    tip: Any
    spec_version: int
    transaction_version: int
    genesis_hash: bytes
    mortality_checkpoint: bytes

    def __post_init__(self) -> None:
        _check_range("nonce", self.nonce, _U64_MAX)
        _check_range("spec_version", self.spec_version, _U32_MAX)
        _check_range("transaction_version", self.transaction_version, _U32_MAX)
        object.__setattr__(self, "genesis_hash", bytes(self.genesis_hash))
        object.__setattr__(self, "mortality_checkpoint", bytes(self.mortality_checkpoint))

    @classmethod
    def from_builder(
        cls,
        spec_version: int,
        transaction_version: int,
        nonce: int,
        genesis_hash: bytes,
        other_params: BaseExtrinsicParamsBuilder,
    ) -> "BaseExtrinsicParams":
        """Combine values known to the client with the caller's choices."""
        checkpoint = other_params.mortality_checkpoint
        return cls(
            era=other_params.selected_era,
            nonce=nonce,
            tip=other_params.tip_payment,
            spec_version=spec_version,
            transaction_version=transaction_version,
            genesis_hash=genesis_hash,
            mortality_checkpoint=genesis_hash if checkpoint is None else checkpoint,
        )

    def encode_extra(self) -> bytes:
        """The parameters sent with the transaction and covered by its signature."""
        return self.era.encode() + encode_compact(self.nonce) + bytes(self.tip.encode())

    def encode_additional(self) -> bytes:
        """The parameters covered by the signature but not sent."""
        return (
            self.spec_version.to_bytes(4, "little")
            + self.transaction_version.to_bytes(4, "little")
            + self.genesis_hash
            + self.mortality_checkpoint
        )