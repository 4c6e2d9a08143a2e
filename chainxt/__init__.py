"""Storage keys, extrinsic construction and transaction tracking for chains described by runtime metadata."""

__version__ = "0.1.0"