"""Account address normalisation."""

from __future__ import annotations

from web3 import Web3

from .errors import InvalidAddress


def normalize_address(address: str) -> str:
    """Return ``address`` in EIP-55 checksum form.

    Every entry point normalises addresses so that ownership, rental and
    balance lookups compare equal regardless of the caller's casing.

    Raises
    ------
    InvalidAddress
        If ``address`` is not a 20-byte hex account address.
    """
    if not isinstance(address, str):
        raise InvalidAddress(f"address must be a string, got {type(address).__name__}")
    candidate = address.strip()
    if not Web3.is_address(candidate):
        raise InvalidAddress(f"invalid account address: {address!r}")
    return Web3.to_checksum_address(candidate)


__all__ = ["normalize_address"]
