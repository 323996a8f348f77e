"""Merkle-proof gated whitelist for fee-free round entry."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Union

from sqlalchemy.orm import Session
from web3 import Web3

from .addresses import normalize_address
from .errors import InvalidInputError, MalformedProof
from .models import WhitelistEntry

logger = logging.getLogger(__name__)

ProofElement = Union[str, bytes]


def _to_hash(value: ProofElement) -> bytes:
    """Return ``value`` as 32 raw bytes or raise :class:`MalformedProof`."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        try:
            raw = bytes(Web3.to_bytes(hexstr=value))
        except ValueError as exc:
            raise MalformedProof(f"proof element is not hex: {value!r}") from exc
    else:
        raise MalformedProof(f"unsupported proof element type {type(value).__name__}")
    if len(raw) != 32:
        raise MalformedProof(f"proof element must be 32 bytes, got {len(raw)}")
    return raw


def leaf_hash(address: str) -> bytes:
    """Hash an address the way the whitelist leaves are built.

    ``keccak256(abi.encodePacked(address))``; ``address`` must already be
    checksummed.
    """
    return bytes(Web3.solidity_keccak(["address"], [address]))


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Sorted-pair keccak so proofs do not need to encode left/right order."""
    if left <= right:
        return bytes(Web3.keccak(left + right))
    return bytes(Web3.keccak(right + left))


def compute_root(leaf: bytes, proof: Sequence[ProofElement]) -> bytes:
    computed = leaf
    for element in proof:
        computed = hash_pair(computed, _to_hash(element))
    return computed


class MerkleTree:
    """Builds whitelist roots and proofs from a list of addresses.

    Used by admins to publish a root and hand out proofs; verification only
    needs :func:`compute_root`.
    """

    def __init__(self, addresses: Iterable[str]) -> None:
        normalized = sorted({normalize_address(a) for a in addresses})
        if not normalized:
            raise ValueError("a whitelist tree needs at least one address")
        self._leaves = {address: leaf_hash(address) for address in normalized}
        self._layers: list[list[bytes]] = [sorted(self._leaves.values())]
        while len(self._layers[-1]) > 1:
            current = self._layers[-1]
            nxt: list[bytes] = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    nxt.append(hash_pair(current[i], current[i + 1]))
                else:
                    nxt.append(current[i])
            self._layers.append(nxt)

    @classmethod
    def from_addresses(cls, addresses: Iterable[str]) -> "MerkleTree":
        return cls(addresses)

    @property
    def root(self) -> bytes:
        return self._layers[-1][0]

    @property
    def root_hex(self) -> str:
        return "0x" + self.root.hex()

    @property
    def addresses(self) -> list[str]:
        return list(self._leaves)

    def proof(self, address: str) -> list[str]:
        """Return the hex-encoded sibling path for ``address``."""
        normalized = normalize_address(address)
        try:
            node = self._leaves[normalized]
        except KeyError as exc:
            raise KeyError(f"{normalized} is not part of this tree") from exc

        path: list[str] = []
        index = self._layers[0].index(node)
        for layer in self._layers[:-1]:
            sibling = index ^ 1
            if sibling < len(layer):
                path.append("0x" + layer[sibling].hex())
            index //= 2
        return path


class WhitelistVerifier:
    """Validates membership proofs and maintains the whitelist set."""

    def __init__(self, session: Session, root: Optional[ProofElement]) -> None:
        """Bind the verifier to a session and the configured Merkle root.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        root : Optional[str | bytes]
            Configured Merkle root. When ``None`` no proof ever verifies.
        """
        self._session = session
        self._root = _to_hash(root) if root is not None else None

    def verify(self, proof: Sequence[ProofElement], address: str) -> bool:
        """Check ``proof`` for ``address`` and append it to the whitelist.

        An invalid proof is a silent no-op: the call succeeds and nothing is
        written. Only a structurally malformed proof raises.

        Returns
        -------
        bool
            ``True`` when the proof is valid (whether or not the address was
            already a member), ``False`` otherwise.
        """
        normalized = normalize_address(address)
        computed = compute_root(leaf_hash(normalized), proof)
        if self._root is None or computed != self._root:
            logger.debug("Whitelist proof rejected for %s", normalized)
            return False

        if WhitelistEntry.get_by_address(self._session, normalized) is not None:
            return True

        entry = WhitelistEntry(position=self.length(), address=normalized)
        self._session.add(entry)
        self._session.flush()
        logger.info("Whitelisted %s at position %d", normalized, entry.position)
        return True

    def is_whitelisted(self, address: str) -> bool:
        return WhitelistEntry.get_by_address(self._session, address) is not None

    def length(self) -> int:
        return WhitelistEntry.count(self._session)

    def member(self, index: int) -> str:
        """Return the address stored at ``index``."""
        entry = WhitelistEntry.get_by_position(self._session, index)
        if entry is None:
            raise InvalidInputError(f"whitelist index {index} out of range")
        return entry.address


__all__ = [
    "MerkleTree",
    "WhitelistVerifier",
    "compute_root",
    "hash_pair",
    "leaf_hash",
]
