from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from rentlotto.whitelist import MerkleTree


def read_addresses(path: Path) -> list[str]:
    """Read one address per line, skipping blanks and ``#`` comments."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Build the whitelist Merkle root and per-address proofs."
    )
    parser.add_argument("addresses", type=Path, help="file with one address per line")
    parser.add_argument(
        "--out", type=Path, default=None, help="write proofs as JSON to this file"
    )
    args = parser.parse_args(argv)

    try:
        tree = MerkleTree(read_addresses(args.addresses))
    except ValueError as exc:
        print(f"Cannot build whitelist: {exc}", file=sys.stderr)
        return 1

    document = {
        "root": tree.root_hex,
        "proofs": {address: tree.proof(address) for address in tree.addresses},
    }
    print(f"WHITELIST_MERKLE_ROOT={tree.root_hex}")
    print(f"{len(tree.addresses)} addresses")
    if args.out is not None:
        args.out.write_text(json.dumps(document, indent=2), encoding="utf-8")
        print(f"Proofs written to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
