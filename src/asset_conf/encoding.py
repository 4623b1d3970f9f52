from __future__ import annotations

from typing import Iterable

from Crypto.Hash import keccak


def encode_asset_id(asset_id: str) -> str:
    """
    Encoded asset id as used on-chain: keccak-256 of the symbol, as "0x" + 64 lowercase hex digits.
    """
    h = keccak.new(digest_bits=256)
    h.update(asset_id.encode("utf-8"))
    return "0x" + h.hexdigest().lower()


def parse_asset_ids(values: str | Iterable[str] | None) -> tuple[str, ...]:
    """
    Accepts "A,B,C" or ["A,B", "C"]. Drops blanks; duplicates keep their first position.
    """
    if values is None:
        return ()
    if isinstance(values, str):
        values = [values]
    out: dict[str, None] = {}
    for v in values:
        for part in v.split(","):
            part = part.strip()
            if part:
                out.setdefault(part, None)
    return tuple(out)
