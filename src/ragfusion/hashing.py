"""Fast, non-cryptographic FNV-1a fingerprints used for content addressing.

The same fingerprint names a file's cache directory, prefixes its record
keys and identifies its blob, so a collision puts two files in the same
bucket everywhere.  At 32 bits that is an accepted limitation for
file-collection scale corpora.
"""

from __future__ import annotations

from collections.abc import Iterable
from os import PathLike

FNV_PRIME = 16777619
FNV_OFFSET_BASIS = 2166136261
_MASK_32 = 0xFFFFFFFF


def fingerprint_bytes(data: bytes, seed: int = FNV_OFFSET_BASIS) -> int:
    """Return the 32-bit FNV-1a hash of *data*."""
    value = seed
    for byte in data:
        value ^= byte
        value = (value * FNV_PRIME) & _MASK_32
    return value


def fingerprint(text: str, seed: int = FNV_OFFSET_BASIS) -> int:
    """Return the 32-bit FNV-1a hash of the UTF-8 encoding of *text*, lower-cased.

    ``fingerprint("A.txt") == fingerprint("a.txt")``; hash the bytes with
    :func:`fingerprint_bytes` when case must count.
    """
    return fingerprint_bytes(text.lower().encode("utf-8"), seed)


def path_fingerprint(path: str | PathLike[str]) -> str:
    """Case-insensitive fingerprint of a file path as 8 hex digits."""
    return f"{fingerprint(str(path)):08x}"


def record_key(path: str | PathLike[str], chunk_index: int) -> str:
    """Stable record key ``<fingerprint>-<chunk index:04d>`` (no I/O)."""
    return f"{path_fingerprint(path)}-{chunk_index:04d}"


def fingerprint_of_set(values: Iterable[str]) -> int:
    """Order-independent identity of a collection of strings.

    Values are upper-cased, sorted and joined with ``;`` before hashing.
    The result is returned as a signed 32-bit integer.
    """
    joined = ";".join(sorted(v.upper() for v in values))
    value = fingerprint_bytes(joined.encode("utf-8"))
    return value - (1 << 32) if value & 0x80000000 else value
