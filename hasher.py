"""
hasher.py — Merkle-style content fingerprints.

Files hash their bytes; directories hash the ordered fingerprints of their
children, so any change below a directory changes it and every ancestor.
"""

from __future__ import annotations
import hashlib
from pathlib import Path
from typing import Iterable


CHILD_DELIMITER = "|"
DEFAULT_CHUNK_SIZE = 8192


def hash_content(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Stream a file through SHA-256. Raises OSError if it cannot be read."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_children(ordered_digests: Iterable[str]) -> str:
    # Hex digests never contain the delimiter, so joins are unambiguous.
    return hash_content(CHILD_DELIMITER.join(ordered_digests))
