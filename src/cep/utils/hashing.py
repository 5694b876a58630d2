"""Hashing helpers for ledger and watcher bookkeeping."""

from __future__ import annotations

import hashlib


def hash_bytes(content: bytes) -> str:
    """Return the full SHA-256 hex digest of raw file content."""
    return hashlib.sha256(content).hexdigest()


def file_key(path: str, size: int, mtime: float) -> str:
    """Identity of a file as seen on disk at one moment."""
    return hashlib.md5(f"{path}{size}{mtime}".encode("utf-8")).hexdigest()
