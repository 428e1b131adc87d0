"""Utility helpers for fingerprinting message files."""

from __future__ import annotations

from pathlib import Path

import xxhash

SAMPLE_SIZE = 4096
SMALL_FILE_THRESHOLD = 1024 * 1024


def xxh64_digest(data: bytes) -> str:
    """Return the uppercase hexadecimal xxHash64 digest for the provided data."""
    return xxhash.xxh64(data).hexdigest().upper()


def _read_window(handle, offset: int) -> bytes:
    handle.seek(max(0, offset))
    window = handle.read(SAMPLE_SIZE)
    if len(window) < SAMPLE_SIZE:
        window += b"\x00" * (SAMPLE_SIZE - len(window))
    return window


def _sampled_payload(path: Path, file_size: int) -> bytes:
    """Assemble ``size + first + middle + last`` windows for large files.

    The payload length is constant (8 + 3 * SAMPLE_SIZE) regardless of how
    many bytes each window actually produced.
    """
    with path.open("rb") as handle:
        windows = [
            _read_window(handle, 0),
            _read_window(handle, file_size // 2),
            _read_window(handle, file_size - SAMPLE_SIZE),
        ]
    return file_size.to_bytes(8, "little", signed=True) + b"".join(windows)


def fingerprint_file(path: Path) -> str:
    """Return the content fingerprint of ``path`` or ``""`` when it cannot be read.

    Files up to 1 MiB are hashed in full; larger files are hashed from three
    sampled windows plus their size. The digest is followed by the file size
    as 16 uppercase hex digits.
    """
    try:
        file_size = path.stat().st_size
        if file_size <= SMALL_FILE_THRESHOLD:
            payload = path.read_bytes()
        else:
            payload = _sampled_payload(path, file_size)
    except (OSError, ValueError):
        return ""
    return f"{xxh64_digest(payload)}{file_size:016X}"
