"""File fingerprints and derived upload tokens.

This module provides:
- compute_file_hash: streaming SHA-1 of a whole file
- derive_upload_token: deterministic per-upload token
"""

import hashlib
from pathlib import Path

# Read buffer for streaming hashes
HASH_BUFFER_SIZE = 1024 * 1024  # 1 MB


def compute_file_hash(path: Path) -> str:
    """Compute the SHA-1 fingerprint of a file.

    The file is read once in fixed-size blocks, so memory use does not
    depend on the file size.

    Args:
        path: Path to the file.

    Returns:
        Lowercase hex-encoded SHA-1 (40 characters).

    Raises:
        OSError: If the file cannot be opened or read.
    """
    hasher = hashlib.sha1()
    with open(path, "rb") as f:
        while block := f.read(HASH_BUFFER_SIZE):
            hasher.update(block)
    return hasher.hexdigest()


def derive_upload_token(
    fingerprint: str,
    file_name: str,
    file_size: int,
    chunk_size: int,
) -> str:
    """Derive the upload token identifying one logical upload attempt.

    The token only depends on its inputs, so a restarted process finds
    the same server-side upload again. Changing the chunk size yields a
    different token and therefore a fresh upload.

    Args:
        fingerprint: SHA-1 of the file content.
        file_name: Base name of the file.
        file_size: File size in bytes.
        chunk_size: Chunk size in bytes.

    Returns:
        Lowercase hex-encoded SHA-1 of the concatenated fields.
    """
    material = f"{fingerprint}{file_name}{file_size}{chunk_size}"
    return hashlib.sha1(material.encode("utf-8")).hexdigest()
