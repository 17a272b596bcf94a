"""
Content hashes for uploads.

Stored files are named by their SHA256 digest, so the same image uploaded twice
by one user lands on disk once.
"""
from pathlib import Path
from typing import BinaryIO
import hashlib

CHUNK_SIZE = 64 * 1024


def calculate_stream_sha256(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """Hex SHA256 of a binary stream, read from its current position to EOF.

    The caller rewinds the stream afterwards if it still needs the bytes
    (an upload is hashed and then saved from the same FileStorage).
    """
    digest = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b''):
        digest.update(chunk)
    return digest.hexdigest()


def calculate_sha256(file_path: Path | str) -> str:
    """Hex SHA256 of a file on disk."""
    with Path(file_path).open('rb') as f:
        return calculate_stream_sha256(f)
