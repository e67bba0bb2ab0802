"""Local file digests for change detection.

A file needs updating when it is missing or when its digest differs from
the one the manifest lists. Read failures other than "not found" are
treated the same way as a mismatch and logged, so a damaged file is
downloaded again rather than silently skipped.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import structlog

logger = structlog.get_logger()

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 64 * 1024


def file_digest(
    path: Path,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str | None:
    """Compute the hex digest of a file by streaming it through hashlib.

    Args:
        path: File to hash
        algorithm: hashlib algorithm name
        chunk_size: Read size in bytes

    Returns:
        Lowercase hex digest, or None if the file could not be read

    Example:
        >>> file_digest(Path("missing.bin")) is None
        True
    """
    hasher = hashlib.new(algorithm)
    try:
        with open(path, "rb") as f:
            while chunk := f.read(chunk_size):
                hasher.update(chunk)
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("hash_read_failed", path=str(path), error=str(e))
        return None
    return hasher.hexdigest()


def needs_update(
    path: Path,
    expected_digest: str,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bool:
    """Check whether a local file differs from its expected digest.

    Args:
        path: Local file to check
        expected_digest: Hex digest from the manifest
        algorithm: hashlib algorithm name
        chunk_size: Read size in bytes

    Returns:
        True if the file is missing, unreadable or has a different digest
    """
    actual = file_digest(path, algorithm, chunk_size)
    if actual is None:
        return True
    logger.debug("hash_compared", path=str(path), expected=expected_digest, actual=actual)
    return actual != expected_digest.lower()
