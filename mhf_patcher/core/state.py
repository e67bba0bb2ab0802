"""Persisted etag marker for incremental updates.

The marker holds the etag of the last manifest that was installed
completely. Launchers compare it with the etag of a freshly fetched
manifest to decide whether patching is needed at all. A missing or
unreadable marker means "never patched".
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from mhf_patcher.core.errors import FilesystemError

logger = structlog.get_logger()

ETAG_FILENAME = "patcher.etag"


class EtagStore:
    """Read and write the etag marker of one game folder.

    Args:
        game_folder: Root of the local installation
        filename: Marker file name inside the game folder
    """

    def __init__(self, game_folder: Path, filename: str = ETAG_FILENAME) -> None:
        self.game_folder = game_folder
        self.filename = filename

    @property
    def marker_path(self) -> Path:
        """Path to the marker file."""
        return self.game_folder / self.filename

    def get(self) -> str:
        """Return the stored etag, or an empty string if there is none."""
        try:
            return self.marker_path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            return ""

    def set(self, etag: str) -> None:
        """Overwrite the stored etag.

        Writes to a temporary file first, then atomically replaces the
        marker so an interrupted write never leaves a truncated value.

        Raises:
            FilesystemError: If the marker cannot be written
        """
        marker = self.marker_path
        tmp_path = marker.with_name(marker.name + ".tmp")
        try:
            tmp_path.write_bytes(etag.encode("utf-8"))
            os.replace(tmp_path, marker)
        except OSError as e:
            raise FilesystemError(
                "Failed to write to patcher etag file",
                path=str(marker),
            ) from e
        logger.info("etag_written", path=str(marker), etag=etag)

    def clear(self) -> bool:
        """Remove the marker file.

        Returns:
            True if a marker was removed

        Raises:
            FilesystemError: If the marker exists but cannot be removed
        """
        try:
            self.marker_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(
                "Failed to remove patcher etag file",
                path=str(self.marker_path),
            ) from e
        return True


def get_etag(game_folder: Path) -> str:
    """Return the etag stored in a game folder, empty if never patched."""
    return EtagStore(game_folder).get()


def set_etag(game_folder: Path, etag: str) -> None:
    """Store the etag of a fully installed manifest."""
    EtagStore(game_folder).set(etag)
