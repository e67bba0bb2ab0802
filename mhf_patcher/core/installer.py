"""Move staged files into the game folder.

Each file is installed with a single rename, so an individual file is
either fully old or fully new. The batch as a whole is not transactional:
if a rename fails, files moved before it stay updated. Running the patch
again re-diffs the folder and skips those files.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

import structlog

from mhf_patcher.core.errors import FilesystemError
from mhf_patcher.core.types import ChangeEntry

logger = structlog.get_logger()


def install_change_set(
    change_set: Iterable[ChangeEntry],
    staging_dir: Path,
    game_folder: Path,
) -> int:
    """Rename every staged file onto its place in the game folder.

    Args:
        change_set: Entries that were downloaded into the staging directory
        staging_dir: Directory holding the downloaded files
        game_folder: Root of the local installation

    Returns:
        Number of files installed

    Raises:
        FilesystemError: On the first file that cannot be moved
    """
    installed = 0
    for entry in change_set:
        source_path = staging_dir / entry.relative_path
        target_path = game_folder / entry.relative_path
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Failed to create target file parent for {entry.relative_path}",
                path=str(target_path.parent),
            ) from e
        try:
            os.replace(source_path, target_path)
        except OSError as e:
            raise FilesystemError(
                f"Failed to move patched file {entry.relative_path} to game folder",
                path=str(target_path),
            ) from e
        installed += 1
        logger.debug("file_installed", path=entry.relative_path)

    logger.info("install_complete", files=installed, game_folder=str(game_folder))
    return installed
