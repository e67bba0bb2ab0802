"""Patch manifest parsing and change set computation.

The manifest lists the desired state of the game folder, one file per line:

    <hex digest>\\t<path>

A leading ``/`` on the path is stripped. Parsing fails on the first
malformed line: a broken manifest points at a server or transport problem
that affects every following line, so no partial result is produced.
"""

from __future__ import annotations

from collections.abc import Collection
from pathlib import Path, PureWindowsPath

import structlog

from mhf_patcher.core.errors import ManifestError
from mhf_patcher.core.hashing import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, needs_update
from mhf_patcher.core.types import ChangeEntry

logger = structlog.get_logger()


def normalize_path(raw_path: str, line_number: int | None = None) -> str:
    """Turn a manifest path into a POSIX path relative to the game folder.

    Args:
        raw_path: Path as written in the manifest
        line_number: Manifest line number, for error reporting

    Returns:
        Normalized relative path

    Raises:
        ManifestError: If the path is empty, contains a NUL byte or
            escapes the game folder

    Example:
        >>> normalize_path("/dat/mhfdat.bin")
        'dat/mhfdat.bin'
    """
    if "\x00" in raw_path:
        raise ManifestError(
            "Invalid character in manifest path",
            line_number=line_number,
            path=raw_path,
        )

    path = raw_path.replace("\\", "/").lstrip("/")
    if PureWindowsPath(path).drive:
        raise ManifestError(
            f"Absolute path in manifest: {raw_path}",
            line_number=line_number,
            path=raw_path,
        )

    parts = [part for part in path.split("/") if part not in ("", ".")]
    if ".." in parts:
        raise ManifestError(
            f"Path escapes the game folder: {raw_path}",
            line_number=line_number,
            path=raw_path,
        )
    if not parts:
        raise ManifestError(
            "Empty path in manifest",
            line_number=line_number,
            path=raw_path,
        )
    return "/".join(parts)


def parse_manifest(content: str) -> list[ChangeEntry]:
    """Parse manifest text into entries, preserving order.

    Args:
        content: Raw manifest text

    Returns:
        One entry per manifest line

    Raises:
        ManifestError: On the first line that is not exactly two
            tab-separated fields, or whose path is unsafe
    """
    entries: list[ChangeEntry] = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        fields = line.split("\t")
        if len(fields) != 2:
            raise ManifestError(
                f"Patcher server returned invalid data on line {line_number}",
                line_number=line_number,
            )
        digest, raw_path = fields
        entries.append(ChangeEntry(
            expected_digest=digest,
            relative_path=normalize_path(raw_path, line_number),
        ))

    logger.debug("manifest_parsed", entries=len(entries))
    return entries


def check_reserved(entries: list[ChangeEntry], reserved: Collection[str]) -> None:
    """Reject entries that would land on a path the patcher owns.

    Matching ignores case, since the game folder usually lives on a
    case-insensitive filesystem.

    Raises:
        ManifestError: On the first entry equal to or below a reserved path
    """
    folded = [name.casefold() for name in reserved]
    # parse_manifest yields exactly one entry per line
    for line_number, entry in enumerate(entries, start=1):
        path = entry.relative_path.casefold()
        for name in folded:
            if path == name or path.startswith(name + "/"):
                raise ManifestError(
                    f"Path is reserved by the patcher: {entry.relative_path}",
                    line_number=line_number,
                    path=entry.relative_path,
                )


def compute_change_set(
    content: str,
    game_folder: Path,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    reserved: Collection[str] = (),
) -> list[ChangeEntry]:
    """Select the manifest entries whose local file must be downloaded.

    Every listed file is hashed, so the cost grows with the size of the
    current install rather than with the number of changed files.

    Args:
        content: Raw manifest text
        game_folder: Root of the local installation
        algorithm: hashlib algorithm the manifest digests were made with
        chunk_size: Read size in bytes for hashing
        reserved: Relative paths the patcher keeps for itself; no manifest
            entry may name one of them or anything below them

    Returns:
        Entries that are missing or outdated locally, in manifest order

    Raises:
        ManifestError: If the manifest is malformed or names a reserved path
    """
    entries = parse_manifest(content)
    check_reserved(entries, reserved)
    changed = [
        entry for entry in entries
        if needs_update(
            game_folder / entry.relative_path,
            entry.expected_digest,
            algorithm,
            chunk_size,
        )
    ]

    logger.info(
        "change_set_computed",
        game_folder=str(game_folder),
        listed=len(entries),
        changed=len(changed),
        unchanged=len(entries) - len(changed),
    )
    return changed
