"""Core functionality for mhf_patcher.

This module provides the patch pipeline:
- Manifest parsing and change detection
- Throttled, cancellable downloading
- Staged installation and etag persistence
- Progress reporting and orchestration
"""

from mhf_patcher.core.cancel import CancellationToken, OperationCancelled
from mhf_patcher.core.config import AppConfig, PatcherConfig
from mhf_patcher.core.errors import (
    FilesystemError,
    ManifestError,
    PatcherError,
    TransportError,
)
from mhf_patcher.core.hashing import file_digest, needs_update
from mhf_patcher.core.manifest import compute_change_set, parse_manifest
from mhf_patcher.core.patcher import Patcher, patch
from mhf_patcher.core.progress import EventLog, ProgressReporter
from mhf_patcher.core.state import EtagStore, get_etag, set_etag
from mhf_patcher.core.types import (
    ChangeEntry,
    Manifest,
    PatchOutcome,
    PatchState,
    ProgressEvent,
)

__all__ = [
    # Types
    "ChangeEntry",
    "Manifest",
    "PatchOutcome",
    "PatchState",
    "ProgressEvent",
    # Errors
    "PatcherError",
    "ManifestError",
    "FilesystemError",
    "TransportError",
    # Config
    "AppConfig",
    "PatcherConfig",
    # Pipeline
    "CancellationToken",
    "OperationCancelled",
    "EtagStore",
    "EventLog",
    "Patcher",
    "ProgressReporter",
    "compute_change_set",
    "file_digest",
    "get_etag",
    "needs_update",
    "parse_manifest",
    "patch",
    "set_etag",
]
