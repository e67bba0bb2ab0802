"""MHF Patcher - incremental game folder updates for the MHF launcher.

Compares a local game installation against a patch server manifest,
downloads the files whose content hash differs, and installs them
atomically into the game folder.

Key modules:
- core: Patch pipeline (manifest, download, install, state, orchestration)
- commands: CLI command implementations
"""

__version__ = "0.1.0"
__author__ = "MHF Launcher Team"

from mhf_patcher.core.types import (
    ChangeEntry,
    Manifest,
    PatchOutcome,
    PatchState,
    ProgressEvent,
)

__all__ = [
    "__version__",
    "__author__",
    "ChangeEntry",
    "Manifest",
    "PatchOutcome",
    "PatchState",
    "ProgressEvent",
]
