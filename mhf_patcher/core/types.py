"""Core type definitions for mhf_patcher."""

from dataclasses import dataclass
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PatchState(IntEnum):
    """Phase of a patch run as reported to subscribers.

    Serialized as integers so the launcher front end can switch on them.
    """
    CHECKING = 0
    DOWNLOADING = 1
    PATCHING = 2
    DONE = 3
    ERROR = 4


class PatchOutcome(StrEnum):
    """Terminal result of a patch run."""
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Manifest(BaseModel):
    """Patch server manifest as fetched by the caller."""
    content: str = Field(..., description="Raw manifest text")
    etag: str = Field(default="", description="Opaque manifest version token")

    model_config = ConfigDict(frozen=True)


class ProgressEvent(BaseModel):
    """Progress notification sent to the event subscriber."""
    total: int = Field(default=0, description="Number of files to download")
    current: int = Field(default=0, description="Number of files downloaded so far")
    state: PatchState = Field(..., description="Current phase")

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class ChangeEntry:
    """A manifest entry whose local file is missing or outdated.

    Attributes:
        expected_digest: Hex digest the file must have after patching
        relative_path: Normalized, tree-relative POSIX path
    """

    expected_digest: str
    relative_path: str
