"""Configuration management for mhf-patcher."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, field_validator

logger = structlog.get_logger()


def _validate_component(v: str, what: str) -> str:
    if not v or v in {".", ".."} or "/" in v or "\\" in v:
        raise ValueError(f"{what} must be a single path component: {v!r}")
    return v


class PatcherConfig(BaseModel):
    """Patch pipeline configuration."""

    pacing_delay: float = Field(
        default=1.0,
        description="Delay in seconds before each download request"
    )
    phase_delay: float = Field(
        default=1.0,
        description="Pause in seconds between phases so the UI can show each state"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    chunk_size: int = Field(
        default=64 * 1024,
        description="Read size in bytes for hashing and response streaming"
    )
    hash_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used by the manifest producer"
    )
    verify_downloads: bool = Field(
        default=False,
        description="Check downloaded content against the manifest digest"
    )
    staging_dir_name: str = Field(
        default=".patcher-tmp",
        description="Staging directory created inside the game folder"
    )
    etag_filename: str = Field(
        default="patcher.etag",
        description="Marker file holding the last installed manifest etag"
    )

    @property
    def reserved_paths(self) -> tuple[str, ...]:
        """Game folder paths the patcher writes itself."""
        return (
            self.staging_dir_name,
            self.etag_filename,
            self.etag_filename + ".tmp",
        )

    @field_validator("pacing_delay", "phase_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Validate delay values."""
        if v < 0:
            raise ValueError("Delay must be non-negative")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout value."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Validate chunk size value."""
        if v <= 0:
            raise ValueError("Chunk size must be positive")
        return v

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Validate hash algorithm name."""
        name = v.lower()
        try:
            hasher = hashlib.new(name)
        except ValueError:
            raise ValueError(f"Unsupported hash algorithm: {v}") from None
        if hasher.digest_size == 0:
            raise ValueError(f"Hash algorithm must have a fixed digest size: {v}")
        return name

    @field_validator("staging_dir_name")
    @classmethod
    def validate_staging_dir_name(cls, v: str) -> str:
        """Validate staging directory name."""
        return _validate_component(v, "Staging directory name")

    @field_validator("etag_filename")
    @classmethod
    def validate_etag_filename(cls, v: str) -> str:
        """Validate etag marker file name."""
        return _validate_component(v, "Etag filename")


class AppConfig(BaseModel):
    """Application configuration."""

    config_dir: Path = Field(
        default=Path.home() / ".config" / "mhf-patcher",
        description="Configuration directory"
    )
    output_format: str = Field(
        default="rich",
        description="Output format (rich, json, plain)"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    patcher: PatcherConfig = Field(
        default_factory=PatcherConfig,
        description="Patch pipeline settings"
    )

    @classmethod
    def load(cls, config_file: Path | None = None) -> AppConfig:
        """Load configuration from file.

        Args:
            config_file: Path to config file, uses default if None

        Returns:
            Application configuration
        """
        if config_file is None:
            config_file = Path.home() / ".config" / "mhf-patcher" / "config.json"

        if config_file.exists():
            with open(config_file) as f:
                data = json.load(f)
                return cls(**data)

        return cls()

    def save(self, config_file: Path | None = None) -> None:
        """Save configuration to file.

        Args:
            config_file: Path to config file, uses default if None
        """
        if config_file is None:
            config_file = self.config_dir / "config.json"

        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

        logger.info("config_saved", path=str(config_file))

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        """Validate output format."""
        valid_formats = {"rich", "json", "plain"}
        if v not in valid_formats:
            raise ValueError(f"Invalid output format: {v}. Valid formats: {valid_formats}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Valid levels: {valid_levels}")
        return v
