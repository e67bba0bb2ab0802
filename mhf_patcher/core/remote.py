"""Manifest retrieval from a patch server or a local file."""

from __future__ import annotations

from pathlib import Path

import httpx
import structlog

from mhf_patcher.core.config import PatcherConfig
from mhf_patcher.core.errors import FilesystemError, TransportError
from mhf_patcher.core.types import Manifest

logger = structlog.get_logger()


def _clean_etag(raw: str | None) -> str:
    """Strip the weak prefix and quotes from an ETag header value.

    Example:
        >>> _clean_etag('W/"5f3a-1b"')
        '5f3a-1b'
    """
    if not raw:
        return ""
    value = raw.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"')


class ManifestClient:
    """HTTP client for patch server manifests.

    Args:
        config: Optional pipeline configuration for timeouts and SSL
    """

    def __init__(self, config: PatcherConfig | None = None):
        self.config = config or PatcherConfig()
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.timeout,
                verify=self.config.verify_ssl,
                follow_redirects=True,
            )
        return self._client

    def fetch_manifest(self, url: str) -> Manifest:
        """Fetch a manifest and its etag.

        Args:
            url: Manifest URL

        Returns:
            Manifest with the body as content and the ETag header as etag

        Raises:
            TransportError: If the request fails or returns a non-success status
        """
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Patch server returned HTTP {e.response.status_code} for manifest",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Patch server request failed: {e}", url=url) from e

        manifest = Manifest(
            content=response.text,
            etag=_clean_etag(response.headers.get("etag")),
        )
        logger.debug(
            "manifest_fetched",
            url=url,
            etag=manifest.etag,
            size=len(response.content),
        )
        return manifest

    def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> ManifestClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


def read_manifest_file(path: Path, etag: str = "") -> Manifest:
    """Load a manifest saved on disk.

    Args:
        path: Manifest file
        etag: Version token to associate with it

    Raises:
        FilesystemError: If the file cannot be read as UTF-8
    """
    try:
        content = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FilesystemError(f"Failed to read manifest file {path}", path=str(path)) from e
    return Manifest(content=content, etag=etag)
