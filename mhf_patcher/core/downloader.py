"""Sequential, throttled, cancellable file downloader.

Files are fetched one at a time in change set order, each preceded by a
fixed pacing delay to keep the request rate low on the patch server. The
cancellation token is checked during the delay, while waiting for the
response, and between response chunks. A cancelled download is a normal
early exit rather than an error; whatever was written so far stays inside
the staging directory.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import httpx
import structlog

from mhf_patcher.core.cancel import CancellationToken, OperationCancelled
from mhf_patcher.core.errors import FilesystemError, TransportError
from mhf_patcher.core.progress import ProgressReporter
from mhf_patcher.core.types import ChangeEntry, PatchState

logger = structlog.get_logger()

PACING_DELAY = 1.0
CHUNK_SIZE = 64 * 1024


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    """Read the next response chunk, None at end of body."""
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


def build_url(base_url: str, relative_path: str) -> str:
    """Join the patch server base URL with a tree-relative path.

    Example:
        >>> build_url("http://patch.example.com/files/", "dat/mhfdat.bin")
        'http://patch.example.com/files/dat/mhfdat.bin'
    """
    return f"{base_url.rstrip('/')}/{relative_path}"


class Downloader:
    """Fetch changed files from the patch server into a staging directory.

    Args:
        client: HTTP client used for every request
        reporter: Receives a DOWNLOADING event after each file
        pacing_delay: Seconds to wait before each request
        chunk_size: Response streaming chunk size in bytes
        verify_algorithm: If set, hash streamed bytes with this hashlib
            algorithm and reject content that does not match the manifest
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        reporter: ProgressReporter | None = None,
        pacing_delay: float = PACING_DELAY,
        chunk_size: int = CHUNK_SIZE,
        verify_algorithm: str | None = None,
    ):
        self.client = client
        self.reporter = reporter or ProgressReporter()
        self.pacing_delay = pacing_delay
        self.chunk_size = chunk_size
        self.verify_algorithm = verify_algorithm

    async def download(
        self,
        change_set: Sequence[ChangeEntry],
        base_url: str,
        staging_dir: Path,
        cancel: CancellationToken,
    ) -> bool:
        """Download every entry of the change set into the staging directory.

        Args:
            change_set: Entries to fetch, processed strictly in order
            base_url: Patch server base URL
            staging_dir: Directory receiving the downloaded files
            cancel: Cancellation token for the run

        Returns:
            True if every file was downloaded, False if cancelled

        Raises:
            TransportError: If a request fails or returns a non-success status
            FilesystemError: If a staged file cannot be written
        """
        total = len(change_set)
        logger.info("download_started", files=total, base_url=base_url)

        for current, entry in enumerate(change_set, start=1):
            try:
                await cancel.race(asyncio.sleep(self.pacing_delay))
                size = await self._fetch_one(entry, base_url, staging_dir, cancel)
            except OperationCancelled:
                logger.info(
                    "download_cancelled",
                    completed=current - 1,
                    total=total,
                    path=entry.relative_path,
                )
                return False

            logger.debug(
                "download_file_complete",
                path=entry.relative_path,
                size=size,
                current=current,
                total=total,
            )
            self.reporter.emit(PatchState.DOWNLOADING, total=total, current=current)

        logger.info("download_complete", files=total)
        return True

    async def _fetch_one(
        self,
        entry: ChangeEntry,
        base_url: str,
        staging_dir: Path,
        cancel: CancellationToken,
    ) -> int:
        """Stream one file to the staging directory.

        Returns:
            Number of bytes written
        """
        url = build_url(base_url, entry.relative_path)
        request = self.client.build_request("GET", url)
        try:
            response = await cancel.race(self.client.send(request, stream=True))
        except httpx.HTTPError as e:
            raise TransportError(
                f"Patch server request failed: {e}",
                url=url,
                path=entry.relative_path,
            ) from e

        try:
            if not response.is_success:
                raise TransportError(
                    f"Patch server returned HTTP {response.status_code} for {entry.relative_path}",
                    url=url,
                    path=entry.relative_path,
                    status_code=response.status_code,
                )
            return await self._write_body(response, entry, url, staging_dir, cancel)
        finally:
            await response.aclose()

    async def _write_body(
        self,
        response: httpx.Response,
        entry: ChangeEntry,
        url: str,
        staging_dir: Path,
        cancel: CancellationToken,
    ) -> int:
        target = staging_dir / entry.relative_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            f = open(target, "wb")
        except OSError as e:
            raise FilesystemError(
                f"Failed to open temp file {entry.relative_path}",
                path=str(target),
            ) from e

        hasher = hashlib.new(self.verify_algorithm) if self.verify_algorithm else None
        written = 0
        with f:
            chunks = response.aiter_bytes(self.chunk_size)
            while True:
                try:
                    chunk = await cancel.race(_next_chunk(chunks))
                except httpx.HTTPError as e:
                    raise TransportError(
                        f"Failed to read patcher response chunk: {e}",
                        url=url,
                        path=entry.relative_path,
                    ) from e
                if chunk is None:
                    break
                try:
                    f.write(chunk)
                except OSError as e:
                    raise FilesystemError(
                        f"Failed to write patcher response chunk to {entry.relative_path}",
                        path=str(target),
                    ) from e
                if hasher is not None:
                    hasher.update(chunk)
                written += len(chunk)

        if hasher is not None:
            actual = hasher.hexdigest()
            if actual != entry.expected_digest.lower():
                raise TransportError(
                    f"Downloaded content of {entry.relative_path} does not match the manifest",
                    url=url,
                    path=entry.relative_path,
                    expected=entry.expected_digest,
                    actual=actual,
                )
        return written
