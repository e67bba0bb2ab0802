"""End-to-end patch run.

A run walks through CHECKING -> DOWNLOADING -> PATCHING -> DONE, or stops
with a single ERROR event on the first failure. Files are downloaded into
a staging directory inside the game folder, which is always removed when
the run ends, whether it finished, failed or was cancelled.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import httpx
import structlog

from mhf_patcher.core.cancel import CancellationToken
from mhf_patcher.core.config import PatcherConfig
from mhf_patcher.core.downloader import Downloader
from mhf_patcher.core.errors import FilesystemError, PatcherError
from mhf_patcher.core.installer import install_change_set
from mhf_patcher.core.manifest import compute_change_set
from mhf_patcher.core.progress import ProgressReporter
from mhf_patcher.core.state import EtagStore
from mhf_patcher.core.types import Manifest, PatchOutcome, PatchState

logger = structlog.get_logger()


class Patcher:
    """Bring a game folder in line with a patch server manifest.

    Only one run may touch a given game folder at a time; callers are
    responsible for serializing runs.

    Args:
        config: Pipeline settings, defaults if None
        client: HTTP client for downloads; created and owned by the
            patcher if None
        reporter: Receives progress events and error messages
    """

    def __init__(
        self,
        config: PatcherConfig | None = None,
        client: httpx.AsyncClient | None = None,
        reporter: ProgressReporter | None = None,
    ):
        self.config = config or PatcherConfig()
        self.reporter = reporter or ProgressReporter()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                verify=self.config.verify_ssl,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this patcher created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Patcher:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def run(
        self,
        manifest: Manifest,
        base_url: str,
        game_folder: Path,
        cancel: CancellationToken | None = None,
    ) -> PatchOutcome:
        """Patch a game folder.

        Errors are reported through the reporter rather than raised.

        Args:
            manifest: Manifest fetched from the patch server
            base_url: Base URL the changed files are served from
            game_folder: Root of the local installation
            cancel: Token that stops the download phase early

        Returns:
            DONE on success, CANCELLED if the token fired during the
            download phase, FAILED after an error was reported
        """
        cancel = cancel or CancellationToken()
        staging_dir = game_folder / self.config.staging_dir_name
        logger.info(
            "patch_started",
            game_folder=str(game_folder),
            base_url=base_url,
            etag=manifest.etag,
        )

        try:
            self._prepare_staging(staging_dir)
        except FilesystemError as e:
            logger.warning("staging_create_failed", path=e.path, error=str(e.__cause__))
            self.reporter.error(e.message)
            return PatchOutcome.FAILED

        outcome = PatchOutcome.FAILED
        try:
            completed = await self._run_phases(
                manifest, base_url, game_folder, staging_dir, cancel
            )
            outcome = PatchOutcome.DONE if completed else PatchOutcome.CANCELLED
        except PatcherError as e:
            logger.error(
                "patch_failed",
                error=e.message,
                error_type=type(e).__name__,
                path=e.path,
                url=e.url,
            )
            self.reporter.error(e.message)
        except OSError as e:
            logger.error("patch_failed", error=str(e), error_type=type(e).__name__)
            self.reporter.error(f"Filesystem error: {e}")
        finally:
            self._cleanup_staging(staging_dir)

        logger.info("patch_finished", outcome=outcome.value)
        return outcome

    async def _run_phases(
        self,
        manifest: Manifest,
        base_url: str,
        game_folder: Path,
        staging_dir: Path,
        cancel: CancellationToken,
    ) -> bool:
        """Run every phase in order. Returns False if cancelled."""
        config = self.config

        self.reporter.emit(PatchState.CHECKING)
        await self._pause()
        change_set = compute_change_set(
            manifest.content,
            game_folder,
            config.hash_algorithm,
            config.chunk_size,
            config.reserved_paths,
        )

        self.reporter.emit(PatchState.DOWNLOADING, total=len(change_set), current=0)
        await self._pause()
        downloader = Downloader(
            self.client,
            self.reporter,
            pacing_delay=config.pacing_delay,
            chunk_size=config.chunk_size,
            verify_algorithm=config.hash_algorithm if config.verify_downloads else None,
        )
        if not await downloader.download(change_set, base_url, staging_dir, cancel):
            return False

        await self._pause()
        self.reporter.emit(PatchState.PATCHING)
        install_change_set(change_set, staging_dir, game_folder)
        EtagStore(game_folder, config.etag_filename).set(manifest.etag)

        await self._pause()
        self.reporter.emit(PatchState.DONE)
        return True

    async def _pause(self) -> None:
        """Short fixed pause between phases."""
        if self.config.phase_delay > 0:
            await asyncio.sleep(self.config.phase_delay)

    def _prepare_staging(self, staging_dir: Path) -> None:
        """Create an empty staging directory, clearing leftovers from a crashed run."""
        try:
            if staging_dir.exists():
                logger.info("staging_leftover_removed", path=str(staging_dir))
                shutil.rmtree(staging_dir)
            staging_dir.mkdir(parents=True)
        except OSError as e:
            raise FilesystemError(
                "Failed to create temp patcher directory",
                path=str(staging_dir),
            ) from e

    def _cleanup_staging(self, staging_dir: Path) -> None:
        try:
            shutil.rmtree(staging_dir)
        except OSError as e:
            logger.warning("staging_cleanup_failed", path=str(staging_dir), error=str(e))


async def patch(
    manifest: Manifest,
    base_url: str,
    game_folder: Path,
    cancel: CancellationToken | None = None,
    config: PatcherConfig | None = None,
    reporter: ProgressReporter | None = None,
) -> PatchOutcome:
    """Run a single patch with a throwaway Patcher."""
    async with Patcher(config=config, reporter=reporter) as patcher:
        return await patcher.run(manifest, base_url, game_folder, cancel)
