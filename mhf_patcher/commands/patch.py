"""Patch and diff commands."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from mhf_patcher.core.cancel import CancellationToken
from mhf_patcher.core.config import AppConfig
from mhf_patcher.core.errors import PatcherError
from mhf_patcher.core.manifest import compute_change_set
from mhf_patcher.core.patcher import Patcher
from mhf_patcher.core.progress import EventLog, ProgressReporter
from mhf_patcher.core.remote import ManifestClient, read_manifest_file
from mhf_patcher.core.state import EtagStore
from mhf_patcher.core.types import Manifest, PatchOutcome, PatchState, ProgressEvent

logger = structlog.get_logger()

_STATE_LABELS = {
    PatchState.CHECKING: "Checking files...",
    PatchState.DOWNLOADING: "Downloading...",
    PatchState.PATCHING: "Patching...",
    PatchState.DONE: "Done",
    PatchState.ERROR: "Error",
}


def _get_context_objects(ctx: click.Context) -> tuple[AppConfig, Console]:
    """Extract common context objects."""
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    return config, console


def _load_manifest(
    config: AppConfig,
    manifest_url: str | None,
    manifest_file: Path | None,
    etag: str | None,
) -> Manifest:
    """Fetch or read the manifest selected on the command line.

    An explicit --etag overrides the one reported by the server.
    """
    if (manifest_url is None) == (manifest_file is None):
        raise click.UsageError("Exactly one of --manifest-url or --manifest-file is required")

    if manifest_file is not None:
        return read_manifest_file(manifest_file, etag or "")

    assert manifest_url is not None
    with ManifestClient(config.patcher) as client:
        manifest = client.fetch_manifest(manifest_url)
    if etag is not None:
        manifest = manifest.model_copy(update={"etag": etag})
    return manifest


async def _run_patch(
    config: AppConfig,
    manifest: Manifest,
    base_url: str,
    game_folder: Path,
    progress: Progress,
    event_log: EventLog,
) -> PatchOutcome:
    """Run the patcher with a progress bar and Ctrl-C cancellation."""
    task = progress.add_task(_STATE_LABELS[PatchState.CHECKING], total=None)

    def on_event(event: ProgressEvent) -> None:
        event_log.on_event(event)
        if event.state == PatchState.DOWNLOADING:
            progress.update(
                task,
                description=_STATE_LABELS[event.state],
                total=event.total,
                completed=event.current,
            )
        else:
            progress.update(task, description=_STATE_LABELS[event.state])

    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    # No signal handlers on Windows loops or outside the main thread
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)

    reporter = ProgressReporter(on_event=on_event, on_error=event_log.on_error)
    async with Patcher(config=config.patcher, reporter=reporter) as patcher:
        return await patcher.run(manifest, base_url, game_folder, cancel)


@click.command()
@click.argument("game_folder", type=click.Path(file_okay=False, path_type=Path))
@click.argument("base_url", type=str)
@click.option(
    "--manifest-url",
    type=str,
    help="URL of the patch server manifest",
)
@click.option(
    "--manifest-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Local manifest file",
)
@click.option(
    "--etag",
    type=str,
    default=None,
    help="Manifest version token (overrides the server ETag)",
)
@click.option(
    "--force",
    is_flag=True,
    help="Patch even if the stored etag matches the manifest",
)
@click.pass_context
def patch(
    ctx: click.Context,
    game_folder: Path,
    base_url: str,
    manifest_url: str | None,
    manifest_file: Path | None,
    etag: str | None,
    force: bool,
) -> None:
    """Update GAME_FOLDER from the patch server at BASE_URL."""
    config, console = _get_context_objects(ctx)

    try:
        manifest = _load_manifest(config, manifest_url, manifest_file, etag)
    except PatcherError as e:
        console.print(f"[red]Error loading manifest: {e}[/red]")
        sys.exit(1)

    store = EtagStore(game_folder, config.patcher.etag_filename)
    if not force and manifest.etag and store.get() == manifest.etag:
        if config.output_format == "json":
            print(json.dumps({"outcome": "up_to_date", "etag": manifest.etag}, indent=2))
        else:
            console.print(f"[green]Already up to date ({manifest.etag})[/green]")
        return

    event_log = EventLog()
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        disable=config.output_format != "rich",
    ) as progress:
        outcome = asyncio.run(
            _run_patch(config, manifest, base_url, game_folder, progress, event_log)
        )

    downloaded = max(
        (e.current for e in event_log.events if e.state == PatchState.DOWNLOADING),
        default=0,
    )

    if config.output_format == "json":
        print(json.dumps({
            "outcome": outcome.value,
            "etag": manifest.etag,
            "downloaded": downloaded,
            "errors": event_log.errors,
        }, indent=2))
    elif outcome == PatchOutcome.DONE:
        console.print(f"[green]Patched {downloaded} file(s), etag {manifest.etag or '(none)'}[/green]")
    elif outcome == PatchOutcome.CANCELLED:
        console.print(f"[yellow]Patch cancelled after {downloaded} file(s)[/yellow]")
    else:
        for message in event_log.errors:
            console.print(f"[red]Error: {message}[/red]")

    if outcome == PatchOutcome.FAILED:
        sys.exit(1)


@click.command()
@click.argument("game_folder", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--manifest-url",
    type=str,
    help="URL of the patch server manifest",
)
@click.option(
    "--manifest-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Local manifest file",
)
@click.pass_context
def diff(
    ctx: click.Context,
    game_folder: Path,
    manifest_url: str | None,
    manifest_file: Path | None,
) -> None:
    """List the files in GAME_FOLDER that a patch would download."""
    config, console = _get_context_objects(ctx)

    try:
        manifest = _load_manifest(config, manifest_url, manifest_file, None)
        change_set = compute_change_set(
            manifest.content,
            game_folder,
            config.patcher.hash_algorithm,
            config.patcher.chunk_size,
            config.patcher.reserved_paths,
        )
    except PatcherError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if config.output_format == "json":
        print(json.dumps([
            {"digest": entry.expected_digest, "path": entry.relative_path}
            for entry in change_set
        ], indent=2))
        return

    if not change_set:
        console.print("[green]All files are up to date[/green]")
        return

    table = Table(title=f"Changed files ({len(change_set)})")
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("Expected digest", style="magenta")
    for entry in change_set:
        table.add_row(entry.relative_path, entry.expected_digest)
    console.print(table)
