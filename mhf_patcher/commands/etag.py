"""Etag marker commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.console import Console

from mhf_patcher.core.config import AppConfig
from mhf_patcher.core.errors import FilesystemError
from mhf_patcher.core.state import EtagStore


def _get_store(ctx: click.Context, game_folder: Path) -> tuple[AppConfig, Console, EtagStore]:
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    return config, console, EtagStore(game_folder, config.patcher.etag_filename)


@click.group(name="etag")
def etag_group() -> None:
    """Inspect or change the stored patch etag."""
    pass


@etag_group.command()
@click.argument("game_folder", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def show(ctx: click.Context, game_folder: Path) -> None:
    """Show the etag stored in GAME_FOLDER."""
    config, console, store = _get_store(ctx, game_folder)
    value = store.get()

    if config.output_format == "json":
        print(json.dumps({"path": str(store.marker_path), "etag": value}, indent=2))
    elif value:
        console.print(value)
    else:
        console.print("[yellow]Never patched[/yellow]")


@etag_group.command(name="set")
@click.argument("game_folder", type=click.Path(file_okay=False, path_type=Path))
@click.argument("value", type=str)
@click.pass_context
def set_(ctx: click.Context, game_folder: Path, value: str) -> None:
    """Store VALUE as the etag of GAME_FOLDER."""
    config, console, store = _get_store(ctx, game_folder)
    try:
        store.set(value)
    except FilesystemError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]Etag set to {value}[/green]")


@etag_group.command()
@click.argument("game_folder", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def clear(ctx: click.Context, game_folder: Path) -> None:
    """Remove the etag of GAME_FOLDER, forcing the next patch to run."""
    config, console, store = _get_store(ctx, game_folder)
    try:
        removed = store.clear()
    except FilesystemError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    if removed:
        console.print("[green]Etag cleared[/green]")
    else:
        console.print("[yellow]No etag stored[/yellow]")
