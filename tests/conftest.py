"""Pytest configuration and shared fixtures for mhf_patcher tests."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from mhf_patcher.core.config import PatcherConfig

BASE_URL = "http://patch.test/files"


class PatchServer:
    """In-memory patch server for httpx.MockTransport.

    Serves ``files`` under ``BASE_URL`` and records every requested path.
    """

    def __init__(self, files: dict[str, bytes] | None = None):
        self.files: dict[str, bytes] = dict(files or {})
        self.requests: list[str] = []
        self.on_request: Callable[[str], None] | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        prefix = httpx.URL(BASE_URL).path.rstrip("/") + "/"
        path = request.url.path
        relative = path[len(prefix):] if path.startswith(prefix) else path
        self.requests.append(relative)
        if self.on_request is not None:
            self.on_request(relative)
        if relative not in self.files:
            return httpx.Response(404)
        return httpx.Response(200, content=self.files[relative])

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())


@pytest.fixture
def base_url() -> str:
    """Base URL the in-memory patch server answers on."""
    return BASE_URL


@pytest.fixture
def game_folder(tmp_path: Path) -> Path:
    """Empty game installation directory."""
    folder = tmp_path / "game"
    folder.mkdir()
    return folder


@pytest.fixture
def fast_config() -> PatcherConfig:
    """Patcher configuration without pacing or phase pauses."""
    return PatcherConfig(pacing_delay=0, phase_delay=0)


@pytest.fixture
def server_factory() -> type[PatchServer]:
    """The in-memory patch server class, for tests that build their own."""
    return PatchServer


@pytest.fixture
def patch_server() -> PatchServer:
    """Patch server serving two small data files."""
    return PatchServer({
        "dat/mhfdat.bin": b"new mhfdat contents",
        "dat/mhfpac.bin": b"new mhfpac contents",
    })
