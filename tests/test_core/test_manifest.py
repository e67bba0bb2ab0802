"""Tests for mhf_patcher.core.manifest module."""

import hashlib
from pathlib import Path

import pytest

from mhf_patcher.core import manifest as manifest_module
from mhf_patcher.core.errors import ManifestError
from mhf_patcher.core.manifest import compute_change_set, normalize_path, parse_manifest
from mhf_patcher.core.types import ChangeEntry


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class TestNormalizePath:
    """Test normalize_path function."""

    def test_strips_leading_slash(self):
        assert normalize_path("/dat/mhfdat.bin") == "dat/mhfdat.bin"

    def test_strips_repeated_leading_slashes(self):
        assert normalize_path("//dat/mhfdat.bin") == "dat/mhfdat.bin"

    def test_relative_path_unchanged(self):
        assert normalize_path("dat/mhfdat.bin") == "dat/mhfdat.bin"

    def test_backslashes_converted(self):
        assert normalize_path("\\dat\\mhfdat.bin") == "dat/mhfdat.bin"

    def test_dot_components_collapsed(self):
        assert normalize_path("./dat//./mhfdat.bin") == "dat/mhfdat.bin"

    @pytest.mark.parametrize("raw", ["../evil.dll", "dat/../../evil.dll", "/..", "dat\\..\\..\\x"])
    def test_parent_traversal_rejected(self, raw: str):
        with pytest.raises(ManifestError, match="escapes"):
            normalize_path(raw, line_number=3)

    def test_drive_letter_rejected(self):
        with pytest.raises(ManifestError, match="Absolute"):
            normalize_path("C:/Windows/system32/evil.dll")

    @pytest.mark.parametrize("raw", ["", "/", "./"])
    def test_empty_path_rejected(self, raw: str):
        with pytest.raises(ManifestError, match="Empty"):
            normalize_path(raw)

    def test_nul_byte_rejected(self):
        with pytest.raises(ManifestError, match="Invalid character") as exc_info:
            normalize_path("dat/a\x00b.bin", line_number=4)
        assert exc_info.value.line_number == 4


class TestParseManifest:
    """Test parse_manifest function."""

    def test_entries_in_order(self):
        content = "aaa\t/dat/b.bin\nbbb\tdat/a.bin\nccc\tmhf.exe"
        assert parse_manifest(content) == [
            ChangeEntry("aaa", "dat/b.bin"),
            ChangeEntry("bbb", "dat/a.bin"),
            ChangeEntry("ccc", "mhf.exe"),
        ]

    def test_trailing_newline(self):
        """A final newline does not produce an extra entry."""
        assert len(parse_manifest("aaa\ta.bin\nbbb\tb.bin\n")) == 2

    def test_crlf_line_endings(self):
        assert parse_manifest("aaa\ta.bin\r\nbbb\tb.bin\r\n") == [
            ChangeEntry("aaa", "a.bin"),
            ChangeEntry("bbb", "b.bin"),
        ]

    def test_empty_manifest(self):
        assert parse_manifest("") == []

    def test_missing_tab(self):
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest("aaa\ta.bin\nbbb b.bin\nccc\tc.bin")
        assert exc_info.value.line_number == 2

    def test_extra_tab(self):
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest("aaa\ta.bin\textra")
        assert exc_info.value.line_number == 1

    def test_blank_line_in_middle(self):
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest("aaa\ta.bin\n\nbbb\tb.bin")
        assert exc_info.value.line_number == 2

    def test_traversal_fails_whole_parse(self):
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest("aaa\ta.bin\nbbb\t../../b.bin")
        assert exc_info.value.line_number == 2
        assert exc_info.value.path == "../../b.bin"


class TestComputeChangeSet:
    """Test compute_change_set function."""

    def test_worked_example(self, tmp_path: Path):
        """Matching files are skipped, missing ones are kept."""
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "a.txt").write_bytes(b"current a")
        content = f"{sha256_hex(b'current a')}\tdata/a.txt\nfeed00\tdata/b.txt"

        assert compute_change_set(content, tmp_path) == [
            ChangeEntry("feed00", "data/b.txt"),
        ]

    def test_changed_file_included(self, tmp_path: Path):
        (tmp_path / "a.bin").write_bytes(b"old")
        content = f"{sha256_hex(b'new')}\ta.bin"

        assert compute_change_set(content, tmp_path) == [
            ChangeEntry(sha256_hex(b"new"), "a.bin"),
        ]

    def test_manifest_order_preserved(self, tmp_path: Path):
        (tmp_path / "b.bin").write_bytes(b"b")
        content = "\n".join([
            "111\tz.bin",
            f"{sha256_hex(b'b')}\tb.bin",
            "222\ta.bin",
            "333\tm/n.bin",
        ])

        changed = compute_change_set(content, tmp_path)
        assert [e.relative_path for e in changed] == ["z.bin", "a.bin", "m/n.bin"]

    def test_all_up_to_date(self, tmp_path: Path):
        (tmp_path / "a.bin").write_bytes(b"a")
        assert compute_change_set(f"{sha256_hex(b'a')}\ta.bin", tmp_path) == []

    def test_malformed_line_returns_nothing(self, tmp_path: Path):
        with pytest.raises(ManifestError):
            compute_change_set("111\ta.bin\nnot a valid line", tmp_path)

    def test_every_listed_file_is_hashed(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Unchanged files are hashed too, so cost follows the install size."""
        for name in ("a.bin", "b.bin", "c.bin"):
            (tmp_path / name).write_bytes(name.encode())
        content = "\n".join(
            f"{sha256_hex(name.encode())}\t{name}" for name in ("a.bin", "b.bin", "c.bin")
        )

        checked: list[Path] = []
        real_needs_update = manifest_module.needs_update

        def counting_needs_update(path, *args):
            checked.append(path)
            return real_needs_update(path, *args)

        monkeypatch.setattr(manifest_module, "needs_update", counting_needs_update)

        assert compute_change_set(content, tmp_path) == []
        assert checked == [tmp_path / "a.bin", tmp_path / "b.bin", tmp_path / "c.bin"]

    def test_custom_algorithm(self, tmp_path: Path):
        (tmp_path / "a.bin").write_bytes(b"a")
        content = f"{hashlib.md5(b'a').hexdigest()}\ta.bin"
        assert compute_change_set(content, tmp_path, algorithm="md5") == []

    @pytest.mark.parametrize("raw", [
        ".patcher-tmp/x.bin",
        "/.patcher-tmp",
        ".PATCHER-TMP/dat/x.bin",
        "patcher.etag",
        "patcher.etag.tmp",
    ])
    def test_reserved_path_rejected(self, tmp_path: Path, raw: str):
        reserved = (".patcher-tmp", "patcher.etag", "patcher.etag.tmp")
        content = f"aaa\ta.bin\nbbb\t{raw}"

        with pytest.raises(ManifestError, match="reserved") as exc_info:
            compute_change_set(content, tmp_path, reserved=reserved)
        assert exc_info.value.line_number == 2

    def test_reserved_prefix_only_matches_whole_components(self, tmp_path: Path):
        """A sibling that merely starts with a reserved name is allowed."""
        content = "aaa\t.patcher-tmp2/x.bin\nbbb\tpatcher.etag.bak"
        changed = compute_change_set(content, tmp_path, reserved=(".patcher-tmp", "patcher.etag"))
        assert [e.relative_path for e in changed] == [".patcher-tmp2/x.bin", "patcher.etag.bak"]
