"""Tests for shipyard.platform.files module."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from shipyard.platform.files import atomic_write_text, private_key_file


class TestAtomicWriteText:
    def test_writes_content(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "SHA256SUMS.txt"
        atomic_write_text(path, "abc  file\n")
        assert path.read_text(encoding="utf-8") == "abc  file\n"

    def test_replaces_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        path = tmp_path / "SHA256SUMS.txt"
        path.write_text("old", encoding="utf-8")
        atomic_write_text(path, "new")
        assert path.read_text(encoding="utf-8") == "new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["SHA256SUMS.txt"]


class TestPrivateKeyFile:
    def test_writes_key_and_removes_it(self) -> None:
        with private_key_file("-----BEGIN KEY-----\nabc\n-----END KEY-----  \n") as path:
            assert path.read_text(encoding="utf-8").endswith("-----END KEY-----\n")
            kept = path
        assert not kept.exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_permissions(self) -> None:
        with private_key_file("key") as path:
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_removed_on_error(self) -> None:
        seen: list[Path] = []
        with pytest.raises(RuntimeError):
            with private_key_file("key") as path:
                seen.append(path)
                raise RuntimeError("transfer crashed")
        assert not seen[0].exists()
