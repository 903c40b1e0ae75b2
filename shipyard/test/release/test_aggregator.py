"""Tests for shipyard.release.aggregator module."""

from __future__ import annotations

from pathlib import Path

from shipyard.core.result import Err, Ok
from shipyard.output.console import MockConsole
from shipyard.release.aggregator import ArtifactAggregator
from shipyard.release.model import ArtifactRef, BuildTarget, Platform


def _make(directory: Path, name: str, content: bytes = b"payload") -> ArtifactRef:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return ArtifactRef(file_name=name, source_path=path, size_bytes=len(content))


class TestArtifactAggregator:
    def test_stages_flat_and_sorted(self, tmp_path: Path) -> None:
        out = tmp_path / "release"
        artifacts = {
            BuildTarget(Platform.WINDOWS): (
                _make(out, "Zettlr-2.3.0-x64.exe"),
                _make(out, "Zettlr-2.3.0-arm64.exe"),
            ),
            BuildTarget(Platform.LINUX): (_make(out, "Zettlr-2.3.0-x64.AppImage"),),
        }
        staging = tmp_path / "staging"

        result = ArtifactAggregator(console=MockConsole()).collect(artifacts, staging)

        assert isinstance(result, Ok)
        assert [a.file_name for a in result.value] == [
            "Zettlr-2.3.0-arm64.exe",
            "Zettlr-2.3.0-x64.AppImage",
            "Zettlr-2.3.0-x64.exe",
        ]
        assert all(a.source_path.parent == staging for a in result.value)
        assert sorted(p.name for p in staging.iterdir()) == [a.file_name for a in result.value]

    def test_collision_copies_nothing(self, tmp_path: Path) -> None:
        artifacts = {
            BuildTarget(Platform.WINDOWS): (_make(tmp_path / "a", "Zettlr-2.3.0-x64.bin"),),
            BuildTarget(Platform.LINUX): (
                _make(tmp_path / "b", "Zettlr-2.3.0-x64.bin"),
                _make(tmp_path / "b", "Zettlr-2.3.0-arm64.bin"),
            ),
        }
        staging = tmp_path / "staging"

        result = ArtifactAggregator(console=MockConsole()).collect(artifacts, staging)

        assert isinstance(result, Err)
        assert result.error.kind == "collision"
        assert result.error.files == ("Zettlr-2.3.0-x64.bin",)
        assert "windows + linux" in result.error.message
        assert not staging.exists() or not any(staging.iterdir())

    def test_staging_must_be_empty(self, tmp_path: Path) -> None:
        staging = tmp_path / "staging"
        staging.mkdir()
        (staging / "Zettlr-2.2.0-x64.exe").write_bytes(b"old")
        artifacts = {BuildTarget(Platform.LINUX): (_make(tmp_path / "out", "new.AppImage"),)}

        result = ArtifactAggregator(console=MockConsole()).collect(artifacts, staging)

        assert isinstance(result, Err)
        assert result.error.kind == "not_empty"
        assert result.error.files == ("Zettlr-2.2.0-x64.exe",)

    def test_missing_source(self, tmp_path: Path) -> None:
        ghost = ArtifactRef("ghost.dmg", tmp_path / "ghost.dmg", 10)

        result = ArtifactAggregator(console=MockConsole()).collect(
            {BuildTarget(Platform.MACOS): (ghost,)}, tmp_path / "staging"
        )

        assert isinstance(result, Err)
        assert result.error.kind == "missing"

    def test_size_mismatch(self, tmp_path: Path) -> None:
        artifact = _make(tmp_path / "out", "short.dmg", b"1234")
        lying = ArtifactRef(artifact.file_name, artifact.source_path, size_bytes=99)

        result = ArtifactAggregator(console=MockConsole()).collect(
            {BuildTarget(Platform.MACOS): (lying,)}, tmp_path / "staging"
        )

        assert isinstance(result, Err)
        assert result.error.kind == "size_mismatch"
