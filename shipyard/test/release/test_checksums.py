"""Tests for shipyard.release.checksums module."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from pathlib import Path

import pytest

import shipyard.release.checksums as checksums_mod
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import MockConsole
from shipyard.release.checksums import (
    CHECKSUM_FILE_NAME,
    ChecksumVerifier,
    compute_checksums,
    parse_checksum_file,
    sha256_file,
    verify_checksums,
)
from shipyard.release.errors import ChecksumError
from shipyard.release.model import ArtifactRef, ChecksumEntry


def _stage(directory: Path, files: dict[str, bytes]) -> list[ArtifactRef]:
    directory.mkdir(parents=True, exist_ok=True)
    refs: list[ArtifactRef] = []
    for name, content in files.items():
        path = directory / name
        path.write_bytes(content)
        refs.append(ArtifactRef(file_name=name, source_path=path, size_bytes=len(content)))
    return refs


FILES = {
    "Zettlr-2.3.0-x64.exe": b"windows x64",
    "Zettlr-2.3.0-arm64.dmg": b"macos arm64",
    "Zettlr-2.3.0-x64.AppImage": b"linux x64",
}


def test_sha256_file(tmp_path: Path) -> None:
    path = tmp_path / "f"
    path.write_bytes(b"abc")
    assert sha256_file(path) == hashlib.sha256(b"abc").hexdigest()


class TestParse:
    def test_text_and_binary_forms(self) -> None:
        digest = "A" * 64
        result = parse_checksum_file(f"{digest}  a.exe\n{'b' * 64} *b.dmg\n\n")
        assert result == Ok([("a.exe", "a" * 64), ("b.dmg", "b" * 64)])

    def test_malformed(self) -> None:
        result = parse_checksum_file("nothex  a.exe\n")
        assert isinstance(result, Err)
        assert result.error.kind == "malformed"

    def test_duplicate(self) -> None:
        line = f"{'a' * 64}  a.exe\n"
        result = parse_checksum_file(line + line)
        assert isinstance(result, Err)
        assert result.error.kind == "malformed"
        assert result.error.file_name == "a.exe"


class TestCompute:
    def test_writes_sorted_sha256sum_format(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME

        result = compute_checksums(artifacts, manifest)

        assert isinstance(result, Ok)
        lines = manifest.read_text(encoding="utf-8").splitlines()
        assert [line.split("  ")[1] for line in lines] == sorted(FILES)
        for line in lines:
            digest, name = line.split("  ")
            assert digest == hashlib.sha256(FILES[name]).hexdigest()

    def test_idempotent(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME

        compute_checksums(artifacts, manifest)
        first = manifest.read_bytes()
        compute_checksums(list(reversed(artifacts)), manifest)

        assert manifest.read_bytes() == first

    def test_missing_artifact(self, tmp_path: Path) -> None:
        ghost = ArtifactRef("ghost.exe", tmp_path / "ghost.exe", 1)
        result = compute_checksums([ghost], tmp_path / CHECKSUM_FILE_NAME)
        assert isinstance(result, Err)
        assert result.error.kind == "missing"


class TestVerify:
    def test_verifies_every_entry(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME
        compute_checksums(artifacts, manifest)

        result = verify_checksums(manifest, tmp_path, expected=list(FILES))

        assert isinstance(result, Ok)
        assert all(e.verified for e in result.value)
        assert len(result.value) == 3

    def test_corrupted_file(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME
        compute_checksums(artifacts, manifest)
        (tmp_path / "Zettlr-2.3.0-x64.exe").write_bytes(b"tampered")

        result = verify_checksums(manifest, tmp_path)

        assert isinstance(result, Err)
        assert result.error.kind == "mismatch"
        assert result.error.file_name == "Zettlr-2.3.0-x64.exe"

    def test_listed_file_missing(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME
        compute_checksums(artifacts, manifest)
        (tmp_path / "Zettlr-2.3.0-arm64.dmg").unlink()

        result = verify_checksums(manifest, tmp_path)

        assert isinstance(result, Err)
        assert result.error.kind == "missing"

    def test_expected_file_not_listed(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        manifest = tmp_path / CHECKSUM_FILE_NAME
        compute_checksums(artifacts[:2], manifest)

        result = verify_checksums(manifest, tmp_path, expected=list(FILES))

        assert isinstance(result, Err)
        assert result.error.kind == "missing"
        assert "Zettlr-2.3.0-x64.AppImage" in result.error.message

    def test_manifest_missing(self, tmp_path: Path) -> None:
        result = verify_checksums(tmp_path / CHECKSUM_FILE_NAME, tmp_path)
        assert isinstance(result, Err)
        assert result.error.kind == "missing"


class TestChecksumVerifier:
    def test_compute_and_verify(self, tmp_path: Path) -> None:
        artifacts = _stage(tmp_path, FILES)
        console = MockConsole()

        result = ChecksumVerifier(console=console).compute_and_verify(
            artifacts, tmp_path / CHECKSUM_FILE_NAME
        )

        assert isinstance(result, Ok)
        assert [e.file_name for e in result.value] == sorted(FILES)
        assert all(e.verified for e in result.value)
        assert console.find("3 checksum(s) verified")

    def test_corruption_between_passes(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        artifacts = _stage(tmp_path, FILES)
        real_compute = checksums_mod.compute_checksums

        def compute_then_flip(
            refs: Sequence[ArtifactRef], manifest_path: Path
        ) -> Result[tuple[ChecksumEntry, ...], ChecksumError]:
            computed = real_compute(refs, manifest_path)
            refs[0].source_path.write_bytes(b"flipped bit")
            return computed

        monkeypatch.setattr(checksums_mod, "compute_checksums", compute_then_flip)

        result = ChecksumVerifier(console=MockConsole()).compute_and_verify(
            artifacts, tmp_path / CHECKSUM_FILE_NAME
        )

        assert isinstance(result, Err)
        assert result.error.kind == "mismatch"
