"""Tests for shipyard.release.model module."""

from __future__ import annotations

from pathlib import Path

import pytest

from shipyard.release.model import (
    Arch,
    ArtifactRef,
    BuildJob,
    BuildTarget,
    ChecksumEntry,
    JobStatus,
    Platform,
    ReleaseChannel,
    ReleaseManifest,
    ResolvedVersion,
)


def _artifact(name: str) -> ArtifactRef:
    return ArtifactRef(file_name=name, source_path=Path("/staging") / name, size_bytes=1)


class TestParsing:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("windows", Platform.WINDOWS),
            ("win32", Platform.WINDOWS),
            ("Darwin", Platform.MACOS),
            ("linux", Platform.LINUX),
            ("beos", None),
        ],
    )
    def test_platform(self, name: str, expected: Platform | None) -> None:
        assert Platform.parse(name) is expected

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("x64", Arch.X64), ("amd64", Arch.X64), ("aarch64", Arch.ARM64), ("ia32", None)],
    )
    def test_arch(self, name: str, expected: Arch | None) -> None:
        assert Arch.parse(name) is expected

    def test_arch_short_matches_script_names(self) -> None:
        assert [a.short for a in Arch] == ["x64", "arm"]


class TestBuildTarget:
    def test_defaults_and_str(self) -> None:
        target = BuildTarget(Platform.WINDOWS)
        assert target.architectures == (Arch.X64, Arch.ARM64)
        assert str(target) == "windows[x64,arm64]"

    def test_hashable(self) -> None:
        assert len({BuildTarget(Platform.LINUX), BuildTarget(Platform.LINUX)}) == 1

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="at least one"):
            BuildTarget(Platform.LINUX, ())

    def test_rejects_duplicates(self) -> None:
        with pytest.raises(ValueError, match="duplicate"):
            BuildTarget(Platform.LINUX, (Arch.X64, Arch.X64))


class TestBuildJob:
    def test_happy_path(self) -> None:
        job = BuildJob(BuildTarget(Platform.LINUX))
        assert job.status is JobStatus.PENDING
        job.start()
        job.succeed((_artifact("a.AppImage"),))
        assert job.status is JobStatus.SUCCEEDED
        assert job.status.is_terminal
        assert job.produced_artifacts[0].file_name == "a.AppImage"

    def test_fail_from_running(self) -> None:
        job = BuildJob(BuildTarget(Platform.LINUX))
        job.start()
        job.fail("toolchain exited 1")
        assert job.status is JobStatus.FAILED
        assert job.error == "toolchain exited 1"

    def test_fail_from_pending(self) -> None:
        job = BuildJob(BuildTarget(Platform.LINUX))
        job.fail("never started")
        assert job.status is JobStatus.FAILED

    def test_succeed_requires_running(self) -> None:
        job = BuildJob(BuildTarget(Platform.LINUX))
        with pytest.raises(RuntimeError, match="cannot succeed a pending job"):
            job.succeed(())

    def test_terminal_states_are_final(self) -> None:
        job = BuildJob(BuildTarget(Platform.LINUX))
        job.start()
        job.succeed(())
        with pytest.raises(RuntimeError):
            job.fail("late")
        with pytest.raises(RuntimeError):
            job.start()


class TestReleaseManifest:
    def _manifest(self, checksums: tuple[ChecksumEntry, ...]) -> ReleaseManifest:
        return ReleaseManifest(
            version="2.3.0",
            channel=ReleaseChannel.STABLE,
            artifacts=(_artifact("a.exe"), _artifact("b.dmg")),
            checksums=checksums,
            checksum_file=Path("/staging/SHA256SUMS.txt"),
        )

    def test_all_verified(self) -> None:
        manifest = self._manifest(
            (ChecksumEntry("a.exe", "0" * 64, True), ChecksumEntry("b.dmg", "1" * 64, True))
        )
        assert manifest.all_verified
        assert manifest.tag == "v2.3.0"
        assert manifest.file_names() == ["a.exe", "b.dmg"]

    def test_unverified_entry(self) -> None:
        manifest = self._manifest(
            (ChecksumEntry("a.exe", "0" * 64, True), ChecksumEntry("b.dmg", "1" * 64, False))
        )
        assert not manifest.all_verified

    def test_missing_entry(self) -> None:
        assert not self._manifest((ChecksumEntry("a.exe", "0" * 64, True),)).all_verified

    def test_entry_for_other_file(self) -> None:
        manifest = self._manifest(
            (ChecksumEntry("a.exe", "0" * 64, True), ChecksumEntry("c.AppImage", "1" * 64, True))
        )
        assert not manifest.all_verified


def test_resolved_version_tag() -> None:
    resolved = ResolvedVersion("2.3.0", "2.3.0", ReleaseChannel.STABLE, "master")
    assert resolved.tag == "v2.3.0"
