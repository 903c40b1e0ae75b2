"""Release domain model.

Values that cross stage boundaries are frozen; only ``BuildJob`` is mutable,
and only through its own transition methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

__all__ = [
    "Arch",
    "ArtifactRef",
    "BuildJob",
    "BuildTarget",
    "ChecksumEntry",
    "JobStatus",
    "Platform",
    "ReleaseChannel",
    "ReleaseManifest",
    "ResolvedVersion",
    "TriggerContext",
    "TriggerKind",
]


TriggerKind = Literal["push", "manual", "scheduled"]


class ReleaseChannel(Enum):
    STABLE = "stable"
    NIGHTLY = "nightly"

    def __str__(self) -> str:
        return self.value


class Platform(Enum):
    """Target operating system of a build."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> Platform | None:
        aliases = {"win32": "windows", "darwin": "macos", "mac": "macos", "win": "windows"}
        key = aliases.get(name.strip().lower(), name.strip().lower())
        for platform in cls:
            if platform.value == key:
                return platform
        return None


class Arch(Enum):
    """CPU architecture of a build."""

    X64 = "x64"
    ARM64 = "arm64"

    def __str__(self) -> str:
        return self.value

    @property
    def short(self) -> str:
        """Name used by the package.json scripts: ``x64`` or ``arm``."""
        return "arm" if self is Arch.ARM64 else self.value

    @classmethod
    def parse(cls, name: str) -> Arch | None:
        aliases = {"amd64": "x64", "x86_64": "x64", "aarch64": "arm64", "arm": "arm64"}
        key = aliases.get(name.strip().lower(), name.strip().lower())
        for arch in cls:
            if arch.value == key:
                return arch
        return None


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One platform and the architectures built for it, in build order."""

    platform: Platform
    architectures: tuple[Arch, ...] = (Arch.X64, Arch.ARM64)

    def __post_init__(self) -> None:
        if not self.architectures:
            raise ValueError(f"{self.platform}: at least one architecture is required")
        if len(set(self.architectures)) != len(self.architectures):
            raise ValueError(f"{self.platform}: duplicate architectures")

    def __str__(self) -> str:
        archs = ",".join(str(a) for a in self.architectures)
        return f"{self.platform}[{archs}]"


@dataclass(frozen=True, slots=True)
class TriggerContext:
    """What started this run: a push, a manual dispatch or the scheduler."""

    kind: str
    ref: str | None = None
    channel_hint: str | None = None


@dataclass(frozen=True, slots=True)
class ResolvedVersion:
    version: str
    declared_version: str
    channel: ReleaseChannel
    source_ref: str

    @property
    def tag(self) -> str:
        return f"v{self.version}"


@dataclass(frozen=True, slots=True)
class ArtifactRef:
    """An installer file produced by a build job.

    ``file_name`` is the canonical name (product, version and architecture);
    ``source_path`` is where the file currently lives.
    """

    file_name: str
    source_path: Path
    size_bytes: int


@dataclass(frozen=True, slots=True)
class ChecksumEntry:
    file_name: str
    digest: str
    verified: bool = False


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


def _no_artifacts() -> tuple[ArtifactRef, ...]:
    return ()


@dataclass(slots=True)
class BuildJob:
    """Execution record for one build target.

    Status only moves forward: PENDING -> RUNNING -> SUCCEEDED | FAILED.
    Any other transition is a programming error and raises.
    """

    target: BuildTarget
    status: JobStatus = JobStatus.PENDING
    produced_artifacts: tuple[ArtifactRef, ...] = field(default_factory=_no_artifacts)
    error: object | None = None

    def start(self) -> None:
        self._require(JobStatus.PENDING, "start")
        self.status = JobStatus.RUNNING

    def succeed(self, artifacts: tuple[ArtifactRef, ...]) -> None:
        self._require(JobStatus.RUNNING, "succeed")
        self.status = JobStatus.SUCCEEDED
        self.produced_artifacts = artifacts

    def fail(self, error: object) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"{self.target}: cannot fail a {self.status.value} job")
        self.status = JobStatus.FAILED
        self.error = error

    def _require(self, expected: JobStatus, action: str) -> None:
        if self.status is not expected:
            raise RuntimeError(
                f"{self.target}: cannot {action} a {self.status.value} job"
            )


@dataclass(frozen=True, slots=True)
class ReleaseManifest:
    """Everything a publisher needs, assembled once verification passed."""

    version: str
    channel: ReleaseChannel
    artifacts: tuple[ArtifactRef, ...]
    checksums: tuple[ChecksumEntry, ...]
    checksum_file: Path

    @property
    def tag(self) -> str:
        return f"v{self.version}"

    @property
    def all_verified(self) -> bool:
        if len(self.checksums) != len(self.artifacts):
            return False
        names = {a.file_name for a in self.artifacts}
        if {c.file_name for c in self.checksums} != names:
            return False
        return all(c.verified for c in self.checksums)

    def file_names(self) -> list[str]:
        return [a.file_name for a in self.artifacts]
