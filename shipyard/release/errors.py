"""Error payloads for each pipeline stage.

Errors are plain values carried in ``Err``; each one knows how to render a
one-line message so the CLI can report "stage: cause" without inspecting
implementation details.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from shipyard.release.model import Arch, Platform

__all__ = [
    "BuildError",
    "ChecksumError",
    "CoordinatorError",
    "PublishError",
    "StagingError",
    "VersionError",
]


@dataclass(frozen=True, slots=True)
class VersionError:
    kind: Literal["unknown_trigger", "invalid_version", "version_source"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class BuildError:
    """A platform build failed for one architecture (or before any ran)."""

    platform: Platform
    arch: Arch | None
    kind: Literal["toolchain", "signing", "credentials", "output_missing", "timeout"]
    message: str
    hint: str | None = None

    @property
    def where(self) -> str:
        if self.arch is None:
            return str(self.platform)
        return f"{self.platform}/{self.arch}"

    def pretty(self) -> str:
        text = f"{self.where}: {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text


@dataclass(frozen=True, slots=True)
class CoordinatorError:
    """Every BuildError of a run, not just the first one."""

    errors: tuple[BuildError, ...]

    @property
    def message(self) -> str:
        failed = sorted({str(e.platform) for e in self.errors})
        return f"{len(self.errors)} build error(s) on {', '.join(failed)}"

    def pretty(self) -> str:
        return "; ".join(e.pretty() for e in self.errors)


@dataclass(frozen=True, slots=True)
class StagingError:
    kind: Literal["collision", "not_empty", "copy", "missing", "size_mismatch"]
    message: str
    files: tuple[str, ...] = ()

    def pretty(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class ChecksumError:
    kind: Literal["mismatch", "missing", "malformed", "io"]
    message: str
    file_name: str | None = None

    def pretty(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class PublishError:
    kind: Literal["precondition", "notes", "assets", "credentials", "transfer", "release"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
