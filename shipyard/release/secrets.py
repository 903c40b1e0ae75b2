"""Credentials consumed by the pipeline.

Provisioning is the CI system's job; this module only reads what it put in
the environment. Values are never printed: ``__repr__`` masks them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from shipyard.core.result import Err, Ok, Result
from shipyard.release.errors import PublishError
from shipyard.release.model import Platform

__all__ = [
    "PlatformCredentials",
    "RemoteCredentials",
    "RepoCredentials",
    "SigningCredentials",
    "load_remote_credentials",
    "load_repo_credentials",
    "load_signing_credentials",
]

# Variables each platform's signing step reads (electron-builder / notarize).
_SIGNING_ENV: dict[Platform, tuple[str, ...]] = {
    Platform.WINDOWS: ("CSC_LINK", "CSC_KEY_PASSWORD"),
    Platform.MACOS: ("MACOS_CERT", "MACOS_CERT_PASS", "APPLE_ID", "APPLE_ID_PASS"),
    Platform.LINUX: (),
}


@dataclass(frozen=True, slots=True)
class PlatformCredentials:
    """Signing material for one platform, as environment variables."""

    env: Mapping[str, str]

    def __repr__(self) -> str:
        return f"PlatformCredentials(keys={sorted(self.env)})"


def _no_credentials() -> dict[Platform, PlatformCredentials]:
    return {}


@dataclass(frozen=True, slots=True)
class SigningCredentials:
    by_platform: Mapping[Platform, PlatformCredentials] = field(default_factory=_no_credentials)

    def for_platform(self, platform: Platform) -> PlatformCredentials | None:
        return self.by_platform.get(platform)


@dataclass(frozen=True, slots=True)
class RemoteCredentials:
    """SSH destination of the nightly mirror."""

    host: str
    user: str
    target: str
    private_key: str

    @property
    def destination(self) -> str:
        target = self.target if self.target.endswith("/") else f"{self.target}/"
        return f"{self.user}@{self.host}:{target}"

    def __repr__(self) -> str:
        return f"RemoteCredentials(destination={self.destination!r}, private_key=***)"


@dataclass(frozen=True, slots=True)
class RepoCredentials:
    token: str

    def __repr__(self) -> str:
        return "RepoCredentials(token=***)"


def load_signing_credentials(env: Mapping[str, str]) -> SigningCredentials:
    """Collect per-platform signing credentials.

    A platform gets credentials only when every variable it needs is set;
    a partial set is treated as absent (and fails the build when signing is
    required for that platform).
    """
    out: dict[Platform, PlatformCredentials] = {}
    for platform, names in _SIGNING_ENV.items():
        if not names:
            continue
        values = {name: env.get(name, "") for name in names}
        if all(values.values()):
            out[platform] = PlatformCredentials(env=values)
    return SigningCredentials(by_platform=out)


def load_remote_credentials(env: Mapping[str, str]) -> Result[RemoteCredentials, PublishError]:
    names = (
        "NIGHTLY_REMOTE_HOST",
        "NIGHTLY_REMOTE_USER",
        "NIGHTLY_TARGET",
        "NIGHTLY_SSH_PRIVATE_KEY",
    )
    missing = [n for n in names if not env.get(n)]
    if missing:
        return Err(
            PublishError(
                kind="credentials",
                message="nightly mirror credentials missing",
                hint=f"Set: {', '.join(missing)}",
            )
        )
    return Ok(
        RemoteCredentials(
            host=env["NIGHTLY_REMOTE_HOST"],
            user=env["NIGHTLY_REMOTE_USER"],
            target=env["NIGHTLY_TARGET"],
            private_key=env["NIGHTLY_SSH_PRIVATE_KEY"],
        )
    )


def load_repo_credentials(env: Mapping[str, str]) -> Result[RepoCredentials, PublishError]:
    token = env.get("GITHUB_TOKEN") or env.get("GH_TOKEN")
    if not token:
        return Err(
            PublishError(
                kind="credentials",
                message="repository token missing",
                hint="Set GITHUB_TOKEN (or GH_TOKEN)",
            )
        )
    return Ok(RepoCredentials(token=token))
