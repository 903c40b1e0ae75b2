"""Trigger classification and version resolution.

Runs exactly once per pipeline. Its output (version, channel, source ref) is
passed by value to every later stage, so no stage re-derives "is this a
nightly" from the trigger on its own.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from shipyard.core.config import ProductConfig
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_str
from shipyard.release.errors import VersionError
from shipyard.release.model import ReleaseChannel, ResolvedVersion, TriggerContext

__all__ = [
    "SemVer",
    "ignored_channel_hint",
    "nightly_version",
    "parse_semver",
    "read_declared_version",
    "resolve_version",
    "trigger_from_env",
]

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)

_HEADS_PREFIX = "refs/heads/"

# GitHub Actions event names -> trigger kinds.
_GITHUB_EVENTS = {
    "push": "push",
    "workflow_dispatch": "manual",
    "schedule": "scheduled",
}


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def core(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_semver(version: str) -> SemVer | None:
    m = _SEMVER_RE.match(version.strip())
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def nightly_version(base: SemVer, now: datetime) -> str:
    """``2.3.0`` -> ``2.3.0-nightly-20261019.1200`` (UTC)."""
    stamp = now.astimezone(UTC).strftime("%Y%m%d.%H%M")
    return f"{base.core()}-nightly-{stamp}"


def _branch_name(ref: str | None) -> str | None:
    if ref is None:
        return None
    ref = ref.strip()
    if ref.startswith(_HEADS_PREFIX):
        ref = ref[len(_HEADS_PREFIX) :]
    return ref or None


def resolve_version(
    trigger: TriggerContext,
    declared_version: str,
    *,
    stable_branch: str = "master",
    nightly_ref: str = "develop",
    now: datetime | None = None,
) -> Result[ResolvedVersion, VersionError]:
    """Classify the trigger and derive the version to build.

    - scheduled / manual: NIGHTLY, version rewritten to a dated nightly
      identifier, built from ``nightly_ref``. A manual channel hint never
      changes the channel; see :func:`ignored_channel_hint`.
    - push to ``stable_branch``: STABLE, version untouched.
    - anything else is rejected.
    """
    base = parse_semver(declared_version)
    if base is None:
        return Err(
            VersionError(
                kind="invalid_version",
                message=f"declared version is not semver: {declared_version!r}",
                hint="Expected MAJOR.MINOR.PATCH",
            )
        )

    match trigger.kind:
        case "scheduled" | "manual":
            return Ok(
                ResolvedVersion(
                    version=nightly_version(base, now or datetime.now(UTC)),
                    declared_version=declared_version,
                    channel=ReleaseChannel.NIGHTLY,
                    source_ref=nightly_ref,
                )
            )
        case "push":
            branch = _branch_name(trigger.ref)
            if branch != stable_branch:
                return Err(
                    VersionError(
                        kind="unknown_trigger",
                        message=f"push to {branch or '(no ref)'} does not trigger a release",
                        hint=f"Only pushes to {stable_branch} build stable releases",
                    )
                )
            return Ok(
                ResolvedVersion(
                    version=declared_version,
                    declared_version=declared_version,
                    channel=ReleaseChannel.STABLE,
                    source_ref=stable_branch,
                )
            )
        case _:
            return Err(
                VersionError(
                    kind="unknown_trigger",
                    message=f"unrecognized trigger: {trigger.kind!r}",
                    hint="Expected push, manual or scheduled",
                )
            )


def ignored_channel_hint(trigger: TriggerContext) -> str | None:
    """Warning text when a dispatch asked for something other than a nightly.

    Dispatched and scheduled runs always build a nightly, whatever channel the
    operator typed into the dispatch form.
    """
    hint = (trigger.channel_hint or "").strip()
    if trigger.kind == "push" or hint.lower() in ("", "nightly"):
        return None
    return f"channel hint {hint!r} ignored: {trigger.kind} runs build a nightly"


def trigger_from_env(env: Mapping[str, str]) -> Result[TriggerContext, VersionError]:
    """Build a trigger from GitHub Actions environment variables."""
    event = (env.get("GITHUB_EVENT_NAME") or "").strip()
    kind = _GITHUB_EVENTS.get(event)
    if kind is None:
        return Err(
            VersionError(
                kind="unknown_trigger",
                message=f"unsupported GITHUB_EVENT_NAME: {event or '(unset)'}",
                hint="Pass --trigger explicitly outside of GitHub Actions",
            )
        )
    return Ok(
        TriggerContext(
            kind=kind,
            ref=env.get("GITHUB_REF") or None,
            channel_hint=env.get("INPUT_TARGET") or None,
        )
    )


def read_declared_version(product: ProductConfig, project_root: Path) -> Result[str, VersionError]:
    """Return the configured version, or the ``version`` field of the version file."""
    if product.version:
        return Ok(product.version)

    path = project_root / product.version_file
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(
            VersionError(
                kind="version_source",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            VersionError(
                kind="version_source",
                message=f"invalid JSON in {path.name}: {e}",
                hint=str(path),
            )
        )

    data = as_str_dict(obj)
    version = get_str(data, "version") if data is not None else None
    if version is None:
        return Err(
            VersionError(
                kind="version_source",
                message=f"missing version in {path.name}",
                hint=str(path),
            )
        )
    return Ok(version)
