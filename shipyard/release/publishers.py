"""Publication of a verified artifact set.

Exactly one publisher runs per pipeline, chosen from the release channel:

- nightly: mirror the staging directory to the nightly server with
  ``rsync --delete`` over SSH. The remote ends up holding this run's files
  and nothing else.
- stable: create a *draft* GitHub release with every artifact and the
  checksum file attached. A maintainer writes the changelog and publishes it.

Both publishers refuse a manifest whose checksums are not all verified.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from shipyard.core.config import PLACEHOLDER_NOTES, NotesPolicy
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.platform.files import private_key_file
from shipyard.platform.process import run as run_process
from shipyard.release.errors import PublishError
from shipyard.release.model import ReleaseChannel, ReleaseManifest
from shipyard.release.secrets import RemoteCredentials, RepoCredentials

__all__ = [
    "NightlyAssets",
    "NightlyPublisher",
    "PublishReceipt",
    "Publisher",
    "ReleasePublisher",
    "release_notes",
    "select_publisher",
]

_RSYNC_TIMEOUT_SECONDS = 2 * 60 * 60.0
_GH_RELEASE_TIMEOUT_SECONDS = 60 * 60.0


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    kind: Literal["mirror", "draft_release"]
    destination: str
    files: tuple[str, ...]
    dry_run: bool = False


class Publisher(Protocol):
    def publish(self, manifest: ReleaseManifest) -> Result[PublishReceipt, PublishError]: ...


def _check_manifest(manifest: ReleaseManifest) -> Result[None, PublishError]:
    if not manifest.artifacts:
        return Err(PublishError(kind="precondition", message="refusing to publish: no artifacts"))
    if not manifest.all_verified:
        return Err(
            PublishError(
                kind="precondition",
                message="refusing to publish: not every artifact has a verified checksum",
            )
        )
    return Ok(None)


@dataclass(frozen=True, slots=True)
class NightlyAssets:
    """Static files served next to the nightly builds, by published name."""

    index: Path
    preview: Path
    logo: Path

    def staged_names(self) -> dict[str, Path]:
        return {
            "index.php": self.index,
            "sm_preview.png": self.preview,
            "logo.png": self.logo,
        }


class NightlyPublisher:
    def __init__(
        self,
        *,
        remote: RemoteCredentials,
        assets: NightlyAssets,
        console: ConsoleProtocol,
        project_root: Path,
        rsync_args: tuple[str, ...] = ("-vzhr", "--delete"),
        dry_run: bool = False,
    ) -> None:
        self._remote = remote
        self._assets = assets
        self._console = console
        self._project_root = project_root
        self._rsync_args = rsync_args
        self._dry_run = dry_run

    def publish(self, manifest: ReleaseManifest) -> Result[PublishReceipt, PublishError]:
        checked = _check_manifest(manifest)
        if isinstance(checked, Err):
            return checked

        staging = manifest.checksum_file.parent
        staged = self._stage_assets(staging)
        if isinstance(staged, Err):
            return staged

        # --delete makes the remote equal to this directory; anything not
        # produced by this run would be published (and everything else wiped).
        expected = {*manifest.file_names(), manifest.checksum_file.name, *staged.value}
        present = {p.name for p in staging.iterdir()}
        unexpected = sorted(present - expected)
        missing = sorted(expected - present)
        if unexpected or missing:
            return Err(
                PublishError(
                    kind="precondition",
                    message="staging directory does not match the manifest",
                    hint=f"unexpected={unexpected} missing={missing}",
                )
            )

        files = tuple(sorted(present))
        destination = self._remote.destination
        self._console.print(f"mirroring {len(files)} files to {destination}", Style.INFO)

        with private_key_file(self._remote.private_key) as key_path:
            cmd = [
                "rsync",
                *self._rsync_args,
                "-e",
                f"ssh -i {key_path} -o StrictHostKeyChecking=accept-new",
                f"{staging}/",
                destination,
            ]
            if self._dry_run:
                self._console.print(" ".join(cmd[:2]) + " ... (dry-run)", Style.DIM)
                return Ok(PublishReceipt("mirror", destination, files, dry_run=True))

            result = run_process(cmd, cwd=self._project_root, timeout=_RSYNC_TIMEOUT_SECONDS)

        if isinstance(result, Err):
            e = result.error
            return Err(
                PublishError(
                    kind="transfer",
                    message=f"nightly mirror failed: {e}",
                    hint=e.tail() or None,
                )
            )

        self._console.success(f"nightly {manifest.version} mirrored to {destination}")
        return Ok(PublishReceipt("mirror", destination, files))

    def _stage_assets(self, staging: Path) -> Result[list[str], PublishError]:
        names: list[str] = []
        for name, src in self._assets.staged_names().items():
            if not src.is_file():
                return Err(
                    PublishError(
                        kind="assets",
                        message=f"nightly asset missing: {src}",
                        hint="Check the [nightly] section of shipyard.toml",
                    )
                )
            try:
                shutil.copyfile(src, staging / name)
            except OSError as e:
                return Err(PublishError(kind="assets", message=f"cannot stage {name}: {e}"))
            names.append(name)
        return Ok(names)


def release_notes(notes: str, policy: NotesPolicy) -> Result[str, PublishError]:
    """Body of the draft release.

    An empty changelog is either replaced by a placeholder that a maintainer
    will notice while reviewing the draft, or rejected outright.
    """
    body = notes.strip()
    if body:
        return Ok(body)
    if policy == "block":
        return Err(
            PublishError(
                kind="notes",
                message="release notes are empty",
                hint="Set [release] notes in shipyard.toml or pass --notes-file",
            )
        )
    return Ok(PLACEHOLDER_NOTES)


class ReleasePublisher:
    def __init__(
        self,
        *,
        repo: str,
        credentials: RepoCredentials,
        console: ConsoleProtocol,
        project_root: Path,
        target_ref: str,
        notes: str = "",
        notes_policy: NotesPolicy = "placeholder",
        dry_run: bool = False,
    ) -> None:
        self._repo = repo
        self._credentials = credentials
        self._console = console
        self._project_root = project_root
        self._target_ref = target_ref
        self._notes = notes
        self._notes_policy = notes_policy
        self._dry_run = dry_run

    def publish(self, manifest: ReleaseManifest) -> Result[PublishReceipt, PublishError]:
        checked = _check_manifest(manifest)
        if isinstance(checked, Err):
            return checked

        body = release_notes(self._notes, self._notes_policy)
        if isinstance(body, Err):
            return body

        tag = manifest.tag
        uploads = [a.source_path for a in manifest.artifacts] + [manifest.checksum_file]
        cmd = [
            "gh",
            "release",
            "create",
            tag,
            "--repo",
            self._repo,
            "--target",
            self._target_ref,
            "--title",
            f"Release {tag}",
            "--notes",
            body.value,
            # Always a draft: the changelog is written by hand before publishing.
            "--draft",
            *[str(p) for p in uploads],
        ]
        files = tuple(p.name for p in uploads)
        destination = f"{self._repo}@{tag}"

        self._console.print(f"creating draft release {tag} on {self._repo}", Style.INFO)
        if self._dry_run:
            self._console.print(" ".join(cmd[:4]) + " ... (dry-run)", Style.DIM)
            return Ok(PublishReceipt("draft_release", destination, files, dry_run=True))

        result = run_process(
            cmd,
            cwd=self._project_root,
            env={"GH_TOKEN": self._credentials.token},
            timeout=_GH_RELEASE_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            e = result.error
            return Err(
                PublishError(
                    kind="release",
                    message=f"failed to create draft release {tag}",
                    hint=e.tail() or None,
                )
            )

        url = result.value.strip()
        self._console.success(f"draft release {tag} created{f': {url}' if url else ''}")
        return Ok(PublishReceipt("draft_release", destination, files))


def select_publisher(
    channel: ReleaseChannel,
    *,
    nightly: Callable[[], Result[Publisher, PublishError]],
    stable: Callable[[], Result[Publisher, PublishError]],
) -> Result[Publisher, PublishError]:
    """Build the one publisher for ``channel``; the other is never constructed."""
    match channel:
        case ReleaseChannel.NIGHTLY:
            return nightly()
        case ReleaseChannel.STABLE:
            return stable()
