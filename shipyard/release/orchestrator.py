"""Release pipeline state machine.

    RESOLVING -> BUILDING -> AGGREGATING -> VERIFYING -> PUBLISHING -> DONE
         \\___________\\____________\\____________\\____________\\-> FAILED

Strictly linear: no stage is entered twice, and the first failure ends the
run. The publisher is only constructed and invoked once every build job
succeeded and every checksum was verified, so a failed run never exposes a
partial artifact set.
Publish prerequisites are checked while resolving, so a missing token
fails the run before hours of building rather than after.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.release.aggregator import ArtifactAggregator
from shipyard.release.checksums import CHECKSUM_FILE_NAME, ChecksumVerifier
from shipyard.release.coordinator import BuildCoordinator, TargetBuilder
from shipyard.release.errors import (
    ChecksumError,
    CoordinatorError,
    PublishError,
    StagingError,
    VersionError,
)
from shipyard.release.model import (
    ArtifactRef,
    BuildJob,
    BuildTarget,
    ChecksumEntry,
    ReleaseManifest,
    ResolvedVersion,
    TriggerContext,
)
from shipyard.release.publishers import PublishReceipt, Publisher, select_publisher
from shipyard.release.secrets import SigningCredentials
from shipyard.release.version import ignored_channel_hint, resolve_version

__all__ = [
    "PipelineFailure",
    "PublishPreflight",
    "PublisherFactory",
    "ReleaseOrchestrator",
    "RunReport",
    "Stage",
    "StageError",
]


class Stage(Enum):
    RESOLVING = "resolving"
    BUILDING = "building"
    AGGREGATING = "aggregating"
    VERIFYING = "verifying"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


type StageError = VersionError | CoordinatorError | StagingError | ChecksumError | PublishError

type PublisherFactory = Callable[[ResolvedVersion], Result[Publisher, PublishError]]

# Checks publish prerequisites (credentials, repository) before the build.
type PublishPreflight = Callable[[ResolvedVersion], Result[None, PublishError]]


@dataclass(frozen=True, slots=True)
class PipelineFailure:
    """Where the run stopped and why."""

    stage: Stage
    cause: StageError

    @property
    def message(self) -> str:
        if isinstance(self.cause, CoordinatorError):
            return f"{self.stage}: {self.cause.message}"
        return f"{self.stage}: {self.cause.pretty()}"

    def details(self) -> tuple[str, ...]:
        """One line per failing target when the build stage failed."""
        if isinstance(self.cause, CoordinatorError):
            return tuple(e.pretty() for e in self.cause.errors)
        return ()


@dataclass(frozen=True, slots=True)
class RunReport:
    resolved: ResolvedVersion
    manifest: ReleaseManifest
    receipt: PublishReceipt
    stages: tuple[Stage, ...]


class ChecksumStage(Protocol):
    def compute_and_verify(
        self,
        artifacts: Sequence[ArtifactRef],
        manifest_path: Path,
    ) -> Result[tuple[ChecksumEntry, ...], ChecksumError]: ...


class ReleaseOrchestrator:
    """Drives one release run from trigger to publication."""

    def __init__(
        self,
        *,
        declared_version: str,
        targets: Iterable[BuildTarget],
        builder: TargetBuilder,
        credentials: SigningCredentials,
        staging_dir: Path,
        nightly_publisher: PublisherFactory,
        release_publisher: PublisherFactory,
        console: ConsoleProtocol,
        stable_branch: str = "master",
        nightly_ref: str = "develop",
        build_timeout_seconds: float | None = None,
        verifier: ChecksumStage | None = None,
        clock: Callable[[], datetime] | None = None,
        preflight: PublishPreflight | None = None,
    ) -> None:
        self._declared_version = declared_version
        self._targets = tuple(targets)
        self._builder = builder
        self._credentials = credentials
        self._staging_dir = staging_dir
        self._nightly_publisher = nightly_publisher
        self._release_publisher = release_publisher
        self._console = console
        self._stable_branch = stable_branch
        self._nightly_ref = nightly_ref
        self._build_timeout = build_timeout_seconds
        self._verifier: ChecksumStage = verifier or ChecksumVerifier(console=console)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._preflight = preflight

        self.stage = Stage.RESOLVING
        self.history: list[Stage] = []
        self.jobs: dict[BuildTarget, BuildJob] = {}

    def run(self, trigger: TriggerContext) -> Result[RunReport, PipelineFailure]:
        if self.history:
            raise RuntimeError("a ReleaseOrchestrator runs exactly once")

        self._enter(Stage.RESOLVING)
        resolved = resolve_version(
            trigger,
            self._declared_version,
            stable_branch=self._stable_branch,
            nightly_ref=self._nightly_ref,
            now=self._clock(),
        )
        if isinstance(resolved, Err):
            return self._fail(resolved.error)
        release = resolved.value
        self._console.info(
            f"{release.channel} {release.version} from {release.source_ref} ({trigger.kind})"
        )
        ignored = ignored_channel_hint(trigger)
        if ignored is not None:
            self._console.warning(ignored)
        if self._preflight is not None:
            ready = self._preflight(release)
            if isinstance(ready, Err):
                return self._fail(ready.error)

        self._enter(Stage.BUILDING)
        coordinator = BuildCoordinator(
            builder=self._builder,
            credentials=self._credentials,
            version=release.version,
            console=self._console,
            timeout_seconds=self._build_timeout,
        )
        built = coordinator.run(self._targets)
        self.jobs = coordinator.jobs
        if isinstance(built, Err):
            return self._fail(built.error)

        self._enter(Stage.AGGREGATING)
        staged = ArtifactAggregator(console=self._console).collect(built.value, self._staging_dir)
        if isinstance(staged, Err):
            return self._fail(staged.error)
        if not staged.value:
            return self._fail(
                StagingError(kind="missing", message="the builds produced no artifacts")
            )

        self._enter(Stage.VERIFYING)
        manifest_path = self._staging_dir / CHECKSUM_FILE_NAME
        checked = self._verifier.compute_and_verify(staged.value, manifest_path)
        if isinstance(checked, Err):
            return self._fail(checked.error)
        manifest = ReleaseManifest(
            version=release.version,
            channel=release.channel,
            artifacts=staged.value,
            checksums=checked.value,
            checksum_file=manifest_path,
        )
        if not manifest.all_verified:
            return self._fail(
                ChecksumError(
                    kind="missing",
                    message="checksums do not cover exactly the staged artifacts",
                )
            )

        self._enter(Stage.PUBLISHING)
        publisher = select_publisher(
            release.channel,
            nightly=lambda: self._nightly_publisher(release),
            stable=lambda: self._release_publisher(release),
        )
        if isinstance(publisher, Err):
            return self._fail(publisher.error)
        receipt = publisher.value.publish(manifest)
        if isinstance(receipt, Err):
            return self._fail(receipt.error)

        self._enter(Stage.DONE)
        return Ok(
            RunReport(
                resolved=release,
                manifest=manifest,
                receipt=receipt.value,
                stages=tuple(self.history),
            )
        )

    def _enter(self, stage: Stage) -> None:
        if stage in self.history:
            raise RuntimeError(f"stage re-entered: {stage}")
        self.stage = stage
        self.history.append(stage)
        if stage is not Stage.DONE:
            self._console.header(stage.value.capitalize())

    def _fail(self, cause: StageError) -> Err[PipelineFailure]:
        failure = PipelineFailure(stage=self.stage, cause=cause)
        self.stage = Stage.FAILED
        self.history.append(Stage.FAILED)
        return Err(failure)
