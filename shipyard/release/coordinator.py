"""Concurrent build fan-out with a fail-inclusive join.

All targets start at once, one worker thread each; the workers spend their
time blocked on external toolchains. A failing target never cancels the
others: signing and notarization processes are not interruptible, so the
coordinator waits for every job and then reports all failures together.

A builder still running past the ceiling plus grace is reported as timed out
and left behind. Its thread is not killed: the pipeline moves on and fails,
but the interpreter joins the worker at exit, so the process only ends once
that builder returns. The real toolchains run under subprocess timeouts
derived from the same deadline, which bounds that wait.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.release.errors import BuildError, CoordinatorError
from shipyard.release.model import ArtifactRef, BuildJob, BuildTarget
from shipyard.release.secrets import SigningCredentials

__all__ = ["BuildCoordinator", "TargetBuilder"]

# Extra time granted past the deadline for killed processes to be reaped.
_JOIN_GRACE_SECONDS = 30.0

type BuildOutcome = Result[tuple[ArtifactRef, ...], BuildError]


class TargetBuilder(Protocol):
    def build(
        self,
        target: BuildTarget,
        credentials: SigningCredentials,
        version: str,
        *,
        deadline: float | None = None,
    ) -> BuildOutcome: ...


class BuildCoordinator:
    """Runs one build job per target concurrently and joins on all of them."""

    def __init__(
        self,
        *,
        builder: TargetBuilder,
        credentials: SigningCredentials,
        version: str,
        console: ConsoleProtocol,
        timeout_seconds: float | None = None,
        join_grace_seconds: float = _JOIN_GRACE_SECONDS,
    ) -> None:
        self._builder = builder
        self._credentials = credentials
        self._version = version
        self._console = console
        self._timeout = timeout_seconds
        self._grace = join_grace_seconds
        self.jobs: dict[BuildTarget, BuildJob] = {}

    def run(
        self, targets: Iterable[BuildTarget]
    ) -> Result[dict[BuildTarget, tuple[ArtifactRef, ...]], CoordinatorError]:
        """Build every target; succeed only if every job succeeded.

        Returns:
            Ok(artifacts by target) or Err(CoordinatorError) listing every
            BuildError, in target order.
        """
        ordered = list(dict.fromkeys(targets))
        self.jobs = {t: BuildJob(target=t) for t in ordered}
        if not ordered:
            return Ok({})

        deadline = None if self._timeout is None else time.monotonic() + self._timeout
        join_timeout = None if self._timeout is None else self._timeout + self._grace

        executor = ThreadPoolExecutor(max_workers=len(ordered), thread_name_prefix="build")
        futures: dict[BuildTarget, Future[BuildOutcome]] = {}
        try:
            for target in ordered:
                futures[target] = executor.submit(self._execute, self.jobs[target], deadline)
            _, pending = wait(futures.values(), timeout=join_timeout)
        finally:
            # Stragglers past the join timeout are not awaited here; the
            # interpreter still joins their threads at exit.
            executor.shutdown(wait=False, cancel_futures=True)

        errors: list[BuildError] = []
        for target in ordered:
            job = self.jobs[target]
            future = futures[target]
            if future in pending:
                outcome: BuildOutcome = Err(
                    BuildError(
                        platform=target.platform,
                        arch=None,
                        kind="timeout",
                        message=f"build did not finish within {self._timeout:.0f}s",
                    )
                )
            else:
                outcome = self._collect(target, future)

            if isinstance(outcome, Err):
                job.fail(outcome.error)
                errors.append(outcome.error)
                self._console.error(outcome.error.pretty())
            else:
                job.succeed(outcome.value)
                self._console.success(f"{target.platform}: {len(outcome.value)} artifact(s)")

        if errors:
            return Err(CoordinatorError(errors=tuple(errors)))
        return Ok({t: self.jobs[t].produced_artifacts for t in ordered})

    def _execute(self, job: BuildJob, deadline: float | None) -> BuildOutcome:
        job.start()
        return self._builder.build(
            job.target,
            self._credentials,
            self._version,
            deadline=deadline,
        )

    def _collect(self, target: BuildTarget, future: Future[BuildOutcome]) -> BuildOutcome:
        try:
            return future.result()
        except Exception as e:  # noqa: BLE001
            return Err(
                BuildError(
                    platform=target.platform,
                    arch=None,
                    kind="toolchain",
                    message=f"builder crashed: {type(e).__name__}: {e}",
                )
            )
