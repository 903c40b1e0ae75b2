"""Flat staging of every build's artifacts.

Runs after the build barrier, so it is the only writer of the staging
directory. The staged set must be exactly this run's artifacts: the nightly
mirror deletes whatever else is on the remote, and the draft release
uploads whatever is staged.
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from pathlib import Path

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.release.errors import StagingError
from shipyard.release.model import ArtifactRef, BuildTarget

__all__ = ["ArtifactAggregator"]


class ArtifactAggregator:
    def __init__(self, *, console: ConsoleProtocol) -> None:
        self._console = console

    def collect(
        self,
        artifacts_by_target: Mapping[BuildTarget, tuple[ArtifactRef, ...]],
        destination: Path,
    ) -> Result[tuple[ArtifactRef, ...], StagingError]:
        """Copy every artifact into ``destination``, keeping canonical names.

        Nothing is copied if two artifacts share a file name: that means a
        naming or versioning defect, and overwriting would ship the wrong
        file under a checksum that looks valid.

        Returns:
            Ok(staged refs sorted by file name), pointing at the copies.
        """
        owners: dict[str, list[str]] = {}
        for target, artifacts in artifacts_by_target.items():
            for artifact in artifacts:
                owners.setdefault(artifact.file_name, []).append(str(target.platform))
        collisions = sorted(name for name, who in owners.items() if len(who) > 1)
        if collisions:
            detail = ", ".join(f"{n} ({' + '.join(owners[n])})" for n in collisions)
            return Err(
                StagingError(
                    kind="collision",
                    message=f"artifact name collision: {detail}",
                    files=tuple(collisions),
                )
            )

        prepared = self._prepare(destination)
        if isinstance(prepared, Err):
            return prepared

        ordered = sorted(
            (a for artifacts in artifacts_by_target.values() for a in artifacts),
            key=lambda a: a.file_name,
        )
        staged: list[ArtifactRef] = []
        for artifact in ordered:
            copied = self._copy(artifact, destination)
            if isinstance(copied, Err):
                return copied
            staged.append(copied.value)
            self._console.print(f"staged {artifact.file_name}", Style.DIM)

        return Ok(tuple(staged))

    def _prepare(self, destination: Path) -> Result[None, StagingError]:
        try:
            destination.mkdir(parents=True, exist_ok=True)
            leftovers = sorted(p.name for p in destination.iterdir())
        except OSError as e:
            return Err(StagingError(kind="copy", message=f"cannot prepare {destination}: {e}"))
        if leftovers:
            return Err(
                StagingError(
                    kind="not_empty",
                    message=f"staging directory is not empty: {destination}",
                    files=tuple(leftovers),
                )
            )
        return Ok(None)

    def _copy(self, artifact: ArtifactRef, destination: Path) -> Result[ArtifactRef, StagingError]:
        src = artifact.source_path
        dst = destination / artifact.file_name
        if not src.is_file():
            return Err(
                StagingError(
                    kind="missing",
                    message=f"artifact vanished before staging: {src}",
                    files=(artifact.file_name,),
                )
            )
        try:
            shutil.copy2(src, dst)
            size = dst.stat().st_size
        except OSError as e:
            return Err(
                StagingError(
                    kind="copy",
                    message=f"failed to stage {artifact.file_name}: {e}",
                    files=(artifact.file_name,),
                )
            )
        if size != artifact.size_bytes:
            return Err(
                StagingError(
                    kind="size_mismatch",
                    message=(
                        f"{artifact.file_name}: staged {size} bytes, "
                        f"builder reported {artifact.size_bytes}"
                    ),
                    files=(artifact.file_name,),
                )
            )
        return Ok(ArtifactRef(file_name=artifact.file_name, source_path=dst, size_bytes=size))
