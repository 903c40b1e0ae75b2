"""Checksums commands - SHA256SUMS.txt outside of a pipeline run."""

from __future__ import annotations

from pathlib import Path

import typer

from shipyard.cli.commands._helpers import exit_on_error, exit_with_code
from shipyard.cli.context import build_context
from shipyard.core.errors import ErrorCode
from shipyard.output.console import Style
from shipyard.release.checksums import CHECKSUM_FILE_NAME, compute_checksums, verify_checksums
from shipyard.release.model import ArtifactRef

checksums_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _artifacts_in(directory: Path) -> list[ArtifactRef]:
    return [
        ArtifactRef(file_name=p.name, source_path=p, size_bytes=p.stat().st_size)
        for p in sorted(directory.iterdir())
        if p.is_file() and p.name != CHECKSUM_FILE_NAME and not p.name.startswith(".")
    ]


@checksums_app.command("compute")
def compute(
    directory: Path = typer.Argument(..., help="Directory holding the artifacts"),
) -> None:
    """Write SHA256SUMS.txt for every file in DIRECTORY."""
    ctx = build_context()
    if not directory.is_dir():
        ctx.console.error(f"not a directory: {directory}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    artifacts = _artifacts_in(directory)
    if not artifacts:
        ctx.console.error(f"no files to checksum in {directory}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    entries = exit_on_error(
        compute_checksums(artifacts, directory / CHECKSUM_FILE_NAME),
        ctx,
        ErrorCode.IO_ERROR,
    )
    for entry in entries:
        ctx.console.print(f"{entry.digest}  {entry.file_name}", Style.DIM)
    ctx.console.success(f"wrote {CHECKSUM_FILE_NAME} ({len(entries)} entries)")


@checksums_app.command("verify")
def verify(
    directory: Path = typer.Argument(..., help="Directory holding SHA256SUMS.txt"),
    complete: bool = typer.Option(
        False, "--complete", help="Also fail when a file in DIRECTORY is not listed"
    ),
) -> None:
    """Re-hash every file SHA256SUMS.txt lists and compare."""
    ctx = build_context()
    expected = [a.file_name for a in _artifacts_in(directory)] if complete else None
    entries = exit_on_error(
        verify_checksums(directory / CHECKSUM_FILE_NAME, directory, expected=expected),
        ctx,
        ErrorCode.VERIFY_ERROR,
    )
    ctx.console.success(f"{len(entries)} checksum(s) verified")
