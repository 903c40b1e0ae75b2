"""Error presentation utilities.

Centralized failure formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipyard.core.errors import ErrorCode
from shipyard.output.console import Style
from shipyard.release.errors import (
    ChecksumError,
    CoordinatorError,
    PublishError,
    StagingError,
    VersionError,
)

if TYPE_CHECKING:
    from shipyard.output.console import ConsoleProtocol
    from shipyard.release.orchestrator import PipelineFailure

__all__ = ["pipeline_exit_code", "print_pipeline_failure"]


def print_pipeline_failure(failure: PipelineFailure, console: ConsoleProtocol) -> None:
    """Print ``stage: cause``, then one line per failing build target."""
    console.error(failure.message)
    for line in failure.details():
        console.print(f"  {line}", Style.DIM)
    match failure.cause:
        case StagingError(files=files) if files and failure.cause.kind != "collision":
            console.print(f"files: {', '.join(files)}", Style.DIM)
        case ChecksumError(kind="mismatch"):
            console.print("hint: nothing was published; rebuild from a clean tree", Style.DIM)
        case _:
            pass


def pipeline_exit_code(failure: PipelineFailure) -> int:
    """Get exit code for a pipeline failure."""
    match failure.cause:
        case VersionError(kind="version_source"):
            return int(ErrorCode.ENV_ERROR)
        case VersionError():
            return int(ErrorCode.USER_ERROR)
        case CoordinatorError():
            return int(ErrorCode.BUILD_ERROR)
        case StagingError():
            return int(ErrorCode.IO_ERROR)
        case ChecksumError(kind="io"):
            return int(ErrorCode.IO_ERROR)
        case ChecksumError():
            return int(ErrorCode.VERIFY_ERROR)
        case PublishError(kind="credentials" | "assets"):
            return int(ErrorCode.ENV_ERROR)
        case PublishError():
            return int(ErrorCode.PUBLISH_ERROR)
