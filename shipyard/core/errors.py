"""Process exit codes.

One code per pipeline failure family so CI logs and wrappers can tell a
broken toolchain from a rejected upload without parsing messages.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: User error (bad trigger, bad arguments)
    - 2: Environment error (bad config, missing credentials)
    - 3: Build error (a platform build failed or timed out)
    - 4: Verification error (checksum mismatch or missing file)
    - 5: I/O error (staging copy failed, name collision)
    - 6: Publish error (mirror transfer or draft release failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    VERIFY_ERROR = 4
    IO_ERROR = 5
    PUBLISH_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
