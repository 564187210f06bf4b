"""Error codes for CLI exit status.

Every command maps its failure to one of these codes so that CI logs and
shell scripts can tell a broken toolchain from a broken network.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable.
    - 0: Success
    - 1: User error (bad input, transition called out of order)
    - 2: Environment error (missing tools, missing system libraries, no gh auth)
    - 3: Build error (compilation failed, target query failed)
    - 4: Network error (tool download, release create/upload/publish)
    - 5: I/O error (missing or malformed artifact)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
