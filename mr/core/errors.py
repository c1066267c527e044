"""Error codes for CLI exit status.

Every lane failure maps to one of these codes.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: User error (bad input, malformed secret)
    - 2: Environment error (missing variables, invalid release.toml)
    - 3: Build error (native toolchain failed)
    - 4: Network error (store upload rejected)
    - 5: I/O error (permissions, unreadable files)
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
