"""Error codes for CLI exit status.

Every release error kind is classified into one of these codes at the
invocation boundary, so scripts and CI jobs can branch on the outcome.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success (including no-op runs)
    - 1: User error (invalid options, non-monotonic version override)
    - 2: Environment error (gh missing, not authenticated)
    - 4: Network error (retries exhausted, remote API failure)
    - 5: I/O error (config file unreadable)
    - 6: Conflict (remote state changed underneath the run)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    NETWORK_ERROR = 4
    IO_ERROR = 5
    CONFLICT = 6
