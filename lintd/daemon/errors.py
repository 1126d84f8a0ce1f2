"""Error taxonomy shared by the lintd client and daemon."""

from typing import Optional


class LintdError(Exception):
    """Base class for all lintd errors."""


class DaemonConnectionError(LintdError, ConnectionError):
    """The daemon could not be reached, or the socket failed mid-exchange."""


class DecodeError(LintdError, ValueError):
    """A wire payload could not be decoded into a valid message."""


class AlreadyRunningError(LintdError):
    """A daemon spawn was attempted while a daemon is reachable."""


class InvalidArgumentError(LintdError, ValueError):
    """Programmer or usage error, e.g. a non-positive chunk size."""


class CollaboratorError(LintdError):
    """
    The linting collaborator failed.

    Carries the collaborator's message and, when it reported one, an
    integer error code that the client uses as its exit code.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
