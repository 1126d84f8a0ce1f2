"""In-memory state for the daemon - keeps linter modules warm.

Holds what would otherwise be recreated on every CLI invocation:
- collaborators: resolved linter modules keyed by origin path
- counters for the daemon's own log lines

Nothing here survives a daemon restart.
"""

import time
from typing import Any, Dict

from lintd.daemon.resolver import Cache, Collaborator, resolve_collaborator


class DaemonState:
    """
    In-memory state for daemon.

    Thread safety: This class is NOT thread-safe. The daemon uses asyncio
    which is single-threaded, so no locking is needed.
    """

    def __init__(self, linter_module: str = "pycodestyle"):
        self.linter_module = linter_module
        self.start_time = time.time()
        self.last_request_time = self.start_time

        # {origin path: Collaborator}
        self.collaborators: Cache = {}

        self.connections_handled = 0
        self.lint_requests = 0
        self.errors = 0

    def touch(self) -> None:
        """Record activity for the idle timeout."""
        self.last_request_time = time.time()

    def idle_seconds(self) -> float:
        return time.time() - self.last_request_time

    def get_collaborator(self, basedir: str, log=None) -> Collaborator:
        """Resolve the linter for basedir, reusing already loaded modules."""
        return resolve_collaborator(
            basedir,
            module_name=self.linter_module,
            cache=self.collaborators,
            log=log,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "uptime_seconds": time.time() - self.start_time,
            "connections_handled": self.connections_handled,
            "lint_requests": self.lint_requests,
            "errors": self.errors,
            "cached_linters": len(self.collaborators),
        }

    def clear_collaborators(self) -> None:
        """Forget loaded linters (useful for testing)."""
        self.collaborators.clear()
