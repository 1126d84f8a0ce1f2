"""Client side of the daemon: discovery, spawning and command round-trips.

The CLI never lints by itself. It makes sure a daemon is reachable (spawning
one in the background if needed), sends a single request and turns the
daemon's response into a message and an exit code.

Usage:
    client = DaemonClient()
    result = asyncio.run(client.handle_command(Command.LINT, {"files": ["a.py"]}))
    print(result.message)
    sys.exit(result.code)
"""

import asyncio
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from lintd import __version__
from lintd.core.configs import DaemonSettings, get_daemon_settings
from lintd.daemon.connection import Connection
from lintd.daemon.errors import (
    AlreadyRunningError,
    CollaboratorError,
    DaemonConnectionError,
    DecodeError,
)
from lintd.daemon.protocol import (
    GENERIC_ERROR_CODE,
    Command,
    build_control_request,
    build_lint_request,
    error_code,
    parse_response,
)
from lintd.daemon.resolver import resolve_basedir, resolve_collaborator

# Exit code for a lint run that found violations
LINT_ERRORED_CODE = 2

INVALID_RESPONSE_MESSAGE = "Error: unexpected invalid response from daemon"

HELP_MESSAGE = """Usage: lintd command | lint options

lintd is a thin wrapper on top of pycodestyle that keeps the linter loaded in a
background daemon. Lint options are passed through to the linter.

In addition, the following commands are supported:

> lintd start

Start the lintd daemon.

> lintd stop

Stop the lintd daemon.

> lintd restart

Restart the lintd daemon.

> lintd status

Returns the status of the daemon, i.e. if it is running or not.

> lintd version

Returns the current lintd version. *Does not* return the possibly resolved linter module version.

> lintd --help

Returns this help message.
"""


@dataclass
class ClientResult:
    message: str
    code: int = 0


class DaemonClient:
    """
    Lightweight client for daemon communication.

    Every method that talks to the daemon opens a fresh Connection; a
    Connection carries one exchange only.
    """

    def __init__(self, settings: Optional[DaemonSettings] = None):
        self.settings = settings or get_daemon_settings()

    async def open_connection(self) -> Connection:
        """
        Raises:
            DaemonConnectionError: If the daemon is not reachable
        """
        return await Connection.open(
            self.settings.host,
            self.settings.port,
            chunk_size=self.settings.chunk_size,
        )

    async def probe_daemon(self) -> bool:
        """Check whether a daemon accepts connections. The probe socket is closed at once."""
        try:
            connection = await self.open_connection()
        except DaemonConnectionError:
            return False
        await connection.close()
        return True

    async def spawn_daemon(self) -> None:
        """
        Start the daemon in background. Does not wait for it to be ready.

        Raises:
            AlreadyRunningError: If a daemon is already reachable
            DaemonConnectionError: If the daemon process cannot be launched
        """
        if await self.probe_daemon():
            raise AlreadyRunningError("Daemon already running")

        try:
            subprocess.Popen(
                [
                    sys.executable,
                    "-m",
                    "lintd.daemon.server",
                    "--host",
                    self.settings.host,
                    "--port",
                    str(self.settings.port),
                    "--log-file",
                    str(self.settings.log_file),
                ],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise DaemonConnectionError(f"Could not start daemon: {e}") from e

    async def ensure_daemon_reachable(self) -> Connection:
        """
        Return an open connection, spawning the daemon if necessary.

        The daemon is spawned at most once per call; a concurrent client
        that spawned it first shows up as AlreadyRunningError, which is
        ignored. Connection attempts back off exponentially until
        connect_timeout seconds have passed (0 = retry forever).

        Raises:
            DaemonConnectionError: If no daemon became reachable in time
        """
        loop = asyncio.get_running_loop()
        timeout = self.settings.connect_timeout
        deadline = loop.time() + timeout if timeout > 0 else None
        delay = self.settings.retry_interval
        spawned = False

        while True:
            try:
                return await self.open_connection()
            except DaemonConnectionError as e:
                last_error = e

            if not spawned:
                spawned = True
                try:
                    await self.spawn_daemon()
                except AlreadyRunningError:
                    pass

            if deadline is not None and loop.time() >= deadline:
                raise DaemonConnectionError(
                    f"lintd daemon did not become reachable within {timeout:g}s"
                ) from last_error

            await asyncio.sleep(delay)
            delay = min(delay * 2, self.settings.max_retry_interval)

    async def _wait_for_reachability(self, expected: bool) -> bool:
        """Poll until the daemon's reachability matches expected or verify_timeout passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.verify_timeout

        while True:
            if await self.probe_daemon() == expected:
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(self.settings.retry_interval)

    async def run_command(self, request: Dict[str, Any]) -> ClientResult:
        """
        Send one request to the daemon and interpret its response.

        Raises:
            DaemonConnectionError: If the daemon cannot be reached, or the
                socket fails during the exchange
        """
        connection = await self.ensure_daemon_reachable()
        try:
            await connection.send(request)
            data = await connection.receive()
        except DecodeError:
            return ClientResult(INVALID_RESPONSE_MESSAGE, GENERIC_ERROR_CODE)
        finally:
            await connection.close()

        try:
            response = parse_response(data)
        except DecodeError:
            return ClientResult(INVALID_RESPONSE_MESSAGE, GENERIC_ERROR_CODE)

        if response["status"] == "error":
            return ClientResult(f"Error: {response['message']}", error_code(response))

        command = response["command"]

        if command == Command.LINT.value:
            return ClientResult(
                response["output"],
                LINT_ERRORED_CODE if response["errored"] else 0,
            )

        base_message = response["message"]

        if command == Command.STOP.value:
            if not await self._wait_for_reachability(False):
                return ClientResult(
                    f"{base_message} error, lintd daemon not stopped successfully.",
                    GENERIC_ERROR_CODE,
                )
            return ClientResult(f"{base_message} ok.")

        if command == Command.RESTART.value:
            if not await self._wait_for_reachability(True):
                return ClientResult(
                    f"{base_message} error, lintd daemon not restarted successfully.",
                    GENERIC_ERROR_CODE,
                )
            return ClientResult(f"{base_message} ok.")

        return ClientResult(base_message)

    async def handle_command(
        self,
        command: Command,
        lint_arguments: Optional[Dict[str, Any]] = None,
        cwd: Optional[str] = None,
    ) -> ClientResult:
        """
        Run a CLI command. help/status/start/version are answered locally;
        lint/stop/restart go to the daemon.
        """
        command = Command(command)

        if command is Command.HELP:
            return ClientResult(HELP_MESSAGE)

        if command is Command.VERSION:
            return ClientResult(__version__)

        if command is Command.STATUS:
            running = await self.probe_daemon()
            return ClientResult(f"lintd is{' ' if running else ' not '}running.")

        if command is Command.START:
            if await self.probe_daemon():
                return ClientResult("lintd is already running.", GENERIC_ERROR_CODE)
            try:
                await self.spawn_daemon()
            except AlreadyRunningError:
                return ClientResult("lintd is already running.", GENERIC_ERROR_CODE)
            return ClientResult("lintd started.")

        if command in (Command.STOP, Command.RESTART):
            if not await self.probe_daemon():
                return ClientResult("lintd is not running.", GENERIC_ERROR_CODE)
            return await self.run_command(build_control_request(command))

        if command is Command.LINT:
            request = build_lint_request(cwd or os.getcwd(), lint_arguments)
            return await self.run_command(request)

        return await self.run_command(build_control_request(command))


async def lint_in_process(
    lint_arguments: Dict[str, Any],
    cwd: str,
    settings: Optional[DaemonSettings] = None,
) -> ClientResult:
    """
    Lint without a daemon (LINTD_NO_DAEMON=1).

    Same resolution and exit codes as the daemon path, minus the socket.
    """
    settings = settings or get_daemon_settings()
    basedir = resolve_basedir(cwd, lint_arguments)
    collaborator = resolve_collaborator(
        basedir,
        module_name=settings.linter_module,
        log=lambda message: None,
    )

    try:
        result = await collaborator.invoke(lint_arguments, cwd=cwd)
    except CollaboratorError as e:
        code = e.code if isinstance(e.code, int) and not isinstance(e.code, bool) else GENERIC_ERROR_CODE
        return ClientResult(f"Error: {e.message}", code)

    return ClientResult(result.output, LINT_ERRORED_CODE if result.errored else 0)
