"""Async TCP server for the lintd daemon.

This module implements the long-running daemon process that:
1. Listens on a loopback TCP port for one-shot client connections
2. Keeps resolved linter modules loaded between requests
3. Answers stop/restart control commands

Usage:
    python -m lintd.daemon.server [--host HOST] [--port PORT] [--idle-timeout SECONDS]

    Or use the CLI:
    lintd start
"""

import asyncio
import logging
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

from lintd.core.configs import DaemonSettings, get_daemon_settings
from lintd.daemon.connection import Connection
from lintd.daemon.errors import CollaboratorError, DecodeError, LintdError
from lintd.daemon.protocol import (
    GENERIC_ERROR_CODE,
    Command,
    control_response,
    error_response,
    lint_response,
    parse_request,
)
from lintd.daemon.resolver import Collaborator, resolve_basedir
from lintd.daemon.state import DaemonState

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class DaemonEvent(str, Enum):
    LOG = "log"
    STOP = "stop"
    RESTART = "restart"


class DaemonStatus(str, Enum):
    LISTENING = "listening"
    HANDLING_CONNECTION = "handling_connection"
    STOPPING = "stopping"
    RESTARTING = "restarting"
    STOPPED = "stopped"


EventCallback = Callable[[Optional[Dict[str, Any]]], None]
Resolver = Callable[[str, Callable[[str], None]], Collaborator]


class DaemonServer:
    """
    Owns the single listening socket and dispatches client commands.

    Each accepted connection is handled in its own task and carries exactly
    one request and one response. A failing connection never closes the
    listener.
    """

    def __init__(
        self,
        settings: Optional[DaemonSettings] = None,
        state: Optional[DaemonState] = None,
        resolver: Optional[Resolver] = None,
    ):
        """
        Initialize daemon server.

        Args:
            settings: Address, chunk size and idle timeout
            state: Warm linter cache (created from settings if omitted)
            resolver: Maps a resolution directory to a Collaborator
        """
        self.settings = settings or get_daemon_settings()
        self.state = state or DaemonState(self.settings.linter_module)
        self._resolver: Resolver = resolver or self.state.get_collaborator

        self.server: Optional[asyncio.Server] = None
        self.status = DaemonStatus.LISTENING
        self.port = self.settings.port

        self._listeners: Dict[DaemonEvent, EventCallback] = {}
        self._active_connections = 0
        self._idle_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: DaemonEvent, callback: EventCallback) -> None:
        """Register the callback for an event, replacing any previous one."""
        if not isinstance(event, DaemonEvent):
            raise TypeError(f"Unknown daemon event: {event!r}")
        self._listeners[event] = callback

    def emit(self, event: DaemonEvent, payload: Optional[Dict[str, Any]] = None) -> None:
        callback = self._listeners.get(event)
        if callback is not None:
            callback(payload)

    def _log(self, message: str, error: Optional[BaseException] = None) -> None:
        payload: Dict[str, Any] = {"message": message}
        if error is not None:
            payload["error"] = error
        self.emit(DaemonEvent.LOG, payload)

    # ------------------------------------------------------------------
    # Listener lifecycle
    # ------------------------------------------------------------------

    async def _create_instance(self) -> asyncio.Server:
        # asyncio stream servers keep the transport open after the peer's
        # EOF, so the response can follow the client's half-close
        server = await asyncio.start_server(
            self.handle_connection,
            host=self.settings.host,
            port=self.port,
        )
        # Port 0 binds an ephemeral port; keep it across restarts
        self.port = server.sockets[0].getsockname()[1]
        return server

    async def start(self) -> None:
        """
        Bind the listening socket.

        Raises:
            OSError: If the address is already taken, e.g. by another daemon
        """
        self.server = await self._create_instance()
        self.status = DaemonStatus.LISTENING

        if self.settings.idle_timeout > 0:
            self._idle_task = asyncio.create_task(self._idle_watcher())

        logger.info(f"Daemon listening on {self.settings.host}:{self.port}")

    def end(self, stopping: bool = False) -> None:
        """
        Close the current listening socket.

        Args:
            stopping: The daemon is shutting down; fires the stop event
        """
        if self.server is not None:
            self.server.close()

        if stopping:
            self.status = DaemonStatus.STOPPED
            if self._idle_task is not None:
                self._idle_task.cancel()
                self._idle_task = None
            self.emit(DaemonEvent.STOP)

    async def restart(self) -> None:
        """
        Replace the listening socket in place. The process keeps running.

        If the new socket cannot be bound the daemon stops, since nothing
        could reach it anymore.
        """
        self.status = DaemonStatus.RESTARTING
        self.end()
        try:
            self.server = await self._create_instance()
        except OSError as e:
            self.server = None
            self._log(f"Could not rebind {self.settings.host}:{self.port}: {e}", error=e)
            self.end(stopping=True)
            return

        self.status = DaemonStatus.LISTENING if not self._active_connections else DaemonStatus.HANDLING_CONNECTION

        self.emit(DaemonEvent.RESTART)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """
        Handle a single client connection.

        Any error escaping the command handlers is logged and, if the client
        can still be answered, reported as a generic server error.
        """
        connection = Connection.accept(reader, writer, chunk_size=self.settings.chunk_size)

        self._active_connections += 1
        if self.status is DaemonStatus.LISTENING:
            self.status = DaemonStatus.HANDLING_CONNECTION
        self.state.connections_handled += 1
        self.state.touch()

        try:
            await self.process_connection(connection)
        except Exception as e:
            self.state.errors += 1
            self._log(str(e), error=e)

            if connection.writable:
                try:
                    await connection.send(error_response(f"A server error occurred: {e}"))
                except LintdError as send_error:
                    self._log(f"Could not send error response: {send_error}", error=send_error)
        finally:
            await connection.close()
            self._active_connections -= 1
            if self.status is DaemonStatus.HANDLING_CONNECTION and not self._active_connections:
                self.status = DaemonStatus.LISTENING

    async def process_connection(self, connection: Connection) -> None:
        """Read one request and dispatch it on its command."""
        try:
            data = await connection.receive()
            if data is None:
                # Empty request, e.g. a reachability probe
                return
            request = parse_request(data)
        except DecodeError as e:
            self._log(str(e), error=e)
            if connection.writable:
                await connection.send(error_response("Invalid client JSON"))
            return

        command: Command = request["command"]
        self._log(f"Command received: {command.value}")

        if command is Command.STOP:
            self.status = DaemonStatus.STOPPING
            await connection.send(control_response(command, "lintd stopping..."))
            self.end(stopping=True)
            return

        if command is Command.RESTART:
            await connection.send(control_response(command, "lintd restarting..."))
            await self.restart()
            return

        if command is Command.TEST:
            await connection.send(control_response(command, "lintd test command received"))
            return

        if command is Command.TEST_FAIL:
            raise RuntimeError("An expected test failure occurred")

        await self._handle_lint(connection, request)

    async def _handle_lint(self, connection: Connection, request: Dict[str, Any]) -> None:
        """
        Handle 'lint' command - resolve the linter and run it.

        Linter failures become error responses carrying the linter's code.
        """
        self.state.lint_requests += 1

        cwd = request["cwd"]
        lint_arguments = request.get("lintArguments") or {}

        basedir = resolve_basedir(cwd, lint_arguments)
        collaborator = self._resolver(basedir, self._log)

        try:
            result = await collaborator.invoke(lint_arguments, cwd=cwd)
        except CollaboratorError as e:
            code = e.code
            if isinstance(code, bool) or not isinstance(code, int):
                code = GENERIC_ERROR_CODE
            await connection.send(error_response(e.message, command=Command.LINT, code=code))
            return

        await connection.send(lint_response(result.output, result.errored))

    async def _idle_watcher(self) -> None:
        """Stop the daemon once it has been idle for idle_timeout seconds."""
        interval = min(60.0, self.settings.idle_timeout)
        while self.status is not DaemonStatus.STOPPED:
            await asyncio.sleep(interval)

            idle_time = self.state.idle_seconds()
            if self._active_connections == 0 and idle_time > self.settings.idle_timeout:
                logger.info(
                    f"Idle timeout reached ({idle_time:.0f}s > {self.settings.idle_timeout:.0f}s), "
                    "shutting down"
                )
                self._idle_task = None
                self.end(stopping=True)
                break


# ============================================================================
# Process wrapper
# ============================================================================

def configure_logging(log_file: Optional[Path]) -> None:
    """Send daemon logs to log_file, or stderr when None."""
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        filename=str(log_file) if log_file is not None else None,
    )


def _log_event(payload: Optional[Dict[str, Any]]) -> None:
    payload = payload or {}
    error = payload.get("error")
    if error is not None:
        logger.error(payload.get("message", str(error)))
    else:
        logger.info(payload.get("message", ""))


async def serve(server: DaemonServer) -> None:
    """Run the daemon until a stop command or a termination signal."""
    shutdown = asyncio.Event()

    server.on(DaemonEvent.LOG, _log_event)
    server.on(DaemonEvent.STOP, lambda _: shutdown.set())
    server.on(DaemonEvent.RESTART, lambda _: logger.info("Daemon restarted"))

    await server.start()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, server.end, True)

    await shutdown.wait()
    logger.info("Daemon stopped")


def run_daemon(settings: Optional[DaemonSettings] = None, log_to_file: bool = True) -> None:
    """
    Run the daemon server in the current process.

    Exits with status 1 if the address cannot be bound, which is how a
    second daemon spawned concurrently gives way to the first.
    """
    settings = settings or get_daemon_settings()
    configure_logging(settings.log_file if log_to_file else None)

    logger.info("Starting lintd daemon...")
    server = DaemonServer(settings=settings)

    try:
        asyncio.run(serve(server))
    except OSError as e:
        logger.error(f"Could not bind {settings.host}:{settings.port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="lintd daemon server")
    parser.add_argument("--host", help="Loopback host to bind")
    parser.add_argument("--port", type=int, help="TCP port to bind")
    parser.add_argument(
        "--idle-timeout",
        type=float,
        help="Shutdown after this many seconds idle (0 = never)",
    )
    parser.add_argument("--log-file", help="Path of the daemon log file")
    parser.add_argument(
        "--foreground",
        action="store_true",
        help="Log to stderr instead of the log file",
    )

    args = parser.parse_args()

    daemon_settings = get_daemon_settings()
    if args.host:
        daemon_settings.host = args.host
    if args.port is not None:
        daemon_settings.port = args.port
    if args.idle_timeout is not None:
        daemon_settings.idle_timeout = args.idle_timeout
    if args.log_file:
        daemon_settings.log_file = Path(args.log_file).expanduser()

    run_daemon(daemon_settings, log_to_file=not args.foreground)
