"""Main CLI entry point - every invocation is one daemon round-trip."""

import asyncio
import os
import sys
from typing import Any, Dict, List, Optional

import typer

from lintd.core.configs import get_daemon_settings, is_daemon_enabled
from lintd.daemon.client import ClientResult, DaemonClient, lint_in_process
from lintd.daemon.errors import LintdError
from lintd.daemon.protocol import GENERIC_ERROR_CODE, Command
from lintd.ui.arguments import build_lint_arguments, resolve_argv, split_extra_flags
from lintd.ui.output import UIManager

app = typer.Typer(
    add_completion=False,
    help="lintd - pycodestyle kept warm in a background daemon.",
)


# ============================================================================
# Shared execution
# ============================================================================

def exit_status(code: int) -> int:
    """
    Map a result code to a process exit status.

    Codes outside 0-255 would wrap around in the shell (256 reads as
    success), so they become the generic failure code.
    """
    if isinstance(code, bool) or not isinstance(code, int) or not 0 <= code <= 255:
        return GENERIC_ERROR_CODE
    return code


def _execute(
    command: Command,
    lint_arguments: Optional[Dict[str, Any]] = None,
    cwd: Optional[str] = None,
) -> None:
    """
    Run a command through the daemon client, print the result and exit.

    Configuration and connection errors are reported as `Error: ...` with
    exit code 1.
    """
    ui = UIManager()

    try:
        settings = get_daemon_settings()
        if command is Command.LINT and not is_daemon_enabled():
            result = asyncio.run(lint_in_process(lint_arguments or {}, cwd or os.getcwd(), settings))
        else:
            client = DaemonClient(settings)
            result = asyncio.run(client.handle_command(command, lint_arguments, cwd))
    except (LintdError, ValueError) as e:
        result = ClientResult(f"Error: {e}", 1)

    ui.report(result, is_lint=command is Command.LINT)
    raise typer.Exit(exit_status(result.code))


# ============================================================================
# Commands
# ============================================================================

@app.command(
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def lint(
    files: Optional[List[str]] = typer.Argument(None, help="Files, directories or glob patterns"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="pycodestyle config file"),
    config_basedir: Optional[str] = typer.Option(None, "--config-basedir", help="Base directory for config lookups"),
    stdin: bool = typer.Option(False, "--stdin", help="Read code from stdin"),
    stdin_filename: Optional[str] = typer.Option(None, "--stdin-filename", help="Filename reported for stdin code"),
    formatter: Optional[str] = typer.Option(None, "--formatter", "-f", help="Output format: string or json"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report the number of problems"),
    max_line_length: Optional[int] = typer.Option(None, "--max-line-length", help="Maximum allowed line length"),
    select: Optional[str] = typer.Option(None, "--select", help="Comma separated error codes to report"),
    ignore: Optional[str] = typer.Option(None, "--ignore", help="Comma separated error codes to skip"),
) -> None:
    """
    Lint files (or stdin) with the daemon's linter.

    Example: lintd "src/**/*.py" --max-line-length 100

    Exit codes: 0 clean, 1 failure, 2 violations found.
    """
    cwd = os.getcwd()
    positional, extra = split_extra_flags(files or [])

    lint_arguments = build_lint_arguments(
        positional,
        cwd=cwd,
        config=config,
        config_basedir=config_basedir,
        stdin=stdin,
        stdin_filename=stdin_filename,
        formatter=formatter,
        quiet=quiet,
        max_line_length=max_line_length,
        select=select,
        ignore=ignore,
        extra=extra,
    )
    _execute(Command.LINT, lint_arguments, cwd)


@app.command()
def start() -> None:
    """Start the lintd daemon."""
    _execute(Command.START)


@app.command()
def stop() -> None:
    """Stop the lintd daemon."""
    _execute(Command.STOP)


@app.command()
def restart() -> None:
    """Restart the lintd daemon."""
    _execute(Command.RESTART)


@app.command()
def status() -> None:
    """Report whether the daemon is running."""
    _execute(Command.STATUS)


@app.command()
def version() -> None:
    """Print the lintd version."""
    _execute(Command.VERSION)


@app.command(name="help")
def help_() -> None:
    """Print usage."""
    _execute(Command.HELP)


def run(argv: Optional[List[str]] = None) -> None:
    """Entry point for console script mapping."""
    argv = sys.argv[1:] if argv is None else argv
    app(args=resolve_argv(argv), prog_name="lintd")


if __name__ == "__main__":
    run()
