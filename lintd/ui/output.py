"""
UI output management with color-coded terminal output.

Lint output is always printed verbatim so it stays machine readable; only
lintd's own status messages are colored, and only on a terminal.
"""

import sys
from typing import Optional, TextIO

from lintd.daemon.client import LINT_ERRORED_CODE, ClientResult


TEXT_COLOR_MAPPING = {
    "blue": "36;1",
    "yellow": "33;1",
    "green": "32;1",
    "red": "31;1",
}


def get_colored_text(text: str, color: str) -> str:
    """
    Get colored text.

    Raises:
        ValueError: If the specified color is not supported
    """
    if color not in TEXT_COLOR_MAPPING:
        raise ValueError(
            f"Unsupported color: {color}. Available colors: {', '.join(TEXT_COLOR_MAPPING.keys())}"
        )

    color_str = TEXT_COLOR_MAPPING[color]
    return f"\u001b[{color_str}m{text}\u001b[0m"


class UIManager:
    """Prints command results for the lintd CLI."""

    def __init__(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

    def success(self, message: str) -> None:
        """Print success message in green."""
        self._print_colored(message, "green", self.stdout)

    def error(self, message: str) -> None:
        """Print error message in red, on stderr."""
        self._print_colored(message, "red", self.stderr)

    def plain(self, message: str) -> None:
        if message:
            print(message, file=self.stdout)

    def report(self, result: ClientResult, is_lint: bool = False) -> None:
        """Print a ClientResult the way its command expects."""
        if is_lint and result.code in (0, LINT_ERRORED_CODE):
            self.plain(result.message)
        elif result.code == 0:
            self.success(result.message)
        else:
            self.error(result.message)

    def _print_colored(self, text: str, color: str, file: TextIO) -> None:
        if not text:
            return
        if file.isatty():
            text = get_colored_text(text, color)
        print(text, file=file)
        file.flush()
