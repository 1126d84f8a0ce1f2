"""
Tests for the typer CLI in ui/cli.py.

Lint commands run in-process (LINTD_NO_DAEMON=1); daemon commands go through
a patched DaemonClient.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from lintd import __version__
from lintd.daemon.client import ClientResult
from lintd.daemon.errors import DaemonConnectionError
from lintd.ui.arguments import resolve_argv
from lintd.ui.cli import app, exit_status

NO_DAEMON = {"LINTD_NO_DAEMON": "1"}


class TestCli(unittest.TestCase):
    """Test cases for the lintd command line."""

    def setUp(self):
        self.runner = CliRunner()
        self.work = Path(tempfile.mkdtemp())
        (self.work / "bad.py").write_text("x=1\n")
        self._cwd = os.getcwd()
        os.chdir(self.work)

    def tearDown(self):
        os.chdir(self._cwd)
        shutil.rmtree(self.work, ignore_errors=True)

    def invoke(self, argv, **kwargs):
        return self.runner.invoke(app, resolve_argv(argv), **kwargs)

    def test_version(self):
        result = self.invoke(["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_help_command(self):
        result = self.invoke(["help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("lintd start", result.output)

    def test_lint_stdin_in_process(self):
        result = self.invoke(["--stdin", "--stdin-filename", "snippet.py"], input="x=1\n", env=NO_DAEMON)

        self.assertEqual(result.exit_code, 2)
        self.assertIn("snippet.py:1:2: E225", result.output)

    def test_lint_clean_stdin(self):
        result = self.invoke([], input="x = 1\n", env=NO_DAEMON)
        self.assertEqual(result.exit_code, 0)

    def test_lint_files_with_passthrough_flag(self):
        result = self.invoke(["bad.py", "--ignore", "E225"], env=NO_DAEMON)
        self.assertEqual(result.exit_code, 0)

        result = self.invoke(["bad.py", "--formatter", "json"], env=NO_DAEMON)
        self.assertEqual(result.exit_code, 2)
        self.assertIn('"rule": "E225"', result.output)

    def test_lint_no_files_exit_code(self):
        result = self.invoke(["missing/*.py"], env=NO_DAEMON)
        self.assertEqual(result.exit_code, 80)
        self.assertIn("No files matching the pattern", result.output)

    def test_status_through_client(self):
        with patch(
            "lintd.ui.cli.DaemonClient.handle_command",
            new=AsyncMock(return_value=ClientResult("lintd is not running.")),
        ):
            result = self.invoke(["status"])

        self.assertEqual(result.exit_code, 0)
        self.assertIn("lintd is not running.", result.output)

    def test_connection_error_exits_1(self):
        with patch(
            "lintd.ui.cli.DaemonClient.handle_command",
            new=AsyncMock(side_effect=DaemonConnectionError("lintd daemon did not become reachable within 10s")),
        ):
            result = self.invoke(["a.py"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: lintd daemon did not become reachable within 10s", result.output)

    def test_out_of_range_codes_exit_1(self):
        """Linter codes the shell cannot represent never read as success."""
        for code in (256, 512, -3):
            with self.subTest(code=code):
                with patch(
                    "lintd.ui.cli.DaemonClient.handle_command",
                    new=AsyncMock(return_value=ClientResult("Error: boom", code)),
                ):
                    result = self.invoke(["a.py"])

                self.assertEqual(result.exit_code, 1)
                self.assertIn("Error: boom", result.output)

    def test_exit_status(self):
        self.assertEqual(exit_status(0), 0)
        self.assertEqual(exit_status(2), 2)
        self.assertEqual(exit_status(123), 123)
        self.assertEqual(exit_status(255), 255)
        self.assertEqual(exit_status(256), 1)
        self.assertEqual(exit_status(-1), 1)

    def test_invalid_configuration_exits_1(self):
        result = self.invoke(["status"], env={"LINTD_PORT": "not-a-port"})
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: Invalid integer for 'port'", result.output)


if __name__ == "__main__":
    unittest.main()
