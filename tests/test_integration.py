"""
End-to-end test: the client spawns a real daemon process, lints through it
and stops it again.
"""

import asyncio
import os
import socket
import tempfile
import unittest
from pathlib import Path

from lintd.core.configs import DaemonSettings
from lintd.daemon.client import ClientResult, DaemonClient
from lintd.daemon.protocol import Command

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestDaemonProcess(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.work = Path(self.tmp.name)
        (self.work / "bad.py").write_text("x=1\n")
        (self.work / "good.py").write_text("x = 1\n")

        self.settings = DaemonSettings(
            port=_free_port(),
            connect_timeout=20.0,
            verify_timeout=5.0,
            log_file=self.work / "daemon.log",
        )
        self.client = DaemonClient(self.settings)

        # The spawned interpreter imports lintd from the project root
        self._cwd = os.getcwd()
        os.chdir(PROJECT_ROOT)

    async def asyncTearDown(self):
        if await self.client.probe_daemon():
            await self.client.handle_command(Command.STOP)
        os.chdir(self._cwd)
        self.tmp.cleanup()

    async def test_spawn_lint_stop(self):
        work = str(self.work)

        self.assertFalse(await self.client.probe_daemon())

        result = await self.client.handle_command(Command.LINT, {"files": ["bad.py"]}, work)
        self.assertEqual(result.code, 2)
        self.assertIn("bad.py:1:2: E225 missing whitespace around operator", result.message)

        result = await self.client.handle_command(Command.LINT, {"files": ["good.py"]}, work)
        self.assertEqual(result, ClientResult("", 0))

        result = await self.client.handle_command(Command.LINT, {"files": ["none/*.py"]}, work)
        self.assertEqual(result.code, 80)

        result = await self.client.handle_command(Command.RESTART)
        self.assertEqual(result, ClientResult("lintd restarting... ok.", 0))

        result = await self.client.handle_command(Command.STOP)
        self.assertEqual(result, ClientResult("lintd stopping... ok.", 0))

        # The process exits after the stop
        await asyncio.sleep(0.2)
        self.assertFalse(await self.client.probe_daemon())

        log = (self.work / "daemon.log").read_text()
        self.assertIn("Command received: lint", log)
        self.assertIn("using bundled pycodestyle module", log)


if __name__ == "__main__":
    unittest.main()
