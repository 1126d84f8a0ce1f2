"""
Tests for ui/arguments.py - argv routing and lint option bag building.
"""

import unittest

from lintd.ui.arguments import build_lint_arguments, camel_case, resolve_argv, split_extra_flags


class TestResolveArgv(unittest.TestCase):

    def test_no_arguments_lints_stdin(self):
        self.assertEqual(resolve_argv([]), ["lint"])

    def test_known_commands_pass_through(self):
        for command in ("start", "stop", "restart", "status", "version", "help", "lint"):
            with self.subTest(command=command):
                self.assertEqual(resolve_argv([command]), [command])

    def test_files_are_linted(self):
        self.assertEqual(resolve_argv(["a.py", "--quiet"]), ["lint", "a.py", "--quiet"])

    def test_version_and_help_flags(self):
        self.assertEqual(resolve_argv(["-v"]), ["version"])
        self.assertEqual(resolve_argv(["a.py", "--version"]), ["version"])
        self.assertEqual(resolve_argv(["--help"]), ["help"])
        self.assertEqual(resolve_argv(["-h"]), ["help"])


class TestSplitExtraFlags(unittest.TestCase):

    def test_camel_case(self):
        self.assertEqual(camel_case("max-line-length"), "maxLineLength")
        self.assertEqual(camel_case("hang_closing"), "hangClosing")
        self.assertEqual(camel_case("quiet"), "quiet")

    def test_flag_forms(self):
        files, flags = split_extra_flags(
            ["a.py", "--hang-closing", "--indent-size=2", "--no-color", "--exclude", "build", "b.py"]
        )
        self.assertEqual(files, ["a.py", "b.py"])
        self.assertEqual(
            flags,
            {"hangClosing": True, "indentSize": 2, "color": False, "exclude": "build"},
        )

    def test_trailing_flag_is_boolean(self):
        self.assertEqual(split_extra_flags(["--statistics"]), ([], {"statistics": True}))


class TestBuildLintArguments(unittest.TestCase):

    def test_files(self):
        args = build_lint_arguments(["src/*.py"], cwd="/work", stdin_reader=self.fail)
        self.assertEqual(args, {"files": ["src/*.py"], "formatter": "string"})

    def test_no_files_reads_stdin(self):
        args = build_lint_arguments([], cwd="/work", stdin_reader=lambda: "x=1\n")
        self.assertEqual(args, {"code": "x=1\n", "formatter": "string"})

    def test_stdin_with_filename(self):
        args = build_lint_arguments(
            ["ignored.py"],
            cwd="/work",
            stdin=True,
            stdin_filename="pkg/new.py",
            stdin_reader=lambda: "x = 1\n",
        )
        self.assertEqual(args["code"], "x = 1\n")
        self.assertEqual(args["codeFilename"], "pkg/new.py")
        self.assertNotIn("files", args)

    def test_preprocessed_options(self):
        args = build_lint_arguments(
            ["a.py"],
            cwd="/work",
            config="setup.cfg",
            config_basedir="conf",
            quiet=True,
            formatter="json",
            max_line_length=100,
            select="E,W",
            ignore="E501",
            stdin_reader=self.fail,
        )
        self.assertEqual(
            args,
            {
                "files": ["a.py"],
                "configFile": "/work/setup.cfg",
                "configBasedir": "/work/conf",
                "configOverrides": {"quiet": True},
                "formatter": "json",
                "maxLineLength": 100,
                "select": "E,W",
                "ignore": "E501",
            },
        )

    def test_absolute_config_is_kept(self):
        args = build_lint_arguments(["a.py"], cwd="/work", config="/etc/setup.cfg", stdin_reader=self.fail)
        self.assertEqual(args["configFile"], "/etc/setup.cfg")

    def test_extra_flags_pass_through(self):
        files, extra = split_extra_flags(["a.py", "--quiet", "--hang-closing"])
        args = build_lint_arguments(files, cwd="/work", extra=extra, stdin_reader=self.fail)

        self.assertEqual(args["hangClosing"], True)
        self.assertEqual(args["configOverrides"], {"quiet": True})
        self.assertNotIn("quiet", args)


if __name__ == "__main__":
    unittest.main()
