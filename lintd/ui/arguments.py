"""Translate CLI input into the lint option bag sent to the daemon.

The option bag mirrors the linter's own option names in camelCase. Flags the
CLI does not know are passed through unchanged apart from the camelCasing,
so newer linter options work without a lintd release.
"""

import os
import re
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from lintd.daemon.protocol import Command

# Commands that may be given as the first positional argument
CLI_COMMANDS = {
    Command.START.value,
    Command.STOP.value,
    Command.RESTART.value,
    Command.STATUS.value,
    Command.VERSION.value,
    Command.HELP.value,
    Command.LINT.value,
}


def resolve_argv(argv: List[str]) -> List[str]:
    """
    Map raw process arguments onto a subcommand.

    `lintd a.py` lints, `lintd -v`/`--version` prints the version and
    `lintd -h`/`--help` prints the usage text.
    """
    if not argv:
        return [Command.LINT.value]
    if argv[0] in CLI_COMMANDS:
        return argv
    if "--version" in argv or "-v" in argv:
        return [Command.VERSION.value]
    if "--help" in argv or "-h" in argv:
        return [Command.HELP.value]
    return [Command.LINT.value, *argv]


def camel_case(name: str) -> str:
    """max-line-length / max_line_length -> maxLineLength"""
    parts = [p for p in re.split(r"[-_\s]+", name.strip("-_ ")) if p]
    if not parts:
        return ""
    return parts[0][:1].lower() + parts[0][1:] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def _coerce(value: str) -> Any:
    if re.fullmatch(r"-?\d+", value):
        return int(value)
    return value


def split_extra_flags(tokens: List[str]) -> Tuple[List[str], Dict[str, Any]]:
    """
    Separate positional files from pass-through `--flag` tokens.

    `--key=value` and `--key value` set a value, `--no-key` sets False and a
    bare `--key` sets True.
    """
    files: List[str] = []
    flags: Dict[str, Any] = {}
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("--") and len(token) > 2:
            name, sep, value = token[2:].partition("=")
            if sep:
                flags[camel_case(name)] = _coerce(value)
            elif name.startswith("no-"):
                flags[camel_case(name[3:])] = False
            elif i + 1 < len(tokens) and not tokens[i + 1].startswith("-"):
                flags[camel_case(name)] = _coerce(tokens[i + 1])
                i += 1
            else:
                flags[camel_case(name)] = True
        else:
            files.append(token)
        i += 1
    return files, flags


def read_stdin() -> str:
    return sys.stdin.read()


def build_lint_arguments(
    files: Optional[List[str]] = None,
    *,
    cwd: str,
    config: Optional[str] = None,
    config_basedir: Optional[str] = None,
    stdin: bool = False,
    stdin_filename: Optional[str] = None,
    formatter: Optional[str] = None,
    quiet: bool = False,
    max_line_length: Optional[int] = None,
    select: Optional[str] = None,
    ignore: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
    stdin_reader: Callable[[], str] = read_stdin,
) -> Dict[str, Any]:
    """
    Build the lint option bag.

    A few options are preprocessed before they reach the linter:
    1. stdin input (or no files at all) becomes `code`
    2. `stdinFilename` becomes `codeFilename`
    3. `quiet` moves into `configOverrides`
    4. `config` is made absolute and renamed `configFile`
    5. `configBasedir` is made absolute
    """
    args: Dict[str, Any] = dict(extra or {})
    files = list(files or [])

    if max_line_length is not None:
        args["maxLineLength"] = max_line_length
    if select:
        args["select"] = select
    if ignore:
        args["ignore"] = ignore

    stdin = stdin or bool(args.pop("stdin", False))
    stdin_filename = stdin_filename or args.pop("stdinFilename", None)
    quiet = quiet or bool(args.pop("quiet", False))
    config = config or args.pop("config", None)
    config_basedir = config_basedir or args.get("configBasedir")
    formatter = formatter or args.get("formatter")

    if stdin or not files:
        args["code"] = stdin_reader()
        if stdin_filename:
            args["codeFilename"] = str(stdin_filename)
    else:
        args["files"] = files

    if quiet:
        args["configOverrides"] = {**(args.get("configOverrides") or {}), "quiet": True}

    if config:
        config = str(config)
        args["configFile"] = config if os.path.isabs(config) else os.path.join(cwd, config)

    if config_basedir:
        config_basedir = str(config_basedir)
        if not os.path.isabs(config_basedir):
            config_basedir = os.path.join(cwd, config_basedir)
        args["configBasedir"] = config_basedir

    args["formatter"] = formatter or "string"

    return args
