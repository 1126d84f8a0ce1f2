"""Bundled linting collaborator built on pycodestyle.

The daemon hands this adapter the pycodestyle module it resolved (either from
the linted project's virtualenv or its own environment) together with the
option bag sent by the client.

Supported option bag keys:
    files           list of files, directories or glob patterns
    code            source text to lint instead of files
    codeFilename    name reported for `code`
    configFile      pycodestyle config file (setup.cfg, tox.ini, ...)
    maxLineLength   int
    select, ignore  list or comma separated string of error codes
    formatter       "string" (default) or "json"
    configOverrides {"quiet": bool} - report the count only
"""

import glob
import json
import os
from types import ModuleType
from typing import Any, Dict, List, Tuple

from lintd.daemon.errors import CollaboratorError

# Exit code when no file matches the given patterns
NO_FILES_CODE = 80


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def expand_files(patterns: List[str], cwd: str) -> List[str]:
    """
    Expand glob patterns relative to cwd; plain paths are kept when they exist.

    Raises:
        CollaboratorError: If nothing matches
    """
    paths: List[str] = []
    for pattern in patterns:
        absolute = pattern if os.path.isabs(pattern) else os.path.join(cwd, pattern)
        if glob.has_magic(pattern):
            paths.extend(sorted(glob.glob(absolute, recursive=True)))
        elif os.path.exists(absolute):
            paths.append(absolute)

    if not paths:
        raise CollaboratorError(
            f"No files matching the pattern \"{' '.join(patterns)}\" were found.",
            code=NO_FILES_CODE,
        )
    return paths


def _build_style_guide(module: ModuleType, arguments: Dict[str, Any]) -> Tuple[Any, Any]:
    warnings: List[Dict[str, Any]] = []

    class CollectingReport(module.BaseReport):
        """Collect warnings instead of printing them."""

        def error(self, line_number, offset, text, check):
            code = super().error(line_number, offset, text, check)
            if code:
                warnings.append({
                    "source": self.filename,
                    "line": self.line_offset + line_number,
                    "column": offset + 1,
                    "rule": code,
                    "text": text[5:] if text[:4] == code else text,
                })
            return code

    options: Dict[str, Any] = {"reporter": CollectingReport}
    if arguments.get("configFile"):
        options["config_file"] = arguments["configFile"]
    if arguments.get("maxLineLength") is not None:
        try:
            options["max_line_length"] = int(arguments["maxLineLength"])
        except (TypeError, ValueError):
            raise CollaboratorError(
                f"Invalid maxLineLength: {arguments['maxLineLength']!r}", code=64
            ) from None
    if arguments.get("select"):
        options["select"] = _as_list(arguments["select"])
    if arguments.get("ignore"):
        options["ignore"] = _as_list(arguments["ignore"])

    return module.StyleGuide(**options), warnings


def _format(warnings: List[Dict[str, Any]], formatter: str, quiet: bool, total: int) -> str:
    if formatter == "json":
        return json.dumps(warnings)
    if quiet:
        return f"{total} problem{'s' if total != 1 else ''}" if total else ""
    return "\n".join(
        f"{w['source']}:{w['line']}:{w['column']}: {w['rule']} {w['text']}" for w in warnings
    )


def lint(module: ModuleType, arguments: Dict[str, Any], cwd: str = "") -> Dict[str, Any]:
    """
    Lint files or code with the given pycodestyle module.

    Returns:
        {"output": str, "errored": bool}

    Raises:
        CollaboratorError: On bad options or when no files match
    """
    formatter = arguments.get("formatter") or "string"
    if formatter not in ("string", "json"):
        raise CollaboratorError(f"Unknown formatter: {formatter}", code=64)

    quiet = bool((arguments.get("configOverrides") or {}).get("quiet"))
    cwd = cwd or os.getcwd()

    style, warnings = _build_style_guide(module, arguments)

    if arguments.get("code") is not None:
        filename = arguments.get("codeFilename") or "stdin"
        report = style.init_report()
        style.input_file(filename, lines=str(arguments["code"]).splitlines(True))
    else:
        files = expand_files(_as_list(arguments.get("files")), cwd)
        report = style.check_files(files)

    total = report.total_errors
    return {
        "output": _format(warnings, formatter, quiet, total),
        "errored": total > 0,
    }
