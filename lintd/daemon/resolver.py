"""Locate the linting collaborator for a lint request.

The daemon prefers the linter installed in the linted project's own
virtualenv, found by walking up from a directory derived from the request,
and falls back to the copy importable by the daemon itself.
"""

import glob
import importlib
import importlib.machinery
import importlib.util
import inspect
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, List, Optional

from lintd.daemon.errors import CollaboratorError

logger = logging.getLogger(__name__)

VENV_DIR_NAMES = (".venv", "venv", "env")


@dataclass
class LintResult:
    output: str
    errored: bool


@dataclass
class Collaborator:
    """A resolved linter module plus where it came from."""

    name: str
    module: ModuleType
    origin: str
    local: bool

    async def invoke(self, arguments: Dict[str, Any], cwd: str = "") -> LintResult:
        """
        Run the linter on the option bag.

        Modules exposing their own `lint(arguments)` (sync or async) are
        called directly; pycodestyle-compatible modules go through the
        bundled adapter.

        Raises:
            CollaboratorError: If the linter fails for any reason
        """
        try:
            lint_fn = getattr(self.module, "lint", None)
            if callable(lint_fn):
                result = lint_fn(arguments)
            else:
                from lintd.linters import pycodestyle_linter

                result = pycodestyle_linter.lint(self.module, arguments, cwd=cwd)

            if inspect.isawaitable(result):
                result = await result
        except CollaboratorError:
            raise
        except Exception as e:
            code = getattr(e, "code", None)
            raise CollaboratorError(str(e), code=code if isinstance(code, int) else None) from e

        return _to_result(result)


def _to_result(result: Any) -> LintResult:
    if isinstance(result, LintResult):
        return result
    if isinstance(result, dict):
        output, errored = result.get("output"), result.get("errored")
    else:
        output, errored = getattr(result, "output", None), getattr(result, "errored", None)
    if output is None:
        output = ""
    return LintResult(output=str(output), errored=bool(errored))


# ============================================================================
# Resolution directory
# ============================================================================

def _first_file(lint_arguments: Dict[str, Any]) -> Optional[str]:
    files = lint_arguments.get("files")
    if isinstance(files, str):
        files = [files]
    if files:
        return str(files[0])
    if lint_arguments.get("code") is not None and lint_arguments.get("codeFilename"):
        return str(lint_arguments["codeFilename"])
    return None


def resolve_basedir(cwd: str, lint_arguments: Dict[str, Any]) -> str:
    """
    Pick the directory from which the linter module is resolved.

    Order: the config file's directory; the directory of the first match of a
    glob (the client cwd when nothing matches); the directory of the first
    file, made absolute against the client cwd; the client cwd.

    A glob spanning several directories resolves from whichever match sorts
    first, which may not be the directory whose config the user expects.
    """
    config_file = lint_arguments.get("configFile")
    if config_file:
        return os.path.dirname(os.path.join(cwd, str(config_file)))

    first = _first_file(lint_arguments)
    if first is None:
        return cwd

    if glob.has_magic(first):
        pattern = first if os.path.isabs(first) else os.path.join(cwd, first)
        matches = sorted(glob.glob(pattern, recursive=True))
        if not matches:
            return cwd
        return os.path.dirname(os.path.abspath(matches[0]))

    if os.path.isabs(first):
        return os.path.dirname(first)

    return os.path.dirname(os.path.abspath(os.path.join(cwd, first)))


# ============================================================================
# Module lookup
# ============================================================================

def site_packages_dirs(directory: Path) -> List[str]:
    """site-packages directories of virtualenvs living directly in `directory`."""
    found: List[str] = []
    for name in VENV_DIR_NAMES:
        venv = directory / name
        if not (venv / "pyvenv.cfg").is_file():
            continue
        found.extend(sorted(str(p) for p in venv.glob("lib/python*/site-packages")))
        windows = venv / "Lib" / "site-packages"
        if windows.is_dir():
            found.append(str(windows))
    return found


def find_local_spec(module_name: str, basedir: str) -> Optional[importlib.machinery.ModuleSpec]:
    """Walk from basedir to the filesystem root looking for the module in a venv."""
    directory = Path(basedir).resolve()
    for candidate in (directory, *directory.parents):
        paths = site_packages_dirs(candidate)
        if not paths:
            continue
        spec = importlib.machinery.PathFinder.find_spec(module_name, paths)
        if spec is not None and spec.origin:
            return spec
    return None


def load_isolated(module_name: str, spec: importlib.machinery.ModuleSpec) -> ModuleType:
    """
    Execute a module from its spec without registering it in sys.modules
    under its public name, so it never shadows the daemon's own copy.

    A source package is loaded under the private name as well, so relative
    imports of its submodules resolve inside the venv copy. Absolute imports
    of its own public name still reach whatever the daemon has installed.
    """
    private_name = f"_lintd_local_{module_name.replace('.', '_')}_{abs(hash(spec.origin))}"

    if spec.submodule_search_locations is not None and isinstance(
        spec.loader, importlib.machinery.SourceFileLoader
    ):
        spec = importlib.util.spec_from_file_location(
            private_name,
            spec.origin,
            submodule_search_locations=list(spec.submodule_search_locations),
        )

    module = importlib.util.module_from_spec(spec)
    sys.modules[private_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(private_name, None)
        raise
    return module


Cache = Dict[str, Collaborator]
Log = Callable[[str], None]


def resolve_collaborator(
    basedir: str,
    module_name: str = "pycodestyle",
    cache: Optional[Cache] = None,
    log: Optional[Log] = None,
) -> Collaborator:
    """
    Resolve the linter module starting from basedir.

    Falls back to the module importable by the daemon when basedir has no
    virtualenv providing it, or when loading the local copy fails.

    Raises:
        ModuleNotFoundError: If the bundled module is not installed either
    """
    cache = cache if cache is not None else {}
    log = log or logger.info

    try:
        spec = find_local_spec(module_name, basedir)
    except (ImportError, OSError, ValueError) as e:
        logger.debug(f"Local lookup of {module_name} failed: {e}")
        spec = None

    if spec is not None:
        cached = cache.get(spec.origin)
        if cached is None:
            try:
                cached = Collaborator(
                    name=module_name,
                    module=load_isolated(module_name, spec),
                    origin=spec.origin,
                    local=True,
                )
            except Exception as e:
                log(f"Could not load {module_name} from {spec.origin}: {e}")
                cached = None
            else:
                cache[spec.origin] = cached
        if cached is not None:
            log(f"Resolved {module_name} in folder {basedir}")
            return cached

    module = importlib.import_module(module_name)
    origin = getattr(module, "__file__", None) or module_name
    bundled = cache.get(origin)
    if bundled is None:
        bundled = Collaborator(name=module_name, module=module, origin=origin, local=False)
        cache[origin] = bundled

    log(f"Could not resolve {module_name} in {basedir}, using bundled {module_name} module")
    return bundled
