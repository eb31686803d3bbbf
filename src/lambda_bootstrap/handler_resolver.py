"""
Handler discovery for the runtime bootstrap.

Resolves an ``entry::method`` reference against a task root. The task root,
every archive directly under it and every archive inside its ``lib/``
directory are put on the import path; the entry is then imported with the
normal import machinery and the method bound once for the process lifetime.
"""

import asyncio
import importlib
import importlib.machinery
import inspect
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union

from .constants import ARCHIVE_SUFFIXES, DEPENDENCY_DIR_NAME
from .errors import InitError, InitErrorKind, InvocationError
from .handler_protocol import HandlerReference

log = logging.getLogger(__name__)


class CallableHandler:
    """ResolvedHandler backed by a bound Python callable."""

    def __init__(self, reference: HandlerReference, func: Callable[[bytes], Any]):
        self.reference = reference
        self.func = func

    def invoke(self, payload: bytes) -> bytes:
        try:
            result = self.func(payload)
            # async def handlers and objects with an async __call__
            if inspect.isawaitable(result):
                result = asyncio.run(_await(result))
        except Exception as e:
            message = str(e) or type(e).__name__
            raise InvocationError(message) from e

        return _to_bytes(result, self.reference)

    def __repr__(self) -> str:
        return f"CallableHandler({self.reference})"


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _to_bytes(result: Any, reference: HandlerReference) -> bytes:
    if result is None:
        return b""
    if isinstance(result, (bytes, bytearray)):
        return bytes(result)
    if isinstance(result, str):
        return result.encode("utf-8")
    raise InvocationError(
        f"Handler '{reference}' returned {type(result).__name__}, expected str or bytes"
    )


def build_search_path(task_root: Union[str, Path]) -> List[Path]:
    """
    Collect the import path entries for a task root.

    The root comes first, followed by archives directly under the root and
    archives inside the dependency directory. Entries are sorted by name
    within each directory.
    """
    root = Path(task_root)
    search_path = [root]

    for child in sorted(root.iterdir()):
        if child.is_file() and child.suffix in ARCHIVE_SUFFIXES:
            search_path.append(child)

    lib_dir = root / DEPENDENCY_DIR_NAME
    if lib_dir.is_dir():
        for child in sorted(lib_dir.iterdir()):
            if child.is_file() and child.suffix in ARCHIVE_SUFFIXES:
                search_path.append(child)

    return search_path


def install_search_path(search_path: List[Path]) -> None:
    """Prepend the search path to sys.path, keeping its order."""
    for entry in reversed(search_path):
        entry_str = str(entry)
        if entry_str in sys.path:
            sys.path.remove(entry_str)
        sys.path.insert(0, entry_str)
    importlib.invalidate_caches()


def warn_on_shadowed_entry(module_name: str, search_path: List[Path]) -> None:
    """Log a configuration warning when several entries provide the same module."""
    top_level = module_name.split(".", 1)[0]
    providers = []
    for entry in search_path:
        spec = importlib.machinery.PathFinder.find_spec(top_level, [str(entry)])
        if spec is not None:
            providers.append(str(entry))

    if len(providers) > 1:
        log.warning(
            f"Module '{top_level}' is provided by {len(providers)} search path entries "
            f"({', '.join(providers)}); using the first one"
        )


def load_entry_point(entry_path: str) -> Any:
    """
    Import the longest importable module prefix and walk the remaining attributes.

    Raises:
        InitError: ENTRY_POINT_NOT_FOUND with the underlying diagnostic
    """
    parts = entry_path.split(".")
    module = None
    import_error: Optional[Exception] = None

    for split in range(len(parts), 0, -1):
        module_name = ".".join(parts[:split])
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            # Only a missing prefix means "try a shorter one"; a missing
            # dependency inside the module is a load failure.
            if e.name is not None and (
                e.name == module_name or module_name.startswith(e.name + ".")
            ):
                import_error = import_error or e
                continue
            raise InitError(
                InitErrorKind.ENTRY_POINT_NOT_FOUND,
                f"Failed to import module '{module_name}': {e}",
            ) from e
        except Exception as e:
            raise InitError(
                InitErrorKind.ENTRY_POINT_NOT_FOUND,
                f"Failed to import module '{module_name}': {type(e).__name__}: {e}",
            ) from e
        break

    if module is None:
        raise InitError(
            InitErrorKind.ENTRY_POINT_NOT_FOUND,
            f"Cannot find entry point '{entry_path}': {import_error}",
        ) from import_error

    entry: Any = module
    for attribute in parts[split:]:
        if not hasattr(entry, attribute):
            raise InitError(
                InitErrorKind.ENTRY_POINT_NOT_FOUND,
                f"'{module.__name__}' has no attribute path '{'.'.join(parts[split:])}'",
            )
        entry = getattr(entry, attribute)

    return entry


def instantiate_entry_point(entry: Any, entry_path: str) -> Any:
    """Construct class entry points once; modules and objects are used as-is."""
    if not inspect.isclass(entry):
        return entry

    try:
        return entry()
    except Exception as e:
        raise InitError(
            InitErrorKind.ENTRY_POINT_NOT_FOUND,
            f"Failed to construct '{entry_path}': {type(e).__name__}: {e}",
        ) from e


def resolve(task_root: Union[str, Path], handler_ref: str) -> CallableHandler:
    """
    Resolve a handler reference into an invocable handler.

    Args:
        task_root: Directory holding the function code
        handler_ref: Reference of the form ``entry::method``

    Returns:
        The handler bound for the process lifetime

    Raises:
        InitError: If the reference is malformed, or the entry point or
            method cannot be found
    """
    reference = HandlerReference.parse(handler_ref)

    root = Path(task_root)
    if not root.is_dir():
        raise InitError(
            InitErrorKind.ENTRY_POINT_NOT_FOUND,
            f"Task root '{root}' is not a directory",
        )

    search_path = build_search_path(root)
    log.debug(f"Handler search path: {[str(p) for p in search_path]}")
    install_search_path(search_path)
    warn_on_shadowed_entry(reference.entry_path, search_path)

    entry = load_entry_point(reference.entry_path)
    target = instantiate_entry_point(entry, reference.entry_path)

    method = getattr(target, reference.method_name, None)
    if method is None:
        raise InitError(
            InitErrorKind.METHOD_NOT_FOUND,
            f"'{reference.entry_path}' has no member '{reference.method_name}'",
        )
    if not callable(method):
        raise InitError(
            InitErrorKind.METHOD_NOT_FOUND,
            f"'{reference.method_name}' on '{reference.entry_path}' is not callable",
        )

    log.info(f"Resolved handler {reference}")
    return CallableHandler(reference, method)
