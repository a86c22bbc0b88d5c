"""Module importer for path routing.

Dynamically imports route and middleware files and invokes the factory
each of them exports.
"""

import hashlib
import importlib.util
import re
import sys
from collections.abc import Callable
from pathlib import Path
from types import ModuleType
from typing import Any

from fastapi_routify.exceptions import ModuleContractError, ModuleLoadError

# Name of the callable every route and middleware file must export
FACTORY_ATTRIBUTE = "factory"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def _path_to_module_name(file_path: Path) -> str:
    """Convert a file path to a deterministic module name.

    Route filenames and directories ("^auth", "$id", "1.get.py") aren't
    valid identifiers, so the name combines a digest of the full path with
    a sanitized stem to stay unique and readable in tracebacks.

    Examples:
        /routes/owners/$id/get.py -> "_routify_3f2a9c1d0b7e_get"
        /routes/^auth/1.get.py -> "_routify_8d1c4b2e6a90_1_get"
    """
    digest = hashlib.sha1(str(file_path).encode("utf-8")).hexdigest()[:12]
    stem = _UNSAFE_CHARS.sub("_", file_path.stem)
    return f"_routify_{digest}_{stem}"


def _import_module_from_file(file_path: Path, module_name: str) -> ModuleType:
    """Low-level module import from file path.

    Handles spec creation, sys.modules registration, and error cleanup.

    Raises:
        ModuleLoadError: If spec creation fails or module execution fails.
    """
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(f"Cannot create module spec for: {file_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module

    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        del sys.modules[module_name]
        raise ModuleLoadError(
            f"Failed to import module: {file_path}\nError: {type(exc).__name__}: {exc}"
        ) from exc

    return module


def import_module_from_file(file_path: Path | str) -> ModuleType:
    """Import a route or middleware file as a Python module.

    A file is executed once per process; later calls return the module
    registered in sys.modules.

    Args:
        file_path: Path to the .py file.

    Returns:
        The imported module.

    Raises:
        ModuleLoadError: If the file doesn't exist or fails to import.
    """
    resolved_path = Path(file_path).resolve()

    if not resolved_path.is_file():
        raise ModuleLoadError(f"Module file does not exist: {resolved_path}")

    module_name = _path_to_module_name(resolved_path)

    if module_name in sys.modules:
        return sys.modules[module_name]

    return _import_module_from_file(resolved_path, module_name)


def load_factory(file_path: Path | str) -> Callable[..., Any]:
    """Import a file and return its factory.

    Raises:
        ModuleLoadError: If the module fails to import.
        ModuleContractError: If the module exports no callable factory.
    """
    module = import_module_from_file(file_path)
    factory = getattr(module, FACTORY_ATTRIBUTE, None)

    if factory is None:
        raise ModuleContractError(
            f"Missing '{FACTORY_ATTRIBUTE}' in {file_path}\n"
            f"  Hint: define 'def {FACTORY_ATTRIBUTE}(app, middlewares, route_middleware): ...'"
        )
    if not callable(factory):
        raise ModuleContractError(
            f"'{FACTORY_ATTRIBUTE}' in {file_path} must be callable, "
            f"got {type(factory).__name__}"
        )

    return factory


def normalize_handlers(result: Any, *, source: str = "") -> list[Callable[..., Any]]:
    """Normalize a factory's return value to a list of callables.

    Accepts: single callable, list, or tuple of callables.

    Args:
        result: The value returned by a factory.
        source: Context for error messages (e.g., the file path).

    Raises:
        ModuleContractError: If result is not a callable or a non-empty
            list/tuple of callables.
    """
    prefix = f"{source}: " if source else ""

    if callable(result) and not isinstance(result, (list, tuple)):
        return [result]

    if isinstance(result, (list, tuple)):
        if not result:
            raise ModuleContractError(f"{prefix}factory returned an empty {type(result).__name__}")
        for i, item in enumerate(result):
            if not callable(item):
                raise ModuleContractError(
                    f"{prefix}factory returned a non-callable at index {i} "
                    f"({type(item).__name__})"
                )
        return list(result)

    raise ModuleContractError(
        f"{prefix}factory returned {type(result).__name__}, "
        f"expected a callable or a list of callables"
    )


def invoke_factory(file_path: Path | str, *args: Any) -> list[Callable[..., Any]]:
    """Load a file's factory, call it with args and normalize the result.

    Raises:
        ModuleLoadError: If the module fails to import or the factory raises.
        ModuleContractError: If the factory is missing or returns an invalid
            value.
    """
    factory = load_factory(file_path)

    try:
        result = factory(*args)
    except Exception as exc:
        raise ModuleLoadError(
            f"Factory raised in {file_path}\nError: {type(exc).__name__}: {exc}"
        ) from exc

    return normalize_handlers(result, source=str(file_path))
