"""
Plugin loading for compiler post-processors and bundle transforms.

A plugin reference is one of:

- a callable (used as-is)
- ``"package.module:attribute"``
- ``"package.module"`` (uses the module's default attribute for the plugin kind)
- a path to a ``.py`` file, relative to the project input directory, with an
  optional ``:attribute`` suffix

Every reference yields a ``PluginLoadResult``; loading never raises.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from .errors import PluginLoadError

logger = logging.getLogger(__name__)

POST_PROCESSOR_ATTRIBUTE = "post_process"
TRANSFORM_ATTRIBUTE = "transform"


@dataclass(frozen=True)
class PluginLoadResult:
    """Outcome of loading one plugin reference."""

    reference: str
    plugin: Callable[..., Any] | None = None
    error: PluginLoadError | None = None

    @property
    def ok(self) -> bool:
        return self.plugin is not None


def _describe(reference: Any) -> str:
    if isinstance(reference, str):
        return reference
    return getattr(reference, "__qualname__", None) or repr(reference)


def _split_reference(reference: str) -> tuple[str, str | None]:
    # Windows drive letters ("C:\...") are not attribute separators
    target, sep, attribute = reference.rpartition(":")
    if not sep or not attribute or "/" in attribute or "\\" in attribute or len(target) <= 1:
        return reference, None
    return target, attribute


def _is_file_reference(target: str) -> bool:
    return target.endswith(".py") or target.startswith(("./", "../", "/"))


def _import_file(path: Path) -> ModuleType:
    if not path.exists():
        raise FileNotFoundError(f"Plugin file not found: {path}")
    digest = hashlib.sha256(str(path).encode()).hexdigest()[:12]
    module_name = f"_folio_plugin_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load plugin from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_plugin(reference: Any, base_dir: Path, default_attribute: str) -> PluginLoadResult:
    """
    Load a single plugin reference.

    Args:
        reference: Callable, import string or file path
        base_dir: Directory that relative file references resolve against
        default_attribute: Attribute used when the reference names a module only

    Returns:
        PluginLoadResult with either ``plugin`` or ``error`` set
    """
    name = _describe(reference)

    if callable(reference):
        return PluginLoadResult(reference=name, plugin=reference)

    if not isinstance(reference, str) or not reference.strip():
        error = PluginLoadError(f"Invalid plugin reference: {reference!r}", name)
        return PluginLoadResult(reference=name, error=error)

    target, attribute = _split_reference(reference.strip())
    try:
        if _is_file_reference(target):
            path = Path(target)
            if not path.is_absolute():
                path = base_dir / path
            module = _import_file(path.resolve())
        else:
            module = importlib.import_module(target)
    except Exception as e:
        error = PluginLoadError(f"Could not find plugin {name}: {e}", name)
        return PluginLoadResult(reference=name, error=error)

    plugin = getattr(module, attribute or default_attribute, None)
    if not callable(plugin):
        error = PluginLoadError(
            f"Plugin {name} does not expose a callable '{attribute or default_attribute}'",
            name,
        )
        return PluginLoadResult(reference=name, error=error)

    return PluginLoadResult(reference=name, plugin=plugin)


def load_plugins(
    references: Iterable[Any],
    base_dir: Path,
    default_attribute: str,
) -> list[PluginLoadResult]:
    """Load each reference in order, logging a warning for every failure."""
    results = [load_plugin(ref, base_dir, default_attribute) for ref in references]
    for result in results:
        if result.error is not None:
            logger.warning("Skipping plugin: %s", result.error)
    return results
