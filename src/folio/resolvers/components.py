"""
Component resolution.

Component tags in a document name a module in one of the component
directories. ``LineChart`` matches, in order of preference, ``LineChart``,
``line-chart``, ``line_chart`` and ``linechart`` with a ``.js``, ``.jsx`` or
``.mjs`` extension, or a directory of that name holding an ``index`` module.
Project directories win over the default component set; ``alias`` entries
redirect a tag to another name or to a file relative to the input directory.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from folio.core.config import FolioConfig
from folio.core.errors import ConfigurationError, PipelineError
from folio.core.paths import Paths

from .base import Resolver

COMPONENT_EXTENSIONS = (".js", ".jsx", ".mjs")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class ResolvedComponent(BaseModel):
    """A component tag bound to its module file."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path


def _name_variants(name: str) -> list[str]:
    words = [w for w in re.split(r"[-_\s]+", _CAMEL_BOUNDARY.sub("-", name)) if w]
    kebab = "-".join(w.lower() for w in words)
    variants = [name, kebab, kebab.replace("-", "_"), kebab.replace("-", "")]
    return list(dict.fromkeys(v for v in variants if v))


class ComponentResolver(Resolver):
    name = "components"

    def __init__(self, config: FolioConfig, paths: Paths):
        super().__init__(config, paths)
        for key, target in config.alias.items():
            if not key.strip() or not target.strip():
                raise ConfigurationError(f"Invalid component alias: {key!r} -> {target!r}")
        self._alias = dict(config.alias)
        self._directories = [*paths.component_dirs, *paths.default_component_dirs]

    def get_directories(self) -> list[Path]:
        return list(self._directories)

    def _alias_path(self, target: str) -> Path | None:
        if "/" not in target and not target.endswith(COMPONENT_EXTENSIONS):
            return None
        path = Path(target)
        if not path.is_absolute():
            path = self.paths.input_dir / path
        return path.resolve()

    def _find(self, name: str) -> Path | None:
        for directory in self._directories:
            if not directory.is_dir():
                continue
            for variant in _name_variants(name):
                for ext in COMPONENT_EXTENSIONS:
                    candidate = directory / f"{variant}{ext}"
                    if candidate.is_file():
                        return candidate
                for ext in COMPONENT_EXTENSIONS:
                    candidate = directory / variant / f"index{ext}"
                    if candidate.is_file():
                        return candidate
        return None

    def resolve(self, name: str) -> ResolvedComponent:
        """
        Find the module for a component tag.

        Raises:
            PipelineError: If no component directory provides the tag
        """
        target = self._alias.get(name, name)

        alias_path = self._alias_path(target)
        if alias_path is not None:
            if not alias_path.is_file():
                raise PipelineError(
                    f"Component alias {name!r} points to missing file {alias_path}",
                    stage="resolve",
                )
            return ResolvedComponent(name=name, path=alias_path)

        found = self._find(target)
        if found is None:
            searched = ", ".join(str(d) for d in self._directories)
            raise PipelineError(
                f"Could not find component {name!r} (searched: {searched})",
                stage="resolve",
            )
        return ResolvedComponent(name=name, path=found)
