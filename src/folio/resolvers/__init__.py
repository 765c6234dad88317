"""
Resolver registry.

A build gets a fresh registry holding exactly three resolvers: components,
css and data. If any of them fails to construct, the build fails; there is
no partial registry.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from folio.core.config import FolioConfig
from folio.core.paths import Paths

from .base import Resolver
from .components import ComponentResolver, ResolvedComponent
from .css import CSSResolver
from .data import DataResolver


class ResolverRegistry(Mapping[str, Resolver]):
    """Read-only mapping of resolver name to resolver, in fixed order."""

    def __init__(self, components: ComponentResolver, css: CSSResolver, data: DataResolver):
        self.components = components
        self.css = css
        self.data = data
        self._resolvers: dict[str, Resolver] = {
            ComponentResolver.name: components,
            CSSResolver.name: css,
            DataResolver.name: data,
        }

    def __getitem__(self, name: str) -> Resolver:
        return self._resolvers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)


def create_resolvers(config: FolioConfig, paths: Paths) -> ResolverRegistry:
    """Construct the resolver registry for one build."""
    return ResolverRegistry(
        components=ComponentResolver(config, paths),
        css=CSSResolver(config, paths),
        data=DataResolver(config, paths),
    )


__all__ = [
    "CSSResolver",
    "ComponentResolver",
    "DataResolver",
    "ResolvedComponent",
    "Resolver",
    "ResolverRegistry",
    "create_resolvers",
]
