"""
Watch composition.

Decides which paths are watched during a watch session and what each change
does:

- the input document, the static directory and every resolver directory
  trigger a full rebuild
- the script bundle written by the pipeline triggers a passive browser
  reload once it has stopped changing for ``reload_delay`` seconds
- the project stylesheet re-assembles the CSS and refreshes only the
  stylesheet in the browser
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

from folio.core.paths import Paths
from folio.resolvers import CSSResolver, ResolverRegistry

logger = logging.getLogger(__name__)


class WatchHandle(Protocol):
    def close(self) -> None: ...


class LiveReloadTransport(Protocol):
    """The four operations a watch session needs from the live-reload channel."""

    def watch(
        self,
        paths: Iterable[Path],
        callback: Callable[[Path], None],
        *,
        ignore_initial: bool = True,
        stability_threshold: float | None = None,
    ) -> WatchHandle: ...

    def reload(self, target: str | None = None) -> None: ...

    def init(self) -> None: ...

    def exit(self) -> None: ...


class Reaction(StrEnum):
    REBUILD = "rebuild"
    RELOAD = "reload"
    CSS = "css"


@dataclass(frozen=True)
class WatchBinding:
    """One watched path set and what its changes do."""

    source: str
    paths: tuple[Path, ...]
    reaction: Reaction
    ignore_initial: bool = True
    stability_threshold: float | None = None


class WatchComposer:
    """Builds and installs the watcher set for one watch session."""

    def __init__(
        self,
        paths: Paths,
        transport: LiveReloadTransport,
        *,
        rebuild: Callable[[], Any],
        update_css: Callable[[CSSResolver], None],
        reload_delay: float = 0.5,
    ):
        self.paths = paths
        self.transport = transport
        self._rebuild = rebuild
        self._update_css = update_css
        self.reload_delay = reload_delay

    def bindings(self, resolvers: ResolverRegistry) -> list[WatchBinding]:
        """Plan the watcher set; unset paths and empty directory lists are skipped."""
        paths = self.paths
        planned: list[WatchBinding] = []

        if paths.input_file is not None:
            planned.append(WatchBinding("input", (paths.input_file,), Reaction.REBUILD))

        planned.append(
            WatchBinding(
                "bundle",
                (paths.js_output_file,),
                Reaction.RELOAD,
                ignore_initial=False,
                stability_threshold=self.reload_delay,
            )
        )

        if paths.css_input_file is not None:
            planned.append(WatchBinding("stylesheet", (paths.css_input_file,), Reaction.CSS))

        planned.append(WatchBinding("static", (paths.static_dir,), Reaction.REBUILD))

        for name, resolver in resolvers.items():
            directories = tuple(resolver.get_directories())
            if directories:
                planned.append(WatchBinding(f"resolver:{name}", directories, Reaction.REBUILD))

        return planned

    def install(self, resolvers: ResolverRegistry) -> list[WatchHandle]:
        """Create one watcher per binding, all bound to ``self.transport``."""
        css_resolver = resolvers.css
        handles = []
        for binding in self.bindings(resolvers):
            callback = self._reaction(binding, css_resolver)
            handles.append(
                self.transport.watch(
                    binding.paths,
                    callback,
                    ignore_initial=binding.ignore_initial,
                    stability_threshold=binding.stability_threshold,
                )
            )
            logger.debug("Watching %s (%s): %s", binding.source, binding.reaction, binding.paths)
        logger.info("Watching %d path set(s) for changes", len(handles))
        return handles

    def _reaction(self, binding: WatchBinding, css_resolver: CSSResolver) -> Callable[[Path], None]:
        if binding.reaction is Reaction.RELOAD:
            return lambda path: self.transport.reload()
        if binding.reaction is Reaction.CSS:
            return lambda path: self._on_stylesheet_change(path, css_resolver)
        return self._on_source_change

    def _on_source_change(self, path: Path) -> None:
        logger.info("File changed: %s", path.name)
        self._rebuild()

    def _on_stylesheet_change(self, path: Path, css_resolver: CSSResolver) -> None:
        logger.info("Stylesheet changed: %s", path.name)
        try:
            self._update_css(css_resolver)
        except Exception:
            logger.exception("Could not update stylesheet")
            return
        self.transport.reload(self.paths.css_output_file.name)
