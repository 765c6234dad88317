"""
The folio instance: configuration, build lifecycle, watch session and
project file operations for one document project.

Lifecycle::

    IDLE --build()--> BUILDING --success--> IDLE (watch off) / WATCHING (watch on)
                      BUILDING --failure--> ERROR --> IDLE / WATCHING
    WATCHING --source change--> BUILDING
    WATCHING --stop_watching()--> IDLE

The first successful build with ``watch`` on starts the live-reload
transport and installs the watcher set; later builds leave both alone.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any, Self

from folio.core.config import FolioConfig, resolve_config
from folio.core.errors import FolioError
from folio.core.paths import Paths, build_paths
from folio.core.plugins import PluginLoadResult
from folio.events import BuildComplete, BuildFailed, BuildUpdate, N, Notifier
from folio.live import LiveReloadServer, LiveReloadTransport, WatchComposer, WatchHandle
from folio.pipeline import BuildOutput, DefaultPipeline, Pipeline
from folio.project import (
    ComponentEntry,
    DatasetEntry,
    copy_into,
    list_components,
    list_datasets,
)
from folio.resolvers import CSSResolver, ResolverRegistry, create_resolvers
from folio.scheduler import BuildRequest, BuildScheduler

logger = logging.getLogger(__name__)

TransportFactory = Callable[[FolioConfig, Paths], LiveReloadTransport]


class LifecycleState(StrEnum):
    IDLE = "idle"
    BUILDING = "building"
    WATCHING = "watching"
    ERROR = "error"


def default_transport(config: FolioConfig, paths: Paths) -> LiveReloadServer:
    """Live-reload server for the output directory, as configured."""
    return LiveReloadServer(
        paths.output_dir,
        host=config.host,
        port=config.port,
        open_browser=config.open,
        poll_interval=config.poll_interval,
    )


def create_directories(paths: Paths) -> None:
    for directory in paths.runtime_dirs():
        directory.mkdir(parents=True, exist_ok=True)


class FolioInstance:
    """
    Owns everything mutable about one project: lifecycle state, the
    live-reload transport and the active watcher set.
    """

    def __init__(
        self,
        config: FolioConfig,
        paths: Paths,
        *,
        pipeline: Pipeline | None = None,
        transport_factory: TransportFactory | None = None,
        plugin_results: Sequence[PluginLoadResult] = (),
    ):
        self._config = config
        self._paths = paths
        self._pipeline: Pipeline = pipeline or DefaultPipeline()
        self._transport_factory = transport_factory or default_transport
        self.plugin_results = tuple(plugin_results)

        self._lock = threading.RLock()
        self._state = LifecycleState.IDLE
        self._transport: LiveReloadTransport | None = None
        self._watchers: list[WatchHandle] | None = None
        self._watch_stopped = False

        self._notifier = Notifier()
        self._scheduler = BuildScheduler(self._run_build)

        create_directories(paths)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_paths(self) -> Paths:
        return self._paths

    def get_options(self) -> FolioConfig:
        return self._config

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def watching(self) -> bool:
        with self._lock:
            return self._watchers is not None

    def _set_state(self, state: LifecycleState) -> None:
        with self._lock:
            self._state = state

    def _settle(self) -> None:
        """Return to WATCHING when a session is active, IDLE otherwise."""
        with self._lock:
            self._state = (
                LifecycleState.WATCHING if self._watchers is not None else LifecycleState.IDLE
            )

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def on(self, kind: type[N], callback: Callable[[N], None]) -> Callable[[], None]:
        """Subscribe to BuildUpdate, BuildComplete or BuildFailed; returns an unsubscribe function."""
        return self._notifier.subscribe(kind, callback)

    def on_update(self, callback: Callable[[BuildOutput], None]) -> Callable[[], None]:
        return self.on(BuildUpdate, lambda n: callback(n.output))

    def on_complete(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self.on(BuildComplete, lambda n: callback())

    def on_error(self, callback: Callable[[BaseException], None]) -> Callable[[], None]:
        return self.on(BuildFailed, lambda n: callback(n.error))

    # -------------------------------------------------------------------------
    # Build lifecycle
    # -------------------------------------------------------------------------

    def build(self, source: str | None = None) -> Self:
        """
        Request a build and return immediately.

        Results arrive through notifications. While a build is running, a new
        request replaces any request still waiting, so only the newest one is
        built next.

        Args:
            source: Document source to build instead of the configured input
        """
        request = self._scheduler.submit(source)
        logger.debug("Build #%d requested", request.sequence)
        return self

    def wait(self, timeout: float | None = None) -> bool:
        """Block until all requested builds have finished. Returns False on timeout."""
        return self._scheduler.wait(timeout)

    def _run_build(self, request: BuildRequest) -> None:
        self._set_state(LifecycleState.BUILDING)
        logger.debug("Starting build #%d", request.sequence)
        started = time.perf_counter()

        try:
            # Fresh resolvers per build: components and datasets may have been added.
            resolvers = create_resolvers(self._config, self._paths)
            with self._scheduler.exclusive():
                output = self._pipeline.build(self._config, self._paths, resolvers, request.source)
            self._ensure_watching(resolvers)
        except Exception as e:
            self._fail(e)
            return

        elapsed_ms = (time.perf_counter() - started) * 1000
        if self._config.debug:
            logger.info("Build time: %.0fms", elapsed_ms)
        logger.debug("Build #%d completed", request.sequence)

        self._settle()
        self._notifier.publish(BuildUpdate(output))
        self._notifier.publish(BuildComplete())

    def _fail(self, error: BaseException) -> None:
        self._set_state(LifecycleState.ERROR)
        try:
            if self._notifier.has_subscribers(BuildFailed):
                self._notifier.publish(BuildFailed(error))
            elif isinstance(error, FolioError):
                logger.error(
                    "Build failed: %s", error, extra={"stage": getattr(error, "stage", None)}
                )
            else:
                logger.error("Build failed", exc_info=error)
        finally:
            self._settle()

    def _ensure_watching(self, resolvers: ResolverRegistry) -> None:
        with self._lock:
            if not self._config.watch or self._watchers is not None or self._watch_stopped:
                return

            transport = self._transport_factory(self._config, self._paths)
            composer = WatchComposer(
                self._paths,
                transport,
                rebuild=self.build,
                update_css=self._update_css,
                reload_delay=self._config.reload_delay,
            )
            watchers = composer.install(resolvers)
            try:
                transport.init()
            except Exception:
                for watcher in watchers:
                    watcher.close()
                raise

            self._transport = transport
            self._watchers = watchers

    def _update_css(self, css_resolver: CSSResolver) -> None:
        with self._scheduler.exclusive():
            self._pipeline.update_css(self._paths, css_resolver)

    def stop_watching(self) -> None:
        """
        End the watch session: close every watcher and exit the transport.

        A build already running still finishes; no new session is started
        afterwards.
        """
        with self._lock:
            self._watch_stopped = True
            watchers, self._watchers = self._watchers, None
            transport, self._transport = self._transport, None
            if self._state is LifecycleState.WATCHING:
                self._state = LifecycleState.IDLE

        for watcher in watchers or []:
            watcher.close()
        if transport is not None:
            transport.exit()
            logger.info("Stopped watching")

    # -------------------------------------------------------------------------
    # Project files
    # -------------------------------------------------------------------------

    def get_components_directory(self) -> list[Path]:
        """Project component directories (not guaranteed to exist)."""
        return list(self._paths.component_dirs)

    def get_components(self) -> list[ComponentEntry]:
        """Default and project components, excluding index modules."""
        return list_components([*self._paths.default_component_dirs, *self._paths.component_dirs])

    def add_component(self, path: str | Path) -> None:
        """
        Copy a component file into the project component directory,
        replacing a component with the same file name.

        Raises:
            FilesystemError: If the file cannot be read or copied
        """
        destination = copy_into(path, self._paths.component_dirs[0])
        logger.info("Added component %s", destination.name)

    def get_datasets(self) -> list[DatasetEntry]:
        """
        Files in the data directory.

        Raises:
            FilesystemError: If the data directory does not exist
        """
        return list_datasets(self._paths.data_dir)

    def add_dataset(self, path: str | Path) -> None:
        """
        Copy a dataset file into the data directory, replacing a dataset
        with the same file name.

        Raises:
            FilesystemError: If the file cannot be read or copied
        """
        destination = copy_into(path, self._paths.data_dir)
        logger.info("Added dataset %s", destination.name)


def create_instance(
    options: Mapping[str, Any] | None = None,
    /,
    *,
    pipeline: Pipeline | None = None,
    transport_factory: TransportFactory | None = None,
    **overrides: Any,
) -> FolioInstance:
    """
    Resolve configuration and create an instance.

    Creates the output, static output and temp directories.

    Args:
        options: Configuration options (all optional)
        pipeline: Build pipeline (defaults to DefaultPipeline)
        transport_factory: Builds the live-reload transport for a watch session
        **overrides: Further options, taking precedence over ``options``

    Raises:
        ConfigurationError: If the configuration is malformed
    """
    config, plugin_results = resolve_config({**(options or {}), **overrides})
    paths = build_paths(config)
    logger.debug("Reading from paths: %s", paths)
    return FolioInstance(
        config,
        paths,
        pipeline=pipeline,
        transport_factory=transport_factory,
        plugin_results=plugin_results,
    )
