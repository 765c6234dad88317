"""Shared pytest fixtures for folio tests."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from folio.core.config import FolioConfig
from folio.core.paths import Paths
from folio.pipeline import BuildOutput
from folio.resolvers import CSSResolver, ResolverRegistry

SAMPLE_DOCUMENT = """\
# Sample

Some **bold** text with a [Display value:count /].

[var name:"count" value:3 /]
[data name:"rows" source:"rows.csv" /]

[Button]
Click me
[/Button]
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal folio project; returns the path of its input document."""
    (tmp_path / "components").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "static").mkdir()
    (tmp_path / "data" / "rows.csv").write_text("x,y\n1,2.5\n2,\n")
    (tmp_path / "static" / "logo.txt").write_text("logo")
    input_file = tmp_path / "index.folio"
    input_file.write_text(SAMPLE_DOCUMENT)
    return input_file


@dataclass
class FakeHandle:
    paths: tuple[Path, ...]
    callback: Callable[[Path], None]
    options: dict[str, Any]
    closed: bool = False

    def close(self) -> None:
        self.closed = True

    def fire(self, path: Path | None = None) -> None:
        self.callback(path or self.paths[0])


@dataclass
class FakeTransport:
    """Records every watch session operation instead of serving anything."""

    fail_init: bool = False
    handles: list[FakeHandle] = field(default_factory=list)
    reloads: list[str | None] = field(default_factory=list)
    init_calls: int = 0
    exit_calls: int = 0

    def watch(self, paths, callback, *, ignore_initial=True, stability_threshold=None):
        handle = FakeHandle(
            tuple(paths),
            callback,
            {"ignore_initial": ignore_initial, "stability_threshold": stability_threshold},
        )
        self.handles.append(handle)
        return handle

    def reload(self, target: str | None = None) -> None:
        self.reloads.append(target)

    def init(self) -> None:
        self.init_calls += 1
        if self.fail_init:
            raise OSError("address already in use")

    def exit(self) -> None:
        self.exit_calls += 1


class FakePipeline:
    """
    Pipeline double: records requested sources, optionally blocks until
    released, and fails while ``error`` is set.
    """

    def __init__(self) -> None:
        self.sources: list[str | None] = []
        self.css_updates = 0
        self.error: BaseException | None = None
        self.gate: threading.Event | None = None
        self.started = threading.Event()

    def build(
        self,
        config: FolioConfig,
        paths: Paths,
        resolvers: ResolverRegistry,
        source: str | None = None,
    ) -> BuildOutput:
        self.sources.append(source)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return BuildOutput(
            ast=[],
            components=[],
            data={},
            css="",
            html="<html></html>",
            js_path=paths.js_output_file,
            css_path=paths.css_output_file,
            html_path=paths.html_output_file,
            source_digest=str(len(self.sources)),
        )

    def update_css(self, paths: Paths, css_resolver: CSSResolver) -> None:
        self.css_updates += 1


@pytest.fixture
def fake_pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(autouse=True)
def reset_folio_logger():
    """Undo setup_logging() so caplog sees folio records in every test."""
    yield

    logger = logging.getLogger("folio")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
