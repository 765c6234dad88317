"""Tests for the folio instance: lifecycle, notifications and project files."""

from __future__ import annotations

import queue
import threading
import time
from pathlib import Path

import pytest

from folio import (
    BuildComplete,
    BuildUpdate,
    ConfigurationError,
    FilesystemError,
    LifecycleState,
    PipelineError,
    create_instance,
)
from folio.instance import default_transport
from folio.live import LiveReloadServer


def _record(inst) -> list[str]:
    events: list[str] = []
    inst.on_update(lambda output: events.append("update"))
    inst.on_complete(lambda: events.append("complete"))
    inst.on_error(lambda error: events.append("error"))
    return events


def _watching(project: Path, fake_pipeline, fake_transport, **options):
    return create_instance(
        input_file=str(project),
        watch=True,
        css="styles.css",
        pipeline=fake_pipeline,
        transport_factory=lambda config, paths: fake_transport,
        **options,
    )


class TestConstruction:
    def test_creates_runtime_directories(self, project: Path) -> None:
        inst = create_instance(input_file=str(project))
        paths = inst.get_paths()

        assert paths.output_dir.is_dir()
        assert paths.static_output_dir.is_dir()
        assert paths.tmp_dir.is_dir()
        assert [p.name for p in paths.output_dir.iterdir()] == ["static"]

    def test_idempotent(self, project: Path) -> None:
        create_instance(input_file=str(project))
        (project.parent / "build" / "keep.txt").write_text("x")

        inst = create_instance(input_file=str(project))

        assert (inst.get_paths().output_dir / "keep.txt").read_text() == "x"

    def test_options_and_overrides(self, project: Path) -> None:
        inst = create_instance({"input_file": str(project), "theme": "default"}, layout="blog")
        options = inst.get_options()

        assert options.theme == "default"
        assert options.layout == "blog"

    def test_malformed_configuration(self, project: Path) -> None:
        with pytest.raises(ConfigurationError):
            create_instance(input_file=str(project), minify="sometimes")

    def test_plugin_results_kept(self, project: Path) -> None:
        inst = create_instance(input_file=str(project), transform=["folio_no_such_module"])

        assert inst.get_options().transform == ()
        assert [r.ok for r in inst.plugin_results] == [False]


class TestProjectFiles:
    def test_no_component_directories(self, project: Path) -> None:
        inst = create_instance(
            input_file=str(project), components="missing", default_components="also-missing"
        )
        assert inst.get_components() == []

    def test_add_component(self, project: Path, tmp_path: Path) -> None:
        source = tmp_path / "line-chart.js"
        source.write_text("module.exports = 1;")
        inst = create_instance(input_file=str(project), components="widgets")

        inst.add_component(source)

        component_dir = inst.get_components_directory()[0]
        entry = next(c for c in inst.get_components() if c.name == "line-chart")
        assert entry.path == component_dir / "line-chart.js"
        assert component_dir == project.parent.resolve() / "widgets"

    def test_add_component_replaces(self, project: Path, tmp_path: Path) -> None:
        inst = create_instance(input_file=str(project))
        source = tmp_path / "button.js"
        source.write_text("v1")
        inst.add_component(source)
        source.write_text("v2")
        inst.add_component(source)

        assert (inst.get_components_directory()[0] / "button.js").read_text() == "v2"

    def test_components_include_defaults_not_index(self, project: Path) -> None:
        names = [c.name for c in create_instance(input_file=str(project)).get_components()]

        assert "button" in names
        assert "index" not in names

    def test_add_missing_component(self, project: Path, tmp_path: Path) -> None:
        inst = create_instance(input_file=str(project))
        with pytest.raises(FilesystemError):
            inst.add_component(tmp_path / "nope.js")

    def test_add_dataset(self, project: Path, tmp_path: Path) -> None:
        source = tmp_path / "sales.json"
        source.write_text("[]")
        inst = create_instance(input_file=str(project))

        inst.add_dataset(source)

        data_dir = inst.get_paths().data_dir
        entry = next(d for d in inst.get_datasets() if d.name == "sales.json")
        assert entry.path == data_dir / "sales.json"
        assert entry.extension == ".json"

    def test_missing_data_directory(self, project: Path) -> None:
        inst = create_instance(input_file=str(project), datasets="nowhere")
        with pytest.raises(FilesystemError, match="Data directory not found"):
            inst.get_datasets()


class TestBuild:
    def test_update_then_complete(self, project: Path, fake_pipeline) -> None:
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)
        events = _record(inst)

        assert inst.build() is inst
        assert inst.wait(timeout=5)

        assert events == ["update", "complete"]
        assert inst.state is LifecycleState.IDLE

    def test_building_state(self, project: Path, fake_pipeline) -> None:
        fake_pipeline.gate = threading.Event()
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)

        inst.build()
        assert fake_pipeline.started.wait(timeout=5)
        assert inst.state is LifecycleState.BUILDING

        fake_pipeline.gate.set()
        assert inst.wait(timeout=5)
        assert inst.state is LifecycleState.IDLE

    def test_update_payload(self, project: Path, fake_pipeline) -> None:
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)
        updates: list[BuildUpdate] = []
        inst.on(BuildUpdate, updates.append)

        inst.build("# Override").wait(timeout=5)

        assert fake_pipeline.sources == ["# Override"]
        assert updates[0].output.html_path == inst.get_paths().html_output_file

    def test_unsubscribe(self, project: Path, fake_pipeline) -> None:
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)
        seen: list[BuildComplete] = []
        unsubscribe = inst.on(BuildComplete, seen.append)
        unsubscribe()

        inst.build().wait(timeout=5)

        assert seen == []

    def test_error_notification(self, project: Path, fake_pipeline) -> None:
        fake_pipeline.error = PipelineError("bad tag", stage="parse")
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)
        errors: list[BaseException] = []
        events = _record(inst)
        inst.on_error(errors.append)

        inst.build().wait(timeout=5)

        assert events == ["error"]
        assert errors == [fake_pipeline.error]
        assert inst.state is LifecycleState.IDLE

    def test_error_logged_without_listener(self, project: Path, fake_pipeline, caplog) -> None:
        fake_pipeline.error = PipelineError("bad tag", stage="parse")
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)

        inst.build().wait(timeout=5)

        assert "Build failed: [parse] bad tag" in caplog.text

    def test_recovers_after_error(self, project: Path, fake_pipeline) -> None:
        fake_pipeline.error = PipelineError("bad tag", stage="parse")
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)
        events = _record(inst)
        inst.build().wait(timeout=5)

        fake_pipeline.error = None
        inst.build().wait(timeout=5)

        assert events == ["error", "update", "complete"]

    def test_unknown_theme_fails_build(self, project: Path, fake_pipeline) -> None:
        inst = create_instance(input_file=str(project), theme="neon", pipeline=fake_pipeline)
        errors: list[BaseException] = []
        inst.on_error(errors.append)

        inst.build().wait(timeout=5)

        assert isinstance(errors[0], ConfigurationError)
        assert fake_pipeline.sources == []

    def test_overlapping_builds_keep_latest(self, project: Path, fake_pipeline) -> None:
        fake_pipeline.gate = threading.Event()
        inst = create_instance(input_file=str(project), pipeline=fake_pipeline)

        inst.build("# One")
        assert fake_pipeline.started.wait(timeout=5)
        inst.build("# Two")
        inst.build("# Three")
        fake_pipeline.gate.set()

        assert inst.wait(timeout=5)
        assert fake_pipeline.sources == ["# One", "# Three"]

    def test_overlapping_builds_on_disk(self, project: Path) -> None:
        inst = create_instance(input_file=str(project))
        errors: list[BaseException] = []
        inst.on_error(errors.append)

        inst.build("# One")
        inst.build("# Two")
        assert inst.wait(timeout=10)

        paths = inst.get_paths()
        assert errors == []
        assert "<h1>Two</h1>" in paths.html_output_file.read_text()
        assert '"Two"' in paths.ast_file.read_text()

    def test_input_string_scenario(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        inst = create_instance({"watch": False, "output": "build", "input_string": "# Title"})
        events = _record(inst)

        inst.build().wait(timeout=10)

        build_dir = tmp_path.resolve() / "build"
        assert events == ["update", "complete"]
        assert "<h1>Title</h1>" in (build_dir / "index.html").read_text()
        assert (build_dir / "static" / "folio_index.js").is_file()


class TestWatchSession:
    def test_first_build_starts_session(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        events = _record(inst)

        inst.build().wait(timeout=5)

        assert events == ["update", "complete"]
        assert inst.state is LifecycleState.WATCHING
        assert inst.watching
        assert fake_transport.init_calls == 1
        assert len(fake_transport.handles) == 6

    def test_later_builds_leave_session_alone(
        self, project: Path, fake_pipeline, fake_transport
    ) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)
        inst.build().wait(timeout=5)

        assert fake_transport.init_calls == 1
        assert len(fake_transport.handles) == 6

    def test_no_session_without_watch(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = create_instance(
            input_file=str(project),
            pipeline=fake_pipeline,
            transport_factory=lambda config, paths: fake_transport,
        )
        inst.build().wait(timeout=5)

        assert fake_transport.init_calls == 0
        assert not inst.watching

    def test_no_session_after_failed_build(
        self, project: Path, fake_pipeline, fake_transport
    ) -> None:
        fake_pipeline.error = PipelineError("bad tag", stage="parse")
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.on_error(lambda error: None)

        inst.build().wait(timeout=5)

        assert fake_transport.init_calls == 0
        assert inst.state is LifecycleState.IDLE

    def test_stylesheet_change(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)
        events = _record(inst)

        stylesheet = next(
            h for h in fake_transport.handles if h.paths == (inst.get_paths().css_input_file,)
        )
        stylesheet.fire()
        inst.wait(timeout=5)

        assert fake_pipeline.css_updates == 1
        assert fake_transport.reloads == ["folio_styles.css"]
        assert events == []

    def test_input_change_rebuilds(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)
        events = _record(inst)

        fake_transport.handles[0].fire(inst.get_paths().input_file)
        assert inst.wait(timeout=5)

        assert events == ["update", "complete"]
        assert inst.state is LifecycleState.WATCHING

    def test_error_while_watching(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)
        fake_pipeline.error = PipelineError("bad tag", stage="parse")
        inst.on_error(lambda error: None)

        inst.build().wait(timeout=5)

        assert inst.state is LifecycleState.WATCHING

    def test_stop_watching(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)

        inst.stop_watching()

        assert all(h.closed for h in fake_transport.handles)
        assert fake_transport.exit_calls == 1
        assert inst.state is LifecycleState.IDLE
        assert not inst.watching

    def test_no_session_after_stop(self, project: Path, fake_pipeline, fake_transport) -> None:
        inst = _watching(project, fake_pipeline, fake_transport)
        inst.build().wait(timeout=5)
        inst.stop_watching()

        inst.build().wait(timeout=5)

        assert fake_transport.init_calls == 1
        assert inst.state is LifecycleState.IDLE

    def test_stop_without_session(self, project: Path, fake_transport) -> None:
        inst = create_instance(
            input_file=str(project), transport_factory=lambda config, paths: fake_transport
        )
        inst.stop_watching()
        assert fake_transport.exit_calls == 0

    def test_transport_failure(self, project: Path, fake_pipeline, fake_transport) -> None:
        fake_transport.fail_init = True
        inst = _watching(project, fake_pipeline, fake_transport)
        errors: list[BaseException] = []
        inst.on_error(errors.append)

        inst.build().wait(timeout=5)

        assert isinstance(errors[0], OSError)
        assert all(h.closed for h in fake_transport.handles)
        assert not inst.watching
        assert inst.state is LifecycleState.IDLE


def _wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


def _next_message(client: queue.Queue, wanted: str, timeout: float = 5.0) -> None:
    # The bundle watcher also sends full reloads; skip past them
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise AssertionError(f"{wanted!r} never broadcast")
        try:
            if client.get(timeout=remaining) == wanted:
                return
        except queue.Empty:
            continue


class TestLiveSession:
    """Watch sessions against the real server and file watchers."""

    def test_edits_while_watching(self, project: Path) -> None:
        styles = project.parent / "styles.css"
        styles.write_text("h1 { color: red; }")
        servers: list[LiveReloadServer] = []

        def transport(config, paths):
            server = default_transport(config, paths)
            servers.append(server)
            return server

        inst = create_instance(
            input_file=str(project),
            watch=True,
            css="styles.css",
            port=0,
            open=False,
            poll_interval=0.02,
            reload_delay=0.05,
            transport_factory=transport,
        )
        try:
            assert inst.build().wait(timeout=10)
            (server,) = servers
            assert server.running
            client = server.register_client()
            events = _record(inst)

            styles.write_text("h1 { color: rebeccapurple; }")
            _next_message(client, "css:folio_styles.css")
            assert "rebeccapurple" in inst.get_paths().css_output_file.read_text()
            assert events == []

            project.write_text(project.read_text() + "\nOne more paragraph.\n")
            _wait_until(lambda: "complete" in events)
            assert inst.wait(timeout=5)
            assert events == ["update", "complete"]
            assert "One more paragraph." in inst.get_paths().html_output_file.read_text()
        finally:
            inst.stop_watching()

        assert not server.running
        assert not inst.watching
        events.clear()
        project.write_text(project.read_text() + "\nAfter stopping.\n")
        time.sleep(0.3)
        assert events == []
