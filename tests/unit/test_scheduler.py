"""Tests for build serialization."""

from __future__ import annotations

import threading

from folio.scheduler import BuildRequest, BuildScheduler


class TestBuildScheduler:
    def test_runs_request(self) -> None:
        ran: list[BuildRequest] = []
        scheduler = BuildScheduler(ran.append)

        request = scheduler.submit("# A")

        assert scheduler.wait(timeout=5)
        assert ran == [request]
        assert request.source == "# A"
        assert not scheduler.busy

    def test_newest_pending_request_wins(self) -> None:
        gate = threading.Event()
        started = threading.Event()
        ran: list[str | None] = []

        def run(request: BuildRequest) -> None:
            ran.append(request.source)
            if request.sequence == 1:
                started.set()
                gate.wait(timeout=5)

        scheduler = BuildScheduler(run)
        scheduler.submit("first")
        assert started.wait(timeout=5)
        scheduler.submit("second")
        scheduler.submit("third")
        assert scheduler.busy

        gate.set()

        assert scheduler.wait(timeout=5)
        assert ran == ["first", "third"]

    def test_sequence_numbers_increase(self) -> None:
        scheduler = BuildScheduler(lambda request: None)
        first = scheduler.submit()
        scheduler.wait(timeout=5)
        second = scheduler.submit()
        scheduler.wait(timeout=5)

        assert second.sequence == first.sequence + 1

    def test_failure_does_not_stop_queue(self, caplog) -> None:
        ran: list[int] = []

        def run(request: BuildRequest) -> None:
            ran.append(request.sequence)
            if request.sequence == 1:
                raise RuntimeError("boom")

        scheduler = BuildScheduler(run)
        scheduler.submit()
        scheduler.wait(timeout=5)
        scheduler.submit()

        assert scheduler.wait(timeout=5)
        assert ran == [1, 2]
        assert "Unhandled error in build #1" in caplog.text

    def test_exclusive_is_reentrant(self) -> None:
        scheduler = BuildScheduler(lambda request: None)
        with scheduler.exclusive():
            with scheduler.exclusive():
                pass
