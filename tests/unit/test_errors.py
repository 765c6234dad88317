"""Tests for folio error types."""

from __future__ import annotations

from pathlib import Path

from folio.core.errors import FilesystemError, FolioError, PipelineError, make_parse_error


class TestParseErrors:
    def test_snippet_window(self) -> None:
        error = make_parse_error("Unclosed [Chart]", "a\nb\nc\nd\ne", line=4, column=2)

        assert str(error).splitlines() == [
            "[parse] <input>:4:2",
            "   2 | b",
            "   3 | c",
            "   4 | d",
            "        ^^^",
            "   5 | e",
            "Unclosed [Chart]",
        ]

    def test_first_line(self) -> None:
        error = make_parse_error("Bad", "only", line=1, file=Path("doc.folio"))

        assert error.context.first_line == 1
        assert str(error).startswith("[parse] doc.folio:1:1\n   1 | only")


class TestHierarchy:
    def test_pipeline_error_without_context(self) -> None:
        error = PipelineError("Cannot read index.folio", stage="read")
        assert str(error) == "[read] Cannot read index.folio"
        assert error.message == "Cannot read index.folio"

    def test_filesystem_error_is_os_error(self) -> None:
        error = FilesystemError("Data directory not found: data", Path("data"))

        assert isinstance(error, OSError)
        assert isinstance(error, FolioError)
        assert str(error) == "Data directory not found: data"
        assert error.path == Path("data")
