"""
Error types for folio configuration, plugins, builds and project files.

Every error raised on purpose by folio is a ``FolioError``. Build errors that
point into the document carry an ``ErrorContext`` and render like::

    [parse] index.folio:3:1
       1 | # Sales
       2 |
       3 | [Chart]
           ^^^
    Unclosed [Chart]
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

# Lines of source shown on each side of the offending line
SNIPPET_RADIUS = 2


@dataclass(frozen=True)
class ErrorContext:
    """
    Where in a document an error happened.

    Attributes:
        file: Document file, or None for a source string
        line: 1-indexed line of the error
        column: 1-indexed column of the error
        snippet: Source lines around the error, starting at ``first_line``
        first_line: Line number of the first snippet line
    """

    file: Path | None
    line: int
    column: int = 1
    snippet: str | None = None
    first_line: int = 1

    @property
    def location(self) -> str:
        return f"{self.file or '<input>'}:{self.line}:{self.column}"

    def format(self) -> str:
        """Location, followed by the numbered snippet with a caret marker."""
        if not self.snippet:
            return self.location

        rendered = [self.location]
        for number, text in enumerate(self.snippet.split("\n"), start=self.first_line):
            gutter = f"{number:4d} | "
            rendered.append(gutter + text)
            if number == self.line:
                rendered.append(" " * (len(gutter) + self.column - 1) + "^^^")
        return "\n".join(rendered)


class FolioError(Exception):
    """Base exception for all folio errors."""

    def __init__(self, message: str, context: ErrorContext | None = None):
        self.message = message
        self.context = context
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.context is None:
            return self.message
        return f"{self.context.format()}\n{self.message}"


class ConfigurationError(FolioError):
    """
    The merged configuration is unusable: a wrong option type, an unknown
    option, an unreadable folio.toml, or an unknown layout or theme.
    """


class PluginLoadError(FolioError):
    """
    A post-processor or transform plugin could not be loaded.

    Never raised out of configuration resolution; the plugin is dropped and
    the error logged.
    """

    def __init__(self, message: str, reference: str):
        self.reference = reference
        super().__init__(message)


class PipelineError(FolioError):
    """A build stage failed: "read", "parse", "resolve", "bundle" or "write"."""

    def __init__(self, message: str, stage: str, context: ErrorContext | None = None):
        self.stage = stage
        super().__init__(message, context)

    def describe(self) -> str:
        return f"[{self.stage}] {super().describe()}"


class FilesystemError(FolioError, OSError):
    """A project file or directory is missing or cannot be copied."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def make_parse_error(
    message: str,
    source: str,
    line: int,
    column: int = 1,
    file: Path | None = None,
) -> PipelineError:
    """
    Build a parse-stage PipelineError with the surrounding source attached.

    Args:
        message: What is wrong
        source: The whole document
        line: 1-indexed line of the problem
        column: 1-indexed column of the problem
        file: Document file, when it came from disk
    """
    lines = source.split("\n")
    first = max(1, line - SNIPPET_RADIUS)
    last = min(len(lines), line + SNIPPET_RADIUS)
    context = ErrorContext(
        file=file,
        line=line,
        column=column,
        snippet="\n".join(lines[first - 1 : last]),
        first_line=first,
    )
    return PipelineError(message, stage="parse", context=context)
