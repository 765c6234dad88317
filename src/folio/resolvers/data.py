"""
Dataset resolution.

``[data name:"rows" source:"rows.csv" /]`` loads ``rows.csv`` from the data
directory. CSV cells are converted to int or float when they parse as numbers
and to None when empty or missing; JSON files are loaded as-is.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from folio.core.errors import PipelineError

from .base import Resolver

SUPPORTED_EXTENSIONS = (".csv", ".json")


def _coerce(value: str | None) -> Any:
    if value is None or value == "":
        return None
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def read_csv(path: Path) -> list[dict[str, Any]]:
    with path.open(newline="", encoding="utf-8") as f:
        # Short rows fill missing cells with None; extra cells are dropped
        return [
            {key: _coerce(value) for key, value in row.items() if key is not None}
            for row in csv.DictReader(f)
        ]


class DataResolver(Resolver):
    name = "data"

    def get_directories(self) -> list[Path]:
        return [self.paths.data_dir]

    def resolve(self, name: str, source: str) -> Any:
        """
        Load a dataset declared in the document.

        Raises:
            PipelineError: If the source is missing, unsupported or malformed
        """
        path = Path(source)
        if not path.is_absolute():
            path = self.paths.data_dir / path

        if not path.is_file():
            raise PipelineError(f"Dataset {name!r}: source {path} not found", stage="resolve")

        suffix = path.suffix.lower()
        try:
            if suffix == ".csv":
                return read_csv(path)
            if suffix == ".json":
                return json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, TypeError, csv.Error) as e:
            raise PipelineError(f"Dataset {name!r}: cannot parse {path}: {e}", stage="resolve") from e

        raise PipelineError(
            f"Dataset {name!r}: unsupported format {suffix or '<none>'} "
            f"(supported: {', '.join(SUPPORTED_EXTENSIONS)})",
            stage="resolve",
        )
