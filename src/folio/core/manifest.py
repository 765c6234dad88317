"""
Project manifest (folio.toml) loading.

The manifest holds a nested ``[folio]`` table with the same keys as
``FolioConfig``; it sits between explicit caller options and the defaults.

Example folio.toml::

    [folio]
    layout = "blog"
    theme = "default"
    alias = { Chart = "vega-chart" }

    [folio.compiler]
    post_processors = ["./plugins/toc.py"]
    context = "./context.js"
"""

import tomllib
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

MANIFEST_FILENAME = "folio.toml"

# Keys the manifest may not set: they decide where the manifest lives.
_LOCATION_KEYS = frozenset({"input_file"})


def load_manifest_config(path: Path) -> dict[str, Any]:
    """
    Read the nested folio configuration from a manifest file.

    Args:
        path: Path to folio.toml

    Returns:
        The ``[folio]`` table, or an empty dict when the file or table is absent

    Raises:
        ConfigurationError: If the file is not valid TOML or the table is malformed
    """
    if not path.exists():
        return {}

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid manifest {path}: {e}") from e

    section = data.get("folio", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[folio] in {path} must be a table")

    return {key: value for key, value in section.items() if key not in _LOCATION_KEYS}
