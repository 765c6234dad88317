"""folio version lookup."""

import tomllib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path

_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _source_version() -> str | None:
    # Only trust a pyproject.toml that describes this package (source checkouts).
    try:
        project = tomllib.loads(_PYPROJECT.read_text(encoding="utf-8")).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return None
    if project.get("name") != "folio":
        return None
    return project.get("version")


def get_version() -> str:
    """Version of the source checkout, else of the installed distribution."""
    found = _source_version()
    if found:
        return found
    try:
        return _metadata_version("folio")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()
