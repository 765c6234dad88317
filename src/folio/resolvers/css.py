"""
Stylesheet assembly.

The stylesheet is the bundled layout CSS, then the bundled theme CSS, then
the project's own stylesheet (``css`` option), concatenated in that order.
"""

from __future__ import annotations

import logging
from pathlib import Path

from folio.core.config import PACKAGE_DIR, FolioConfig
from folio.core.errors import ConfigurationError, PipelineError
from folio.core.paths import Paths

from .base import Resolver

logger = logging.getLogger(__name__)

STYLES_DIR = PACKAGE_DIR / "styles"

NO_STYLE = "none"


def available_styles(kind: str) -> list[str]:
    """Names of the bundled layouts or themes (``kind`` is "layouts" or "themes")."""
    return sorted(p.stem for p in (STYLES_DIR / kind).glob("*.css")) + [NO_STYLE]


def _style_file(kind: str, name: str) -> Path | None:
    if name == NO_STYLE:
        return None
    path = STYLES_DIR / kind / f"{name}.css"
    if not path.is_file():
        choices = ", ".join(available_styles(kind))
        raise ConfigurationError(f"Unknown {kind[:-1]} {name!r} (choose from: {choices})")
    return path


class CSSResolver(Resolver):
    name = "css"

    def __init__(self, config: FolioConfig, paths: Paths):
        super().__init__(config, paths)
        self._layout = _style_file("layouts", config.layout)
        self._theme = _style_file("themes", config.theme)

    def get_directories(self) -> list[Path]:
        # The project stylesheet is watched on its own, not as a directory.
        return []

    def resolve(self) -> str:
        """Return the assembled stylesheet."""
        parts: list[str] = []

        for label, path in (("layout", self._layout), ("theme", self._theme)):
            if path is not None:
                parts.append(f"/* --- {label}: {path.stem} --- */")
                parts.append(path.read_text(encoding="utf-8"))

        custom = self.paths.css_input_file
        if custom is not None:
            if custom.is_file():
                try:
                    text = custom.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    raise PipelineError(
                        f"Cannot read stylesheet {custom}: {e}", stage="resolve"
                    ) from e
                parts.append(f"/* --- {custom.name} --- */")
                parts.append(text)
            else:
                logger.warning("Stylesheet %s does not exist yet; skipping", custom)

        return "\n".join(parts) + "\n" if parts else ""
