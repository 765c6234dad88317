"""
Path derivation.

Maps a configuration onto the fixed set of absolute input, output and temp
paths used by the rest of folio. Nothing else in the package joins project
paths by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .manifest import MANIFEST_FILENAME

if TYPE_CHECKING:
    from .config import FolioConfig


@dataclass(frozen=True)
class Paths:
    """Absolute project paths for one instance."""

    input_dir: Path
    output_dir: Path
    static_output_dir: Path
    tmp_dir: Path
    manifest_file: Path
    component_dirs: tuple[Path, ...]
    default_component_dirs: tuple[Path, ...]
    data_dir: Path
    static_dir: Path
    input_file: Path | None
    css_input_file: Path | None
    js_output_file: Path
    css_output_file: Path
    html_output_file: Path
    ast_file: Path
    components_file: Path
    data_file: Path

    def runtime_dirs(self) -> tuple[Path, ...]:
        """Directories created when an instance is constructed."""
        return (self.output_dir, self.static_output_dir, self.tmp_dir)


def resolve_input_dir(input_file: str | Path | None) -> Path:
    """Project input directory: the input file's directory, else the cwd."""
    if input_file:
        return Path(input_file).resolve().parent
    return Path.cwd().resolve()


def _under(base: Path, value: str | Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def build_paths(config: FolioConfig) -> Paths:
    """
    Derive every project path from a configuration.

    Args:
        config: Resolved configuration

    Returns:
        Frozen Paths record
    """
    input_dir = resolve_input_dir(config.input_file)
    output_dir = _under(input_dir, config.output)
    static_output_dir = output_dir / "static"
    tmp_dir = _under(input_dir, config.temp)

    return Paths(
        input_dir=input_dir,
        output_dir=output_dir,
        static_output_dir=static_output_dir,
        tmp_dir=tmp_dir,
        manifest_file=input_dir / MANIFEST_FILENAME,
        component_dirs=(_under(input_dir, config.components),),
        default_component_dirs=(_under(input_dir, config.default_components),),
        data_dir=_under(input_dir, config.datasets),
        static_dir=_under(input_dir, config.static),
        input_file=Path(config.input_file).resolve() if config.input_file else None,
        css_input_file=_under(input_dir, config.css) if config.css else None,
        js_output_file=static_output_dir / config.output_js,
        css_output_file=static_output_dir / config.output_css,
        html_output_file=output_dir / "index.html",
        ast_file=tmp_dir / "ast.json",
        components_file=tmp_dir / "components.json",
        data_file=tmp_dir / "data.json",
    )
