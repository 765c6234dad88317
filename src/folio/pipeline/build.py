"""
Default build pipeline.

Reads the document, compiles it, resolves components and datasets, then
writes the temp artifacts (ast.json, components.json, data.json) and the
output artifacts (script bundle, stylesheet, index.html, static files).
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from pydantic import BaseModel, ConfigDict

from folio.core.config import FolioConfig
from folio.core.errors import PipelineError
from folio.core.paths import Paths
from folio.resolvers import CSSResolver, ResolvedComponent, ResolverRegistry

from .bundle import bundle_script
from .compiler import compile_document, component_names, dataset_declarations, document_title
from .render import render_html

logger = logging.getLogger(__name__)

RELOAD_ENDPOINT = "/__folio-reload__"


class BuildOutput(BaseModel):
    """Everything a successful build produced."""

    model_config = ConfigDict(frozen=True)

    ast: list[dict[str, Any]]
    components: list[ResolvedComponent]
    data: dict[str, Any]
    css: str
    html: str
    js_path: Path
    css_path: Path
    html_path: Path
    source_digest: str


class Pipeline(Protocol):
    """What an instance needs from a build pipeline."""

    def build(
        self,
        config: FolioConfig,
        paths: Paths,
        resolvers: ResolverRegistry,
        source: str | None = None,
    ) -> BuildOutput: ...

    def update_css(self, paths: Paths, css_resolver: CSSResolver) -> None: ...


def write_text(path: Path, content: str) -> None:
    """Write a file atomically (temp file + rename in the same directory)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_source(config: FolioConfig, paths: Paths, source: str | None) -> str:
    """Pick the document source: explicit override, input_string, then input_file."""
    if source is not None:
        return source
    if config.input_string is not None:
        return config.input_string
    if paths.input_file is None:
        raise PipelineError("No input: set input_file or input_string", stage="read")
    try:
        return paths.input_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PipelineError(f"Cannot read {paths.input_file}: {e}", stage="read") from e


class DefaultPipeline:
    """Compile, resolve, bundle and write a folio document."""

    def build(
        self,
        config: FolioConfig,
        paths: Paths,
        resolvers: ResolverRegistry,
        source: str | None = None,
    ) -> BuildOutput:
        text = read_source(config, paths, source)
        from_file = paths.input_file if source is None and config.input_string is None else None

        ast = compile_document(text, config.compiler.post_processors, file=from_file)
        components = [resolvers.components.resolve(name) for name in component_names(ast)]
        data = {name: resolvers.data.resolve(name, src) for name, src in dataset_declarations(ast)}
        css = resolvers.css.resolve()

        logger.debug("Resolved %d component(s), %d dataset(s)", len(components), len(data))

        self._write_temp(paths, ast, components, data)

        script = bundle_script(
            ast=ast,
            components=components,
            data=data,
            context=config.compiler.context,
            transforms=config.transform,
            minify=config.minify,
        )
        html = self._render_page(config, paths, ast)

        try:
            write_text(paths.js_output_file, script)
            write_text(paths.css_output_file, css)
            write_text(paths.html_output_file, html)
            if paths.static_dir.is_dir():
                shutil.copytree(paths.static_dir, paths.static_output_dir, dirs_exist_ok=True)
        except OSError as e:
            raise PipelineError(f"Cannot write build output: {e}", stage="write") from e

        return BuildOutput(
            ast=ast,
            components=components,
            data=data,
            css=css,
            html=html,
            js_path=paths.js_output_file,
            css_path=paths.css_output_file,
            html_path=paths.html_output_file,
            source_digest=hashlib.sha256(text.encode("utf-8")).hexdigest(),
        )

    def update_css(self, paths: Paths, css_resolver: CSSResolver) -> None:
        try:
            write_text(paths.css_output_file, css_resolver.resolve())
        except OSError as e:
            raise PipelineError(f"Cannot write stylesheet: {e}", stage="write") from e

    def _write_temp(
        self,
        paths: Paths,
        ast: list[dict[str, Any]],
        components: list[ResolvedComponent],
        data: dict[str, Any],
    ) -> None:
        listing = {c.name: str(c.path) for c in components}
        try:
            write_text(paths.ast_file, json.dumps(ast, indent=2))
            write_text(paths.components_file, json.dumps(listing, indent=2))
            write_text(paths.data_file, json.dumps(data, indent=2, default=str))
        except OSError as e:
            raise PipelineError(f"Cannot write temp artifacts: {e}", stage="write") from e

    def _render_page(self, config: FolioConfig, paths: Paths, ast: list[dict[str, Any]]) -> str:
        template_path = Path(config.template)
        env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            autoescape=select_autoescape(["html", "j2"]),
            keep_trailing_newline=True,
        )
        static_prefix = paths.static_output_dir.relative_to(paths.output_dir).as_posix()
        try:
            template = env.get_template(template_path.name)
            return template.render(
                title=document_title(ast),
                markup=render_html(ast) if config.ssr else "",
                css_href=f"{static_prefix}/{paths.css_output_file.name}",
                js_src=f"{static_prefix}/{paths.js_output_file.name}",
                live_reload=config.watch,
                reload_endpoint=RELOAD_ENDPOINT,
            )
        except TemplateError as e:
            raise PipelineError(f"Cannot render template {template_path}: {e}", stage="write") from e
