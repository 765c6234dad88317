"""
Configuration resolution.

Merges caller options, the project manifest's ``[folio]`` table and fixed
defaults into one frozen ``FolioConfig``, then resolves plugin references
into callables.

Precedence: explicit caller option > manifest > default.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError
from .manifest import MANIFEST_FILENAME, load_manifest_config
from .paths import resolve_input_dir
from .plugins import (
    POST_PROCESSOR_ATTRIBUTE,
    TRANSFORM_ATTRIBUTE,
    PluginLoadResult,
    load_plugins,
)

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_COMPONENTS_DIR = PACKAGE_DIR / "components"
DEFAULT_TEMPLATE = PACKAGE_DIR / "client" / "index.html.j2"


class CompilerConfig(BaseModel):
    """Options handed to the document compiler."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    post_processors: tuple[Any, ...] = ()
    context: str | None = None


class FolioConfig(BaseModel):
    """
    Resolved configuration for one folio instance.

    Fixed for the lifetime of the instance; builds never re-merge it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    alias: dict[str, str] = Field(default_factory=dict)
    watch: bool = False
    open: bool = True
    datasets: str = "data"
    minify: bool = True
    ssr: bool = True
    components: str = "components"
    static: str = "static"
    default_components: str = str(DEFAULT_COMPONENTS_DIR)
    layout: str = "centered"
    theme: str = "github"
    output: str = "build"
    output_css: str = "folio_styles.css"
    output_js: str = "folio_index.js"
    port: int = Field(default=3000, ge=0, le=65535)
    host: str = "127.0.0.1"
    temp: str = ".folio"
    template: str = str(DEFAULT_TEMPLATE)
    transform: tuple[Any, ...] = ()
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    input_file: str | None = None
    input_string: str | None = None
    css: str | None = None
    debug: bool = False
    poll_interval: float = Field(default=0.25, gt=0)
    reload_delay: float = Field(default=0.5, ge=0)


def _format_validation_error(error: PydanticValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"  {location}: {item['msg']}")
    return "Invalid folio configuration:\n" + "\n".join(problems)


def _resolve_context(context: str | None, input_dir: Path) -> str | None:
    if context and context.startswith(("./", "../")):
        return str((input_dir / context).resolve())
    return context


def resolve_config(
    options: Mapping[str, Any] | None = None,
) -> tuple[FolioConfig, list[PluginLoadResult]]:
    """
    Build the effective configuration.

    Args:
        options: Caller-supplied options (all optional)

    Returns:
        (config, plugin_results) where plugin_results lists every post-processor
        and transform reference with its load outcome

    Raises:
        ConfigurationError: If the manifest or merged options are malformed
    """
    caller = dict(options or {})
    input_dir = resolve_input_dir(caller.get("input_file"))
    manifest = load_manifest_config(input_dir / MANIFEST_FILENAME)

    merged: dict[str, Any] = {**manifest, **caller}
    if "PORT" in os.environ:
        merged.setdefault("port", os.environ["PORT"])

    try:
        config = FolioConfig.model_validate(merged)
    except PydanticValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e

    if config.watch:
        config = config.model_copy(update={"minify": False})  # speed

    post_results = load_plugins(
        config.compiler.post_processors, input_dir, POST_PROCESSOR_ATTRIBUTE
    )
    transform_results = load_plugins(config.transform, input_dir, TRANSFORM_ATTRIBUTE)

    compiler = config.compiler.model_copy(
        update={
            "post_processors": tuple(r.plugin for r in post_results if r.ok),
            "context": _resolve_context(config.compiler.context, input_dir),
        }
    )
    config = config.model_copy(
        update={
            "compiler": compiler,
            "transform": tuple(r.plugin for r in transform_results if r.ok),
        }
    )

    logger.debug("Resolved configuration: %s", config)
    return config, [*post_results, *transform_results]
