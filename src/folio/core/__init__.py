"""Configuration, paths, plugins and errors shared across folio."""

from .config import CompilerConfig, FolioConfig, resolve_config
from .errors import (
    ConfigurationError,
    ErrorContext,
    FilesystemError,
    FolioError,
    PipelineError,
    PluginLoadError,
)
from .paths import Paths, build_paths
from .plugins import PluginLoadResult

__all__ = [
    "CompilerConfig",
    "ConfigurationError",
    "ErrorContext",
    "FilesystemError",
    "FolioConfig",
    "FolioError",
    "Paths",
    "PipelineError",
    "PluginLoadError",
    "PluginLoadResult",
    "build_paths",
    "resolve_config",
]
