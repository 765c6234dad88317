"""
folio - compile interactive documents into runnable bundles.

Typical use::

    from folio import create_instance

    inst = create_instance(input_file="index.folio", watch=True)
    inst.on_update(lambda output: print("built", output.html_path))
    inst.build()
"""

from ._version import __version__
from .core.errors import (
    ConfigurationError,
    FilesystemError,
    FolioError,
    PipelineError,
    PluginLoadError,
)
from .events import BuildComplete, BuildFailed, BuildUpdate
from .instance import FolioInstance, LifecycleState, create_instance
from .pipeline import BuildOutput

__all__ = [
    "__version__",
    "BuildComplete",
    "BuildFailed",
    "BuildOutput",
    "BuildUpdate",
    "ConfigurationError",
    "FilesystemError",
    "FolioError",
    "FolioInstance",
    "LifecycleState",
    "PipelineError",
    "PluginLoadError",
    "create_instance",
]
