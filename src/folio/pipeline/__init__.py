"""Build pipeline: compile a document and write the artifact set."""

from .build import RELOAD_ENDPOINT, BuildOutput, DefaultPipeline, Pipeline, read_source

__all__ = [
    "RELOAD_ENDPOINT",
    "BuildOutput",
    "DefaultPipeline",
    "Pipeline",
    "read_source",
]
