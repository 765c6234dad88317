"""Resolver base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from folio.core.config import FolioConfig
    from folio.core.paths import Paths


class Resolver(ABC):
    """
    Maps project configuration to the directories a build depends on and
    the values it injects into that build.

    Resolvers are created fresh for every build. ``get_directories()`` must
    be side-effect free.
    """

    name: ClassVar[str]

    def __init__(self, config: FolioConfig, paths: Paths):
        self.config = config
        self.paths = paths

    @abstractmethod
    def get_directories(self) -> list[Path]:
        """Absolute directories whose changes should trigger a rebuild."""
