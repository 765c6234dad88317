"""
Project file operations: listing and adding components and datasets.

Listings are read from the filesystem on every call; nothing is cached.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from folio.core.errors import FilesystemError

# Reserved module name in a component directory (the directory's own entry point)
INDEX_NAME = "index"


@dataclass(frozen=True)
class ComponentEntry:
    name: str
    path: Path


@dataclass(frozen=True)
class DatasetEntry:
    name: str
    path: Path
    extension: str


def _visible_files(directory: Path) -> list[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and not p.name.startswith("."))


def list_components(directories: Iterable[Path]) -> list[ComponentEntry]:
    """One entry per component file; missing directories count as empty."""
    entries = []
    for directory in directories:
        if not directory.is_dir():
            continue
        for file in _visible_files(directory):
            if file.stem != INDEX_NAME:
                entries.append(ComponentEntry(name=file.stem, path=file))
    return entries


def list_datasets(data_dir: Path) -> list[DatasetEntry]:
    """
    One entry per file in the data directory.

    Raises:
        FilesystemError: If the data directory does not exist
    """
    if not data_dir.is_dir():
        raise FilesystemError(f"Data directory not found: {data_dir}", data_dir)
    return [
        DatasetEntry(name=file.name, path=file, extension=file.suffix)
        for file in _visible_files(data_dir)
    ]


def copy_into(source: str | Path, directory: Path) -> Path:
    """
    Copy ``source`` into ``directory`` under its base name, replacing any
    file of the same name. Creates ``directory`` when missing.

    Raises:
        FilesystemError: If the source cannot be read or the copy fails
    """
    src = Path(source)
    if not src.is_file():
        raise FilesystemError(f"Source file not found: {src}", src)

    destination = directory / src.name
    try:
        directory.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, destination)
    except OSError as e:
        raise FilesystemError(f"Could not copy {src} to {directory}: {e}", src) from e
    return destination
