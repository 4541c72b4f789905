"""
local_locator.py
----------------
Finds dependency artifacts inside a local library directory.

A file is looked up directly under the root first, then by a depth-first
scan of the whole tree. Matching is by exact file name; when the same name
exists in several subdirectories the winner depends on directory listing
order, which the platform does not guarantee.
"""

import logging
import os
from pathlib import Path
from typing import Iterable

from common.app_setup import print_warning
from descriptor.models import DependencyCoordinate, ResolvedArtifact

logger = logging.getLogger(__name__)


class LocalArtifactLocator:
    """Locate artifact files under ``root_dir``."""

    def __init__(self, root_dir: str | os.PathLike):
        self.root_dir = Path(root_dir)

    def locate(self, file_name: str) -> Path | None:
        """Return the path of ``file_name`` under the root, or None."""
        if not self.root_dir.is_dir():
            return None
        direct = self.root_dir / file_name
        if direct.is_file():
            return direct
        return _find_recursively(self.root_dir, file_name)

    def acquire(self, coordinates: Iterable[DependencyCoordinate], extension: str) -> list[ResolvedArtifact]:
        """
        Locate one artifact per coordinate, in order.
        Missing artifacts are reported as warnings and left out.
        """
        coordinates = list(coordinates)
        if coordinates and not self.root_dir.is_dir():
            print_warning(f"Library path not found: {self.root_dir.absolute()}")
            return []

        artifacts = []
        for coordinate in coordinates:
            file_name = coordinate.file_name(extension)
            found = self.locate(file_name)
            if found is None:
                print_warning(f"Library not found: {file_name}")
                continue
            logger.info("Found %s at %s", coordinate, found)
            artifacts.append(ResolvedArtifact(location=found))
        return artifacts


def _find_recursively(directory: Path, file_name: str) -> Path | None:
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return None
    for entry in entries:
        if entry.is_file() and entry.name == file_name:
            return Path(entry.path)
        if entry.is_dir():
            found = _find_recursively(Path(entry.path), file_name)
            if found is not None:
                return found
    return None
