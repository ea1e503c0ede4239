"""
Artifact repository: a flat directory of built packages.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Iterable, List


logger = logging.getLogger(__name__)


class RepositoryScanner:
    """Answer "is this already built?" by scanning file names.

    A match is only a skip hint: a corrupt artifact with the right name
    still counts as built.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def is_built(self, identifier: str, version: str) -> bool:
        if not self.path.is_dir():
            return False
        pattern = re.compile(rf"^{re.escape(identifier)}-{re.escape(version)}-\d")
        for entry in self.path.iterdir():
            if entry.is_file() and pattern.match(entry.name):
                logger.debug("Found %s for %s %s", entry.name, identifier, version)
                return True
        return False

    def add(self, artifacts: Iterable[Path]) -> List[Path]:
        """Move artifacts into the repository and return their new paths."""
        self.path.mkdir(parents=True, exist_ok=True)
        moved = []
        for artifact in artifacts:
            target = self.path / Path(artifact).name
            shutil.move(str(artifact), str(target))
            moved.append(target)
        return moved

    def remove(self, artifacts: Iterable[Path]) -> None:
        for artifact in artifacts:
            try:
                Path(artifact).unlink()
            except FileNotFoundError:
                continue
            logger.info("Removed %s from repository", Path(artifact).name)
