"""
Contract file discovery.

Walks upward from a start directory looking for a contract file inside a
list of candidate sub-directories (``pacts``, ``Consumer/pacts`` by default),
up to a bounded number of levels, and falls back to a configured path when
nothing is found. The verifier itself never walks the filesystem; callers
resolve a path here and hand it over.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import Settings

logger = logging.getLogger(__name__)


class ContractLocator:
    """
    Locate a contract file by searching parent directories.

    Args:
        search_dirs: Sub-directories checked at every level, in order
        max_depth: Number of directories examined (start directory included)
        fallback: Path returned when the search finds nothing
    """

    def __init__(
        self,
        search_dirs: Iterable[str] = ("pacts", "Consumer/pacts"),
        max_depth: int = 10,
        fallback: Optional[Union[str, Path]] = None,
    ):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.search_dirs: List[str] = list(search_dirs)
        self.max_depth = max_depth
        self.fallback = Path(fallback) if fallback else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractLocator":
        return cls(
            search_dirs=settings.pact_search_dirs_list,
            max_depth=settings.pact_search_depth,
            fallback=settings.pact_fallback_path,
        )

    def candidates(self, file_name: str, start: Optional[Union[str, Path]] = None) -> List[Path]:
        """List every path the search would examine, nearest first."""
        current: Optional[Path] = Path(start or Path.cwd()).resolve()
        paths: List[Path] = []
        for _ in range(self.max_depth):
            if current is None:
                break
            for sub in self.search_dirs:
                paths.append(current / sub / file_name)
            parent = current.parent
            current = parent if parent != current else None
        return paths

    def locate(self, file_name: str, start: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """
        Find ``file_name`` in the nearest candidate directory.

        Args:
            file_name: Contract file name, e.g. ``SF-Consumer-VAIS-Producer.json``
            start: Directory the upward search starts from (default: cwd)

        Returns:
            The first existing candidate, else the fallback path, else None
        """
        for path in self.candidates(file_name, start):
            if path.is_file():
                logger.info(f"Using contract file: {path}")
                return path
        if self.fallback is not None:
            logger.info(f"Contract {file_name} not found by search, falling back to {self.fallback}")
            return self.fallback
        logger.warning(f"Contract {file_name} not found within {self.max_depth} levels")
        return None
