"""Read-only view over the materials directory tree.

The catalog is laid out as year / semester / category / course and an
optional sub-course level below the course. Every query fails closed: a
missing or unreadable path yields an empty listing (or 0 / "") instead of
raising, so callers always get a usable value.

Key class: Catalog.
"""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


class Catalog:
    """Directory listings rooted at the configured materials directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, segments: Iterable[str]) -> Path:
        """Literal filesystem join of the root and the selected segments."""
        return self.root.joinpath(*segments)

    def segments_for(self, path: Path) -> tuple[str, ...]:
        """Inverse of path_for. Raises ValueError for paths outside the root."""
        return Path(path).relative_to(self.root).parts

    def _entries(self, path: Path) -> list[Path]:
        try:
            return [p for p in Path(path).iterdir() if not p.name.startswith(".")]
        except (PermissionError, OSError) as e:
            logger.debug("Cannot list %s: %s", path, e)
            return []

    def list_directories(self, path: Path) -> list[str]:
        """Sorted names of the sub-directories of path."""
        names = []
        for entry in self._entries(path):
            try:
                if entry.is_dir():
                    names.append(entry.name)
            except OSError:
                continue
        return sorted(names)

    def list_files(self, path: Path) -> list[str]:
        """Sorted names of the regular files directly inside path."""
        names = []
        for entry in self._entries(path):
            try:
                if entry.is_file():
                    names.append(entry.name)
            except OSError:
                continue
        return sorted(names)

    def file_size(self, path: Path) -> int:
        """Size in bytes, or 0 when the file is missing or not a regular file."""
        try:
            path = Path(path)
            if not path.is_file():
                return 0
            return path.stat().st_size
        except OSError:
            return 0

    def read_text(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            return ""

    def walk(self, max_depth: int = 5) -> Iterator[tuple[tuple[str, ...], int]]:
        """Yield (segments, file_count) for every directory down to max_depth."""

        def _walk(segments: tuple[str, ...]) -> Iterator[tuple[tuple[str, ...], int]]:
            path = self.path_for(segments)
            yield segments, len(self.list_files(path))
            if len(segments) >= max_depth:
                return
            for name in self.list_directories(path):
                yield from _walk((*segments, name))

        yield from _walk(())
