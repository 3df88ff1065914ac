# Path: core/indexing/scanner.py
# Purpose: Scan folders and collect image file paths for ingest and query runs.
# Layer: core/indexing.
# Details: Recursive discovery for ingestion and per-folder tag grouping for probe sets.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from core.models.domain import TagGroup

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp", ".tif", ".tiff"}


def is_supported_image(path: Path) -> bool:
    """Return True if the path carries a supported image extension."""

    return path.suffix.lower() in SUPPORTED_EXTENSIONS


class ImageScanner:
    """Scan filesystem paths for supported image files."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def scan(self) -> List[Path]:
        """Return every supported image below the root, in no particular order."""

        return list(self._iter_image_files())

    def tag_groups(self) -> List[TagGroup]:
        """Group probe images by the folder that directly contains them.

        A single file yields one group tagged by its parent folder's name. Nested
        folders keep their path below the root as ``subdir``; images directly in the
        root use the root's own name.
        """

        if self.root.is_file():
            if not is_supported_image(self.root):
                raise ValueError(f"Unsupported image format: {self.root}")
            tag = self.root.parent.name
            return [TagGroup(tag=tag, files=[self.root], subdir=tag)]

        groups: List[TagGroup] = []
        for directory in [self.root, *sorted(p for p in self.root.rglob("*") if p.is_dir())]:
            files = sorted(p for p in directory.iterdir() if p.is_file() and is_supported_image(p))
            if not files:
                continue
            subdir = self.root.name if directory == self.root else directory.relative_to(self.root).as_posix()
            groups.append(TagGroup(tag=directory.name, files=files, subdir=subdir))
        return groups

    def _iter_image_files(self) -> Iterable[Path]:
        """Yield image files under the root directory."""

        for path in self.root.rglob("*"):
            if path.is_file() and is_supported_image(path):
                yield path
