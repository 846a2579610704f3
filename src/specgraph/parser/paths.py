"""Locate the file named by an external ``$ref``.

:class:`ReferenceLocator` turns the file part of a reference (for example
``../models/v4/User.yaml``) into a concrete :class:`~specgraph.models.SpecLocation`.
Candidates are tried in this order:

1. Relative to the directory (or archive entry) of the referencing document.
2. Relative to each search root, in configuration order.
3. The bare file name in each search root, when the path climbs with ``../``.
4. A bounded recursive file-name search below each search root
   (filesystem only).
5. In archive mode, the archive root: the path with leading ``../``
   segments stripped, then any entry with the same file name.

Candidates found under a search root must stay inside that root.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import Iterable, Optional

from specgraph.exceptions import ResolutionError
from specgraph.models import SpecLocation
from specgraph.parser.archive import SpecArchive, normalize_entry
from specgraph.parser.nodes import EXTERNAL_EXTENSIONS

logger = logging.getLogger(__name__)


def sanitize_reference_path(file_ref: str) -> str:
    """Strip NUL bytes and whitespace and normalise separators to ``/``."""
    return file_ref.replace("\0", "").strip().replace("\\", "/")


def _climbs(path: str) -> bool:
    return path.startswith("../") or "/../" in path


def _is_within(root: Path, candidate: Path) -> bool:
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _entry_under(prefix: str, path: str) -> Optional[str]:
    """Join an archive search prefix and *path*; ``None`` if the result leaves the prefix."""
    root = normalize_entry(prefix)
    entry = normalize_entry(posixpath.join(prefix, path))
    if entry is None:
        return None
    if root is not None and root != "." and not entry.startswith(root.rstrip("/") + "/"):
        return None
    return entry


class ReferenceLocator:
    """Find external reference targets on disk or inside a ZIP archive.

    Args:
        search_paths: Extra roots consulted after the referencing document's
            own directory. On disk, roots that do not exist are ignored. In
            archive mode they are entry prefixes inside the archive.
        archive: When given, every lookup stays inside this archive.
        max_file_size: Largest target accepted, in bytes.
        walk_depth: Directory depth of the recursive file-name search.
    """

    def __init__(
        self,
        search_paths: Iterable[str] = (),
        *,
        archive: Optional[SpecArchive] = None,
        max_file_size: int = 100 * 1024 * 1024,
        walk_depth: int = 10,
    ) -> None:
        self.archive = archive
        self.max_file_size = max_file_size
        self.walk_depth = walk_depth
        self.search_roots: list[str] = []
        for raw in search_paths:
            root = raw.strip() if raw else ""
            if not root:
                continue
            if archive is None and not Path(root).is_dir():
                logger.debug("Ignoring search path %s: not a directory", root)
                continue
            self.search_roots.append(root)

    def locate(self, file_ref: str, base: Optional[str] = None) -> SpecLocation:
        """Return the location of the file named by *file_ref*.

        Args:
            file_ref: File part of the reference (no ``#`` pointer).
            base: Directory of the referencing document; an archive entry
                directory in archive mode. ``None`` means the current working
                directory (or the archive root).

        Raises:
            ResolutionError: If the extension is not recognised, or no
                candidate exists.
        """
        path = sanitize_reference_path(file_ref)
        if not path:
            raise ResolutionError("Reference file path cannot be empty", ref=file_ref)
        if not path.lower().endswith(EXTERNAL_EXTENSIONS):
            raise ResolutionError(
                f"Invalid file extension: {file_ref} (allowed: .yaml, .yml, .json)",
                ref=file_ref,
            )

        if self.archive is not None:
            found = self._locate_in_archive(self.archive, path, base or "")
            if found is not None:
                return SpecLocation(path=found, archive=self.archive.path)
        else:
            found_path = self._locate_on_disk(path, base)
            if found_path is not None:
                return SpecLocation(path=str(found_path))

        raise ResolutionError(
            f"Referenced file not found: {file_ref} "
            f"(searched in base directory and {len(self.search_roots)} search paths)",
            ref=file_ref,
        )

    # -- filesystem -----------------------------------------------------------

    def _accept(self, candidate: Path) -> bool:
        if not candidate.is_file():
            return False
        try:
            size = candidate.stat().st_size
        except OSError as exc:
            raise ResolutionError(f"Failed to check file size: {candidate}: {exc}") from exc
        if size > self.max_file_size:
            raise ResolutionError(
                f"File too large: {candidate} ({size} bytes, max: {self.max_file_size} bytes)"
            )
        return True

    def _locate_on_disk(self, path: str, base: Optional[str]) -> Optional[Path]:
        base_dir = Path(base) if base else Path.cwd()
        candidate = Path(os.path.normpath(base_dir / path))
        if self._accept(candidate):
            return candidate

        roots = [Path(root) for root in self.search_roots]
        for root in roots:
            candidate = Path(os.path.normpath(root / path))
            if _is_within(root, candidate) and self._accept(candidate):
                logger.debug("Found %s under search path %s", path, root)
                return candidate

        file_name = posixpath.basename(path)
        if _climbs(path):
            for root in roots:
                candidate = root / file_name
                if self._accept(candidate):
                    logger.debug("Found %s by file name under %s", path, root)
                    return candidate

        for root in roots:
            found = self._walk_for(root, file_name)
            if found is not None and _is_within(root, found) and self._accept(found):
                logger.debug("Found %s by recursive search under %s", path, root)
                return found
        return None

    def _walk_for(self, root: Path, file_name: str) -> Optional[Path]:
        """Depth-limited search for *file_name* below *root*, in sorted order."""
        root_depth = len(root.parts)
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            if len(current.parts) - root_depth >= self.walk_depth:
                dirnames.clear()
            dirnames.sort()
            if file_name in filenames:
                return current / file_name
        return None

    # -- archive --------------------------------------------------------------

    def _locate_in_archive(self, archive: SpecArchive, path: str, base: str) -> Optional[str]:
        candidates: list[Optional[str]] = [normalize_entry(posixpath.join(base, path))]
        file_name = posixpath.basename(path)
        for prefix in self.search_roots:
            candidates.append(_entry_under(prefix, path))
        if _climbs(path):
            for prefix in self.search_roots:
                candidates.append(_entry_under(prefix, file_name))

        stripped = path
        while stripped.startswith("../"):
            stripped = stripped[3:]
        candidates.append(normalize_entry(stripped))

        for candidate in candidates:
            if candidate is not None and archive.has_entry(candidate):
                return candidate

        found = archive.find_by_basename(file_name)
        if found is not None:
            logger.debug("Found %s by file name in archive %s", path, archive.path)
        return found
