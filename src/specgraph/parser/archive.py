"""Read-only access to OpenAPI bundles packed in a ZIP archive.

When a description is loaded from an archive, every reference lookup for
that document stays inside the archive. Entry names always use forward
slashes; :func:`normalize_entry` collapses ``.``/``..`` segments and rejects
names that would climb above the archive root.
"""

from __future__ import annotations

import logging
import posixpath
import zipfile
from pathlib import Path
from typing import Optional

from specgraph.exceptions import SpecParseError

logger = logging.getLogger(__name__)


def normalize_entry(name: str) -> Optional[str]:
    """Normalise an entry name, or return ``None`` if it escapes the root."""
    cleaned = name.replace("\\", "/").strip().lstrip("/")
    if not cleaned:
        return None
    normalized = posixpath.normpath(cleaned)
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


class SpecArchive:
    """A ZIP file holding a multi-file API description.

    Use as a context manager, or call :meth:`close` when done::

        with SpecArchive("bundle.zip") as archive:
            text = archive.read_text("published/core/v4/api.yaml")

    Args:
        path: Filesystem path to the ``.zip`` file.
        max_entry_size: Largest uncompressed entry accepted, in bytes.

    Raises:
        SpecParseError: If the archive is missing or not a valid ZIP file.
    """

    def __init__(self, path: str | Path, max_entry_size: int = 100 * 1024 * 1024) -> None:
        self.path = Path(path)
        self._max_entry_size = max_entry_size
        if not self.path.is_file():
            raise SpecParseError(f"Spec archive not found: {self.path}")
        try:
            self._zip = zipfile.ZipFile(self.path)
        except (zipfile.BadZipFile, OSError) as exc:
            raise SpecParseError(f"Failed to open spec archive {self.path}: {exc}") from exc
        self._entries: dict[str, zipfile.ZipInfo] = {}
        for info in self._zip.infolist():
            normalized = normalize_entry(info.filename)
            if normalized and not info.is_dir():
                self._entries[normalized] = info
        logger.debug("Opened archive %s with %d entries", self.path, len(self._entries))

    def __enter__(self) -> "SpecArchive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def has_entry(self, name: str) -> bool:
        normalized = normalize_entry(name)
        return normalized is not None and normalized in self._entries

    def entry_names(self) -> list[str]:
        return sorted(self._entries)

    def find_by_basename(self, basename: str) -> Optional[str]:
        """Return the first entry (in sorted order) whose file name is *basename*."""
        for name in self.entry_names():
            if posixpath.basename(name) == basename:
                return name
        return None

    def read_text(self, name: str) -> str:
        """Read an entry as UTF-8 text.

        Raises:
            SpecParseError: If the entry is missing, too large or unreadable.
        """
        normalized = normalize_entry(name)
        info = self._entries.get(normalized) if normalized else None
        if info is None:
            raise SpecParseError(f"Entry not found in archive {self.path}: {name}")
        if info.file_size > self._max_entry_size:
            raise SpecParseError(
                f"Archive entry too large: {name} ({info.file_size} bytes, "
                f"max: {self._max_entry_size} bytes)"
            )
        try:
            return self._zip.read(info).decode("utf-8")
        except (zipfile.BadZipFile, OSError, UnicodeDecodeError) as exc:
            raise SpecParseError(f"Failed to read {name} from archive {self.path}: {exc}") from exc
