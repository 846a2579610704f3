"""Load API descriptions from a file, an in-memory string, or a ZIP entry.

This module handles all I/O for turning raw bytes into the generic document
tree (see :mod:`specgraph.parser.nodes`). It supports JSON and YAML with
format detection from the name's extension, falling back to the first
non-blank character of the content.

The public functions are:

* :func:`parse` -- Load and parse a document from a path or
  :class:`~specgraph.models.SpecLocation`.
* :func:`parse_content` -- Parse an in-memory string.
* :func:`is_api_description`, :func:`is_sla_description`,
  :func:`detect_document_kind` -- Cheap classification by top-level keys.
* :func:`get_openapi_version`, :func:`get_api_title`,
  :func:`get_api_version` -- Read common ``info`` fields.

After loading, the document should be passed to
:func:`~specgraph.parser.resolver.resolve_references`.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from specgraph.exceptions import SpecParseError
from specgraph.models import DocumentKind, SpecLocation
from specgraph.parser.archive import SpecArchive
from specgraph.parser.nodes import Mapping, as_mapping

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

_API_KEYS = ("openapi", "swagger")
_SLA_KEYS = ("sla", "nfr", "non-functional-requirements")


def parse(
    location: str | Path | SpecLocation,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> Mapping:
    """Load a document from a file path or archive entry.

    Args:
        location: A filesystem path, or a :class:`~specgraph.models.SpecLocation`
            (with ``archive`` set for a ZIP entry).
        max_file_size: Largest file accepted, in bytes.

    Returns:
        The parsed document.

    Raises:
        SpecParseError: If the source cannot be read or parsed.
    """
    if isinstance(location, SpecLocation):
        if location.archive is not None:
            with SpecArchive(location.archive, max_entry_size=max_file_size) as archive:
                return parse_archive_entry(archive, location.path)
        return _load_from_file(Path(location.path), max_file_size)
    if not str(location).strip():
        raise SpecParseError("File path cannot be empty")
    return _load_from_file(Path(location), max_file_size)


def parse_archive_entry(archive: SpecArchive, entry: str) -> Mapping:
    """Parse one entry of an already opened archive.

    Raises:
        SpecParseError: If the entry is missing or cannot be parsed.
    """
    content = archive.read_text(entry)
    return parse_content(content, name_hint=entry)


def _load_from_file(path: Path, max_file_size: int) -> Mapping:
    """Load a document from a local file.

    Raises:
        SpecParseError: If the file is missing, too large, unreadable, or
            cannot be parsed.
    """
    if not path.exists():
        raise SpecParseError(f"Spec file not found: {path}")
    if not path.is_file():
        raise SpecParseError(f"Path is not a regular file: {path}")

    try:
        size = path.stat().st_size
        if size > max_file_size:
            raise SpecParseError(
                f"File too large: {path} ({size} bytes, max: {max_file_size} bytes)"
            )
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SpecParseError(f"Failed to read spec file {path}: {exc}") from exc

    logger.debug("Loaded %s (%d bytes)", path, len(content))
    return parse_content(content, name_hint=path.name)


def _detect_format(content: str, name_hint: str) -> str:
    """Return ``"json"`` or ``"yaml"`` for *content*.

    The extension of *name_hint* decides when it is recognised; otherwise a
    leading ``{`` selects JSON and anything else YAML.
    """
    lower = name_hint.lower()
    if lower.endswith((".yaml", ".yml")):
        return "yaml"
    if lower.endswith(".json"):
        return "json"
    return "json" if content.lstrip().startswith("{") else "yaml"


def parse_content(content: str, name_hint: str = "") -> Mapping:
    """Parse *content* as JSON or YAML.

    Blank content yields an empty document.

    Args:
        content: The raw string content.
        name_hint: Optional file or entry name; its extension selects the
            format.

    Returns:
        The parsed document.

    Raises:
        SpecParseError: If the content cannot be parsed or its top-level
            value is not an object.
    """
    label = name_hint or "<string>"
    if not content.strip():
        return {}

    fmt = _detect_format(content, name_hint)
    try:
        if fmt == "json":
            result: Any = json.loads(content)
        else:
            result = yaml.safe_load(content)
    except json.JSONDecodeError as exc:
        raise SpecParseError(f"Invalid JSON in {label}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SpecParseError(f"Invalid YAML in {label}: {exc}") from exc

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise SpecParseError(
            f"Spec must be a JSON/YAML object (got {type(result).__name__}) in {label}"
        )
    return result


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def is_api_description(document: Mapping) -> bool:
    """Whether *document* is an OpenAPI (or Swagger) description."""
    return any(key in document for key in _API_KEYS)


def is_sla_description(document: Mapping) -> bool:
    """Whether *document* is an SLA / non-functional requirements description."""
    return any(key in document for key in _SLA_KEYS)


def detect_document_kind(document: Mapping) -> DocumentKind:
    """Classify *document*; API descriptions win when both key sets appear."""
    if is_api_description(document):
        return DocumentKind.API
    if is_sla_description(document):
        return DocumentKind.SLA
    return DocumentKind.UNKNOWN


def get_openapi_version(document: Mapping) -> Optional[str]:
    """Return the ``openapi`` (or legacy ``swagger``) version as a string.

    YAML reads an unquoted ``3.0`` as a float; numbers are converted back to
    their string form.
    """
    for key in _API_KEYS:
        if key in document:
            value = document[key]
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                return str(value)
            return None
    return None


def get_api_title(document: Mapping) -> Optional[str]:
    info = as_mapping(document.get("info"))
    title = info.get("title") if info else None
    return title if isinstance(title, str) else None


def get_api_version(document: Mapping) -> Optional[str]:
    info = as_mapping(document.get("info"))
    version = info.get("version") if info else None
    if isinstance(version, (str, int, float)) and not isinstance(version, bool):
        return str(version)
    return None
