"""Load API descriptions and resolve their references.

Typical usage::

    from specgraph.parser import parse, resolve_references

    document = parse("api/openapi.yaml")
    resolve_references(document, "api/openapi.yaml", search_paths=["shared/models"])

Sub-modules:

* :mod:`~specgraph.parser.nodes` -- Typed accessors and ``$ref`` / JSON
  Pointer helpers over the plain document tree.
* :mod:`~specgraph.parser.loader` -- File, string and archive loading with
  JSON/YAML detection and document classification.
* :mod:`~specgraph.parser.archive` -- Read-only ZIP bundle access.
* :mod:`~specgraph.parser.paths` -- Locating the files named by external
  references.
* :mod:`~specgraph.parser.resolver` -- In-place reference resolution with
  cycle and size bounds.
"""

from specgraph.parser.archive import SpecArchive
from specgraph.parser.loader import (
    detect_document_kind,
    is_api_description,
    is_sla_description,
    parse,
    parse_content,
)
from specgraph.parser.paths import ReferenceLocator
from specgraph.parser.resolver import ResolutionContext, resolve_references

__all__ = [
    "ReferenceLocator",
    "ResolutionContext",
    "SpecArchive",
    "detect_document_kind",
    "is_api_description",
    "is_sla_description",
    "parse",
    "parse_content",
    "resolve_references",
]
