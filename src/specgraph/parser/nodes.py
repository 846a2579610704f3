"""Typed access to the generic document tree.

A loaded document is a tree of plain Python values:

* **Mapping** -- ``dict[str, Node]`` (insertion ordered, keys unique)
* **Sequence** -- ``list[Node]``
* **Scalar** -- ``str``, ``int``, ``float``, ``bool`` or ``None``

The engine never wraps these in classes: the resolver mutates mappings in
place and later passes track nodes by identity, so the tree must stay the
very objects produced by the loader. Instead, this module provides the
accessors every pass uses (:func:`as_mapping`, :func:`mapping_at`,
:func:`schema_registry`, ...), so call sites read ``as_mapping(x)`` rather
than repeating ``isinstance`` checks, plus the ``$ref`` and JSON Pointer
helpers shared by the resolver and the schema passes.
"""

from __future__ import annotations

import posixpath
from typing import Any, Iterator, Optional, Union

from specgraph.exceptions import ResolutionError
from specgraph.models import HTTPMethod

Scalar = Union[str, int, float, bool, None]
Mapping = dict[str, Any]
Sequence = list[Any]
Node = Union[Mapping, Sequence, Scalar]

REF_KEY = "$ref"
RESOLVED_REF_KEY = "x-resolved-ref"
CIRCULAR_REF_KEY = "x-circular-ref"
SCHEMA_REF_PREFIX = "#/components/schemas/"
EXTERNAL_EXTENSIONS = (".yaml", ".yml", ".json")
COMPOSITION_KEYS = ("allOf", "oneOf", "anyOf")

# Keys that mark a mapping as a schema definition rather than, say, a
# parameter or response object.
_SCHEMA_MARKERS = ("type", "properties", "items", "allOf", "oneOf", "anyOf", "enum")


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------


def as_mapping(value: Any) -> Optional[Mapping]:
    """Return *value* if it is a mapping, else ``None``."""
    return value if isinstance(value, dict) else None


def as_sequence(value: Any) -> Optional[Sequence]:
    """Return *value* if it is a sequence, else ``None``."""
    return value if isinstance(value, list) else None


def as_string(value: Any) -> Optional[str]:
    """Return *value* if it is a string, else ``None``."""
    return value if isinstance(value, str) else None


def mapping_at(node: Any, *keys: str) -> Optional[Mapping]:
    """Follow *keys* through nested mappings.

    Returns the mapping found at the end of the path, or ``None`` as soon as
    a step is missing or not a mapping.

    Example::

        mapping_at(spec, "components", "schemas")
    """
    current = as_mapping(node)
    for key in keys:
        if current is None:
            return None
        current = as_mapping(current.get(key))
    return current


def component_section(document: Mapping, section: str, create: bool = False) -> Optional[Mapping]:
    """Return ``components.<section>`` of *document*.

    Args:
        document: The root document.
        section: Component kind, e.g. ``"schemas"`` or ``"parameters"``.
        create: Create the missing ``components`` / section mappings in
            place instead of returning ``None``.
    """
    components = as_mapping(document.get("components"))
    if components is None:
        if not create:
            return None
        components = {}
        document["components"] = components
    found = as_mapping(components.get(section))
    if found is None and create:
        found = {}
        components[section] = found
    return found


def schema_registry(document: Mapping, create: bool = False) -> Optional[Mapping]:
    """Return the named schema registry (``components.schemas``)."""
    return component_section(document, "schemas", create=create)


def schema_type(schema: Mapping) -> Optional[str]:
    """Return the schema's ``type`` as a single string.

    OpenAPI 3.1 allows ``type`` to be a list (e.g. ``["string", "null"]``);
    the first non-null entry is returned in that case.
    """
    value = schema.get("type")
    if isinstance(value, list):
        non_null = [t for t in value if t != "null"]
        return non_null[0] if non_null and isinstance(non_null[0], str) else None
    return value if isinstance(value, str) else None


def looks_like_schema(node: Mapping) -> bool:
    """Whether *node* defines a schema (as opposed to a parameter, response...)."""
    return any(key in node for key in _SCHEMA_MARKERS)


# ---------------------------------------------------------------------------
# $ref helpers
# ---------------------------------------------------------------------------


def get_ref(node: Any) -> Optional[str]:
    """Return the ``$ref`` string of a mapping, or ``None``."""
    mapping = as_mapping(node)
    if mapping is None:
        return None
    return as_string(mapping.get(REF_KEY))


def split_ref(ref: str) -> tuple[str, str]:
    """Split a reference into ``(file_part, pointer)``.

    The pointer is returned without the leading ``#``. Backslashes in the
    file part are normalised to forward slashes.

    Example::

        split_ref("models/User.yaml#/components/schemas/User")
        # ("models/User.yaml", "/components/schemas/User")
    """
    file_part, _, pointer = ref.partition("#")
    return file_part.strip().replace("\\", "/"), pointer


def is_internal_ref(ref: str) -> bool:
    """Whether *ref* points into the same document (``#/...``)."""
    return ref.startswith("#")


def is_external_ref(ref: str) -> bool:
    """Whether *ref* names another file with a recognised extension."""
    file_part, _ = split_ref(ref)
    return bool(file_part) and file_part.lower().endswith(EXTERNAL_EXTENSIONS)


def unescape_pointer_segment(segment: str) -> str:
    """Decode RFC 6901 escaping (``~1`` for ``/``, ``~0`` for ``~``)."""
    return segment.replace("~1", "/").replace("~0", "~")


def pointer_segments(pointer: str) -> list[str]:
    """Split a JSON Pointer (with or without leading ``/``) into decoded segments."""
    stripped = pointer.strip("/")
    if not stripped:
        return []
    return [unescape_pointer_segment(segment) for segment in stripped.split("/")]


def schema_name_from_ref(ref: Optional[str]) -> Optional[str]:
    """Extract the component name from a ``#/components/schemas/<Name>`` reference.

    Works for internal references and for external references whose
    pointer targets a schema component (``common.yaml#/components/schemas/X``).
    Returns ``None`` for any other reference.
    """
    if not ref:
        return None
    _, _, pointer = ref.partition("#")
    segments = pointer_segments(pointer)
    if len(segments) < 3 or segments[0] != "components" or segments[1] != "schemas":
        return None
    return segments[-1] or None


def derive_schema_name(ref: str) -> Optional[str]:
    """Derive a component name from the file part of a reference.

    Example::

        derive_schema_name("../models/v4/User.yaml")  # "User"
    """
    file_part, _ = split_ref(ref)
    base = posixpath.basename(file_part)
    if not base:
        return None
    lower = base.lower()
    for extension in EXTERNAL_EXTENSIONS:
        if lower.endswith(extension):
            return base[: -len(extension)] or None
    return base


def resolve_pointer(root: Any, pointer: str, ref: Optional[str] = None) -> Any:
    """Navigate *root* along a JSON Pointer.

    Args:
        root: Document (or sub-tree) to navigate.
        pointer: Pointer such as ``/components/schemas/Pet``. An empty
            pointer or ``/`` returns *root* itself.
        ref: Original reference, used in error messages.

    Raises:
        ResolutionError: If a segment is missing or cannot be navigated.
    """
    label = ref if ref is not None else pointer
    current = root
    for segment in pointer_segments(pointer):
        if isinstance(current, dict):
            if segment not in current:
                raise ResolutionError(
                    f"Cannot resolve $ref '{label}': key '{segment}' not found", ref=ref
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise ResolutionError(
                    f"Cannot resolve $ref '{label}': invalid array index '{segment}'",
                    ref=ref,
                ) from exc
        else:
            raise ResolutionError(
                f"Cannot resolve $ref '{label}': cannot navigate into {type(current).__name__}",
                ref=ref,
            )
    return current


# ---------------------------------------------------------------------------
# Document walking
# ---------------------------------------------------------------------------


def iter_operations(document: Mapping) -> Iterator[tuple[str, HTTPMethod, Mapping]]:
    """Yield ``(path, method, operation)`` for every operation in ``paths``.

    Methods are visited in :class:`~specgraph.models.HTTPMethod` order.
    """
    paths = as_mapping(document.get("paths"))
    if paths is None:
        return
    for path, path_item in paths.items():
        item = as_mapping(path_item)
        if item is None:
            continue
        for method in HTTPMethod:
            operation = as_mapping(item.get(method.value))
            if operation is not None:
                yield path, method, operation


def iter_media_schemas(response: Mapping) -> Iterator[Any]:
    """Yield each ``content.<media-type>.schema`` value of a response object."""
    content = as_mapping(response.get("content"))
    if content is None:
        return
    for media_type in content.values():
        media = as_mapping(media_type)
        if media is not None and "schema" in media:
            yield media["schema"]
