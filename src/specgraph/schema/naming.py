"""Give stable identifier names to anonymous object schemas.

Code generators emit one output unit per named schema. Object schemas
written inline (in a response body, or nested in a component's
properties) have no name of their own, so :func:`collect_inlined_schemas`
assigns one and records it in an :class:`InlineSchemaTable` keyed by node
identity.

Naming runs in two passes:

1. **Response bodies.** Every operation's inline ``type: object`` response
   schema with ``properties`` is named after its sole property, else after a
   property that looks like a collection (``templates``, ``itemList``), else
   ``<OperationId>Response``, else ``InlinedSchema<n>``.
2. **Component properties.** Each named component is scanned through its
   properties, array items and composition branches. Nested objects are
   named by their ``title``, else the enclosing property name, else
   ``InlineObject<n>``. Objects inside ``allOf``/``oneOf``/``anyOf`` are not
   named: they merge into their parent.

Named components themselves and nodes already carrying ``x-resolved-ref``
(inlined copies of named components) are never named.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from specgraph.models import LimitKind, NamingConfig, SoftLimit
from specgraph.parser.nodes import (
    COMPOSITION_KEYS,
    RESOLVED_REF_KEY,
    Mapping,
    as_mapping,
    as_sequence,
    as_string,
    get_ref,
    iter_media_schemas,
    iter_operations,
    schema_name_from_ref,
    schema_registry,
    schema_type,
)

logger = logging.getLogger(__name__)

_IDENTIFIER_SEPARATORS = frozenset("-_ .")


def to_identifier(name: str) -> str:
    """Turn *name* into an identifier of ASCII letters and digits.

    Separators (``-``, ``_``, space, ``.``) are dropped and capitalise the
    following character; the first character is capitalised too. Any other
    character is dropped. A result that is empty or does not start with a
    letter gets a ``Schema`` prefix.

    Example::

        to_identifier("user-profile.v2")  # "UserProfileV2"
        to_identifier("2fa")              # "Schema2fa"
    """
    if not name:
        return "Unknown"
    chars: list[str] = []
    capitalize_next = True
    for char in name:
        if char.isascii() and char.isalnum():
            chars.append(char.upper() if capitalize_next else char)
            capitalize_next = False
        elif char in _IDENTIFIER_SEPARATORS:
            capitalize_next = True
    result = "".join(chars)
    if not result or not result[0].isalpha():
        return "Schema" + result
    return result


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


class InlineSchemaTable:
    """Identity-keyed mapping from inline schema node to its assigned name.

    A node keeps the first name it is given. Distinct nodes that derive the
    same name are all kept and reported through :attr:`collisions`.
    """

    def __init__(self) -> None:
        # id(node) -> (node, name); holding the node keeps its id stable.
        self._entries: dict[int, tuple[Mapping, str]] = {}
        self._by_name: dict[str, list[Mapping]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node: object) -> bool:
        return id(node) in self._entries

    def __iter__(self) -> Iterator[tuple[Mapping, str]]:
        return iter(self._entries.values())

    def name_of(self, node: Mapping) -> Optional[str]:
        entry = self._entries.get(id(node))
        return entry[1] if entry else None

    def assign(self, node: Mapping, name: str) -> str:
        """Record *name* for *node* and return the name *node* ends up with."""
        existing = self._entries.get(id(node))
        if existing is not None:
            return existing[1]
        self._entries[id(node)] = (node, name)
        nodes = self._by_name.setdefault(name, [])
        nodes.append(node)
        if len(nodes) > 1:
            logger.warning("Inline schema name %s assigned to %d different schemas", name, len(nodes))
        return name

    def names(self) -> list[str]:
        return list(self._by_name)

    @property
    def collisions(self) -> dict[str, list[Mapping]]:
        """Names shared by more than one node, with those nodes in assignment order."""
        return {name: list(nodes) for name, nodes in self._by_name.items() if len(nodes) > 1}


def collect_inlined_schemas(
    document: Mapping,
    *,
    config: Optional[NamingConfig] = None,
    diagnostics: Optional[list[SoftLimit]] = None,
) -> InlineSchemaTable:
    """Name every anonymous object schema of a resolved *document*.

    Args:
        document: The resolved root document. It is not modified.
        config: Naming limits (defaults if omitted).
        diagnostics: Receives a :class:`~specgraph.models.SoftLimit` when a
            component is nested beyond the scan depth.

    Returns:
        The table of assigned names.
    """
    config = config or NamingConfig()
    table = InlineSchemaTable()
    registry = schema_registry(document) or {}
    top_level = {id(schema) for schema in registry.values() if isinstance(schema, dict)}

    _name_response_schemas(document, table, top_level)

    scanner = _ComponentScanner(registry, table, top_level, config, diagnostics)
    for schema in registry.values():
        schema_map = as_mapping(schema)
        if schema_map is not None:
            scanner.scan(schema_map, None, False, 0)

    logger.info("Named %d inline schemas", len(table))
    return table


# ---------------------------------------------------------------------------
# Response bodies
# ---------------------------------------------------------------------------


def _is_nameable_object(schema: Mapping) -> bool:
    return (
        get_ref(schema) is None
        and RESOLVED_REF_KEY not in schema
        and schema_type(schema) == "object"
        and as_mapping(schema.get("properties")) is not None
    )


def _response_schema_name(operation_id: Optional[str], schema: Mapping, counter: int) -> str:
    properties = as_mapping(schema.get("properties")) or {}
    if len(properties) == 1:
        return to_identifier(_capitalize(next(iter(properties))))

    for prop in properties:
        if prop.endswith("s") and len(prop) > 1:
            return to_identifier(_capitalize(prop))
        for suffix in ("List", "Array"):
            base = prop[: -len(suffix)]
            if prop.endswith(suffix) and base:
                return to_identifier(_capitalize(base))

    if operation_id:
        return to_identifier(_capitalize(operation_id) + "Response")
    return f"InlinedSchema{counter}"


def _name_response_schemas(document: Mapping, table: InlineSchemaTable, top_level: set[int]) -> None:
    counter = 1
    for _, _, operation in iter_operations(document):
        responses = as_mapping(operation.get("responses"))
        if responses is None:
            continue
        for response in responses.values():
            response_map = as_mapping(response)
            if response_map is None:
                continue
            for media_schema in iter_media_schemas(response_map):
                schema = as_mapping(media_schema)
                if schema is None or id(schema) in top_level or not _is_nameable_object(schema):
                    continue
                operation_id = as_string(operation.get("operationId"))
                table.assign(schema, _response_schema_name(operation_id, schema, counter))
                counter += 1


# ---------------------------------------------------------------------------
# Component properties
# ---------------------------------------------------------------------------


class _ComponentScanner:
    """Recursive scan of named components for nested inline objects."""

    def __init__(
        self,
        registry: Mapping,
        table: InlineSchemaTable,
        top_level: set[int],
        config: NamingConfig,
        diagnostics: Optional[list[SoftLimit]],
    ) -> None:
        self.registry = registry
        self.table = table
        self.top_level = top_level
        self.config = config
        self.diagnostics = diagnostics
        self.visited: set[int] = set()

    def _property_name(self, schema: Mapping, property_name: Optional[str]) -> str:
        title = as_string(schema.get("title"))
        if title:
            return to_identifier(title)
        if property_name:
            return to_identifier(_capitalize(property_name))
        return f"InlineObject{len(self.table)}"

    def scan(
        self,
        schema: Mapping,
        property_name: Optional[str],
        in_composition: bool,
        depth: int,
    ) -> None:
        if depth > self.config.max_depth:
            logger.debug("Inline schema scan stopped at depth %d", depth)
            if self.diagnostics is not None:
                self.diagnostics.append(
                    SoftLimit(
                        kind=LimitKind.DEPTH,
                        where=f"naming:{property_name or '<anonymous>'}",
                        detail=f"schema nested deeper than {self.config.max_depth}",
                    )
                )
            return
        if id(schema) in self.visited:
            return
        self.visited.add(id(schema))

        ref = get_ref(schema)
        if ref is not None:
            name = schema_name_from_ref(ref)
            target = as_mapping(self.registry.get(name)) if name else None
            if target is not None and id(target) not in self.top_level:
                self.scan(target, property_name, in_composition, depth + 1)
            return

        for keyword in COMPOSITION_KEYS:
            for branch in as_sequence(schema.get(keyword)) or []:
                branch_map = as_mapping(branch)
                if branch_map is not None:
                    self.scan(branch_map, property_name, True, depth + 1)

        if (
            not in_composition
            and id(schema) not in self.top_level
            and schema not in self.table
            and _is_nameable_object(schema)
        ):
            self.table.assign(schema, self._property_name(schema, property_name))

        properties = as_mapping(schema.get("properties"))
        if properties:
            for name, value in properties.items():
                value_map = as_mapping(value)
                if value_map is not None:
                    self.scan(value_map, name, in_composition, depth + 1)

        items = as_mapping(schema.get("items"))
        if items is not None and schema_type(schema) == "array":
            self.scan(items, property_name, in_composition, depth + 1)
