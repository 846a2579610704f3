"""Collect the named schemas reachable from operation responses.

Generators that only emit what an API actually returns call
:func:`collect_referenced_schema_names` to get that set of component names.
Seeds are the response bodies in ``components.responses`` and in every
operation of every path. From there, references are followed transitively.

The resolver may have inlined a reference in place, leaving an array
schema with no reference marker. Such arrays are matched back to their
component by node identity, then by an index of the components' ``items``
references (and, for response bodies, their unique ``items`` types). The
index is built once per call.

Every walk is bounded. A limit abandons the affected branch, logs a warning
and records a :class:`~specgraph.models.SoftLimit`; the pass still returns
everything collected so far.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from specgraph.models import LimitKind, ReachabilityConfig, SoftLimit
from specgraph.parser.nodes import (
    COMPOSITION_KEYS,
    RESOLVED_REF_KEY,
    Mapping,
    as_mapping,
    as_sequence,
    as_string,
    component_section,
    get_ref,
    iter_media_schemas,
    iter_operations,
    schema_name_from_ref,
    schema_registry,
    schema_type,
)

logger = logging.getLogger(__name__)

_RESPONSE_REF_PREFIX = "#/components/responses/"


def reference_name(schema: Mapping) -> Optional[str]:
    """Return the component name *schema* stands for, if any.

    ``x-resolved-ref`` (left by the resolver on inlined schemas) takes
    precedence over ``$ref``.
    """
    marker = as_string(schema.get(RESOLVED_REF_KEY))
    name = schema_name_from_ref(marker)
    if name is not None:
        return name
    return schema_name_from_ref(get_ref(schema))


def _follow_response(response: Any, responses: Optional[Mapping]) -> Optional[Mapping]:
    """Follow ``#/components/responses/...`` references; ``None`` on a cycle or dangling ref."""
    seen: set[str] = set()
    current = as_mapping(response)
    while current is not None:
        ref = get_ref(current)
        if ref is None or not ref.startswith(_RESPONSE_REF_PREFIX):
            return current
        name = ref[len(_RESPONSE_REF_PREFIX):]
        if name in seen:
            logger.debug("Circular response reference %s", ref)
            return None
        seen.add(name)
        current = as_mapping(responses.get(name)) if responses else None
    return None


def _iter_seeds(document: Mapping) -> Iterator[tuple[str, Any]]:
    """Yield ``(label, schema)`` for every response body, in document order."""
    responses = component_section(document, "responses")
    for name, response in (responses or {}).items():
        resolved = _follow_response(response, responses)
        if resolved is not None:
            for schema in iter_media_schemas(resolved):
                yield f"components.responses.{name}", schema

    for path, method, operation in iter_operations(document):
        op_responses = as_mapping(operation.get("responses"))
        if op_responses is None:
            continue
        for status, response in op_responses.items():
            resolved = _follow_response(response, responses)
            if resolved is not None:
                for schema in iter_media_schemas(resolved):
                    yield f"{method.value.upper()} {path} {status}", schema


class _ArrayIndex:
    """Lookup from an inlined array schema back to the component it came from."""

    def __init__(self, registry: Mapping) -> None:
        self.by_identity: dict[int, str] = {}
        self.by_items_ref: dict[str, str] = {}
        self.by_items_type: dict[str, str] = {}
        type_counts: dict[str, int] = {}
        for name, schema in registry.items():
            schema_map = as_mapping(schema)
            if schema_map is None:
                continue
            self.by_identity[id(schema_map)] = name
            if schema_type(schema_map) != "array":
                continue
            items = as_mapping(schema_map.get("items"))
            if items is None:
                continue
            items_ref = get_ref(items)
            if items_ref is not None:
                self.by_items_ref[items_ref] = name
            items_type = schema_type(items)
            if items_type is not None:
                type_counts[items_type] = type_counts.get(items_type, 0) + 1
                if type_counts[items_type] == 1:
                    self.by_items_type[items_type] = name
                else:
                    self.by_items_type.pop(items_type, None)

    def match(self, schema: Mapping, by_type: bool) -> Optional[str]:
        name = self.by_identity.get(id(schema))
        if name is not None:
            return name
        items = as_mapping(schema.get("items"))
        if items is None:
            return None
        items_ref = get_ref(items)
        if items_ref is not None and items_ref in self.by_items_ref:
            return self.by_items_ref[items_ref]
        items_type = schema_type(items)
        if by_type and items_ref is None and items_type is not None:
            return self.by_items_type.get(items_type)
        return None


class _Collector:
    def __init__(
        self,
        document: Mapping,
        config: ReachabilityConfig,
        diagnostics: Optional[list[SoftLimit]],
    ) -> None:
        self.registry = schema_registry(document) or {}
        self.config = config
        self.diagnostics = diagnostics
        self.index = _ArrayIndex(self.registry)
        self.large_registry = len(self.registry) > config.large_registry_threshold
        self.names: set[str] = set()
        self.visited: set[int] = set()
        self.seed = ""
        self.seed_start = 0
        self._reported: set[tuple[LimitKind, str]] = set()

    def limit(self, kind: LimitKind, detail: str) -> None:
        where = f"reachability:{self.seed}"
        if (kind, where) in self._reported:
            return
        self._reported.add((kind, where))
        logger.warning("Reachability limit (%s) at %s: %s", kind.value, where, detail)
        if self.diagnostics is not None:
            self.diagnostics.append(SoftLimit(kind=kind, where=where, detail=detail))

    def add(self, name: str) -> bool:
        """Record *name*; ``True`` if it was new."""
        if name in self.names:
            return False
        self.names.add(name)
        return True

    def collect_seed(self, label: str, schema: Any) -> None:
        self.seed = label
        self.seed_start = len(self.names)
        try:
            self.walk(schema, 0, seed=True)
        except RecursionError:
            self.limit(LimitKind.STACK, "schema nesting exhausted the stack")
            schema_map = as_mapping(schema)
            name = reference_name(schema_map) if schema_map is not None else None
            if name is not None:
                self.names.add(name)

    def _walk_component(self, name: str, depth: int) -> bool:
        """Walk the body of component *name*; ``False`` if it is not registered."""
        target = as_mapping(self.registry.get(name))
        if target is None:
            return False
        if id(target) in self.visited or depth >= self.config.max_nested_depth:
            return True
        if schema_type(target) == "array":
            self.visited.add(id(target))
            self.walk(target.get("items"), depth + 1)
        else:
            self.walk(target, depth + 1)
        return True

    def walk(self, obj: Any, depth: int, seed: bool = False) -> None:
        config = self.config
        if depth > config.max_depth:
            self.limit(LimitKind.DEPTH, f"schema nested deeper than {config.max_depth}")
            return
        if len(self.names) - self.seed_start > config.max_names_per_walk:
            self.limit(LimitKind.NAME_COUNT, f"more than {config.max_names_per_walk} names in one walk")
            return
        if self.large_registry and depth > config.large_registry_depth:
            self.limit(
                LimitKind.DEPTH,
                f"registry has more than {config.large_registry_threshold} schemas; "
                f"stopped below depth {config.large_registry_depth}",
            )
            return

        schema = as_mapping(obj)
        if schema is None or id(schema) in self.visited:
            return

        name = reference_name(schema)
        # A registry entry resolved from another file names itself.
        own_body = name is not None and self.registry.get(name) is schema
        if own_body:
            self.add(name)
        elif name is not None:
            found = True
            if self.add(name):
                found = self._walk_component(name, depth)
            if found or get_ref(schema) is not None:
                self.visited.add(id(schema))
                return

        if name is None and schema_type(schema) == "array":
            self.visited.add(id(schema))
            matched = self.index.match(schema, by_type=seed)
            if matched is not None:
                self.add(matched)
            if "items" in schema:
                self.walk(schema["items"], depth + 1)
            return

        if depth >= config.max_nested_depth:
            return
        self.visited.add(id(schema))

        for keyword in COMPOSITION_KEYS:
            branches = as_sequence(schema.get(keyword))
            if not branches:
                continue
            if len(branches) > config.max_branches:
                self.limit(
                    LimitKind.BRANCH_COUNT,
                    f"{keyword} has {len(branches)} branches; walked {config.max_branches}",
                )
            for branch in branches[: config.max_branches]:
                self.walk(branch, depth + 1)

        if "items" in schema:
            self.walk(schema["items"], depth + 1)

        properties = as_mapping(schema.get("properties"))
        if properties:
            if len(properties) > config.max_properties:
                self.limit(
                    LimitKind.BRANCH_COUNT,
                    f"{len(properties)} properties; walked {config.max_properties}",
                )
            for count, value in enumerate(properties.values()):
                if count >= config.max_properties:
                    break
                if len(self.names) - self.seed_start > config.max_names_per_walk:
                    self.limit(
                        LimitKind.NAME_COUNT,
                        f"more than {config.max_names_per_walk} names in one walk",
                    )
                    break
                self.walk(value, depth + 1)


def collect_referenced_schema_names(
    document: Mapping,
    *,
    config: Optional[ReachabilityConfig] = None,
    diagnostics: Optional[list[SoftLimit]] = None,
) -> set[str]:
    """Return the names of component schemas reachable from response bodies.

    Args:
        document: The resolved root document. It is not modified.
        config: Traversal limits (defaults if omitted).
        diagnostics: Receives a :class:`~specgraph.models.SoftLimit` for
            every abandoned branch.

    Returns:
        The set of reachable component names. Names of references that do
        not resolve to a registered component are included too.
    """
    config = config or ReachabilityConfig()
    collector = _Collector(document, config, diagnostics)
    for label, schema in _iter_seeds(document):
        collector.collect_seed(label, schema)
        if len(collector.names) > config.max_names:
            collector.limit(LimitKind.NAME_COUNT, f"more than {config.max_names} names collected")
            break
    logger.info("Collected %d schemas reachable from responses", len(collector.names))
    return collector.names
