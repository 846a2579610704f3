"""Collapse ``allOf`` / ``oneOf`` / ``anyOf`` into one effective schema.

Consumers that need a single concrete answer (which type, which
properties, which constraints) call :func:`effective_schema` instead of
interpreting composition keywords themselves.

``allOf`` branches are merged left to right. The first branch to define a
scalar facet keeps it, so extensions can add to a base schema but never
override its contract. ``oneOf`` and ``anyOf`` are collapsed to their
first listed branch; no union shape is synthesised.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specgraph.models import CompositionConfig
from specgraph.parser.nodes import (
    Mapping,
    as_mapping,
    as_sequence,
    get_ref,
    schema_name_from_ref,
    schema_registry,
)

logger = logging.getLogger(__name__)

# Facets where the first allOf branch to define them wins.
FIRST_WINS_FACETS = (
    "type",
    "format",
    "pattern",
    "minLength",
    "maxLength",
    "minItems",
    "maxItems",
    "enum",
    "writeOnly",
    "readOnly",
)


def resolve_schema_ref(schema: Mapping, document: Optional[Mapping]) -> Mapping:
    """Return the named component *schema* refers to.

    Only references into ``components.schemas`` are followed. *schema* itself
    is returned when it carries no such reference, when *document* is
    ``None``, or when the name is not registered.
    """
    if document is None:
        return schema
    name = schema_name_from_ref(get_ref(schema))
    if name is None:
        return schema
    registry = schema_registry(document)
    target = as_mapping(registry.get(name)) if registry else None
    return target if target is not None else schema


def _merge_into(merged: Mapping, branch: Mapping) -> None:
    for facet in FIRST_WINS_FACETS:
        if facet in branch and facet not in merged:
            merged[facet] = branch[facet]

    properties = as_mapping(branch.get("properties"))
    if properties:
        merged_properties = merged.setdefault("properties", {})
        for name, value in properties.items():
            if name not in merged_properties:
                merged_properties[name] = value

    required = as_sequence(branch.get("required"))
    if required:
        merged_required = merged.setdefault("required", [])
        for name in required:
            if name not in merged_required:
                merged_required.append(name)

    if "items" in branch and "items" not in merged:
        merged["items"] = branch["items"]


def effective_schema(
    schema: Mapping,
    document: Optional[Mapping] = None,
    depth: int = 0,
    *,
    config: Optional[CompositionConfig] = None,
) -> Mapping:
    """Compute the single schema that *schema* stands for.

    Never mutates its arguments. When there is nothing to merge (no
    composition keyword, an empty branch list, or branches that contribute
    nothing), *schema* itself is returned, so identity-based callers can
    tell that no new object was produced.

    Args:
        schema: The schema to collapse.
        document: Root document, used to resolve ``#/components/schemas/...``
            references in branches. ``None`` leaves references as they are.
        depth: Current composition nesting; callers normally omit it.
        config: Composition limits (defaults if omitted).

    Returns:
        A new merged mapping for ``allOf``, the effective first branch for
        ``oneOf``/``anyOf``, or *schema* unchanged.

    Example::

        effective_schema({"allOf": [
            {"type": "object", "properties": {"x": {"type": "string"}}, "required": ["x"]},
            {"properties": {"y": {"type": "integer"}}},
        ]})
        # {"type": "object", "properties": {"x": ..., "y": ...}, "required": ["x"]}
    """
    max_depth = (config or CompositionConfig()).max_depth
    if depth > max_depth:
        logger.debug("Composition depth %d exceeds %d; returning schema unmerged", depth, max_depth)
        return schema

    if "allOf" in schema:
        branches = as_sequence(schema.get("allOf"))
        if not branches:
            return schema
        merged: Mapping = {}
        for branch in branches:
            branch_map = as_mapping(branch)
            if branch_map is None:
                continue
            resolved = resolve_schema_ref(branch_map, document)
            resolved = effective_schema(resolved, document, depth + 1, config=config)
            _merge_into(merged, resolved)
        return merged if merged else schema

    for keyword in ("oneOf", "anyOf"):
        if keyword in schema:
            branches = as_sequence(schema.get(keyword))
            first: Any = branches[0] if branches else None
            first_map = as_mapping(first)
            if first_map is None:
                return schema
            resolved = resolve_schema_ref(first_map, document)
            return effective_schema(resolved, document, depth + 1, config=config)

    return schema
