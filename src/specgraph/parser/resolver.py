"""Resolve ``$ref`` references across the files of a multi-file description.

:func:`resolve_references` walks the whole document depth-first and mutates
it in place:

* **External** references (``models/User.yaml``,
  ``common.yaml#/components/schemas/Link``) are resolved eagerly. The target
  file is located by :class:`~specgraph.parser.paths.ReferenceLocator`,
  parsed once per call, and resolved in its own scope. The pointed-to
  mapping is then inlined into the referencing node; the node's other keys
  are kept and win on conflict. Inlined schemas are tagged with
  ``x-resolved-ref: "#/components/schemas/<Name>"`` and registered in the
  root's ``components.schemas`` when that name is free, so a schema two
  files deep still ends up as a named component.
* **Internal** references (``#/components/schemas/Pet``) are left in place
  and resolved lazily by name. When they appear inside an external file,
  the component they name is adopted into the root document so the
  reference still resolves once the content has been inlined.

Cycles are broken with identity-keyed active sets: the closing reference is
left unresolved and tagged ``x-circular-ref: true``, which also makes a
second resolution pass a no-op. Reference nesting depth and the number of
nodes walked are bounded; hitting either abandons the branch with a
:class:`~specgraph.models.SoftLimit` instead of raising.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from specgraph.config import search_paths_from_env
from specgraph.exceptions import ResolutionError, SpecParseError
from specgraph.models import LimitKind, ResolverConfig, SoftLimit, SpecLocation
from specgraph.parser.archive import SpecArchive, normalize_entry
from specgraph.parser.loader import parse, parse_archive_entry
from specgraph.parser.nodes import (
    CIRCULAR_REF_KEY,
    REF_KEY,
    RESOLVED_REF_KEY,
    SCHEMA_REF_PREFIX,
    Mapping,
    as_mapping,
    component_section,
    derive_schema_name,
    get_ref,
    is_external_ref,
    is_internal_ref,
    looks_like_schema,
    pointer_segments,
    resolve_pointer,
    schema_registry,
    split_ref,
)
from specgraph.parser.paths import ReferenceLocator

logger = logging.getLogger(__name__)


@dataclass
class _Scope:
    """The document that ``#/...`` references point into, and where it lives."""

    document: Mapping
    key: Optional[str]
    base: Optional[str]
    is_root: bool = False


@dataclass
class ResolutionContext:
    """All state of one :func:`resolve_references` call.

    Node identity is tracked with ``id()``: every node stays reachable from
    ``document`` or ``loaded`` for the whole call, so ids are never reused.
    """

    document: Mapping
    locator: ReferenceLocator
    config: ResolverConfig
    archive: Optional[SpecArchive] = None
    loaded: dict[str, Mapping] = field(default_factory=dict)
    active_nodes: set[int] = field(default_factory=set)
    active_refs: set[str] = field(default_factory=set)
    visited: set[int] = field(default_factory=set)
    root_internal_refs: list[str] = field(default_factory=list)
    nodes_walked: int = 0
    node_limit_hit: bool = False
    diagnostics: list[SoftLimit] = field(default_factory=list)


def resolve_references(
    document: Mapping,
    location: str | Path | SpecLocation | None = None,
    *,
    config: Optional[ResolverConfig] = None,
    search_paths: Optional[list[str]] = None,
    archive: Optional[SpecArchive] = None,
    diagnostics: Optional[list[SoftLimit]] = None,
) -> Mapping:
    """Resolve every reference in *document*, in place.

    Args:
        document: Root document as returned by :func:`~specgraph.parser.loader.parse`.
        location: Where *document* was loaded from. Relative external
            references are looked up next to it; ``None`` means the current
            working directory. A :class:`~specgraph.models.SpecLocation` with
            ``archive`` set confines every lookup to that archive.
        config: Resolver limits and search roots (defaults if omitted).
        search_paths: Extra search roots, consulted before the configured ones.
            Roots listed in ``SPECGRAPH_SEARCH_PATH`` are always consulted
            last.
        archive: An already opened archive to use instead of opening the
            one named by *location*.
        diagnostics: Receives a :class:`~specgraph.models.SoftLimit` for
            every abandoned branch.

    Returns:
        The same *document* object.

    Raises:
        ResolutionError: If an external target cannot be located, read or
            parsed, its pointer does not exist, or it is not a mapping.
    """
    if not document:
        return document

    config = config or ResolverConfig()
    roots = list(dict.fromkeys([*(search_paths or []), *config.search_paths, *search_paths_from_env()]))

    owned_archive: Optional[SpecArchive] = None
    if archive is None and isinstance(location, SpecLocation) and location.archive is not None:
        try:
            owned_archive = SpecArchive(location.archive, max_entry_size=config.max_file_size)
        except SpecParseError as exc:
            raise ResolutionError(exc.message) from exc
        archive = owned_archive

    try:
        locator = ReferenceLocator(
            roots,
            archive=archive,
            max_file_size=config.max_file_size,
            walk_depth=config.search_walk_depth,
        )
        ctx = ResolutionContext(document=document, locator=locator, config=config, archive=archive)
        key, base = _root_key_and_base(location, archive)
        if key is not None:
            ctx.loaded[key] = document

        schema_registry(document, create=True)
        root = _Scope(document=document, key=key, base=base, is_root=True)
        try:
            _walk(document, root, ctx, 0)
        except RecursionError:
            _soft_limit(ctx, LimitKind.STACK, "resolver", "document nesting exhausted the stack")
        _adopt_dangling_root_refs(ctx)
    finally:
        if owned_archive is not None:
            owned_archive.close()

    if diagnostics is not None:
        diagnostics.extend(ctx.diagnostics)
    logger.info(
        "Resolved references: %d external files loaded, %d nodes walked",
        len(ctx.loaded) - (1 if key is not None else 0),
        ctx.nodes_walked,
    )
    return document


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def _root_key_and_base(
    location: str | Path | SpecLocation | None,
    archive: Optional[SpecArchive],
) -> tuple[Optional[str], Optional[str]]:
    if location is None:
        return None, None
    path = location.path if isinstance(location, SpecLocation) else str(location)
    if archive is not None:
        entry = SpecLocation(path=normalize_entry(path) or path, archive=archive.path)
        return _location_key(entry), _scope_base(entry)
    local = SpecLocation(path=path)
    return _location_key(local), _scope_base(local)


def _location_key(location: SpecLocation) -> str:
    if location.archive is not None:
        return f"{Path(location.archive).resolve()}!{location.path}"
    return str(Path(location.path).resolve())


def _scope_base(location: SpecLocation) -> str:
    if location.archive is not None:
        return posixpath.dirname(location.path)
    return str(Path(location.path).resolve().parent)


# ---------------------------------------------------------------------------
# Walk
# ---------------------------------------------------------------------------


def _soft_limit(ctx: ResolutionContext, kind: LimitKind, where: str, detail: str) -> None:
    logger.warning("Resolution limit (%s) at %s: %s", kind.value, where, detail)
    ctx.diagnostics.append(SoftLimit(kind=kind, where=where, detail=detail))


def _walk(node: Any, scope: _Scope, ctx: ResolutionContext, depth: int) -> None:
    """Resolve references in *node* and everything below it.

    *depth* counts the external references currently being resolved
    around this node, not the nesting of the tree.
    """
    if not isinstance(node, (dict, list)):
        return
    node_id = id(node)
    if node_id in ctx.visited or node_id in ctx.active_nodes:
        return

    ctx.nodes_walked += 1
    if ctx.nodes_walked > ctx.config.max_nodes:
        if not ctx.node_limit_hit:
            ctx.node_limit_hit = True
            _soft_limit(
                ctx,
                LimitKind.NODE_COUNT,
                f"resolver:{scope.key or '<root>'}",
                f"more than {ctx.config.max_nodes} nodes walked",
            )
        return

    if isinstance(node, list):
        ctx.visited.add(node_id)
        for item in node:
            _walk(item, scope, ctx, depth)
        return

    ref = get_ref(node)
    if ref is not None and not node.get(CIRCULAR_REF_KEY):
        if is_external_ref(ref):
            _inline_external(node, ref, scope, ctx, depth)
            return
        if is_internal_ref(ref):
            if scope.is_root:
                ctx.root_internal_refs.append(ref)
            else:
                _adopt_internal(ref, scope, ctx)
        else:
            logger.debug("Leaving unsupported $ref form untouched: %s", ref)

    ctx.visited.add(node_id)
    for value in list(node.values()):
        _walk(value, scope, ctx, depth)


def _inline_external(
    node: Mapping, ref: str, scope: _Scope, ctx: ResolutionContext, depth: int
) -> None:
    """Replace *node*'s content with the target of the external *ref*."""
    if depth >= ctx.config.max_ref_depth:
        _soft_limit(
            ctx,
            LimitKind.DEPTH,
            f"resolver:{ref}",
            f"external references nested deeper than {ctx.config.max_ref_depth}",
        )
        return

    file_part, pointer = split_ref(ref)
    location = ctx.locator.locate(file_part, scope.base)
    key = _location_key(location)
    segments = pointer_segments(pointer)
    ref_key = f"{key}#/{'/'.join(segments)}"
    name = segments[-1] if segments else derive_schema_name(ref)

    if ref_key in ctx.active_refs:
        _mark_circular(node, ref, name)
        return

    ctx.active_refs.add(ref_key)
    ctx.active_nodes.add(id(node))
    try:
        external = _load(location, key, ctx, depth)
        target = _external_target(external, segments, ref, ctx)
        if not isinstance(target, dict):
            raise ResolutionError(f"Resolved reference is not a mapping: {ref}", ref=ref)

        target_scope = _Scope(document=external, key=key, base=_scope_base(location))
        _walk(target, target_scope, ctx, depth + 1)
        if is_external_ref(get_ref(target) or ""):
            # The target is itself a reference still being resolved further up.
            _mark_circular(node, ref, name)
            return

        siblings = {k: v for k, v in node.items() if k != REF_KEY}
        node.clear()
        node.update(target)
        node.pop(REF_KEY, None)
        is_schema = looks_like_schema(target)
        if is_schema and name:
            node[RESOLVED_REF_KEY] = SCHEMA_REF_PREFIX + name
        node.update(siblings)
        ctx.visited.add(id(node))

        if is_schema and name:
            _register_schema(name, target, ref, ctx)
    except RecursionError:
        _soft_limit(ctx, LimitKind.STACK, f"resolver:{ref}", "reference chain exhausted the stack")
        return
    finally:
        ctx.active_refs.discard(ref_key)
        ctx.active_nodes.discard(id(node))

    for value in siblings.values():
        _walk(value, scope, ctx, depth)


def _mark_circular(node: Mapping, ref: str, name: Optional[str]) -> None:
    logger.debug("Circular reference %s left unresolved", ref)
    node[CIRCULAR_REF_KEY] = True
    if name:
        node.setdefault(RESOLVED_REF_KEY, SCHEMA_REF_PREFIX + name)


def _load(location: SpecLocation, key: str, ctx: ResolutionContext, depth: int) -> Mapping:
    """Return the parsed external file, loading and resolving it on first use."""
    cached = ctx.loaded.get(key)
    if cached is not None:
        return cached

    try:
        if ctx.archive is not None:
            external = parse_archive_entry(ctx.archive, location.path)
        else:
            external = parse(location, max_file_size=ctx.config.max_file_size)
    except SpecParseError as exc:
        raise ResolutionError(
            f"Failed to load referenced file {location.path}: {exc.message}",
            ref=location.path,
        ) from exc

    ctx.loaded[key] = external
    logger.info("Loaded referenced file %s", location.path)
    file_scope = _Scope(document=external, key=key, base=_scope_base(location))
    _walk(external, file_scope, ctx, depth + 1)
    return external


def _external_target(
    external: Mapping, segments: list[str], ref: str, ctx: ResolutionContext
) -> Any:
    if not segments:
        return external
    pointer = "/" + "/".join(segments)
    try:
        return resolve_pointer(external, pointer, ref=ref)
    except ResolutionError:
        found = _find_component_in_loaded(segments, ctx, exclude=external)
        if found is None:
            raise
        return found


def _register_schema(name: str, schema: Mapping, ref: str, ctx: ResolutionContext) -> None:
    registry = schema_registry(ctx.document, create=True)
    assert registry is not None
    if name in registry:
        return
    registry[name] = schema
    logger.info("Registered schema %s from %s", name, ref)


# ---------------------------------------------------------------------------
# Internal references from external files
# ---------------------------------------------------------------------------


def _component_path(segments: list[str]) -> Optional[tuple[str, str]]:
    """Return ``(section, name)`` for a ``/components/<section>/<name>`` pointer."""
    if len(segments) == 3 and segments[0] == "components":
        return segments[1], segments[2]
    return None


def _find_component_in_loaded(
    segments: list[str], ctx: ResolutionContext, exclude: Optional[Mapping] = None
) -> Optional[Mapping]:
    """Look a component pointer up in every loaded external file."""
    path = _component_path(segments)
    if path is None:
        return None
    section, name = path
    for external in ctx.loaded.values():
        if external is ctx.document or external is exclude:
            continue
        found = component_section(external, section)
        value = as_mapping(found.get(name)) if found else None
        if value is not None:
            return value
    return None


def _adopt(section: str, name: str, value: Mapping, ctx: ResolutionContext) -> None:
    target = component_section(ctx.document, section, create=True)
    assert target is not None
    if name not in target:
        target[name] = value
        logger.info("Adopted components.%s.%s from a referenced file", section, name)


def _adopt_internal(ref: str, scope: _Scope, ctx: ResolutionContext) -> None:
    """Make an internal reference of an external file resolvable from the root."""
    _, pointer = split_ref(ref)
    segments = pointer_segments(pointer)
    path = _component_path(segments)
    if path is None:
        logger.debug("Internal reference %s in %s cannot be adopted", ref, scope.key)
        return
    section, name = path
    existing = component_section(ctx.document, section)
    if existing is not None and name in existing:
        return

    local = component_section(scope.document, section)
    value = as_mapping(local.get(name)) if local else None
    if value is None:
        value = _find_component_in_loaded(segments, ctx)
    if value is None:
        logger.warning("Dangling reference %s in %s", ref, scope.key)
        return
    _adopt(section, name, value, ctx)


def _pointer_exists(document: Mapping, pointer: str) -> bool:
    try:
        resolve_pointer(document, pointer)
    except ResolutionError:
        return False
    return True


def _adopt_dangling_root_refs(ctx: ResolutionContext) -> None:
    """Adopt components named by root references that no longer dangle once
    all external files are loaded."""
    seen: set[str] = set()
    for ref in ctx.root_internal_refs:
        if ref in seen:
            continue
        seen.add(ref)
        _, pointer = split_ref(ref)
        if _pointer_exists(ctx.document, pointer):
            continue
        segments = pointer_segments(pointer)
        value = _find_component_in_loaded(segments, ctx)
        path = _component_path(segments)
        if value is None or path is None:
            logger.warning("Dangling reference %s", ref)
            continue
        _adopt(path[0], path[1], value, ctx)
