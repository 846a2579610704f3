"""Canonical Pydantic models shared across all specgraph modules.

The models fall into two groups:

**Configuration models** -- limits and lookup settings for each pass, grouped
under :class:`EngineConfig` and loaded by :mod:`specgraph.config`:
    :class:`ResolverConfig`, :class:`CompositionConfig`, :class:`NamingConfig`,
    :class:`ReachabilityConfig`, and :class:`EngineConfig`.

**Engine value types** -- small immutable values passed between passes:
    :class:`HTTPMethod`, :class:`DocumentKind`, :class:`SpecLocation`,
    :class:`LimitKind`, and :class:`SoftLimit`.

The document tree itself is *not* modelled here: it stays a plain
``dict``/``list``/scalar tree (see :mod:`specgraph.parser.nodes`) because the
resolver mutates it in place and identity of its nodes matters.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class ResolverConfig(BaseModel):
    """Settings for :func:`~specgraph.parser.resolver.resolve_references`.

    ``search_paths`` are consulted, in order, when a relative external
    reference is not found next to the file that declares it. In archive
    mode they are interpreted as entry prefixes inside the archive.
    """

    search_paths: list[str] = Field(
        default_factory=list,
        description="Extra roots searched for external $ref targets",
    )
    max_ref_depth: int = Field(
        default=15, description="Maximum nesting of external reference resolution"
    )
    max_nodes: int = Field(
        default=10_000, description="Maximum number of nodes walked per resolution"
    )
    max_file_size: int = Field(
        default=100 * 1024 * 1024, description="Largest document accepted, in bytes"
    )
    search_walk_depth: int = Field(
        default=10, description="Directory depth of the file-name fallback search"
    )


class CompositionConfig(BaseModel):
    """Settings for :func:`~specgraph.schema.composition.effective_schema`."""

    max_depth: int = Field(default=10, description="Maximum nested composition depth")


class NamingConfig(BaseModel):
    """Settings for :func:`~specgraph.schema.naming.collect_inlined_schemas`."""

    max_depth: int = Field(default=100, description="Maximum schema nesting scanned")


class ReachabilityConfig(BaseModel):
    """Settings for :func:`~specgraph.schema.reachability.collect_referenced_schema_names`.

    The numbers bound a single pass over very large descriptions; when one
    is reached the affected branch is abandoned and the pass continues.
    """

    max_depth: int = 15
    max_nested_depth: int = Field(
        default=10, description="Depth below which items/properties/branches are walked"
    )
    max_branches: int = Field(default=20, description="Branches walked per composition keyword")
    max_properties: int = Field(default=100, description="Properties walked per schema")
    max_names_per_walk: int = 1_500
    max_names: int = 10_000
    large_registry_threshold: int = Field(
        default=500, description="Registry size that triggers the shallow walk"
    )
    large_registry_depth: int = 3


class EngineConfig(BaseModel):
    """Complete configuration for one schema-graph build.

    Loaded by :func:`~specgraph.config.resolve_config`, which layers
    explicit arguments, environment variables and ``./specgraph.json``
    over these defaults.
    """

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    composition: CompositionConfig = Field(default_factory=CompositionConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    reachability: ReachabilityConfig = Field(default_factory=ReachabilityConfig)


# --- Engine value types ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised on OpenAPI path-item objects.

    Declaration order is the order in which operations are visited.
    """

    GET = "get"
    POST = "post"
    PUT = "put"
    DELETE = "delete"
    PATCH = "patch"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class DocumentKind(str, enum.Enum):
    """What a loaded document describes, judged from its top-level keys."""

    API = "api"
    SLA = "sla"
    UNKNOWN = "unknown"


class SpecLocation(BaseModel):
    """Where a document lives.

    With ``archive`` unset, ``path`` is a filesystem path. With ``archive``
    set, ``path`` is a forward-slash entry name inside that ZIP file and every
    reference lookup for the document stays inside the archive.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    archive: Optional[Path] = None

    @property
    def in_archive(self) -> bool:
        return self.archive is not None


class LimitKind(str, enum.Enum):
    """Which soft ceiling stopped a traversal branch."""

    DEPTH = "depth"
    NODE_COUNT = "node_count"
    STACK = "stack"
    BRANCH_COUNT = "branch_count"
    NAME_COUNT = "name_count"


class SoftLimit(BaseModel):
    """A continuable condition: one branch of a walk was abandoned early.

    Soft limits are never raised. The walk logs them, appends one of these
    to the caller's diagnostics list, and carries on with the rest of the
    document.
    """

    model_config = ConfigDict(frozen=True)

    kind: LimitKind
    where: str = Field(description="Pass and location that hit the limit")
    detail: str = ""
