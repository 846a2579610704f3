"""End-to-end pipeline from a description on disk to a resolved schema graph.

:func:`build_schema_graph` runs the passes in order:

1. :func:`~specgraph.parser.loader.parse` -- load the root document.
2. :func:`~specgraph.parser.resolver.resolve_references` -- inline external
   references and register the schemas they bring in.
3. :func:`~specgraph.schema.naming.collect_inlined_schemas` -- name the
   anonymous object schemas.
4. :func:`~specgraph.schema.reachability.collect_referenced_schema_names`
   -- find the components reachable from responses.

The resolver finishes before either read pass starts. Consumers that need
an effective schema call :func:`~specgraph.schema.composition.effective_schema`
on the returned document as they go.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from specgraph.models import DocumentKind, EngineConfig, SoftLimit, SpecLocation
from specgraph.parser.loader import detect_document_kind, parse
from specgraph.parser.nodes import Mapping
from specgraph.parser.resolver import resolve_references
from specgraph.schema.naming import InlineSchemaTable, collect_inlined_schemas
from specgraph.schema.reachability import collect_referenced_schema_names

logger = logging.getLogger(__name__)


@dataclass
class SchemaGraph:
    """Everything one run produces, handed as-is to downstream generators."""

    document: Mapping
    kind: DocumentKind
    inline_schemas: InlineSchemaTable
    reachable: set[str]
    diagnostics: list[SoftLimit] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """Whether every pass ran without hitting a soft limit."""
        return not self.diagnostics


def build_schema_graph(
    source: str | Path | SpecLocation,
    *,
    config: Optional[EngineConfig] = None,
) -> SchemaGraph:
    """Load *source* and run every pass over it.

    Args:
        source: Path of the root document, or a
            :class:`~specgraph.models.SpecLocation` naming an archive entry.
        config: Engine configuration, usually from
            :func:`~specgraph.config.resolve_config`. Defaults apply if omitted.

    Returns:
        The resolved :class:`SchemaGraph`.

    Raises:
        SpecParseError: If the root document cannot be read or parsed.
        ResolutionError: If an external reference cannot be resolved.
    """
    config = config or EngineConfig()
    diagnostics: list[SoftLimit] = []

    document = parse(source, max_file_size=config.resolver.max_file_size)
    kind = detect_document_kind(document)
    logger.info("Loaded %s document from %s", kind.value, source)

    resolve_references(document, source, config=config.resolver, diagnostics=diagnostics)
    inline_schemas = collect_inlined_schemas(
        document, config=config.naming, diagnostics=diagnostics
    )
    reachable = collect_referenced_schema_names(
        document, config=config.reachability, diagnostics=diagnostics
    )

    if diagnostics:
        logger.warning("Schema graph built with %d soft limits hit", len(diagnostics))
    return SchemaGraph(
        document=document,
        kind=kind,
        inline_schemas=inline_schemas,
        reachable=reachable,
        diagnostics=diagnostics,
    )
