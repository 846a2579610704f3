"""Read-only passes over a resolved document.

* :mod:`~specgraph.schema.composition` -- ``allOf``/``oneOf``/``anyOf``
  collapsed to one effective schema.
* :mod:`~specgraph.schema.naming` -- Identifier names for anonymous object
  schemas.
* :mod:`~specgraph.schema.reachability` -- Component names reachable from
  operation responses.

None of these mutate the document, so they may run in any order once
:func:`~specgraph.parser.resolver.resolve_references` has finished.
"""

from specgraph.schema.composition import effective_schema, resolve_schema_ref
from specgraph.schema.naming import InlineSchemaTable, collect_inlined_schemas, to_identifier
from specgraph.schema.reachability import collect_referenced_schema_names

__all__ = [
    "InlineSchemaTable",
    "collect_inlined_schemas",
    "collect_referenced_schema_names",
    "effective_schema",
    "resolve_schema_ref",
    "to_identifier",
]
