"""specgraph -- Resolve multi-file OpenAPI descriptions into a schema graph.

This package loads an API description split across several files (or
bundled in a ZIP archive), inlines its cross-file references, and derives
the structures that code, test and documentation generators need: effective
schemas for composed types, names for anonymous object schemas, and the set
of components reachable from operation responses.

Typical usage::

    from specgraph import build_schema_graph

    graph = build_schema_graph("api/openapi.yaml")
    graph.document["components"]["schemas"]   # every named schema
    graph.reachable                            # names used by responses

Modules:
    graph: The end-to-end pipeline.
    models: Pydantic models for configuration and engine value types.
    config: Project config file, environment and precedence resolution.
    exceptions: Exception hierarchy.
    parser: Loading, archive access and reference resolution.
    schema: Composition, inline naming and reachability passes.
"""

from specgraph.graph import SchemaGraph, build_schema_graph

__version__ = "0.1.0"

__all__ = ["SchemaGraph", "build_schema_graph", "__version__"]
