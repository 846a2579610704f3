"""Tests for specgraph.schema.reachability."""

from __future__ import annotations

from typing import Any

from specgraph.models import LimitKind, ReachabilityConfig, SoftLimit
from specgraph.schema.reachability import collect_referenced_schema_names, reference_name


def _ref(name: str) -> dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json_response(schema: Any) -> dict[str, Any]:
    return {"description": "ok", "content": {"application/json": {"schema": schema}}}


def _doc(response_schema: Any, **schemas: Any) -> dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "paths": {"/things": {"get": {"responses": {"200": _json_response(response_schema)}}}},
        "components": {"schemas": schemas},
    }


class TestReferenceName:
    def test_marker_wins_over_ref(self) -> None:
        schema = {"$ref": "#/components/schemas/A", "x-resolved-ref": "#/components/schemas/B"}
        assert reference_name(schema) == "B"

    def test_ref_only(self) -> None:
        assert reference_name(_ref("Pet")) == "Pet"
        assert reference_name({"$ref": "#/components/responses/Err"}) is None
        assert reference_name({"type": "object"}) is None


# ---------------------------------------------------------------------------
# Seeds
# ---------------------------------------------------------------------------


class TestSeeds:
    def test_array_response_of_ref(self) -> None:
        doc = _doc(
            {"type": "array", "items": _ref("Order")},
            Order={"type": "object", "properties": {"id": {"type": "string"}}},
            Unused={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"Order"}

    def test_transitive_through_components(self) -> None:
        doc = _doc(
            _ref("Pet"),
            Pet={
                "type": "object",
                "properties": {
                    "owner": _ref("Owner"),
                    "tags": {"type": "array", "items": _ref("Tag")},
                    "kind": {"oneOf": [_ref("Cat"), _ref("Dog")]},
                },
            },
            Owner={"type": "object", "properties": {"address": _ref("Address")}},
            Address={"type": "object"},
            Tag={"type": "object"},
            Cat={"type": "object"},
            Dog={"type": "object"},
            Lonely={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"Pet", "Owner", "Address", "Tag", "Cat", "Dog"}

    def test_component_responses_and_chains(self) -> None:
        doc = {
            "openapi": "3.0.3",
            "paths": {
                "/things": {
                    "get": {"responses": {"404": {"$ref": "#/components/responses/Alias"}}},
                }
            },
            "components": {
                "responses": {
                    "NotFound": _json_response(_ref("Problem")),
                    "Alias": {"$ref": "#/components/responses/NotFound"},
                    "LoopA": {"$ref": "#/components/responses/LoopB"},
                    "LoopB": {"$ref": "#/components/responses/LoopA"},
                    "Dangling": {"$ref": "#/components/responses/Nowhere"},
                },
                "schemas": {"Problem": {"type": "object"}, "Other": {"type": "object"}},
            },
        }
        assert collect_referenced_schema_names(doc) == {"Problem"}

    def test_request_bodies_are_not_seeds(self) -> None:
        doc = _doc(_ref("Pet"), Pet={"type": "object"}, NewPet={"type": "object"})
        doc["paths"]["/things"]["post"] = {
            "requestBody": {"content": {"application/json": {"schema": _ref("NewPet")}}},
            "responses": {"204": {"description": "created"}},
        }
        assert collect_referenced_schema_names(doc) == {"Pet"}

    def test_resolved_marker(self) -> None:
        inlined = {
            "type": "object",
            "properties": {"name": {"type": "string"}},
            "x-resolved-ref": "#/components/schemas/Pet",
        }
        doc = _doc(
            inlined,
            Pet={"type": "object", "properties": {"owner": _ref("Owner")}},
            Owner={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"Pet", "Owner"}

    def test_component_naming_itself(self) -> None:
        doc = _doc(
            _ref("A"),
            A={
                "type": "object",
                "x-resolved-ref": "#/components/schemas/A",
                "properties": {"b": _ref("B")},
            },
            B={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"A", "B"}

    def test_array_component_naming_itself(self) -> None:
        orders = {"type": "array", "items": _ref("Order"), "x-resolved-ref": "#/components/schemas/Orders"}
        doc = _doc(orders, Orders=orders, Order={"type": "object"})
        assert collect_referenced_schema_names(doc) == {"Orders", "Order"}

    def test_unregistered_ref_is_reported(self) -> None:
        assert collect_referenced_schema_names(_doc(_ref("Ghost"))) == {"Ghost"}

    def test_cyclic_components(self) -> None:
        doc = _doc(
            _ref("Node"),
            Node={"type": "object", "properties": {"next": _ref("Node"), "tree": _ref("Tree")}},
            Tree={"type": "object", "properties": {"root": _ref("Node")}},
        )
        assert collect_referenced_schema_names(doc) == {"Node", "Tree"}

    def test_empty_document(self) -> None:
        assert collect_referenced_schema_names({}) == set()


# ---------------------------------------------------------------------------
# Inlined arrays
# ---------------------------------------------------------------------------


class TestArrayMatching:
    def test_by_identity(self) -> None:
        pets = {"type": "array", "items": {"type": "object"}}
        doc = _doc(pets, PetList=pets)
        assert collect_referenced_schema_names(doc) == {"PetList"}

    def test_by_items_ref(self) -> None:
        doc = _doc(
            {"type": "array", "items": _ref("Order")},
            OrderList={"type": "array", "items": _ref("Order")},
            Order={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"OrderList", "Order"}

    def test_by_unique_items_type(self) -> None:
        doc = _doc(
            {"type": "array", "items": {"type": "string"}},
            Tags={"type": "array", "items": {"type": "string"}},
        )
        assert collect_referenced_schema_names(doc) == {"Tags"}

    def test_ambiguous_items_type(self) -> None:
        doc = _doc(
            {"type": "array", "items": {"type": "string"}},
            Tags={"type": "array", "items": {"type": "string"}},
            Labels={"type": "array", "items": {"type": "string"}},
        )
        assert collect_referenced_schema_names(doc) == set()

    def test_items_type_only_for_response_bodies(self) -> None:
        doc = _doc(
            {"type": "object", "properties": {"labels": {"type": "array", "items": {"type": "string"}}}},
            Tags={"type": "array", "items": {"type": "string"}},
        )
        assert collect_referenced_schema_names(doc) == set()

    def test_array_component_walks_items(self) -> None:
        doc = _doc(
            _ref("Orders"),
            Orders={"type": "array", "items": _ref("Order")},
            Order={"type": "object", "properties": {"line": _ref("Line")}},
            Line={"type": "object"},
        )
        assert collect_referenced_schema_names(doc) == {"Orders", "Order", "Line"}


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------


class TestLimits:
    def test_branch_limit(self) -> None:
        doc = _doc(
            {"oneOf": [_ref("A"), _ref("B"), _ref("C")]},
            A={"type": "object"},
            B={"type": "object"},
            C={"type": "object"},
        )
        diagnostics: list[SoftLimit] = []
        names = collect_referenced_schema_names(
            doc, config=ReachabilityConfig(max_branches=2), diagnostics=diagnostics
        )
        assert names == {"A", "B"}
        assert [d.kind for d in diagnostics] == [LimitKind.BRANCH_COUNT]
        assert diagnostics[0].where == "reachability:GET /things 200"

    def test_property_limit(self) -> None:
        doc = _doc(
            {"type": "object", "properties": {"a": _ref("A"), "b": _ref("B")}},
            A={"type": "object"},
            B={"type": "object"},
        )
        diagnostics: list[SoftLimit] = []
        names = collect_referenced_schema_names(
            doc, config=ReachabilityConfig(max_properties=1), diagnostics=diagnostics
        )
        assert names == {"A"}
        assert [d.kind for d in diagnostics] == [LimitKind.BRANCH_COUNT]

    def test_names_per_walk_limit(self) -> None:
        doc = _doc(
            {"type": "object", "properties": {"a": _ref("A"), "b": _ref("B"), "c": _ref("C")}},
            A={"type": "object"},
            B={"type": "object"},
            C={"type": "object"},
        )
        diagnostics: list[SoftLimit] = []
        names = collect_referenced_schema_names(
            doc, config=ReachabilityConfig(max_names_per_walk=1), diagnostics=diagnostics
        )
        assert "C" not in names
        assert [d.kind for d in diagnostics] == [LimitKind.NAME_COUNT]

    def test_large_registry_walks_shallow(self) -> None:
        doc = _doc(
            {"type": "object", "properties": {"a": _ref("A")}},
            A={"type": "object"},
            B={"type": "object"},
        )
        diagnostics: list[SoftLimit] = []
        config = ReachabilityConfig(large_registry_threshold=1, large_registry_depth=0)
        names = collect_referenced_schema_names(doc, config=config, diagnostics=diagnostics)
        assert names == set()
        assert [d.kind for d in diagnostics] == [LimitKind.DEPTH]

    def test_nested_depth_bounds_component_walk(self) -> None:
        doc = _doc(
            _ref("A"),
            A={"type": "object", "properties": {"b": _ref("B")}},
            B={"type": "object", "properties": {"c": _ref("C")}},
            C={"type": "object"},
        )
        names = collect_referenced_schema_names(doc, config=ReachabilityConfig(max_nested_depth=2))
        assert names == {"A", "B"}

    def test_node_cut_off_deep_is_walked_from_shallower_seed(self) -> None:
        shared = {"type": "object", "properties": {"x": _ref("X")}}
        doc = {
            "openapi": "3.0.3",
            "paths": {
                "/deep": {
                    "get": {
                        "responses": {
                            "200": _json_response(
                                {"type": "object", "properties": {"a": {"type": "object", "properties": {"s": shared}}}}
                            )
                        }
                    }
                },
                "/shallow": {
                    "get": {"responses": {"200": _json_response({"type": "object", "properties": {"s": shared}})}}
                },
            },
            "components": {"schemas": {"X": {"type": "object"}}},
        }
        names = collect_referenced_schema_names(doc, config=ReachabilityConfig(max_nested_depth=2))
        assert names == {"X"}

    def test_document_not_modified(self) -> None:
        doc = _doc({"type": "array", "items": _ref("Order")}, Order={"type": "object"})
        before = repr(doc)
        collect_referenced_schema_names(doc)
        assert repr(doc) == before
