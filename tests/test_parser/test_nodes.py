"""Tests for specgraph.parser.nodes."""

from __future__ import annotations

import pytest

from specgraph.exceptions import ResolutionError
from specgraph.models import HTTPMethod
from specgraph.parser.nodes import (
    as_mapping,
    as_sequence,
    component_section,
    derive_schema_name,
    is_external_ref,
    is_internal_ref,
    iter_media_schemas,
    iter_operations,
    looks_like_schema,
    mapping_at,
    pointer_segments,
    resolve_pointer,
    schema_name_from_ref,
    schema_registry,
    schema_type,
    split_ref,
)


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------


class TestAccessors:
    def test_as_mapping_and_sequence(self) -> None:
        assert as_mapping({"a": 1}) == {"a": 1}
        assert as_mapping([1]) is None
        assert as_sequence([1]) == [1]
        assert as_sequence("abc") is None

    def test_mapping_at_follows_keys(self) -> None:
        doc = {"components": {"schemas": {"Pet": {"type": "object"}}}}
        assert mapping_at(doc, "components", "schemas", "Pet") == {"type": "object"}
        assert mapping_at(doc, "components", "missing") is None
        assert mapping_at(doc, "components", "schemas", "Pet", "type") is None

    def test_component_section_create(self) -> None:
        doc: dict = {}
        assert component_section(doc, "parameters") is None
        assert doc == {}

        section = component_section(doc, "parameters", create=True)
        assert section == {}
        assert doc == {"components": {"parameters": {}}}
        assert component_section(doc, "parameters") is section

    def test_schema_registry_returns_same_object(self) -> None:
        schemas = {"Pet": {}}
        doc = {"components": {"schemas": schemas}}
        assert schema_registry(doc) is schemas

    def test_schema_type_handles_type_lists(self) -> None:
        assert schema_type({"type": "object"}) == "object"
        assert schema_type({"type": ["null", "string"]}) == "string"
        assert schema_type({"type": ["null"]}) is None
        assert schema_type({}) is None

    @pytest.mark.parametrize(
        "node, expected",
        [
            ({"type": "string"}, True),
            ({"allOf": []}, True),
            ({"enum": ["a"]}, True),
            ({"description": "x", "content": {}}, False),
            ({"name": "limit", "in": "query"}, False),
        ],
    )
    def test_looks_like_schema(self, node: dict, expected: bool) -> None:
        assert looks_like_schema(node) is expected


# ---------------------------------------------------------------------------
# $ref helpers
# ---------------------------------------------------------------------------


class TestRefHelpers:
    def test_split_ref(self) -> None:
        assert split_ref("models/User.yaml#/components/schemas/User") == (
            "models/User.yaml",
            "/components/schemas/User",
        )
        assert split_ref("#/components/schemas/Pet") == ("", "/components/schemas/Pet")
        assert split_ref("models\\User.yaml") == ("models/User.yaml", "")

    def test_internal_and_external(self) -> None:
        assert is_internal_ref("#/components/schemas/Pet")
        assert not is_external_ref("#/components/schemas/Pet")
        assert is_external_ref("../common.yml#/components/schemas/Link")
        assert is_external_ref("Pet.JSON")
        assert not is_external_ref("https://example.com/schema")
        assert not is_internal_ref("Pet.yaml")

    def test_pointer_segments_unescape(self) -> None:
        assert pointer_segments("/paths/~1pets~1{id}/get") == ["paths", "/pets/{id}", "get"]
        assert pointer_segments("/a~0b") == ["a~b"]
        assert pointer_segments("/") == []
        assert pointer_segments("") == []

    def test_schema_name_from_ref(self) -> None:
        assert schema_name_from_ref("#/components/schemas/Pet") == "Pet"
        assert schema_name_from_ref("common.yaml#/components/schemas/Link") == "Link"
        assert schema_name_from_ref("#/components/responses/Error") is None
        assert schema_name_from_ref("Pet.yaml") is None
        assert schema_name_from_ref(None) is None

    @pytest.mark.parametrize(
        "ref, expected",
        [
            ("../models/v4/User.yaml", "User"),
            ("DepartmentView.yml", "DepartmentView"),
            ("link.json#/components/schemas/Link", "link"),
            ("", None),
        ],
    )
    def test_derive_schema_name(self, ref: str, expected: str) -> None:
        assert derive_schema_name(ref) == expected


# ---------------------------------------------------------------------------
# resolve_pointer
# ---------------------------------------------------------------------------


class TestResolvePointer:
    def test_navigates_mappings_and_lists(self) -> None:
        doc = {"a": {"b": [{"c": 1}, {"c": 2}]}}
        assert resolve_pointer(doc, "/a/b/1/c") == 2

    def test_empty_pointer_is_root(self) -> None:
        doc = {"a": 1}
        assert resolve_pointer(doc, "") is doc
        assert resolve_pointer(doc, "/") is doc

    def test_missing_key_raises(self) -> None:
        with pytest.raises(ResolutionError, match="key 'Missing' not found") as exc_info:
            resolve_pointer({"components": {}}, "/components/Missing", ref="x.yaml#/components/Missing")
        assert exc_info.value.ref == "x.yaml#/components/Missing"

    def test_bad_index_raises(self) -> None:
        with pytest.raises(ResolutionError, match="invalid array index"):
            resolve_pointer({"a": [1]}, "/a/5")

    def test_scalar_navigation_raises(self) -> None:
        with pytest.raises(ResolutionError, match="cannot navigate into int"):
            resolve_pointer({"a": 1}, "/a/b")


# ---------------------------------------------------------------------------
# Document walking
# ---------------------------------------------------------------------------


class TestWalking:
    def test_iter_operations_in_method_order(self) -> None:
        doc = {
            "paths": {
                "/pets": {
                    "trace": {"operationId": "t"},
                    "post": {"operationId": "p"},
                    "get": {"operationId": "g"},
                    "parameters": [],
                },
                "/broken": "not a mapping",
            }
        }
        ops = [(path, method, op["operationId"]) for path, method, op in iter_operations(doc)]
        assert ops == [
            ("/pets", HTTPMethod.GET, "g"),
            ("/pets", HTTPMethod.POST, "p"),
            ("/pets", HTTPMethod.TRACE, "t"),
        ]

    def test_iter_operations_without_paths(self) -> None:
        assert list(iter_operations({})) == []

    def test_iter_media_schemas(self) -> None:
        first = {"type": "object"}
        second = {"type": "string"}
        response = {
            "content": {
                "application/json": {"schema": first},
                "text/plain": {"schema": second},
                "application/octet-stream": {},
            }
        }
        assert list(iter_media_schemas(response)) == [first, second]
