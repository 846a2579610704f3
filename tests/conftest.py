"""Shared test fixtures for specgraph.

Provides builders for multi-file API descriptions on disk and in ZIP
bundles, plus an isolated environment for configuration tests. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from specgraph.config import SEARCH_PATH_ENV


FIXTURES_DIR = Path(__file__).parent / "fixtures"

WriteSpec = Callable[[str, Any], Path]


def dump(path: Path, data: Any) -> Path:
    """Write *data* to *path* as JSON or YAML, by extension, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".json":
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def json_response(schema: Any) -> dict[str, Any]:
    """Build a response object with a single ``application/json`` body."""
    return {"description": "ok", "content": {"application/json": {"schema": schema}}}


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_search_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure a search path set in the developer's shell never leaks in."""
    monkeypatch.delenv(SEARCH_PATH_ENV, raising=False)


# ---------------------------------------------------------------------------
# Spec builders
# ---------------------------------------------------------------------------


@pytest.fixture
def write_spec(tmp_path: Path) -> WriteSpec:
    """Return a function writing a document under ``tmp_path``."""

    def _write(relative: str, data: Any) -> Path:
        return dump(tmp_path / relative, data)

    return _write


@pytest.fixture
def users_spec(write_spec: WriteSpec) -> Path:
    """Root spec whose ``Users`` schema lives in ``models/Users.yaml``.

    ``Users.yaml`` in turn references ``./User.yaml`` from its ``user``
    array, so ``User`` is two files away from the root.
    """
    write_spec(
        "models/User.yaml",
        {
            "type": "object",
            "properties": {"id": {"type": "string"}, "name": {"type": "string"}},
            "required": ["id"],
        },
    )
    write_spec(
        "models/Users.yaml",
        {
            "type": "object",
            "properties": {"user": {"type": "array", "items": {"$ref": "./User.yaml"}}},
        },
    )
    return write_spec(
        "openapi.yaml",
        {
            "openapi": "3.0.3",
            "info": {"title": "Users API", "version": "1.0"},
            "paths": {
                "/users": {
                    "get": {
                        "operationId": "listUsers",
                        "responses": {"200": json_response({"$ref": "#/components/schemas/Users"})},
                    }
                }
            },
            "components": {"schemas": {"Users": {"$ref": "models/Users.yaml"}}},
        },
    )


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    """Return a function packing ``{entry: document}`` into ``bundle.zip``."""

    def _make(entries: dict[str, Any]) -> Path:
        path = tmp_path / "bundle.zip"
        with zipfile.ZipFile(path, "w") as archive:
            for name, data in entries.items():
                if isinstance(data, str):
                    archive.writestr(name, data)
                elif name.endswith(".json"):
                    archive.writestr(name, json.dumps(data))
                else:
                    archive.writestr(name, yaml.safe_dump(data, sort_keys=False))
        return path

    return _make


@pytest.fixture
def petstore_split() -> Path:
    """Path of the multi-file petstore fixture's root document."""
    return FIXTURES_DIR / "petstore_split" / "openapi.yaml"
