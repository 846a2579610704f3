"""Configuration loading and precedence resolution.

specgraph has no persistent user state; the only configuration is the
:class:`~specgraph.models.EngineConfig` that bounds each pass and lists the
extra search roots for external references. It is assembled from:

* **Project-local config** -- ``./specgraph.json``, read by
  :func:`load_project_config`.
* **Environment** -- ``SPECGRAPH_SEARCH_PATH``, an ``os.pathsep``-separated
  list of search roots, read by :func:`search_paths_from_env`.
* **Explicit arguments** passed to :func:`resolve_config`.

Precedence (high to low): explicit arguments, environment, project config,
model defaults. Search paths are the exception: all three sources are
concatenated in that order, since each only adds roots.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from specgraph.exceptions import ConfigError
from specgraph.models import EngineConfig

_PROJECT_CONFIG_FILENAME = "specgraph.json"
SEARCH_PATH_ENV = "SPECGRAPH_SEARCH_PATH"


def load_project_config(directory: Optional[Path] = None) -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``specgraph.json``.

    Args:
        directory: Directory holding the file. Defaults to the current
            working directory.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = (directory or Path.cwd()) / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def search_paths_from_env() -> list[str]:
    """Return the search roots listed in ``SPECGRAPH_SEARCH_PATH``.

    Empty segments are dropped, so a trailing separator is harmless.
    """
    raw = os.environ.get(SEARCH_PATH_ENV, "")
    return [segment.strip() for segment in raw.split(os.pathsep) if segment.strip()]


def resolve_config(
    search_paths: Optional[list[str]] = None,
    project_dir: Optional[Path] = None,
) -> EngineConfig:
    """Build the effective :class:`~specgraph.models.EngineConfig`.

    Args:
        search_paths: Search roots given explicitly by the caller; they are
            consulted before any other root.
        project_dir: Where to look for ``specgraph.json`` (defaults to the
            current working directory).

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the project config fails validation.
    """
    # 3 + 4. Defaults, overlaid by project config
    project = load_project_config(project_dir)
    try:
        config = EngineConfig.model_validate(project or {})
    except ValidationError as exc:
        raise ConfigError(f"Invalid project config: {exc}") from exc

    # 1 + 2. Explicit roots first, then environment, then project roots
    roots: list[str] = []
    for root in [*(search_paths or []), *search_paths_from_env(), *config.resolver.search_paths]:
        if root not in roots:
            roots.append(root)
    config.resolver.search_paths = roots
    return config
