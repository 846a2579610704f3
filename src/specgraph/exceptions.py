"""Exception hierarchy for specgraph.

All exceptions inherit from :class:`SpecgraphError`. Only *hard* failures are
raised: malformed input, a missing external reference target, or a broken
configuration file. Soft conditions (depth and size ceilings hit while walking
a large or pathological document) are never raised; they are logged and
recorded as :class:`~specgraph.models.SoftLimit` values instead.

Subclass hierarchy::

    SpecgraphError
    +-- SpecParseError     malformed or unreadable document
    +-- ResolutionError    external $ref target cannot be located or read
    +-- ConfigError        invalid project configuration
"""

from __future__ import annotations

from typing import Optional


class SpecgraphError(Exception):
    """Base exception for all specgraph errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SpecParseError(SpecgraphError):
    """Raised when a document cannot be read or parsed as JSON/YAML."""


class ResolutionError(SpecgraphError):
    """Raised when an external ``$ref`` target cannot be located or read.

    Args:
        message: Human-readable error description.
        ref: The offending ``$ref`` string, when known.
    """

    def __init__(self, message: str, ref: Optional[str] = None):
        super().__init__(message)
        self.ref = ref


class ConfigError(SpecgraphError):
    """Raised for configuration problems (invalid JSON, bad field values)."""
