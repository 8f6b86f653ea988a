"""
Shared enums for schema-spine.

Enums in this module are used by several subsystems (watch, reconcile,
recorder, settings) and should not be owned by any single one of them.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class OutputMode(str, Enum):
    """
    Tri-state error propagation policy applied uniformly to a run.

    QUIET swallows, VERBOSE logs and continues, DEBUG raises and aborts the
    remainder of the current run.
    """

    QUIET = "quiet"
    VERBOSE = "verbose"
    DEBUG = "debug"


class MarkMode(str, Enum):
    """When a run records its timestamp in the last-run store."""

    BEFORE = "before"  # default: marks before entries execute
    AFTER = "after"  # marks once every entry has been executed


class WatchKind(str, Enum):
    """What a watch entry points at."""

    FILE = "file"
    COMPONENT = "component"
    CALLBACK = "callback"


class EntityKind(str, Enum):
    """Kinds of entities managed by a content store."""

    FIELD = "field"
    TYPE = "type"
    ROLE = "role"
    RECORD = "record"


class RecordFormat(str, Enum):
    """Serialization formats the recorder can write."""

    YAML = "yaml"
    JSON = "json"
