"""schema-spine core -- errors, logging, settings, events and persistence primitives.

Manifesto:
    The engine (watch registry, runner, reconciler, recorder) should not care
    how errors are surfaced, where state lives or how the host announces that
    something happened. These concerns are settled once, here, and every
    other module builds on them.

Architecture::

    errors.py      SchemaSpineError hierarchy (category + context)
    enums.py       OutputMode, MarkMode, WatchKind, EntityKind, RecordFormat
    logging.py     structlog configuration, get_logger, LogContext
    settings.py    SchemaSpineSettings (pydantic-settings, SCHEMASPINE_*)
    cache.py       CacheBackend protocol, InMemoryCache, FileCache
    events.py      synchronous EventBus and well-known event types
    context.py     MigrationContext passed to every operation

Tags:
    schema-spine, core, primitives
"""

from schemaspine.core.cache import CacheBackend, FileCache, InMemoryCache
from schemaspine.core.context import MigrationContext
from schemaspine.core.enums import EntityKind, MarkMode, OutputMode, RecordFormat, WatchKind
from schemaspine.core.errors import (
    BootstrapError,
    DocumentError,
    ErrorCategory,
    ErrorContext,
    RegistrationConflict,
    SchemaSpineError,
    StoreOperationFailure,
    UnresolvedReference,
    UnsupportedFormat,
)
from schemaspine.core.events import Event, EventBus
from schemaspine.core.logging import configure_logging, get_logger
from schemaspine.core.settings import SchemaSpineSettings, clear_settings_cache, get_settings

__all__ = [
    "BootstrapError",
    "CacheBackend",
    "DocumentError",
    "EntityKind",
    "ErrorCategory",
    "ErrorContext",
    "Event",
    "EventBus",
    "FileCache",
    "InMemoryCache",
    "MarkMode",
    "MigrationContext",
    "OutputMode",
    "RecordFormat",
    "RegistrationConflict",
    "SchemaSpineError",
    "SchemaSpineSettings",
    "StoreOperationFailure",
    "UnresolvedReference",
    "UnsupportedFormat",
    "WatchKind",
    "clear_settings_cache",
    "configure_logging",
    "get_logger",
    "get_settings",
]
