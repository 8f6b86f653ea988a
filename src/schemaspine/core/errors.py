"""
Structured error types for schema-spine.

Every failure the engine can observe is expressed as a typed error carrying a
category and structured context. Whether an error is swallowed, logged, or
raised is decided in exactly one place, :meth:`MigrationContext.report`,
according to the active :class:`~schemaspine.core.context.OutputMode`.

Manifesto:
    - **Typed hierarchy:** One class per failure kind the runner must treat
      differently (conflict, unresolved reference, unsupported format, store
      rejection, undecodable document).
    - **Best effort:** Most errors are non-fatal by design. A missing field
      skips one entry's effect, not the whole run.
    - **Rich context:** Errors carry the watch key, entity name and kind so a
      single log line is enough to locate the problem.

Architecture:
    ::

        SchemaSpineError  (category, context, cause)
        ├── RegistrationConflict   REGISTRY  duplicate watch key
        ├── UnsupportedFormat      REGISTRY  extension cannot be reconciled
        ├── UnresolvedReference    DOCUMENT  unknown field/type/role/record
        ├── DocumentError          DOCUMENT  file could not be decoded
        ├── StoreOperationFailure  STORE     collaborator rejected an operation
        └── BootstrapError         CONFIG    host process could not be built

Examples:
    >>> err = UnresolvedReference("field", "body")
    >>> err.category
    <ErrorCategory.DOCUMENT: 'DOCUMENT'>
    >>> err.with_context(source="site/migrate.yaml").to_dict()["context"]
    {'source': 'site/migrate.yaml'}

Tags:
    error-handling, exception-hierarchy, error-context, schema-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used for routing log output."""

    REGISTRY = "REGISTRY"  # Watch registration problems
    DOCUMENT = "DOCUMENT"  # Declarative document content or decoding
    STORE = "STORE"  # Content store rejected an operation
    CONFIG = "CONFIG"  # Settings / bootstrap
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        source: Watch key or file the error originated from.
        entity_kind: Kind of entity involved (``field``, ``type``, ...).
        entity_name: Name of the entity involved.
        origin: Caller location that registered the watch entry.
        metadata: Additional key-value pairs.
    """

    source: str | None = None
    entity_kind: str | None = None
    entity_name: str | None = None
    origin: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["source", "entity_kind", "entity_name", "origin"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SchemaSpineError(Exception):
    """
    Base exception for all schema-spine errors.

    Subclasses set ``default_category``. Instances carry an
    :class:`ErrorContext` that can be extended fluently with
    :meth:`with_context` before the error is reported.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SchemaSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DocumentError("bad yaml").with_context(source=path)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# REGISTRY ERRORS
# =============================================================================


class RegistrationConflict(SchemaSpineError):
    """A watch entry with the same key is already registered."""

    default_category = ErrorCategory.REGISTRY

    def __init__(self, key: str, origin: str | None = None):
        self.key = key
        message = f"Did not add {key} to watchlist because it already exists"
        if origin:
            message += f". Called in {origin}"
        super().__init__(message, context=ErrorContext(source=key, origin=origin))


class UnsupportedFormat(SchemaSpineError):
    """A file cannot be decoded or written in the requested format."""

    default_category = ErrorCategory.REGISTRY

    def __init__(self, path: str, fmt: str):
        self.path = path
        self.format = fmt
        super().__init__(
            f"Format '{fmt}' of {path} is not supported",
            context=ErrorContext(source=path),
        )


# =============================================================================
# DOCUMENT ERRORS
# =============================================================================


class UnresolvedReference(SchemaSpineError):
    """A document refers to an entity that does not exist in the store."""

    default_category = ErrorCategory.DOCUMENT

    def __init__(self, kind: str, name: Any, message: str | None = None):
        self.kind = kind
        self.name = name
        super().__init__(
            message or f"{kind.capitalize()} {name} not found",
            context=ErrorContext(entity_kind=kind, entity_name=str(name)),
        )


class DocumentError(SchemaSpineError):
    """A watched file could not be turned into a configuration value."""

    default_category = ErrorCategory.DOCUMENT


# =============================================================================
# STORE / CONFIG ERRORS
# =============================================================================


class StoreOperationFailure(SchemaSpineError):
    """The content store rejected an operation."""

    default_category = ErrorCategory.STORE

    def __init__(self, operation: str, message: str, **kwargs: Any):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}", **kwargs)


class BootstrapError(SchemaSpineError):
    """The host process (store, settings) could not be constructed."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SchemaSpineError",
    "RegistrationConflict",
    "UnsupportedFormat",
    "UnresolvedReference",
    "DocumentError",
    "StoreOperationFailure",
    "BootstrapError",
]
