"""
Content store capability interface.

The content model (fields, composite types, roles, records) is owned by an
external collaborator. The reconciler only ever talks to it through the
:class:`ContentStore` protocol below, so any host can plug in by providing an
object of the right shape. :mod:`schemaspine.reconcile.memory` ships a
reference implementation.

Manifesto:
    Protocols define contracts without inheritance. The engine depends on the
    shape of the store, not on a concrete CMS.

Architecture:
    ::

        ContentStore (Protocol)
        ├── lookup        get, list_all, type_fields, find_record, get_record_by_path
        ├── lifecycle     create, delete, create_record
        ├── structure     attach_field, detach_field, companion_type, closing_field
        ├── properties    set_properties, set_field_context, set_options,
        │                 set_permissions, set_access, update_record
        ├── locales       locales, enable_locale
        └── export        export_data

    Each call is assumed atomic on its own. Nothing in the engine wraps a
    sequence of calls in a transaction.

Tags:
    protocol, content-store, collaborator, schema-spine
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from schemaspine.core.enums import EntityKind


@dataclass
class Entity:
    """Reference to a store-managed object.

    Attributes:
        kind: Field, composite type, role or record.
        name: Unique name within its kind (records: unique per parent).
        id: Surrogate key assigned by the store. Never exported.
        fieldtype: Data type of a field (``text``, ``repeater``, ...).
        system: Internal entity; excluded from recordings by default.
        props: Semantic properties (label, options, status, ...).
        parent_id: Parent record id (records only).
        type_name: Composite type a record conforms to (records only).
    """

    kind: EntityKind
    name: str
    id: int
    fieldtype: str | None = None
    system: bool = False
    props: dict[str, Any] = field(default_factory=dict)
    parent_id: int | None = None
    type_name: str | None = None

    def __str__(self) -> str:
        return self.name


@runtime_checkable
class ContentStore(Protocol):
    """Structural contract of the external content-model store."""

    # -- lookup ------------------------------------------------------------

    def get(self, kind: EntityKind, name: str) -> Entity | None:
        """Return the entity of ``kind`` named ``name``, or ``None``."""
        ...

    def list_all(self, kind: EntityKind) -> list[Entity]:
        """Return every entity of ``kind`` (order is store-defined)."""
        ...

    def type_fields(self, type_ref: Entity) -> list[Entity]:
        """Return the fields attached to a composite type, in order."""
        ...

    # -- lifecycle ---------------------------------------------------------

    def create(
        self,
        kind: EntityKind,
        name: str,
        fieldtype: str | None = None,
        props: Mapping[str, Any] | None = None,
    ) -> Entity:
        """Create an entity.

        Creating a field may spawn auxiliary entities (a fieldset closer, the
        backing type of a repeater) reachable through :meth:`closing_field`
        and :meth:`companion_type`.
        """
        ...

    def delete(self, entity: Entity) -> None:
        """Remove an entity (fields are detached from every type first)."""
        ...

    # -- structure ---------------------------------------------------------

    def attach_field(
        self,
        type_ref: Entity,
        field_ref: Entity,
        after: Entity | None = None,
        before: Entity | None = None,
    ) -> None:
        """Attach a field to a type.

        With ``after`` (or ``before``) the field is moved directly after
        (before) that field, whether or not it was attached already. Without
        either it is appended when absent and left in place when present.
        """
        ...

    def detach_field(self, type_ref: Entity, field_ref: Entity) -> None:
        """Detach a field from a type (no-op when not attached)."""
        ...

    def companion_type(self, field_ref: Entity) -> Entity | None:
        """Backing type of a repeating-group field, if any."""
        ...

    def closing_field(self, field_ref: Entity) -> Entity | None:
        """Closing counterpart of a fieldset-open field, if any."""
        ...

    # -- properties --------------------------------------------------------

    def set_properties(self, entity: Entity, props: Mapping[str, Any]) -> None:
        """Merge ``props`` into the entity's properties."""
        ...

    def set_field_context(
        self, type_ref: Entity, field_ref: Entity, props: Mapping[str, Any]
    ) -> None:
        """Merge type-scoped override properties for a field."""
        ...

    def set_options(
        self, field_ref: Entity, options: Mapping[int, str], replace: bool = False
    ) -> None:
        """Set the fixed option list of a field (keys are positive ints)."""
        ...

    def set_permissions(self, role: Entity, permissions: Sequence[str]) -> None:
        """Replace the permissions granted to a role."""
        ...

    def set_access(self, type_ref: Entity, role: Entity, access: Sequence[str]) -> None:
        """Grant ``role`` the given access levels on records of ``type_ref``."""
        ...

    # -- records -----------------------------------------------------------

    def get_record_by_path(self, path: str) -> Entity | None:
        """Resolve a record from its path (``/`` is the root record)."""
        ...

    def find_record(self, name: str, type_name: str, parent: Entity) -> Entity | None:
        """Look up a record by ``(name, type, parent)``."""
        ...

    def create_record(
        self, name: str, type_name: str, parent: Entity, title: str
    ) -> Entity:
        """Create a record under ``parent``."""
        ...

    def update_record(
        self,
        record: Entity,
        status: Sequence[str] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        """Replace status flags (when given) and merge data into a record."""
        ...

    def locales(self) -> list[str]:
        """Configured locale variants."""
        ...

    def enable_locale(self, record: Entity, locale: str) -> None:
        """Activate a locale variant of a record."""
        ...

    # -- export ------------------------------------------------------------

    def export_data(self, entity: Entity) -> dict[str, Any]:
        """Exported representation of an entity (may include ``id``)."""
        ...


__all__ = ["Entity", "ContentStore"]
