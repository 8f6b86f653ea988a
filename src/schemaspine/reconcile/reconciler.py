"""
Idempotent schema reconciler.

Manifesto:
    A migration document states what the schema should look like, not how to
    get there. Applying it twice must leave the store exactly as applying it
    once did. Every entry is found by name, never by position, so the same
    document always resolves to the same entities.

Architecture:
    ::

        apply(document)
          │
          ├── pass 1  create missing   fields (with ``type``) → types → roles
          ├── pass 2  configure        field props → type fields/props → role grants
          └── pass 3  records          resolve parent → find (name, type, parent)
                                       → update in place | create + enable locales

    Pass 1 runs before anything is configured so that a field may be attached
    to a type declared later in the same document, and a repeater may list
    sub-fields declared after it.

    Unresolved references are reported through the context; the affected
    entry is skipped and the pass continues.

Features:
    - Positional field attachment (the document order is the type order)
    - ``fields-`` exclusive lists detach everything not listed
    - ``options`` replace and ``options+`` merge fixed option sets
    - ``repeaterFields`` attach sub-fields to a repeater's backing type
    - Record upsert by ``(name, type, parent)``

Examples:
    >>> ctx = MigrationContext(store=InMemoryContentStore())
    >>> ctx.reconciler.apply({"fields": {"body": {"type": "textarea"}}})

Tags:
    reconcile, idempotent, migration, schema, content-model

Doc-Types:
    api-reference, architecture
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from schemaspine.core.enums import EntityKind
from schemaspine.core.errors import (
    DocumentError,
    SchemaSpineError,
    StoreOperationFailure,
    UnresolvedReference,
)
from schemaspine.core.logging import get_logger
from schemaspine.reconcile.document import ReconciliationDocument
from schemaspine.reconcile.store import Entity

if TYPE_CHECKING:
    from schemaspine.core.context import MigrationContext

logger = get_logger(__name__)

EntityRef = Entity | str
FieldList = Sequence[Any] | Mapping[str, Any]

_STRUCTURAL_FIELD_KEYS = frozenset({"type", "name", "id"})
_STRUCTURAL_TYPE_KEYS = frozenset({"name", "id"})


def _name(ref: EntityRef) -> str:
    return ref.name if isinstance(ref, Entity) else str(ref)


def _slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _field_items(fields: FieldList) -> list[tuple[str, dict[str, Any]]]:
    """Normalize a field list to ``[(name, context_props), ...]``.

    Accepts ``[a, b]``, ``{a: {label: ..}, b: null}`` and the YAML list form
    ``[a, {b: {label: ..}}]``.
    """
    items: list[tuple[str, dict[str, Any]]] = []
    if isinstance(fields, Mapping):
        for name, data in fields.items():
            if isinstance(name, int):
                items.append((str(data), {}))
            else:
                items.append((str(name), dict(data or {})))
        return items
    for item in fields:
        if isinstance(item, Mapping):
            items.extend((str(k), dict(v or {})) for k, v in item.items())
        else:
            items.append((str(item), {}))
    return items


class Reconciler:
    """Applies reconciliation documents to the context's content store."""

    def __init__(self, ctx: MigrationContext):
        self.ctx = ctx

    @property
    def store(self):
        return self.ctx.store

    # =========================================================================
    # Document application
    # =========================================================================

    def apply(
        self, document: Mapping[str, Any] | ReconciliationDocument
    ) -> ReconciliationDocument:
        """Reconcile the store with ``document`` and return the parsed document."""
        doc = ReconciliationDocument.from_mapping(document)
        fields = self._mappings("field", doc.fields)
        types = self._mappings("type", doc.composite_types)
        roles = self._mappings("role", doc.roles)

        # pass 1: create what is missing
        for name, data in fields.items():
            # no type means only properties of an existing field are set
            if "type" in data:
                self.create_field(name, data["type"])
        for name in types:
            self.create_type(name, add_title_field=False)
        for name in roles:
            self.create_role(name)

        # pass 2: configure
        for name, data in fields.items():
            self.set_field_data(name, data)
        for name, data in types.items():
            self.set_type_data(name, data)
        for name, data in roles.items():
            if "permissions" in data:
                self.set_role_permissions(name, data["permissions"] or [])
            access = data.get("access") or {}
            if not isinstance(access, Mapping):
                self.ctx.report(
                    DocumentError("Value of property 'access' must be a mapping").with_context(
                        entity_kind="role", entity_name=name
                    ),
                    fatal=False,
                )
                continue
            for type_name, levels in access.items():
                self.set_type_access(type_name, name, levels)

        # pass 3: records
        for key, data in doc.records.items():
            self._apply_record(key, data)

        logger.info(
            "reconcile.applied",
            fields=len(fields),
            types=len(types),
            roles=len(roles),
            records=len(doc.records),
        )
        return doc

    def _mappings(self, kind: str, section: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = {}
        for name, data in section.items():
            if not isinstance(data, Mapping):
                self.ctx.report(
                    DocumentError(f"Entry {name} must be a mapping").with_context(
                        entity_kind=kind, entity_name=name
                    )
                )
                continue
            result[name] = dict(data)
        return result

    def _apply_record(self, key: Any, data: Any) -> Entity | None:
        if not isinstance(data, Mapping):
            self.ctx.report(DocumentError(f"Record {key} must be a mapping"))
            return None
        if data.get("name"):
            name = str(data["name"])
        elif isinstance(key, str):
            name = key
        else:
            name = uuid.uuid4().hex[:13]

        template = data.get("template")
        if not template:
            self.ctx.report(UnresolvedReference("type", None, f"Record {name} has no template"))
            return None

        status = data.get("status") or []
        if isinstance(status, str):
            status = [status]
        return self.create_record(
            str(data.get("title") or name),
            name=name,
            type=template,
            parent=data.get("parent") or "/",
            status=status,
            data=data.get("data") or {},
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def _resolve(self, kind: EntityKind, ref: EntityRef | None) -> Entity | None:
        if isinstance(ref, Entity):
            return ref
        entity = self.store.get(kind, str(ref)) if ref is not None else None
        if entity is None:
            self.ctx.report(UnresolvedReference(kind.value, ref))
        return entity

    def _field(self, ref: EntityRef | None) -> Entity | None:
        return self._resolve(EntityKind.FIELD, ref)

    def _type(self, ref: EntityRef | None) -> Entity | None:
        return self._resolve(EntityKind.TYPE, ref)

    def _role(self, ref: EntityRef | None) -> Entity | None:
        return self._resolve(EntityKind.ROLE, ref)

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke a store operation, turning collaborator errors into reports."""
        try:
            return func(*args, **kwargs)
        except SchemaSpineError:
            raise
        except Exception as e:
            self.ctx.report(StoreOperationFailure(operation, str(e), cause=e))
            return None

    # =========================================================================
    # Creation
    # =========================================================================

    def create_field(
        self, name: str, fieldtype: str, data: Mapping[str, Any] | None = None
    ) -> Entity | None:
        """Create a field unless it exists; optionally set its properties."""
        field = self.store.get(EntityKind.FIELD, name)
        if field is None:
            field = self._call("create_field", self.store.create, EntityKind.FIELD, name, fieldtype)
            if field is None:
                return None
            self.ctx.note("reconcile.field_created", field=name, fieldtype=fieldtype)
        if data:
            self.set_field_data(field, data)
        return field

    def create_type(self, name: str, add_title_field: bool = True) -> Entity | None:
        """Create a composite type unless it exists."""
        type_ref = self.store.get(EntityKind.TYPE, name)
        if type_ref is None:
            type_ref = self._call("create_type", self.store.create, EntityKind.TYPE, name)
            if type_ref is None:
                return None
            self.ctx.note("reconcile.type_created", type=name)
        if add_title_field:
            self.add_field_to_type("title", type_ref)
        return type_ref

    def create_role(self, name: str) -> Entity | None:
        """Create a role unless it exists."""
        role = self.store.get(EntityKind.ROLE, name)
        if role is None:
            role = self._call("create_role", self.store.create, EntityKind.ROLE, name)
            if role is not None:
                self.ctx.note("reconcile.role_created", role=name)
        return role

    def create_record(
        self,
        title: str,
        name: str | None = None,
        type: EntityRef | None = None,
        parent: EntityRef = "/",
        status: Sequence[str] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Entity | None:
        """Create or update the record ``(name, type, parent)``.

        An existing record gets its status, title and data updated in place.
        A new record additionally has every configured locale enabled.
        """
        name = name or _slugify(title)
        type_ref = self._type(type)
        if type_ref is None:
            return None

        if isinstance(parent, Entity):
            parent_ref: Entity | None = parent
        else:
            parent_ref = self.store.get_record_by_path(str(parent))
        if parent_ref is None:
            self.ctx.report(UnresolvedReference("record", parent, f"Parent {parent} not found"))
            return None

        status = list(status or [])
        record = self.store.find_record(name, type_ref.name, parent_ref)
        if record is not None:
            self._call(
                "update_record",
                self.store.update_record,
                record,
                status=status,
                data={"title": title, **dict(data or {})},
            )
            return record

        record = self._call(
            "create_record", self.store.create_record, name, type_ref.name, parent_ref, title
        )
        if record is None:
            return None
        self._call("update_record", self.store.update_record, record, status=status, data=dict(data or {}))
        self.enable_all_locales(record)
        self.ctx.note("reconcile.record_created", record=name, type=type_ref.name)
        return record

    # =========================================================================
    # Fields
    # =========================================================================

    def set_field_data(
        self,
        field: EntityRef,
        data: Mapping[str, Any],
        type: EntityRef | Sequence[EntityRef] | None = None,
    ) -> Entity | None:
        """Set properties of a field.

        Without ``type`` the properties are set on the field itself; with one
        (or several) types they are set as type-scoped context.
        """
        field_ref = self._field(field)
        if field_ref is None:
            return None

        props: dict[str, Any] = {}
        for key, value in data.items():
            if key in _STRUCTURAL_FIELD_KEYS:
                continue
            if key == "template_id":
                if isinstance(value, str):
                    target = self._type(value)
                    if target is None:
                        continue
                    value = target.id
                props[key] = value
            elif key == "repeaterFields":
                props[key] = self._set_repeater_fields(field_ref, value or [])
            elif key == "options":
                self.set_options(field_ref, value or {}, replace=True)
            elif key == "options+":
                self.set_options(field_ref, value or {}, replace=False)
            else:
                props[key] = value

        if not props:
            return field_ref

        if type is None:
            self._call("set_field_data", self.store.set_properties, field_ref, props)
            return field_ref

        targets = type if isinstance(type, (list, tuple)) else [type]
        for target in targets:
            type_ref = self._type(target)
            if type_ref is not None:
                self._call(
                    "set_field_context", self.store.set_field_context, type_ref, field_ref, props
                )
        return field_ref

    def _set_repeater_fields(self, field: Entity, fields: FieldList) -> list[str]:
        backing = self.store.companion_type(field)
        if backing is None:
            self.ctx.report(
                UnresolvedReference("type", f"repeater_{field.name}", f"Field {field.name} has no backing type")
            )
            return []
        self.set_type_fields(backing, fields)
        return [name for name, _ in _field_items(fields)]

    def set_options(
        self,
        field: EntityRef,
        options: Mapping[Any, Any] | Sequence[str],
        replace: bool = True,
    ) -> Entity | None:
        """Set the fixed options of a field (``{1: "value|Label"}``).

        ``replace`` removes options absent from ``options``. Key ``0`` is
        invalid and skipped.
        """
        field_ref = self._field(field)
        if field_ref is None:
            return None

        if not isinstance(options, Mapping):
            options = {index: value for index, value in enumerate(options, start=1)}

        clean: dict[int, str] = {}
        for key, value in options.items():
            try:
                number = int(key)
            except (TypeError, ValueError):
                self.ctx.report(
                    DocumentError(f"Option key {key!r} of {field_ref.name} is not an integer"),
                    fatal=False,
                )
                continue
            if number <= 0:
                logger.warning("reconcile.option_key_invalid", field=field_ref.name, key=key)
                continue
            clean[number] = str(value)

        self._call("set_options", self.store.set_options, field_ref, clean, replace=replace)
        return field_ref

    def delete_field(self, name: EntityRef) -> None:
        """Delete a field (and its fieldset closer) from every type and the store."""
        field_ref = self._field(name)
        if field_ref is None:
            return
        closer = self.store.closing_field(field_ref)
        if closer is not None:
            self.delete_field(closer)
        self._call("delete_field", self.store.delete, field_ref)
        self.ctx.note("reconcile.field_deleted", field=field_ref.name)

    # =========================================================================
    # Types
    # =========================================================================

    def set_type_data(self, type: EntityRef, data: Mapping[str, Any]) -> Entity | None:
        """Set properties of a composite type (only the ones given)."""
        type_ref = self._type(type)
        if type_ref is None:
            return None

        props: dict[str, Any] = {}
        for key, value in data.items():
            if key in ("fields", "fields-"):
                if isinstance(value, (list, tuple, Mapping)):
                    self.set_type_fields(type_ref, value, exclusive=(key == "fields-"))
                else:
                    self.ctx.report(
                        DocumentError(f"Value of property '{key}' must be a list").with_context(
                            entity_kind="type", entity_name=type_ref.name
                        ),
                        fatal=False,
                    )
                continue
            if key in _STRUCTURAL_TYPE_KEYS:
                continue
            props[key] = value

        if props:
            self._call("set_type_data", self.store.set_properties, type_ref, props)
        return type_ref

    def set_type_fields(
        self, type: EntityRef, fields: FieldList, exclusive: bool = False
    ) -> Entity | None:
        """Attach fields to a type in the given order.

        Each field is placed after the one listed before it. With
        ``exclusive`` every other attached field is detached, except closers
        of listed fieldset openers.
        """
        type_ref = self._type(type)
        if type_ref is None:
            return None

        last: Entity | None = None
        keep: set[str] = set()
        for name, context in _field_items(fields):
            field_ref = self._field(name)
            if field_ref is None:
                continue
            keep.add(field_ref.name)
            closer = self.add_field_to_type(field_ref, type_ref, after=last)
            if closer is not None:
                keep.add(closer.name)
            if context:
                self.set_field_data(field_ref, context, type=type_ref)
            last = field_ref

        if exclusive:
            for attached in self.store.type_fields(type_ref):
                if attached.name not in keep:
                    self._call("detach_field", self.store.detach_field, type_ref, attached)
        return type_ref

    def add_field_to_type(
        self,
        field: EntityRef,
        type: EntityRef,
        after: EntityRef | None = None,
        before: EntityRef | None = None,
    ) -> Entity | None:
        """Attach a field to a type, positioned after/before another field.

        Returns the fieldset closer attached along with an opener, if any.
        """
        field_ref = self._field(field)
        type_ref = self._type(type)
        if field_ref is None or type_ref is None:
            return None
        after_ref = self._field(after) if after is not None else None
        before_ref = self._field(before) if before is not None and after_ref is None else None

        self._call(
            "add_field_to_type",
            self.store.attach_field,
            type_ref,
            field_ref,
            after=after_ref,
            before=before_ref,
        )
        closer = self.store.closing_field(field_ref)
        if closer is not None:
            self._call("add_field_to_type", self.store.attach_field, type_ref, closer, after=field_ref)
        return closer

    def remove_field_from_type(self, field: EntityRef, type: EntityRef) -> None:
        field_ref = self._field(field)
        type_ref = self._type(type)
        if field_ref is None or type_ref is None:
            return
        self._call("remove_field_from_type", self.store.detach_field, type_ref, field_ref)

    def remove_fields_from_type(self, fields: Sequence[EntityRef], type: EntityRef) -> None:
        for field in fields:
            self.remove_field_from_type(field, type)

    def set_parent_child(
        self, parent: EntityRef, child: EntityRef, only_one_parent: bool = True
    ) -> None:
        """Restrict ``child`` records to live under ``parent`` records."""
        self.set_type_data(
            child,
            {"noChildren": 1, "noParents": "", "parentTemplates": [_name(parent)]},
        )
        self.set_type_data(
            parent,
            {
                "noChildren": 0,
                "noParents": -1 if only_one_parent else 0,
                "childTemplates": [_name(child)],
                "childNameFormat": "title",
            },
        )

    # =========================================================================
    # Roles and records
    # =========================================================================

    def set_role_permissions(self, role: EntityRef, permissions: Sequence[str]) -> Entity | None:
        role_ref = self._role(role)
        if role_ref is None:
            return None
        self._call("set_role_permissions", self.store.set_permissions, role_ref, list(permissions))
        return role_ref

    def set_type_access(
        self, type: EntityRef, role: EntityRef, access: Sequence[str] | str
    ) -> None:
        """Grant ``role`` access levels (view, edit, create, add) on ``type``."""
        type_ref = self._type(type)
        role_ref = self._role(role)
        if type_ref is None or role_ref is None:
            return
        levels = [access] if isinstance(access, str) else list(access or [])
        self._call("set_type_access", self.store.set_access, type_ref, role_ref, levels)

    def enable_all_locales(self, record: Entity) -> None:
        for locale in self.store.locales():
            self._call("enable_locale", self.store.enable_locale, record, locale)


__all__ = ["Reconciler"]
