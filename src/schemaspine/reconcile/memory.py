"""
Reference in-memory content store.

Implements :class:`~schemaspine.reconcile.store.ContentStore` with plain
dictionaries. It is the default store of the CLI and the store every test
runs against; it is not meant to persist anything.

Behaviour worth knowing:

- A fresh store contains a system ``title`` field, a system ``home`` type and
  the root record ``/`` (named ``home``).
- Creating a ``fieldset_open`` field spawns ``<name>_END`` (``fieldset_close``).
- Creating a ``repeater`` field spawns the system type ``repeater_<name>``.
- Mutations publish ``field.*`` / ``type.*`` events when an event bus is given.
- Every public call is appended to :attr:`calls`, which lets tests assert
  that a run touched the store not at all.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import Any

from schemaspine.core.enums import EntityKind
from schemaspine.core.events import (
    FIELD_DELETED,
    FIELD_SAVED,
    TYPE_DELETED,
    TYPE_SAVED,
    EventBus,
)
from schemaspine.reconcile.store import Entity

FIELD_TYPES = frozenset(
    {
        "text",
        "textarea",
        "integer",
        "float",
        "checkbox",
        "email",
        "url",
        "datetime",
        "options",
        "page",
        "file",
        "image",
        "repeater",
        "fieldset_open",
        "fieldset_close",
    }
)

ROOT_PATH = "/"


class InMemoryContentStore:
    """Dictionary-backed content store."""

    def __init__(
        self,
        *,
        events: EventBus | None = None,
        locales: Sequence[str] = ("default",),
    ) -> None:
        self.events = events
        self.calls: list[str] = []
        self._locales = list(locales)
        self._next_id = 1
        self._entities: dict[EntityKind, dict[str, Entity]] = {
            EntityKind.FIELD: {},
            EntityKind.TYPE: {},
            EntityKind.ROLE: {},
        }
        self._records: dict[int, Entity] = {}
        self._type_fields: dict[str, list[str]] = {}
        self._contexts: dict[tuple[str, str], dict[str, Any]] = {}
        self._closers: dict[str, str] = {}
        self._companions: dict[str, str] = {}

        self._add(EntityKind.FIELD, "title", fieldtype="text", system=True, props={"label": "Title"})
        self._add(EntityKind.TYPE, "home", system=True)
        root = Entity(
            kind=EntityKind.RECORD,
            name="home",
            id=self._take_id(),
            type_name="home",
            props={"title": "Home", "status": [], "locales": list(self._locales)},
        )
        self._records[root.id] = root

    # -- internals -----------------------------------------------------------

    def _take_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def _add(
        self,
        kind: EntityKind,
        name: str,
        fieldtype: str | None = None,
        system: bool = False,
        props: Mapping[str, Any] | None = None,
    ) -> Entity:
        entity = Entity(
            kind=kind,
            name=name,
            id=self._take_id(),
            fieldtype=fieldtype,
            system=system,
            props=dict(props or {}),
        )
        self._entities[kind][name] = entity
        if kind == EntityKind.TYPE:
            self._type_fields[name] = []
        return entity

    def _emit(self, entity: Entity, deleted: bool = False) -> None:
        if self.events is None:
            return
        if entity.kind == EntityKind.FIELD:
            event_type = FIELD_DELETED if deleted else FIELD_SAVED
        elif entity.kind == EntityKind.TYPE:
            event_type = TYPE_DELETED if deleted else TYPE_SAVED
        else:
            return
        self.events.emit(event_type, source="memory-store", payload={"name": entity.name})

    def _require(self, entity: Entity) -> Entity:
        if entity.kind == EntityKind.RECORD:
            current = self._records.get(entity.id)
        else:
            current = self._entities[entity.kind].get(entity.name)
        if current is None:
            raise KeyError(f"{entity.kind.value} {entity.name} does not exist")
        return current

    def _path_of(self, record: Entity) -> str:
        parts: list[str] = []
        current: Entity | None = record
        while current is not None and current.parent_id is not None:
            parts.append(current.name)
            current = self._records.get(current.parent_id)
        if not parts:
            return ROOT_PATH
        return "/" + "/".join(reversed(parts)) + "/"

    # -- lookup --------------------------------------------------------------

    def get(self, kind: EntityKind, name: str) -> Entity | None:
        self.calls.append("get")
        if kind == EntityKind.RECORD:
            return self.get_record_by_path(name)
        return self._entities[kind].get(str(name))

    def list_all(self, kind: EntityKind) -> list[Entity]:
        self.calls.append("list_all")
        if kind == EntityKind.RECORD:
            return list(self._records.values())
        return list(self._entities[kind].values())

    def type_fields(self, type_ref: Entity) -> list[Entity]:
        self.calls.append("type_fields")
        names = self._type_fields.get(type_ref.name, [])
        return [self._entities[EntityKind.FIELD][n] for n in names]

    # -- lifecycle -----------------------------------------------------------

    def create(
        self,
        kind: EntityKind,
        name: str,
        fieldtype: str | None = None,
        props: Mapping[str, Any] | None = None,
    ) -> Entity:
        self.calls.append("create")
        if kind == EntityKind.RECORD:
            raise ValueError("Use create_record() for records")
        if name in self._entities[kind]:
            raise ValueError(f"{kind.value} {name} already exists")

        if kind == EntityKind.FIELD:
            if name.lower() != name:
                raise ValueError("Field name must be lowercase")
            if fieldtype not in FIELD_TYPES:
                raise ValueError(f"No fieldtype found for {fieldtype}")
            entity = self._add(kind, name, fieldtype=fieldtype, props={"label": name, **(props or {})})
            if fieldtype == "fieldset_open":
                closer = self._add(
                    EntityKind.FIELD,
                    f"{name}_END",
                    fieldtype="fieldset_close",
                    props={"label": f"Close an open fieldset: {name}"},
                )
                self._closers[name] = closer.name
            elif fieldtype == "repeater":
                backing = self._add(EntityKind.TYPE, f"repeater_{name}", system=True)
                self._companions[name] = backing.name
        else:
            entity = self._add(kind, name, props=props)

        self._emit(entity)
        return entity

    def delete(self, entity: Entity) -> None:
        self.calls.append("delete")
        current = self._require(entity)
        if current.kind == EntityKind.RECORD:
            del self._records[current.id]
            return
        if current.kind == EntityKind.FIELD:
            for type_name, names in self._type_fields.items():
                if current.name in names:
                    names.remove(current.name)
                self._contexts.pop((type_name, current.name), None)
            self._closers.pop(current.name, None)
        elif current.kind == EntityKind.TYPE:
            self._type_fields.pop(current.name, None)
        del self._entities[current.kind][current.name]
        self._emit(current, deleted=True)

    # -- structure -----------------------------------------------------------

    def attach_field(
        self,
        type_ref: Entity,
        field_ref: Entity,
        after: Entity | None = None,
        before: Entity | None = None,
    ) -> None:
        self.calls.append("attach_field")
        type_ref = self._require(type_ref)
        field_ref = self._require(field_ref)
        names = self._type_fields[type_ref.name]

        anchor = after or before
        if anchor is None or anchor.name == field_ref.name:
            if field_ref.name not in names:
                names.append(field_ref.name)
        else:
            if field_ref.name in names:
                names.remove(field_ref.name)
            if anchor.name not in names:
                names.append(anchor.name)
            index = names.index(anchor.name)
            names.insert(index + 1 if after is not None else index, field_ref.name)
        self._emit(type_ref)

    def detach_field(self, type_ref: Entity, field_ref: Entity) -> None:
        self.calls.append("detach_field")
        type_ref = self._require(type_ref)
        names = self._type_fields[type_ref.name]
        if field_ref.name in names:
            names.remove(field_ref.name)
            self._contexts.pop((type_ref.name, field_ref.name), None)
            self._emit(type_ref)

    def companion_type(self, field_ref: Entity) -> Entity | None:
        self.calls.append("companion_type")
        name = self._companions.get(field_ref.name)
        return self._entities[EntityKind.TYPE].get(name) if name else None

    def closing_field(self, field_ref: Entity) -> Entity | None:
        self.calls.append("closing_field")
        name = self._closers.get(field_ref.name)
        return self._entities[EntityKind.FIELD].get(name) if name else None

    # -- properties ----------------------------------------------------------

    def set_properties(self, entity: Entity, props: Mapping[str, Any]) -> None:
        self.calls.append("set_properties")
        current = self._require(entity)
        current.props.update(copy.deepcopy(dict(props)))
        self._emit(current)

    def set_field_context(
        self, type_ref: Entity, field_ref: Entity, props: Mapping[str, Any]
    ) -> None:
        self.calls.append("set_field_context")
        type_ref = self._require(type_ref)
        field_ref = self._require(field_ref)
        key = (type_ref.name, field_ref.name)
        self._contexts.setdefault(key, {}).update(copy.deepcopy(dict(props)))
        self._emit(type_ref)

    def field_context(self, type_ref: Entity, field_ref: Entity) -> dict[str, Any]:
        """Type-scoped override properties of a field (empty when none)."""
        return dict(self._contexts.get((type_ref.name, field_ref.name), {}))

    def set_options(
        self, field_ref: Entity, options: Mapping[int, str], replace: bool = False
    ) -> None:
        self.calls.append("set_options")
        current = self._require(field_ref)
        if any(int(k) <= 0 for k in options):
            raise ValueError("Option keys must be positive integers")
        existing: dict[int, str] = {} if replace else dict(current.props.get("options", {}))
        existing.update({int(k): str(v) for k, v in options.items()})
        current.props["options"] = dict(sorted(existing.items()))
        self._emit(current)

    def set_permissions(self, role: Entity, permissions: Sequence[str]) -> None:
        self.calls.append("set_permissions")
        current = self._require(role)
        current.props["permissions"] = list(permissions)

    def set_access(self, type_ref: Entity, role: Entity, access: Sequence[str]) -> None:
        self.calls.append("set_access")
        type_ref = self._require(type_ref)
        role = self._require(role)
        grants = type_ref.props.setdefault("access", {})
        grants[role.name] = list(access)
        self._emit(type_ref)

    # -- records -------------------------------------------------------------

    def get_record_by_path(self, path: str) -> Entity | None:
        self.calls.append("get_record_by_path")
        wanted = "/" + "/".join(p for p in str(path).split("/") if p)
        wanted = ROOT_PATH if wanted == "/" else wanted + "/"
        for record in self._records.values():
            if self._path_of(record) == wanted:
                return record
        return None

    def find_record(self, name: str, type_name: str, parent: Entity) -> Entity | None:
        self.calls.append("find_record")
        for record in self._records.values():
            if (
                record.name == name
                and record.type_name == type_name
                and record.parent_id == parent.id
            ):
                return record
        return None

    def create_record(
        self, name: str, type_name: str, parent: Entity, title: str
    ) -> Entity:
        self.calls.append("create_record")
        if type_name not in self._entities[EntityKind.TYPE]:
            raise KeyError(f"type {type_name} does not exist")
        parent = self._require(parent)
        record = Entity(
            kind=EntityKind.RECORD,
            name=name,
            id=self._take_id(),
            type_name=type_name,
            parent_id=parent.id,
            props={"title": title, "status": [], "locales": []},
        )
        self._records[record.id] = record
        return record

    def update_record(
        self,
        record: Entity,
        status: Sequence[str] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        self.calls.append("update_record")
        current = self._require(record)
        if status is not None:
            current.props["status"] = list(status)
        if data:
            current.props.update(copy.deepcopy(dict(data)))

    def locales(self) -> list[str]:
        self.calls.append("locales")
        return list(self._locales)

    def enable_locale(self, record: Entity, locale: str) -> None:
        self.calls.append("enable_locale")
        current = self._require(record)
        enabled = current.props.setdefault("locales", [])
        if locale not in enabled:
            enabled.append(locale)

    # -- export --------------------------------------------------------------

    def export_data(self, entity: Entity) -> dict[str, Any]:
        self.calls.append("export_data")
        current = self._require(entity)
        data: dict[str, Any] = {"id": current.id}

        if current.kind == EntityKind.FIELD:
            data["type"] = current.fieldtype
        elif current.kind == EntityKind.TYPE:
            names = self._type_fields.get(current.name, [])
            contexts = {n: self._contexts[(current.name, n)] for n in names if (current.name, n) in self._contexts}
            if contexts:
                data["fields"] = {n: copy.deepcopy(contexts.get(n, {})) for n in names}
            else:
                data["fields"] = list(names)
        elif current.kind == EntityKind.RECORD:
            data["template"] = current.type_name
            parent = self._records.get(current.parent_id) if current.parent_id else None
            data["parent"] = self._path_of(parent) if parent else None

        data.update(copy.deepcopy(current.props))
        if isinstance(data.get("template_id"), int):
            # ids are store-local; export the type name set_field_data resolves back
            target = self._type_by_id(data["template_id"])
            if target is not None:
                data["template_id"] = target.name
        return data

    def _type_by_id(self, type_id: int) -> Entity | None:
        for entity in self._entities[EntityKind.TYPE].values():
            if entity.id == type_id:
                return entity
        return None


__all__ = ["InMemoryContentStore", "FIELD_TYPES"]
