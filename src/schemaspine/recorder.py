"""
Schema snapshot recorder.

Writes the current fields and composite types of the store to one or more
files whenever the schema changed during a unit of work. A recording in
``migrate.yaml`` format can itself be watched, which turns a schema edited
through the host's UI into a migration file.

Lifecycle::

    field.saved / type.deleted / registry.refreshed / ...  → dirty = True
    request.finished (dirty)                               → flush()
        for each RecorderSpec: snapshot → YAML | JSON → file
        LastRunStore.mark()   # the files just written must not trigger a run
        dirty = False

Two flushes without a store mutation in between produce byte-identical
files: entities are sorted by name and surrogate ids are stripped.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from schemaspine.core.context import MigrationContext
from schemaspine.core.enums import EntityKind, RecordFormat
from schemaspine.core.errors import UnsupportedFormat
from schemaspine.core.events import (
    FIELD_DELETED,
    FIELD_SAVED,
    RECORDER_CONFIGURED,
    REGISTRY_REFRESHED,
    REQUEST_FINISHED,
    TYPE_DELETED,
    TYPE_SAVED,
    Event,
)
from schemaspine.core.logging import get_logger
from schemaspine.watch.clock import LastRunStore

logger = get_logger(__name__)

TRIGGER_EVENTS = (
    FIELD_SAVED,
    FIELD_DELETED,
    TYPE_SAVED,
    TYPE_DELETED,
    REGISTRY_REFRESHED,
    RECORDER_CONFIGURED,
)


@dataclass(frozen=True)
class RecorderSpec:
    """One recording target."""

    path: Path
    format: str = RecordFormat.YAML.value
    include_system: bool = False


class Recorder:
    """Collects recorder targets and flushes snapshots when the schema is dirty."""

    def __init__(
        self,
        ctx: MigrationContext,
        last_run: LastRunStore | None = None,
        *,
        subscribe: bool = True,
    ) -> None:
        self.ctx = ctx
        self.last_run = last_run
        self.dirty = False
        self._specs: dict[str, RecorderSpec] = {}
        self._subscriptions: list[str] = []
        if subscribe:
            self.open()

    @property
    def specs(self) -> list[RecorderSpec]:
        return list(self._specs.values())

    @property
    def listening(self) -> bool:
        return bool(self._subscriptions)

    def open(self) -> None:
        """Start listening to trigger events (no-op if already listening)."""
        if self._subscriptions:
            return
        for event_type in TRIGGER_EVENTS:
            self._subscriptions.append(self.ctx.events.subscribe(event_type, self._on_trigger))
        self._subscriptions.append(self.ctx.events.subscribe(REQUEST_FINISHED, self._on_finished))

    def close(self) -> None:
        """Stop listening to events."""
        for sub_id in self._subscriptions:
            self.ctx.events.unsubscribe(sub_id)
        self._subscriptions.clear()

    # -- configuration -------------------------------------------------------

    def record(
        self,
        path: str | os.PathLike[str],
        format: str | RecordFormat = RecordFormat.YAML,
        include_system: bool = False,
        remove: bool = False,
    ) -> None:
        """Add (or replace) the recorder writing to ``path``; ``remove`` drops it."""
        key = str(Path(path))
        if remove:
            if self._specs.pop(key, None) is not None:
                self.dirty = True
            return
        fmt = format.value if isinstance(format, RecordFormat) else str(format).lower()
        self._specs[key] = RecorderSpec(Path(path), fmt, include_system)
        self.dirty = True
        logger.debug("recorder.configured", path=key, format=fmt, include_system=include_system)

    # -- events --------------------------------------------------------------

    def _on_trigger(self, event: Event) -> None:
        self.dirty = True

    def _on_finished(self, event: Event) -> None:
        self.flush_if_dirty()

    # -- output --------------------------------------------------------------

    def snapshot(self, include_system: bool = False) -> dict[str, Any]:
        """Fields and composite types of the store as a migration document."""
        store = self.ctx.store
        data: dict[str, Any] = {}
        for section, kind in (("fields", EntityKind.FIELD), ("compositeTypes", EntityKind.TYPE)):
            entities = [
                e for e in store.list_all(kind) if include_system or not e.system
            ]
            exported: dict[str, Any] = {}
            for entity in sorted(entities, key=lambda e: e.name):
                item = store.export_data(entity)
                item.pop("id", None)
                exported[entity.name] = item
            data[section] = exported
        return data

    def render(self, spec: RecorderSpec) -> str:
        snapshot = self.snapshot(spec.include_system)
        if spec.format == RecordFormat.YAML.value:
            return yaml.safe_dump(
                snapshot, sort_keys=False, allow_unicode=True, default_flow_style=False
            )
        if spec.format == RecordFormat.JSON.value:
            return json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n"
        raise UnsupportedFormat(str(spec.path), spec.format)

    def flush(self) -> list[Path]:
        """Write every recorder target, mark the last run and clear the dirty flag."""
        written: list[Path] = []
        for spec in self._specs.values():
            try:
                content = self.render(spec)
            except UnsupportedFormat as e:
                self.ctx.report(e, fatal=False)
                continue
            spec.path.parent.mkdir(parents=True, exist_ok=True)
            spec.path.write_text(content, encoding="utf-8")
            written.append(spec.path)
            logger.info("recorder.written", path=str(spec.path), format=spec.format)

        if self.last_run is not None:
            self.last_run.mark()
        self.dirty = False
        return written

    def flush_if_dirty(self) -> list[Path]:
        if not self.dirty:
            return []
        return self.flush()


__all__ = ["Recorder", "RecorderSpec", "TRIGGER_EVENTS"]
