"""SchemaSpine service - the host-facing facade.

Manifesto:
    A host wants one object: give it a content store, tell it where the
    site's migration files live, and call ``run`` at the right moments. The
    service wires the registry, the change clock, the runner, the
    reconciler and the recorders together and listens to the host's events.

Tags:
    schema-spine, service, facade, orchestrator

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEMASPINE SERVICE                                                          │
│                                                                               │
│   start()                                                                     │
│   ├── privilege gate (once; unprivileged actors register nothing)            │
│   ├── register  <site_dir>/migrate.(yaml|json|py)                             │
│   ├── watch_modules(<modules_dir>)                                            │
│   ├── recorders  project.yaml / migrate.yaml                                  │
│   └── subscribe  registry.refreshed → run(force=True)                         │
│                                                                               │
│   run(force)              → Runner → Reconciler → ContentStore                │
│   finish_request()        → request.finished → Recorder.flush_if_dirty()      │
│   status() / reset()      → LastRunStore + ChangeClock                        │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from schemaspine.core.cache import CacheBackend, FileCache
from schemaspine.core.context import MigrationContext
from schemaspine.core.enums import RecordFormat
from schemaspine.core.events import REGISTRY_REFRESHED, REQUEST_FINISHED, Event, EventBus
from schemaspine.core.logging import get_logger
from schemaspine.core.settings import SchemaSpineSettings, get_settings
from schemaspine.reconcile.document import ReconciliationDocument
from schemaspine.reconcile.reconciler import Reconciler
from schemaspine.reconcile.store import ContentStore
from schemaspine.recorder import Recorder
from schemaspine.watch.clock import ChangeClock, LastRunStore
from schemaspine.watch.registry import WatchEntry, WatchRegistry
from schemaspine.watch.runner import Runner, RunReport

logger = get_logger(__name__)


@dataclass
class ServiceStatus:
    """Snapshot of the scheduler state."""

    last_run: int
    latest_change: int
    due: bool
    entries: list[WatchEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_run": self.last_run,
            "latest_change": self.latest_change,
            "due": self.due,
            "entries": [
                {
                    "key": e.key,
                    "kind": e.kind.value,
                    "priority": e.priority,
                    "should_reconcile": e.should_reconcile,
                    "origin": e.origin,
                }
                for e in self.entries
            ],
        }


class SchemaSpine:
    """Facade combining registry, runner, reconciler and recorder.

    Example:
        >>> spine = SchemaSpine(InMemoryContentStore(), settings)
        >>> spine.elevate()
        >>> spine.start()
        >>> spine.register("site/modules/blog/blog.migrate.yaml", priority=2)
        >>> spine.evaluate_and_run_if_due()
        >>> spine.finish_request()
    """

    def __init__(
        self,
        store: ContentStore,
        settings: SchemaSpineSettings | None = None,
        *,
        cache: CacheBackend | None = None,
        events: EventBus | None = None,
        actor: str = "guest",
        privileged: bool = False,
    ) -> None:
        self.settings = settings or get_settings()
        bus = events or getattr(store, "events", None) or EventBus()
        self.ctx = MigrationContext(
            store=store,
            output_mode=self.settings.output_mode,
            actor=actor,
            privileged=privileged,
            events=bus,
        )
        self.registry = WatchRegistry(self.ctx)
        self.last_run = LastRunStore(cache if cache is not None else FileCache(self.settings.state_file))
        self.runner = Runner(
            self.ctx,
            self.registry,
            self.last_run,
            mark_mode=self.settings.mark_mode,
            always_run=self.settings.always_run,
        )
        self.recorder = Recorder(self.ctx, self.last_run)
        self._refresh_subscription: str | None = None
        self._started = False
        self._registered = False
        self._previous_strict: bool | None = None

    @property
    def reconciler(self) -> Reconciler:
        return self.ctx.reconciler

    @property
    def events(self) -> EventBus:
        return self.ctx.events

    def elevate(self) -> None:
        """Act as the administrative user (CLI and other headless callers)."""
        self.ctx.elevate()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        """Register the site's migration sources and recorders.

        Returns False (and registers nothing) for an unprivileged actor. In
        debug mode the event bus is made strict so that a failure inside a
        refresh-triggered run reaches whoever emitted the event.
        """
        if self._started:
            return True
        if not self.ctx.privileged:
            logger.info("service.unprivileged", actor=self.ctx.actor)
            return False

        if not self._registered:
            self.registry.register(self.settings.migrate_path)
            if self.settings.modules_dir is not None:
                self.registry.watch_modules(self.settings.modules_dir)
            self._registered = True

        self.recorder.open()
        if self.settings.save_to_project:
            self.recorder.record(self.settings.project_record_path, RecordFormat.YAML)
        if self.settings.save_to_migrate:
            self.recorder.record(self.settings.migrate_record_path, RecordFormat.YAML)

        if self.settings.fire_on_refresh:
            self._refresh_subscription = self.events.subscribe(
                REGISTRY_REFRESHED, self._on_refresh
            )

        if self.ctx.is_debug:
            self._previous_strict = self.events.strict
            self.events.strict = True

        self._started = True
        logger.info(
            "service.started",
            entries=len(self.registry),
            recorders=len(self.recorder.specs),
        )
        return True

    def stop(self) -> None:
        if self._refresh_subscription is not None:
            self.events.unsubscribe(self._refresh_subscription)
            self._refresh_subscription = None
        if self._previous_strict is not None:
            self.events.strict = self._previous_strict
            self._previous_strict = None
        self.recorder.close()
        self._started = False

    def _on_refresh(self, event: Event) -> None:
        logger.info("service.refresh", source=event.source)
        self.run(force=True)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self,
        target: Any,
        should_reconcile: bool = True,
        priority: float = 1.0,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Add a migration source (ignored for unprivileged actors)."""
        if not self.ctx.privileged:
            logger.debug("service.register_ignored", actor=self.ctx.actor)
            return
        self.registry.register(target, should_reconcile, priority, options)

    def unregister(self, target: Any) -> int:
        return self.registry.unregister(target)

    def watch_modules(self, directory: Any, priority: float = 1.0) -> None:
        if self.ctx.privileged:
            self.registry.watch_modules(directory, priority)

    # =========================================================================
    # Execution
    # =========================================================================

    def run(self, force: bool = False) -> RunReport:
        return self.runner.run(force=force)

    def evaluate_and_run_if_due(self) -> RunReport:
        return self.runner.evaluate_and_run_if_due()

    def apply(self, document: Mapping[str, Any] | ReconciliationDocument) -> ReconciliationDocument:
        """Apply a document directly, outside of change detection."""
        return self.reconciler.apply(document)

    def finish_request(self) -> None:
        """Signal the end of a unit of work (flushes dirty recorders)."""
        self.events.emit(REQUEST_FINISHED, source="service")

    # =========================================================================
    # Recording and state
    # =========================================================================

    def record(
        self,
        path: Any,
        format: str | RecordFormat = RecordFormat.YAML,
        include_system: bool = False,
        remove: bool = False,
    ) -> None:
        self.recorder.record(path, format, include_system, remove)

    def reset(self) -> None:
        """Force the next evaluation to be due."""
        self.last_run.reset()
        logger.info("service.reset")

    def status(self) -> ServiceStatus:
        entries = self.registry.entries()
        last = self.last_run.get()
        latest = ChangeClock.latest_change(entries)
        return ServiceStatus(
            last_run=last,
            latest_change=latest,
            due=ChangeClock.is_due(last, latest, always_run=self.settings.always_run),
            entries=entries,
        )


__all__ = ["SchemaSpine", "ServiceStatus"]
