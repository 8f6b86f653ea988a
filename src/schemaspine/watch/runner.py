"""
Migration runner.

Manifesto:
    Migrations run when something changed and only then. One evaluation
    compares the newest watched file against the last run; if nothing is
    newer the runner returns without touching the store. If a run is due,
    every reconcilable entry executes once, in registry order.

Architecture:
    ::

        run(force)
          │
          ├── latest_change(registry) vs LastRunStore.get()
          │     └── not due → RunReport(due=False), no side effects
          ├── mark last run (mark_mode=before, default)
          ├── for entry in registry (priority desc, stable):
          │     ├── watch-only → skipped
          │     ├── CALLBACK   → callback(ctx)
          │     ├── COMPONENT  → component.reconcile(ctx) | skipped
          │     └── FILE       → decode → Document → reconciler.apply
          │                              Text     → YAML → apply
          │                              Nothing  → skipped ("no config")
          └── mark last run (mark_mode=after)

    Marking before execution means a file that keeps failing does not
    re-trigger on every evaluation; the next change (or ``force``) retries.

Failure policy:
    Per entry, through :meth:`MigrationContext.report`. quiet swallows,
    verbose logs and continues, debug re-raises and aborts the run. Effects
    already applied stay applied.

Tags:
    runner, scheduler, change-detection, migration, schema-spine

Doc-Types:
    api-reference, architecture
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field

from schemaspine.core.context import MigrationContext
from schemaspine.core.enums import MarkMode, WatchKind
from schemaspine.core.errors import SchemaSpineError
from schemaspine.core.logging import LogContext, get_logger
from schemaspine.watch.clock import ChangeClock, LastRunStore
from schemaspine.watch.decoder import (
    DecodedDocument,
    DecodedNothing,
    DecodedText,
    decode_file,
    decode_text,
)
from schemaspine.watch.registry import WatchEntry, WatchRegistry

logger = get_logger(__name__)


@dataclass
class RunReport:
    """Outcome of one evaluation."""

    due: bool
    forced: bool = False
    last_run: int = 0
    latest_change: int = 0
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class Runner:
    """Evaluates the registry and executes due migrations."""

    def __init__(
        self,
        ctx: MigrationContext,
        registry: WatchRegistry,
        last_run: LastRunStore,
        *,
        mark_mode: MarkMode = MarkMode.BEFORE,
        always_run: bool = False,
    ) -> None:
        self.ctx = ctx
        self.registry = registry
        self.last_run = last_run
        self.mark_mode = mark_mode
        self.always_run = always_run

    def evaluate_and_run_if_due(self) -> RunReport:
        return self.run(force=False)

    def run(self, force: bool = False) -> RunReport:
        """Run all reconcilable entries if due (or when ``force``)."""
        entries = self.registry.entries()
        latest = ChangeClock.latest_change(entries)
        last = self.last_run.get()
        due = ChangeClock.is_due(last, latest, force=force, always_run=self.always_run)
        report = RunReport(due=due, forced=force, last_run=last, latest_change=latest)
        if not due:
            logger.debug("run.not_due", last_run=last, latest_change=latest)
            return report

        started_at = int(time.time())
        with LogContext(run_id=uuid.uuid4().hex[:12]):
            logger.info("run.started", entries=len(entries), forced=force)
            if self.mark_mode == MarkMode.BEFORE:
                self.last_run.mark(started_at)

            for entry in entries:
                if not entry.should_reconcile:
                    report.skipped.append(entry.key)
                    continue
                try:
                    executed = self._execute(entry)
                except Exception as e:
                    report.failed.append(entry.key)
                    error = e if isinstance(e, SchemaSpineError) else SchemaSpineError(
                        f"Migration {entry.key} failed: {e}", cause=e
                    )
                    self.ctx.report(error.with_context(source=entry.key, origin=entry.origin))
                    continue
                (report.executed if executed else report.skipped).append(entry.key)

            if self.mark_mode == MarkMode.AFTER:
                self.last_run.mark(started_at)

            logger.info(
                "run.finished",
                executed=len(report.executed),
                skipped=len(report.skipped),
                failed=len(report.failed),
            )
        return report

    def _execute(self, entry: WatchEntry) -> bool:
        if entry.kind == WatchKind.CALLBACK:
            self.ctx.note("run.callback", key=entry.key, origin=entry.origin)
            entry.target(self.ctx)
            return True

        if entry.kind == WatchKind.COMPONENT:
            reconcile = getattr(entry.target, "reconcile", None)
            name = type(entry.target).__name__
            if not callable(reconcile):
                logger.info("run.component_skipped", component=name, reason="no reconcile()")
                return False
            logger.info("run.component", component=name)
            reconcile(self.ctx)
            return True

        decoded = decode_file(entry.path, self.ctx)
        if isinstance(decoded, DecodedText):
            decoded = decode_text(decoded.text)

        match decoded:
            case DecodedDocument(data=data):
                logger.info("run.migrating", path=entry.path)
                self.ctx.reconciler.apply(data)
                return True
            case DecodedNothing(reason=reason):
                logger.info("run.no_config", path=entry.path, reason=reason)
                return False
        return False


__all__ = ["Runner", "RunReport"]
