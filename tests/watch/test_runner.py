"""
Tests for schemaspine.watch.runner.

Covers:
- Change detection (due / not due, force, always_run)
- Execution order by priority with stable ties
- Files, components and callbacks
- Last-run marking (before / after)
- Failure policy per output mode
"""

import pytest

from schemaspine.core.enums import EntityKind, MarkMode
from schemaspine.core.errors import DocumentError, SchemaSpineError
from schemaspine.watch.registry import WatchRegistry
from schemaspine.watch.runner import Runner


class Shop:
    def __init__(self):
        self.calls = 0

    def reconcile(self, ctx):
        self.calls += 1
        ctx.reconciler.create_role("shopkeeper")


class Inert:
    """Component without a reconcile() capability."""


@pytest.fixture
def registry(ctx):
    return WatchRegistry(ctx)


@pytest.fixture
def runner(ctx, registry, last_run):
    return Runner(ctx, registry, last_run)


class TestChangeDetection:
    def test_not_due_touches_nothing(self, runner, registry, last_run, store, write_file):
        registry.register(write_file("m.yaml", "fields:\n  a: {type: text}\n", mtime=1_000))
        last_run.mark(2_000)
        store.calls.clear()
        report = runner.run()
        assert report.due is False
        assert report.executed == []
        assert store.calls == []
        assert last_run.get() == 2_000

    def test_due_when_file_newer(self, runner, registry, last_run, store, write_file):
        registry.register(write_file("m.yaml", "fields:\n  a: {type: text}\n", mtime=3_000))
        last_run.mark(2_000)
        report = runner.run()
        assert report.due is True
        assert store.get(EntityKind.FIELD, "a") is not None

    def test_second_evaluation_not_due(self, runner, registry, write_file):
        registry.register(write_file("m.yaml", "fields:\n  a: {type: text}\n", mtime=1_000))
        assert runner.evaluate_and_run_if_due().due is True
        assert runner.evaluate_and_run_if_due().due is False

    def test_force(self, runner, registry, last_run, write_file):
        registry.register(write_file("m.yaml", "roles: {editor: {}}\n", mtime=1_000))
        last_run.mark(2_000)
        report = runner.run(force=True)
        assert report.due and report.forced

    def test_always_run(self, ctx, registry, last_run, write_file):
        registry.register(write_file("m.yaml", "roles: {editor: {}}\n", mtime=1_000))
        last_run.mark(2_000)
        assert Runner(ctx, registry, last_run, always_run=True).run().due is True

    def test_empty_registry_never_due(self, runner):
        assert runner.run().due is False


class TestExecution:
    def test_priority_order(self, ctx, runner, registry):
        order = []
        registry.register(lambda c: order.append(1.1), priority=1.1)
        registry.register(lambda c: order.append(1.3), priority=1.3)
        registry.register(lambda c: order.append(1.2), priority=1.2)
        runner.run()
        assert order == [1.3, 1.2, 1.1]

    def test_stable_ties(self, runner, registry):
        order = []
        for name in ("x", "y", "z"):
            registry.register(lambda c, n=name: order.append(n))
        runner.run()
        assert order == ["x", "y", "z"]

    def test_callback_receives_context(self, ctx, runner, registry):
        seen = []
        registry.register(seen.append)
        runner.run()
        assert seen == [ctx]

    def test_callback_runs_once_per_run(self, runner, registry):
        calls = []
        registry.register(lambda c: calls.append(1))
        runner.run(force=True)
        runner.run(force=True)
        assert len(calls) == 2

    def test_component(self, runner, registry, store):
        shop = Shop()
        registry.register(shop)
        report = runner.run()
        assert shop.calls == 1
        assert store.get(EntityKind.ROLE, "shopkeeper") is not None
        assert len(report.executed) == 1

    def test_component_without_reconcile_skipped(self, runner, registry):
        registry.register(Inert())
        report = runner.run()
        assert report.executed == []
        assert len(report.skipped) == 1

    def test_watch_only_skipped(self, runner, registry, store, write_file):
        registry.register(write_file("m.yaml", "roles: {editor: {}}\n"), should_reconcile=False)
        report = runner.run()
        assert report.due is True
        assert store.get(EntityKind.ROLE, "editor") is None
        assert len(report.skipped) == 1

    def test_script_text_is_yaml_decoded(self, runner, registry, store, write_file):
        registry.register(write_file("m.py", "config = 'roles:\\n  editor: {}\\n'\n"))
        runner.run()
        assert store.get(EntityKind.ROLE, "editor") is not None

    def test_no_config_skipped(self, runner, registry, write_file):
        registry.register(write_file("m.py", "x = 1\n"))
        report = runner.run()
        assert report.executed == []
        assert len(report.skipped) == 1


class TestMarking:
    def test_marks_before_entries(self, runner, registry, last_run, now):
        seen = []
        registry.register(lambda c: seen.append(last_run.get()))
        runner.run()
        assert seen[0] >= now

    def test_marks_after_entries(self, ctx, registry, last_run, now):
        seen = []
        registry.register(lambda c: seen.append(last_run.get()))
        Runner(ctx, registry, last_run, mark_mode=MarkMode.AFTER).run()
        assert seen == [0]
        assert last_run.get() >= now

    def test_failed_run_still_marked_before(self, runner, registry, last_run, write_file):
        registry.register(write_file("m.yaml", "fields: [broken\n"))
        report = runner.run()
        assert report.failed
        assert last_run.get() > 0


class TestFailurePolicy:
    def test_quiet_continues(self, runner, registry, store, write_file):
        def boom(c):
            raise RuntimeError("broken callback")

        registry.register(boom, priority=2)
        registry.register(write_file("m.yaml", "roles: {editor: {}}\n"))
        report = runner.run()
        assert len(report.failed) == 1
        assert len(report.executed) == 1
        assert not report.ok
        assert store.get(EntityKind.ROLE, "editor") is not None

    def test_debug_aborts(self, debug_ctx, last_run, store, write_file):
        registry = WatchRegistry(debug_ctx)

        def boom(c):
            raise RuntimeError("broken callback")

        registry.register(boom, priority=2)
        registry.register(write_file("m.yaml", "roles: {editor: {}}\n"))
        with pytest.raises(SchemaSpineError, match="broken callback"):
            Runner(debug_ctx, registry, last_run).run()
        assert store.get(EntityKind.ROLE, "editor") is None

    def test_debug_reraises_document_error(self, debug_ctx, last_run, write_file):
        registry = WatchRegistry(debug_ctx)
        registry.register(write_file("m.json", "{nope"))
        with pytest.raises(DocumentError):
            Runner(debug_ctx, registry, last_run).run()
