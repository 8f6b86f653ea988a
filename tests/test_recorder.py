"""Tests for schemaspine.recorder - dirty tracking and snapshot files."""

import json

import pytest
import yaml

from schemaspine.core.enums import EntityKind
from schemaspine.core.events import REGISTRY_REFRESHED, REQUEST_FINISHED
from schemaspine.core.context import MigrationContext
from schemaspine.reconcile.memory import InMemoryContentStore
from schemaspine.recorder import Recorder

DOCUMENT = {
    "fields": {
        "body": {"type": "textarea", "label": "Body"},
        "color": {"type": "options", "options": {1: "red|Red"}},
    },
    "compositeTypes": {"article": {"fields": ["title", "body"]}},
}


@pytest.fixture
def recorder(ctx, last_run):
    return Recorder(ctx, last_run)


class TestDirtyFlag:
    def test_clean_initially(self, recorder):
        assert recorder.dirty is False

    def test_store_mutation_marks_dirty(self, recorder, ctx):
        ctx.reconciler.create_field("body", "text")
        assert recorder.dirty is True

    def test_refresh_marks_dirty(self, recorder, events):
        events.emit(REGISTRY_REFRESHED)
        assert recorder.dirty is True

    def test_record_marks_dirty(self, recorder, tmp_path):
        recorder.record(tmp_path / "out.yaml")
        assert recorder.dirty is True

    def test_flush_clears(self, recorder, tmp_path):
        recorder.record(tmp_path / "out.yaml")
        recorder.flush()
        assert recorder.dirty is False

    def test_request_finished_flushes_when_dirty(self, recorder, events, tmp_path):
        target = tmp_path / "out.yaml"
        recorder.record(target)
        events.emit(REQUEST_FINISHED)
        assert target.exists()
        assert recorder.dirty is False

    def test_request_finished_ignored_when_clean(self, recorder, events, tmp_path):
        target = tmp_path / "out.yaml"
        recorder.record(target)
        recorder.flush()
        target.unlink()
        events.emit(REQUEST_FINISHED)
        assert not target.exists()

    def test_close_unsubscribes(self, recorder, events):
        recorder.close()
        events.emit(REGISTRY_REFRESHED)
        assert recorder.dirty is False

    def test_reopen_after_close(self, recorder, events):
        recorder.close()
        recorder.open()
        recorder.open()
        assert events.subscription_count == 7
        events.emit(REGISTRY_REFRESHED)
        assert recorder.dirty is True


class TestSnapshot:
    def test_sorted_without_ids_or_system(self, recorder, ctx):
        ctx.reconciler.apply(DOCUMENT)
        snapshot = recorder.snapshot()
        assert list(snapshot["fields"]) == ["body", "color"]
        assert list(snapshot["compositeTypes"]) == ["article"]
        assert "id" not in snapshot["fields"]["body"]
        assert snapshot["compositeTypes"]["article"]["fields"] == ["title", "body"]

    def test_include_system(self, recorder):
        snapshot = recorder.snapshot(include_system=True)
        assert "title" in snapshot["fields"]
        assert "home" in snapshot["compositeTypes"]


class TestFlush:
    def test_yaml_file(self, recorder, ctx, tmp_path):
        ctx.reconciler.apply(DOCUMENT)
        target = tmp_path / "site" / "project.yaml"
        recorder.record(target)
        assert recorder.flush() == [target]
        data = yaml.safe_load(target.read_text())
        assert data["fields"]["body"] == {"type": "textarea", "label": "Body"}

    def test_json_file(self, recorder, ctx, tmp_path):
        ctx.reconciler.apply(DOCUMENT)
        target = tmp_path / "project.json"
        recorder.record(target, format="json")
        recorder.flush()
        data = json.loads(target.read_text())
        assert data["fields"]["color"]["options"] == {"1": "red|Red"}

    def test_consecutive_flushes_identical(self, recorder, ctx, tmp_path):
        ctx.reconciler.apply(DOCUMENT)
        target = tmp_path / "project.yaml"
        recorder.record(target)
        recorder.flush()
        first = target.read_bytes()
        recorder.flush()
        assert target.read_bytes() == first

    def test_flush_marks_last_run(self, recorder, last_run, tmp_path, now):
        recorder.record(tmp_path / "out.yaml")
        recorder.flush()
        assert last_run.get() >= now

    def test_unknown_format_skipped(self, recorder, tmp_path):
        recorder.record(tmp_path / "out.php", format="php")
        recorder.record(tmp_path / "out.yaml")
        assert recorder.flush() == [tmp_path / "out.yaml"]
        assert not (tmp_path / "out.php").exists()

    def test_remove(self, recorder, tmp_path):
        recorder.record(tmp_path / "out.yaml")
        recorder.record(tmp_path / "out.yaml", remove=True)
        assert recorder.specs == []

    def test_replace_by_path(self, recorder, tmp_path):
        recorder.record(tmp_path / "out", format="yaml")
        recorder.record(tmp_path / "out", format="json", include_system=True)
        (spec,) = recorder.specs
        assert spec.format == "json"
        assert spec.include_system is True

    def test_recording_round_trips(self, recorder, ctx, store, tmp_path):
        """A recorded snapshot applied again leaves the schema unchanged."""
        ctx.reconciler.apply(DOCUMENT)
        target = tmp_path / "migrate.yaml"
        recorder.record(target)
        recorder.flush()
        before = target.read_bytes()
        ctx.reconciler.apply(yaml.safe_load(target.read_text()))
        recorder.flush()
        assert target.read_bytes() == before
        assert store.get(EntityKind.FIELD, "color").props["options"] == {1: "red|Red"}

    def test_flush_if_dirty(self, recorder, tmp_path):
        target = tmp_path / "out.yaml"
        recorder.record(target)
        assert recorder.flush_if_dirty() == [target]
        assert recorder.flush_if_dirty() == []

    def test_type_reference_exported_by_name(self, recorder, ctx, tmp_path):
        ctx.reconciler.apply(
            {
                "fields": {"ref": {"type": "page", "template_id": "target"}},
                "compositeTypes": {"target": {"fields": ["title"]}},
            }
        )
        target = tmp_path / "migrate.yaml"
        recorder.record(target)
        recorder.flush()
        data = yaml.safe_load(target.read_text())
        assert data["fields"]["ref"]["template_id"] == "target"

        other = InMemoryContentStore()
        for name in ("filler_a", "filler_b", "filler_c"):
            other.create(EntityKind.FIELD, name, "text")
        replay = MigrationContext(store=other, privileged=True)
        replay.reconciler.apply(data)
        replayed_target = other.get(EntityKind.TYPE, "target")
        assert replayed_target.id != ctx.store.get(EntityKind.TYPE, "target").id
        assert other.get(EntityKind.FIELD, "ref").props["template_id"] == replayed_target.id
