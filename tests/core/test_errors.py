"""Tests for schemaspine.core.errors - the typed error hierarchy."""

import pytest

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


class TestSchemaSpineError:
    def test_defaults(self):
        err = SchemaSpineError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.cause is None

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = SchemaSpineError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = DocumentError("bad").with_context(source="/site/migrate.yaml", line=3)
        assert err.context.source == "/site/migrate.yaml"
        assert err.context.metadata == {"line": 3}

    def test_to_dict(self):
        err = DocumentError("bad").with_context(source="a.yaml")
        data = err.to_dict()
        assert data["error_type"] == "DocumentError"
        assert data["category"] == "DOCUMENT"
        assert data["context"] == {"source": "a.yaml"}

    def test_empty_context_omitted(self):
        assert "context" not in SchemaSpineError("x").to_dict()

    def test_repr(self):
        assert repr(BootstrapError("no store")) == "BootstrapError('no store', category=CONFIG)"


class TestSubclasses:
    def test_registration_conflict(self):
        err = RegistrationConflict("/a/migrate.yaml", origin="setup.py:12")
        assert err.key == "/a/migrate.yaml"
        assert "already exists" in err.message
        assert "setup.py:12" in err.message
        assert err.category == ErrorCategory.REGISTRY

    def test_unsupported_format(self):
        err = UnsupportedFormat("/a/file.js", "js")
        assert err.format == "js"
        assert err.context.source == "/a/file.js"

    def test_unresolved_reference_default_message(self):
        err = UnresolvedReference("field", "body")
        assert err.message == "Field body not found"
        assert err.context.entity_kind == "field"
        assert err.context.entity_name == "body"

    def test_unresolved_reference_custom_message(self):
        err = UnresolvedReference("record", "/x/", "Parent /x/ not found")
        assert err.message == "Parent /x/ not found"

    def test_store_operation_failure(self):
        err = StoreOperationFailure("create_field", "Field name must be lowercase")
        assert err.operation == "create_field"
        assert err.message == "create_field failed: Field name must be lowercase"
        assert err.category == ErrorCategory.STORE

    @pytest.mark.parametrize(
        "cls", [RegistrationConflict, UnsupportedFormat, UnresolvedReference, DocumentError]
    )
    def test_all_are_schema_spine_errors(self, cls):
        assert issubclass(cls, SchemaSpineError)


class TestErrorContext:
    def test_to_dict_skips_none(self):
        ctx = ErrorContext(entity_kind="type", metadata={"x": 1})
        assert ctx.to_dict() == {"entity_kind": "type", "x": 1}
