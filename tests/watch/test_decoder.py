"""Tests for schemaspine.watch.decoder - tagged decoding of migration files."""

import pytest

from schemaspine.core.errors import DocumentError
from schemaspine.watch.decoder import (
    DecodedDocument,
    DecodedNothing,
    DecodedText,
    decode_file,
    decode_text,
)


class TestYamlAndJson:
    def test_yaml_mapping(self, write_file):
        path = write_file("m.yaml", "fields:\n  body:\n    type: textarea\n")
        assert decode_file(path) == DecodedDocument({"fields": {"body": {"type": "textarea"}}})

    def test_empty_yaml(self, write_file):
        assert isinstance(decode_file(write_file("m.yml", "")), DecodedNothing)

    def test_yaml_scalar_is_nothing(self, write_file):
        assert isinstance(decode_file(write_file("m.yaml", "just text")), DecodedNothing)

    def test_invalid_yaml(self, write_file):
        path = write_file("m.yaml", "fields: [unclosed\n")
        with pytest.raises(DocumentError) as exc:
            decode_file(path)
        assert exc.value.context.source == str(path)

    def test_json(self, write_file):
        path = write_file("m.json", '{"roles": {"editor": {}}}')
        assert decode_file(path) == DecodedDocument({"roles": {"editor": {}}})

    def test_invalid_json(self, write_file):
        with pytest.raises(DocumentError):
            decode_file(write_file("m.json", "{nope"))

    def test_unsupported_extension(self, write_file):
        assert isinstance(decode_file(write_file("m.js", "x")), DecodedNothing)


class TestScripts:
    def test_mapping_config(self, write_file):
        path = write_file("m.py", "config = {'fields': {'a': {'type': 'text'}}}\n")
        assert decode_file(path) == DecodedDocument({"fields": {"a": {"type": "text"}}})

    def test_string_config_is_text(self, write_file):
        path = write_file("m.py", "config = 'fields:\\n  a: {type: text}\\n'\n")
        decoded = decode_file(path)
        assert isinstance(decoded, DecodedText)
        assert decode_text(decoded.text) == DecodedDocument({"fields": {"a": {"type": "text"}}})

    def test_zero_argument_callable(self, write_file):
        path = write_file("m.py", "def config():\n    return {'roles': {'editor': {}}}\n")
        assert decode_file(path) == DecodedDocument({"roles": {"editor": {}}})

    def test_callable_receives_context(self, write_file, ctx):
        path = write_file(
            "m.py",
            "def config(ctx):\n    return {'roles': {ctx.actor: {}}}\n",
        )
        assert decode_file(path, ctx) == DecodedDocument({"roles": {"guest": {}}})

    def test_no_config(self, write_file):
        assert isinstance(decode_file(write_file("m.py", "x = 1\n")), DecodedNothing)

    def test_script_error(self, write_file):
        path = write_file("m.py", "raise RuntimeError('broken')\n")
        with pytest.raises(DocumentError, match="broken"):
            decode_file(path)


class TestDecodeText:
    def test_mapping(self):
        assert decode_text("a: 1") == DecodedDocument({"a": 1})

    def test_list_is_nothing(self):
        assert isinstance(decode_text("- a"), DecodedNothing)
