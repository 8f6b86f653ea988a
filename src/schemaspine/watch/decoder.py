"""
Decode watched files into configuration values.

Every decode returns one of three tagged results, and the runner matches on
the tag:

- :class:`DecodedDocument`: a mapping ready for the reconciler
- :class:`DecodedText`: a string that may itself be YAML
- :class:`DecodedNothing`: the file produced no configuration

Python scripts (``.py``) are executed with :func:`runpy.run_path` and must
define a module-level ``config``: a mapping, a YAML string, or a callable
taking no argument or the run's context and returning one of those.
"""

from __future__ import annotations

import inspect
import json
import runpy
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from schemaspine.core.errors import DocumentError
from schemaspine.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecodedNothing:
    reason: str = "no config"


@dataclass(frozen=True)
class DecodedDocument:
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodedText:
    text: str


Decoded = DecodedNothing | DecodedDocument | DecodedText


def _tag(value: Any) -> Decoded:
    if value is None:
        return DecodedNothing()
    if hasattr(value, "to_mapping"):
        value = value.to_mapping()
    if isinstance(value, Mapping):
        return DecodedDocument(dict(value))
    if isinstance(value, str):
        return DecodedText(value)
    return DecodedNothing(f"unexpected {type(value).__name__}")


def decode_text(text: str) -> Decoded:
    """Parse a YAML string; only a mapping counts as a document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentError(f"Invalid YAML: {e}", cause=e) from e
    if isinstance(data, Mapping):
        return DecodedDocument(dict(data))
    return DecodedNothing()


def _call_config(config: Any, ctx: Any) -> Any:
    try:
        params = inspect.signature(config).parameters
    except (TypeError, ValueError):
        return config()
    return config(ctx) if params else config()


def _run_script(path: Path, ctx: Any) -> Decoded:
    try:
        namespace = runpy.run_path(str(path), init_globals={"ctx": ctx})
        config = namespace.get("config")
        if callable(config):
            config = _call_config(config, ctx)
    except DocumentError:
        raise
    except Exception as e:
        raise DocumentError(f"Script {path} failed: {e}", cause=e).with_context(
            source=str(path)
        ) from e
    return _tag(config)


def decode_file(path: str | Path, ctx: Any = None) -> Decoded:
    """Decode a watched file according to its extension.

    Raises:
        DocumentError: The file exists but cannot be parsed or executed.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".py":
        return _run_script(path, ctx)

    if suffix not in (".yaml", ".yml", ".json"):
        logger.debug("decode.unsupported", path=str(path), suffix=suffix)
        return DecodedNothing(f"unsupported extension {suffix or '(none)'}")

    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        try:
            data = json.loads(text) if text.strip() else None
        except json.JSONDecodeError as e:
            raise DocumentError(f"Invalid JSON in {path}: {e}", cause=e).with_context(
                source=str(path)
            ) from e
        return _tag(data) if not isinstance(data, str) else DecodedNothing()

    try:
        return decode_text(text)
    except DocumentError as e:
        raise e.with_context(source=str(path))


__all__ = [
    "Decoded",
    "DecodedDocument",
    "DecodedNothing",
    "DecodedText",
    "decode_file",
    "decode_text",
]
