"""
Watch registry: the prioritized list of migration sources.

Manifesto:
    Migrations live in many places: the site's own ``migrate.yaml``, a
    ``<module>.migrate.py`` next to each module, a component that knows how
    to reconcile itself, a callback defined inline in some setup code. The
    registry is the single ordered table of all of them, so the runner never
    needs to know where a migration came from.

Architecture:
    ::

        register(target)
          ├── directory  → expand to eligible files (sorted) → register each
          ├── component  → source file of its class         → COMPONENT entry
          ├── callback   → declaring file + disambiguator    → CALLBACK entry
          └── path       → literal | .yaml | .json | .py     → FILE entry
                              │
                              ├── unknown extension → watch-only
                              ├── duplicate key     → RegistrationConflict (first wins)
                              └── insert, then stable sort by priority (desc)

    The registry is process-lifetime state; nothing here is persisted.

Examples:
    >>> registry = WatchRegistry()
    >>> registry.register("site/migrate", priority=2.0)
    >>> registry.register(lambda ctx: ctx.reconciler.apply({...}))
    >>> [entry.key for entry in registry]

Tags:
    watch, registry, priority, migration-sources, schema-spine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import functools
import inspect
import os
import uuid
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from schemaspine.core.enums import WatchKind
from schemaspine.core.errors import RegistrationConflict, SchemaSpineError, UnsupportedFormat
from schemaspine.core.logging import get_logger

if TYPE_CHECKING:
    from schemaspine.core.context import MigrationContext

logger = get_logger(__name__)

RECONCILE_EXTENSIONS = frozenset({".yaml", ".yml", ".json", ".py"})
RESOLVE_SUFFIXES = (".yaml", ".json", ".py")

_PACKAGE_DIR = str(Path(__file__).resolve().parents[1])


@dataclass(frozen=True)
class WatchEntry:
    """One scheduled migration source.

    Attributes:
        path: Normalized absolute path of the underlying file.
        kind: File, component or callback.
        priority: Higher runs earlier.
        should_reconcile: False for watch-only entries (change detection only).
        origin: ``file:line`` of the registering call.
        disambiguator: Set for callbacks so several may share one file.
        target: The component or callback for non-file entries.
    """

    path: str
    kind: WatchKind = WatchKind.FILE
    priority: float = 1.0
    should_reconcile: bool = True
    origin: str | None = None
    disambiguator: str | None = None
    target: Any = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> str:
        if self.disambiguator:
            return f"{self.path}#{self.disambiguator}"
        return self.path

    @property
    def extension(self) -> str:
        return Path(self.path).suffix.lower()


def _is_callback(target: Any) -> bool:
    return inspect.isroutine(target) or isinstance(target, functools.partial)


def _is_path(target: Any) -> bool:
    return isinstance(target, (str, os.PathLike))


def _caller_origin() -> str | None:
    """``file:line`` of the first frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            filename = frame.f_code.co_filename
            if not os.path.abspath(filename).startswith(_PACKAGE_DIR):
                return f"{filename}:{frame.f_lineno}"
            frame = frame.f_back
        return None
    finally:
        del frame


def _callback_file(callback: Any, origin: str | None) -> str | None:
    func = callback
    while isinstance(func, functools.partial):
        func = func.func
    try:
        source = inspect.getsourcefile(func)
    except TypeError:
        source = None
    if source is None and origin:
        source = origin.rsplit(":", 1)[0]
    return source


def resolve_file(path: str | os.PathLike[str]) -> Path | None:
    """Resolve a migration path: the literal file, else ``path.yaml|json|py``."""
    candidate = Path(path)
    if candidate.is_file():
        return candidate.resolve()
    for suffix in RESOLVE_SUFFIXES:
        with_suffix = candidate.with_name(candidate.name + suffix)
        if with_suffix.is_file():
            return with_suffix.resolve()
    return None


def expand_directory(directory: Path, recursive: bool = False) -> list[Path]:
    """Reconcile-capable files in ``directory``, sorted by path."""
    pattern = directory.rglob("*") if recursive else directory.glob("*")
    return sorted(
        p for p in pattern if p.is_file() and p.suffix.lower() in RECONCILE_EXTENSIONS
    )


class WatchRegistry:
    """Ordered, de-duplicated set of :class:`WatchEntry`.

    Errors (duplicates, unsupported extensions) are non-fatal: they are
    reported through ``ctx`` when one is given and logged otherwise.
    """

    def __init__(self, ctx: MigrationContext | None = None) -> None:
        self.ctx = ctx
        self._entries: list[WatchEntry] = []

    # -- collection protocol -------------------------------------------------

    def __iter__(self) -> Iterator[WatchEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, WatchEntry):
            key = key.key
        return any(entry.key == key for entry in self._entries)

    def entries(self) -> list[WatchEntry]:
        """Snapshot of the entries in run order."""
        return list(self._entries)

    def get(self, key: str) -> WatchEntry | None:
        for entry in self._entries:
            if entry.key == key:
                return entry
        return None

    def clear(self) -> None:
        self._entries.clear()

    # -- registration --------------------------------------------------------

    def register(
        self,
        target: Any,
        should_reconcile: bool = True,
        priority: float = 1.0,
        options: Mapping[str, Any] | None = None,
        *,
        origin: str | None = None,
    ) -> None:
        """Add a migration source.

        Args:
            target: File path, directory, component or callback.
            should_reconcile: False registers the file for change detection only.
            priority: Higher values run earlier; ties keep insertion order.
            options: ``recursive`` (bool) for directory targets.
        """
        options = dict(options or {})
        origin = origin or _caller_origin()

        if _is_callback(target):
            path = _callback_file(target, origin)
            if path is None:
                logger.warning("watch.callback_without_source", origin=origin)
                return
            self._add(
                WatchEntry(
                    path=os.path.abspath(path),
                    kind=WatchKind.CALLBACK,
                    priority=float(priority),
                    should_reconcile=should_reconcile,
                    origin=origin,
                    disambiguator=uuid.uuid4().hex[:13],
                    target=target,
                )
            )
            return

        if not _is_path(target):
            try:
                source = inspect.getsourcefile(type(target))
            except TypeError:
                source = None
            if source is None:
                logger.warning("watch.component_without_source", component=type(target).__name__)
                return
            self._add(
                WatchEntry(
                    path=os.path.abspath(source),
                    kind=WatchKind.COMPONENT,
                    priority=float(priority),
                    should_reconcile=should_reconcile,
                    origin=origin,
                    target=target,
                )
            )
            return

        candidate = Path(target)
        if candidate.is_dir():
            recursive = bool(options.get("recursive", False))
            for path in expand_directory(candidate, recursive=recursive):
                self.register(path, should_reconcile, priority, options, origin=origin)
            return

        resolved = resolve_file(candidate)
        if resolved is None:
            logger.debug("watch.missing", path=str(candidate))
            return

        if should_reconcile and resolved.suffix.lower() not in RECONCILE_EXTENSIONS:
            self._report(UnsupportedFormat(str(resolved), resolved.suffix.lstrip(".")))
            should_reconcile = False

        self._add(
            WatchEntry(
                path=str(resolved),
                kind=WatchKind.FILE,
                priority=float(priority),
                should_reconcile=should_reconcile,
                origin=origin,
            )
        )

    def watch_modules(self, directory: str | os.PathLike[str], priority: float = 1.0) -> None:
        """Register ``<name>/<name>.migrate.(yaml|json|py)`` for each sub-directory."""
        root = Path(directory)
        if not root.is_dir():
            logger.debug("watch.modules_missing", path=str(root))
            return
        origin = _caller_origin()
        for module_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            base = module_dir / f"{module_dir.name}.migrate"
            for suffix in RESOLVE_SUFFIXES:
                path = base.with_name(base.name + suffix)
                if path.is_file():
                    self.register(path, priority=priority, origin=origin)

    def unregister(self, target: Any) -> int:
        """Remove the entries that ``target`` resolves to. Returns the count removed."""
        if _is_callback(target):
            keep = [e for e in self._entries if e.target is not target]
        elif not _is_path(target):
            keep = [e for e in self._entries if e.target is not target]
        else:
            candidate = Path(target)
            if candidate.is_dir():
                prefix = str(candidate.resolve()) + os.sep
                keep = [
                    e
                    for e in self._entries
                    if not (e.kind == WatchKind.FILE and e.path.startswith(prefix))
                ]
            else:
                resolved = resolve_file(candidate)
                path = str(resolved) if resolved else str(candidate.resolve())
                keep = [
                    e for e in self._entries if not (e.kind == WatchKind.FILE and e.path == path)
                ]
        removed = len(self._entries) - len(keep)
        self._entries = keep
        if removed:
            logger.debug("watch.unregistered", removed=removed)
        return removed

    # -- internals -----------------------------------------------------------

    def _add(self, entry: WatchEntry) -> None:
        if entry.key in self:
            self._report(RegistrationConflict(entry.key, entry.origin))
            return
        self._entries.append(entry)
        # list.sort is stable: equal priorities keep insertion order
        self._entries.sort(key=lambda e: -e.priority)
        logger.debug(
            "watch.registered",
            key=entry.key,
            kind=entry.kind.value,
            priority=entry.priority,
            should_reconcile=entry.should_reconcile,
        )

    def _report(self, error: SchemaSpineError) -> None:
        if self.ctx is not None:
            self.ctx.report(error, fatal=False)
        else:
            logger.info(error.message, **error.to_dict())


__all__ = [
    "RECONCILE_EXTENSIONS",
    "WatchEntry",
    "WatchRegistry",
    "expand_directory",
    "resolve_file",
]
