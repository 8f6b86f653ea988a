"""Watch registry, change detection and the migration runner."""

from schemaspine.watch.clock import LAST_RUN_KEY, ChangeClock, LastRunStore
from schemaspine.watch.registry import WatchEntry, WatchRegistry
from schemaspine.watch.runner import Runner, RunReport

__all__ = [
    "LAST_RUN_KEY",
    "ChangeClock",
    "LastRunStore",
    "Runner",
    "RunReport",
    "WatchEntry",
    "WatchRegistry",
]
