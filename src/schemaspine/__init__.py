"""
schema-spine - declarative, change-triggered schema migrations.

Watch migration files, components and callbacks; when any of them changed
since the last run, reconcile the content store with what they declare; and
record the resulting schema back to disk.
"""

__version__ = "0.1.0"

from schemaspine.core.context import MigrationContext  # noqa: E402
from schemaspine.core.enums import OutputMode  # noqa: E402
from schemaspine.reconcile import InMemoryContentStore, ReconciliationDocument, Reconciler  # noqa: E402
from schemaspine.recorder import Recorder  # noqa: E402
from schemaspine.service import SchemaSpine  # noqa: E402
from schemaspine.watch import LastRunStore, Runner, RunReport, WatchRegistry  # noqa: E402

__all__ = [
    "InMemoryContentStore",
    "LastRunStore",
    "MigrationContext",
    "OutputMode",
    "ReconciliationDocument",
    "Reconciler",
    "Recorder",
    "RunReport",
    "Runner",
    "SchemaSpine",
    "WatchRegistry",
    "__version__",
]
