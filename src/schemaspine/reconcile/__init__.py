"""Schema reconciliation: document model, store protocol and reconciler."""

from schemaspine.reconcile.document import ReconciliationDocument
from schemaspine.reconcile.memory import InMemoryContentStore
from schemaspine.reconcile.reconciler import Reconciler
from schemaspine.reconcile.store import ContentStore, Entity

__all__ = [
    "ContentStore",
    "Entity",
    "InMemoryContentStore",
    "ReconciliationDocument",
    "Reconciler",
]
