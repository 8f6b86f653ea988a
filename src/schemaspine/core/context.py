"""
Request-scoped context for registration, runs and reconciliation.

Every entry point (``register``, ``run``, ``apply``) receives a
:class:`MigrationContext`. It carries the content store handle, the acting
user and whether that user is privileged, the output mode, and the event
bus. It is the single place where the output mode turns an error into
silence, a log line, or an exception.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from schemaspine.core.enums import OutputMode
from schemaspine.core.errors import SchemaSpineError
from schemaspine.core.events import EventBus
from schemaspine.core.logging import get_logger

if TYPE_CHECKING:
    from schemaspine.reconcile.reconciler import Reconciler
    from schemaspine.reconcile.store import ContentStore

logger = get_logger(__name__)

ADMIN_ACTOR = "admin"


@dataclass
class MigrationContext:
    """Context passed to every engine operation.

    Attributes:
        store: Content store satisfying :class:`~schemaspine.reconcile.store.ContentStore`.
        output_mode: Error propagation policy.
        actor: Identifier of the acting user.
        privileged: Whether ``actor`` may register watch targets and run migrations.
        events: Event bus the host publishes trigger events on.
        request_id: Unique ID for this unit of work (auto-generated).
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    store: ContentStore
    output_mode: OutputMode = OutputMode.QUIET
    actor: str = "guest"
    privileged: bool = False
    events: EventBus = field(default_factory=EventBus)
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata: dict[str, Any] = field(default_factory=dict)
    _reconciler: Reconciler | None = field(default=None, init=False, repr=False)

    @property
    def is_verbose(self) -> bool:
        return self.output_mode == OutputMode.VERBOSE

    @property
    def is_debug(self) -> bool:
        return self.output_mode == OutputMode.DEBUG

    @property
    def reconciler(self) -> Reconciler:
        """The reconciler bound to this context (created on first use)."""
        if self._reconciler is None:
            from schemaspine.reconcile.reconciler import Reconciler

            self._reconciler = Reconciler(self)
        return self._reconciler

    def elevate(self) -> None:
        """Switch to the administrative actor (headless invocations)."""
        self.actor = ADMIN_ACTOR
        self.privileged = True

    def report(self, error: SchemaSpineError, *, fatal: bool = True) -> None:
        """Apply the output mode to an error.

        quiet: swallowed (only visible at DEBUG log level).
        verbose: logged as a warning, execution continues.
        debug: raised when ``fatal``; otherwise logged.
        """
        if self.is_debug and fatal:
            raise error
        if self.is_verbose or self.is_debug:
            logger.warning(error.message, **error.to_dict())
        else:
            logger.debug(error.message, **error.to_dict())

    def note(self, message: str, **kwargs: Any) -> None:
        """Informational message shown only in verbose and debug modes."""
        if self.is_verbose or self.is_debug:
            logger.info(message, **kwargs)
