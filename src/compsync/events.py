"""Pre- and post-sync listeners.

Listeners are plain callables registered per phase and run synchronously in
registration order. A pre-sync listener can veto a run by calling
``context.cancel()``; the remaining pre-sync listeners still run.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from compsync.diff import SyncDirection
from compsync.sync_record import SyncRecord

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """When a listener is called."""

    PRE_SYNC = "pre_sync"
    POST_SYNC = "post_sync"


@dataclass
class SyncContext:
    """Mutable state handed to listeners."""

    bundle_id: str
    direction: SyncDirection
    operation: str
    record: SyncRecord | None = None
    cancelled: bool = False
    cancel_reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Veto the run. Only honoured during the pre-sync phase."""
        self.cancelled = True
        self.cancel_reason = reason


SyncListener = Callable[[SyncContext], None]


class SyncEventDispatcher:
    """Holds listeners per phase and dispatches to them."""

    def __init__(self) -> None:
        self._listeners: dict[SyncPhase, list[SyncListener]] = {phase: [] for phase in SyncPhase}

    def subscribe(self, phase: SyncPhase, listener: SyncListener) -> None:
        """Register ``listener`` for ``phase``."""
        self._listeners[phase].append(listener)

    def unsubscribe(self, phase: SyncPhase, listener: SyncListener) -> None:
        """Remove ``listener``; unknown listeners are ignored."""
        if listener in self._listeners[phase]:
            self._listeners[phase].remove(listener)

    def on_pre_sync(self, listener: SyncListener) -> SyncListener:
        """Register a pre-sync listener. Usable as a decorator."""
        self.subscribe(SyncPhase.PRE_SYNC, listener)
        return listener

    def on_post_sync(self, listener: SyncListener) -> SyncListener:
        """Register a post-sync listener. Usable as a decorator."""
        self.subscribe(SyncPhase.POST_SYNC, listener)
        return listener

    def listeners(self, phase: SyncPhase) -> list[SyncListener]:
        return list(self._listeners[phase])

    def dispatch(self, phase: SyncPhase, context: SyncContext) -> SyncContext:
        """Call every listener for ``phase`` with ``context``.

        Listener exceptions propagate to the caller.
        """
        for listener in self._listeners[phase]:
            listener(context)
        if phase is SyncPhase.PRE_SYNC and context.cancelled:
            logger.info("Sync of %s cancelled by listener: %s", context.bundle_id, context.cancel_reason)
        return context
