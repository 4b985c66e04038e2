"""
Orchestrator - Event Router.

============================================================
RESPONSIBILITY
============================================================
Routes Manager events to the orchestrator's handlers.

- One handler per event kind, keyed by the closed EventKind set
- Synchronous dispatch in the Manager's listener callback
- Unknown kinds are ignored, never raised
- Handler failures are isolated and counted
- Closed for good once detached

============================================================
LIFECYCLE
============================================================
subscribe() ... subscribe() -> attach(manager) -> detach()

The dispatch table is frozen at attach(). After detach() every
event still delivered by the Manager is dropped silently.

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from core.exceptions import OrchestrationError
from manager.interfaces import ManagerFacade

from .models import EventKind, ManagerEvent


logger = logging.getLogger(__name__)


# ============================================================
# HANDLER TYPE
# ============================================================

EventHandler = Callable[[Mapping[str, Any]], None]


# ============================================================
# STATISTICS
# ============================================================

@dataclass
class RouterStatistics:
    """Dispatch counters."""

    dispatched: int = 0
    """Events delivered to a handler that returned normally."""

    handler_failures: int = 0
    """Events delivered to a handler that raised."""

    ignored: int = 0
    """Events of an unknown or unsubscribed kind."""

    dropped: int = 0
    """Events received after the router was closed."""

    def to_dict(self) -> Dict[str, int]:
        return {
            "dispatched": self.dispatched,
            "handler_failures": self.handler_failures,
            "ignored": self.ignored,
            "dropped": self.dropped,
        }


# ============================================================
# EVENT ROUTER
# ============================================================

class EventRouter:
    """
    Typed dispatch table between the Manager and its handlers.
    """

    def __init__(self):
        self._handlers: Dict[EventKind, EventHandler] = {}
        self._manager: Optional[ManagerFacade] = None
        self._attached = False
        self._closed = False
        self._stats = RouterStatistics()

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def is_attached(self) -> bool:
        return self._attached

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def statistics(self) -> RouterStatistics:
        return self._stats

    @property
    def subscriptions(self) -> Dict[EventKind, EventHandler]:
        """Copy of the dispatch table."""
        return dict(self._handlers)

    # --------------------------------------------------------
    # Subscription
    # --------------------------------------------------------

    def subscribe(self, kind: Union[EventKind, str], handler: EventHandler) -> None:
        """
        Register the handler for an event kind.

        A later registration for the same kind replaces the earlier one.

        Raises:
            OrchestrationError: Router already attached or closed,
                or kind is not a known event kind
        """
        if self._attached or self._closed:
            raise OrchestrationError(
                "Cannot subscribe after the router was attached",
                context={"kind": str(kind)},
            )

        event_kind = EventKind.parse(kind)
        if event_kind is None:
            raise OrchestrationError(
                f"Unknown event kind: {kind}",
                context={"kind": str(kind)},
            )

        if event_kind in self._handlers:
            logger.debug(f"Replacing handler for {event_kind.value}")
        self._handlers[event_kind] = handler

    # --------------------------------------------------------
    # Dispatch
    # --------------------------------------------------------

    def dispatch(self, event: ManagerEvent) -> bool:
        """
        Deliver one event to its handler.

        Returns:
            True if a handler ran and returned normally
        """
        if self._closed:
            self._stats.dropped += 1
            return False

        kind = event.event_kind
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            self._stats.ignored += 1
            logger.debug(f"Ignoring event {event.kind}")
            return False

        try:
            handler(event.payload)
        except Exception as e:
            self._stats.handler_failures += 1
            logger.error(f"Handler for {kind.value} failed: {e}", exc_info=True)
            return False

        self._stats.dispatched += 1
        return True

    def _on_manager_event(self, kind: str, payload: Mapping[str, Any]) -> None:
        self.dispatch(ManagerEvent(kind=kind, payload=payload))

    # --------------------------------------------------------
    # Attachment
    # --------------------------------------------------------

    def attach(self, manager: ManagerFacade) -> None:
        """
        Register the router's listener with the Manager.

        Raises:
            OrchestrationError: Already attached or closed
        """
        if self._closed:
            raise OrchestrationError("Router is closed")
        if self._attached:
            raise OrchestrationError("Router is already attached")

        manager.add_listener(self._on_manager_event)
        self._manager = manager
        self._attached = True

        logger.info(
            f"Event router attached | subscriptions="
            f"{', '.join(k.value for k in self._handlers)}"
        )

    def detach(self) -> None:
        """Unregister from the Manager and close. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._manager is not None:
            try:
                self._manager.remove_listener(self._on_manager_event)
            except Exception as e:
                logger.warning(f"Failed to remove event listener: {e}")
            self._manager = None

        self._attached = False
        logger.info(f"Event router detached | {self._stats.to_dict()}")


__all__ = [
    "EventHandler",
    "RouterStatistics",
    "EventRouter",
]
