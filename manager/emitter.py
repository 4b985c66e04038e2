"""
Manager - Event Emitter.

Listener registry shared by the Manager backends.
"""

import logging
from typing import Any, List, Mapping, Optional, Union

from .interfaces import EventListener
from .models import EventKind


logger = logging.getLogger(__name__)


class EventEmitter:
    """
    Synchronous fan-out of Manager events.

    Listeners are called in registration order, in the emitting
    coroutine, so per-kind ordering equals emission order.
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(
        self,
        kind: Union[EventKind, str],
        payload: Optional[Mapping[str, Any]] = None,
    ) -> None:
        raw_kind = kind.value if isinstance(kind, EventKind) else kind
        body = dict(payload or {})
        for listener in list(self._listeners):
            try:
                listener(raw_kind, body)
            except Exception as e:
                # A broken listener must not stop the Manager
                logger.error(f"Event listener failed for {raw_kind}: {e}", exc_info=True)


__all__ = ["EventEmitter"]
