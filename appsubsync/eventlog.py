"""Recording events about objects and naming the calling function."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .meta import KubeObject

log = logging.getLogger(__name__)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
COMPONENT = "subscription"


def get_fn_name() -> str:
    """Name of the function that called this one."""
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    try:
        return caller.f_code.co_name if caller is not None else "<unknown>"
    finally:
        del frame, caller


@dataclass(frozen=True)
class Event:
    """One recorded event about an object."""

    kind: str
    namespace: str
    name: str
    type: str
    reason: str
    message: str
    component: str = COMPONENT
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventRecorder:
    """Keeps recorded events, logs them and hands each to an optional sink."""

    def __init__(self, sink: Callable[[Event], None] | None = None, component: str = COMPONENT) -> None:
        self.component = component
        self.events: list[Event] = []
        self._sink = sink

    def record_event(
        self, obj: KubeObject, reason: str, message: str, error: BaseException | None = None
    ) -> Event:
        """Record a normal event, or a warning when an error is given."""
        event = Event(
            kind=obj.kind,
            namespace=obj.namespace,
            name=obj.name,
            type=EVENT_TYPE_NORMAL if error is None else EVENT_TYPE_WARNING,
            reason=reason,
            message=message,
            component=self.component,
        )
        self.events.append(event)
        log.info("Event(%s %s/%s): type: %s reason: %s %s",
                 event.kind, event.namespace, event.name, event.type, event.reason, event.message)
        if self._sink is not None:
            self._sink(event)
        return event