"""
Diagnostics - Observability and event tracking for containers.
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from enum import Enum
import dataclasses
import logging

logger = logging.getLogger("keel.diagnostics")


class EventType(Enum):
    """Types of container events."""
    REGISTERED = "registered"
    CLEARED = "cleared"
    RESET = "reset"
    RESOLVED = "resolved"
    RESOLUTION_FAILED = "resolution_failed"
    STARTING = "starting"
    STARTED = "started"
    START_FAILED = "start_failed"
    STOPPING = "stopping"
    STOPPED = "stopped"
    STOP_FAILED = "stop_failed"


_FAILURES = frozenset((
    EventType.RESOLUTION_FAILED,
    EventType.START_FAILED,
    EventType.STOP_FAILED,
))


@dataclasses.dataclass
class DiagnosticEvent:
    """A diagnostic event emitted by the container."""
    type: EventType
    module: Optional[str] = None
    timestamp: float = dataclasses.field(default_factory=time.time)
    duration: Optional[float] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.type in _FAILURES


class DiagnosticListener(Protocol):
    """Interface for diagnostic listeners."""
    def on_event(self, event: DiagnosticEvent) -> None:
        """Called when a container event occurs."""
        ...


class LoggingListener:
    """Forwards events to the ``keel.diagnostics`` logger."""

    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def on_event(self, event: DiagnosticEvent) -> None:
        if event.failed:
            logger.error(f"{event.type.value}: module '{event.module}': {event.error}")
            return

        msg = f"{event.type.value}: module '{event.module}'" if event.module else event.type.value
        if event.duration is not None:
            msg += f" ({event.duration * 1000:.2f}ms)"
        logger.log(self.log_level, msg)


class RecordingListener:
    """Keeps every event in memory. Handy in tests and for the CLI."""

    def __init__(self):
        self.events: List[DiagnosticEvent] = []

    def on_event(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def types(self) -> List[EventType]:
        return [e.type for e in self.events]

    def clear(self) -> None:
        self.events.clear()


class Diagnostics:
    """Coordinator for diagnostic listeners."""

    def __init__(self):
        self._listeners: List[DiagnosticListener] = []

    def add_listener(self, listener: DiagnosticListener) -> None:
        """Add a diagnostic listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event_type: EventType, **kwargs) -> None:
        """Emit a diagnostic event to all listeners."""
        if not self._listeners:
            return

        event = DiagnosticEvent(type=event_type, **kwargs)
        for listener in self._listeners:
            try:
                listener.on_event(event)
            except Exception as e:
                logger.error(f"Diagnostic listener error: {e}")
