"""
Progress events for assembly runs.

The orchestrator pushes events synchronously to a single handler. Callers
that need fan-out to many listeners (e.g. one per open HTTP stream) can use
a ProjectEventBus, which keys subscribers by project id.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, Field

from codeweld.config.models import PhaseStatus

logger = logging.getLogger(__name__)


class _Event(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PhaseStartEvent(_Event):
    type: Literal["phase_start"] = "phase_start"
    phase: str


class PhaseCompleteEvent(_Event):
    type: Literal["phase_complete"] = "phase_complete"
    phase: str
    status: PhaseStatus


class FileProcessedEvent(_Event):
    type: Literal["file_processed"] = "file_processed"
    path: str
    action: Literal["create", "modify", "delete", "validate"]


class ValidationPassEvent(_Event):
    type: Literal["validation_pass"] = "validation_pass"
    pass_number: int
    errors: int
    warnings: int = 0


class DependencyExtractedEvent(_Event):
    type: Literal["dependency_extracted"] = "dependency_extracted"
    count: int


class MissingFileGeneratedEvent(_Event):
    type: Literal["missing_file_generated"] = "missing_file_generated"
    path: str


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


AssemblyEvent = Union[
    PhaseStartEvent,
    PhaseCompleteEvent,
    FileProcessedEvent,
    ValidationPassEvent,
    DependencyExtractedEvent,
    MissingFileGeneratedEvent,
    ErrorEvent,
]

AssemblyEventHandler = Callable[[AssemblyEvent], None]


class ProjectEventBus:
    """Publish/subscribe of assembly events, keyed by project id.

    Usage:
        bus = ProjectEventBus()
        unsubscribe = bus.subscribe("proj-1", print)
        orchestrator = AssemblyOrchestrator(config, on_event=bus.handler_for("proj-1"))
        ...
        unsubscribe()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[AssemblyEventHandler]] = {}

    def subscribe(self, project_id: str, callback: AssemblyEventHandler) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it again."""
        with self._lock:
            self._subscribers.setdefault(project_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(project_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(project_id, None)

        return unsubscribe

    def publish(self, project_id: str, event: AssemblyEvent) -> None:
        """Deliver an event to every subscriber of the project.

        A failing subscriber is logged and does not stop delivery to the others.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(project_id, []))

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event subscriber failed for project {project_id}")

    def handler_for(self, project_id: str) -> AssemblyEventHandler:
        """An orchestrator event handler that publishes to this bus."""

        def handler(event: AssemblyEvent) -> None:
            self.publish(project_id, event)

        return handler

    def subscriber_count(self, project_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(project_id, []))
