# src/aiorchestrator/events.py
"""
Task lifecycle events.

The orchestrator publishes one event when a task is queued and exactly one
when it reaches a terminal state. Events are fanned out to any number of
sinks through an EventBus; a sink that raises is logged and skipped, so
event consumers can never disturb dispatch.

Usage:
    >>> bus = EventBus()
    >>> memory = InMemorySink()
    >>> bus.add_sink(memory)
    >>> stream = QueueSink()
    >>> bus.add_sink(stream)
    >>>
    >>> orchestrator = Orchestrator(registry, cache, events=bus)
    >>> event = await stream.queue.get()   # streaming consumer
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from .models import Task, TaskResult

logger = logging.getLogger(__name__)


# =============================================================================
# EVENT MODEL
# =============================================================================


class EventType(str, Enum):
    """Task lifecycle event names."""

    TASK_QUEUED = "task:queued"
    TASK_COMPLETED = "task:completed"
    TASK_FAILED = "task:failed"


class TaskEvent(BaseModel):
    """A lifecycle event for one task."""

    event_id: str = Field(default_factory=lambda: f"evt-{uuid4().hex[:12]}")
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    task: Task
    result: Optional[TaskResult] = None
    error: Optional[str] = None

    @property
    def task_id(self) -> str:
        return self.task.id

    @classmethod
    def queued(cls, task: Task) -> "TaskEvent":
        return cls(event_type=EventType.TASK_QUEUED, task=task)

    @classmethod
    def completed(cls, task: Task, result: TaskResult) -> "TaskEvent":
        return cls(event_type=EventType.TASK_COMPLETED, task=task, result=result)

    @classmethod
    def failed(cls, task: Task, result: TaskResult) -> "TaskEvent":
        return cls(event_type=EventType.TASK_FAILED, task=task, result=result, error=result.error_message)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# EVENT SINK PROTOCOL
# =============================================================================


class EventSink(ABC):
    """
    Abstract base class for event sinks.

    Sinks receive every event published on the bus they are attached to.
    """

    @abstractmethod
    async def write(self, event: TaskEvent) -> None:
        """
        Deliver an event to the sink.

        Args:
            event: Event to write
        """
        ...

    async def close(self) -> None:
        """Release resources. Default: nothing to do."""
        return None

    @property
    def name(self) -> str:
        """Return the sink name for identification."""
        return self.__class__.__name__


# =============================================================================
# BUILT-IN SINKS
# =============================================================================


class InMemorySink(EventSink):
    """
    Stores events in memory for testing and debugging.

    Attributes:
        max_events: Maximum events to store (oldest discarded)
    """

    def __init__(self, max_events: int = 10000) -> None:
        self.max_events = max_events
        self._events: List[TaskEvent] = []

    async def write(self, event: TaskEvent) -> None:
        self._events.append(event)
        if len(self._events) > self.max_events:
            self._events = self._events[-self.max_events:]

    @property
    def events(self) -> List[TaskEvent]:
        """Get all stored events."""
        return list(self._events)

    def get_events(
        self,
        *,
        event_type: Optional[EventType] = None,
        task_id: Optional[str] = None,
    ) -> List[TaskEvent]:
        """Get events filtered by type and/or task id."""
        result = list(self._events)
        if event_type is not None:
            result = [e for e in result if e.event_type == EventType(event_type)]
        if task_id is not None:
            result = [e for e in result if e.task_id == task_id]
        return result

    def clear(self) -> None:
        self._events.clear()


class CallbackSink(EventSink):
    """Forwards events to a plain or coroutine callback."""

    def __init__(self, callback: Callable[[TaskEvent], Union[None, Awaitable[None]]]) -> None:
        self._callback = callback

    async def write(self, event: TaskEvent) -> None:
        outcome = self._callback(event)
        if asyncio.iscoroutine(outcome):
            await outcome


class QueueSink(EventSink):
    """
    Channel sink for streaming consumers.

    Events are put on an asyncio.Queue. With a bounded queue, events that do
    not fit are dropped and counted rather than blocking dispatch.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: "asyncio.Queue[TaskEvent]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def write(self, event: TaskEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"QueueSink full; dropped {event.event_type.value} for task {event.task_id}")


class LoggingSink(EventSink):
    """Writes a one-line summary of each event to a standard logger."""

    def __init__(self, logger_name: str = "aiorchestrator.events.stream", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(logger_name)
        self._level = level

    async def write(self, event: TaskEvent) -> None:
        task = event.task
        if event.result is None:
            self._logger.log(
                self._level,
                f"{event.event_type.value} id={task.id} kind={task.kind.value} priority={task.priority.value}",
            )
            return
        result = event.result
        line = (
            f"{event.event_type.value} id={task.id} model={result.model_used} "
            f"cached={result.from_cache} time_ms={result.processing_time_ms:.1f}"
        )
        if event.error:
            line += f" error={event.error}"
        self._logger.log(self._level, line)


# =============================================================================
# EVENT BUS
# =============================================================================


class EventBus:
    """
    Fans task events out to the registered sinks.

    Sinks are written in registration order. A failing sink is logged and
    skipped; the remaining sinks still receive the event.
    """

    def __init__(self, sinks: Optional[List[EventSink]] = None) -> None:
        self.sinks: List[EventSink] = list(sinks or [])
        self._event_count = 0
        self._error_count = 0

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> bool:
        """
        Remove an event sink.

        Returns:
            True if sink was removed
        """
        try:
            self.sinks.remove(sink)
            return True
        except ValueError:
            return False

    async def emit(self, event: TaskEvent) -> TaskEvent:
        """Publish an event to all sinks."""
        self._event_count += 1
        for sink in list(self.sinks):
            try:
                await sink.write(event)
            except Exception as e:
                self._error_count += 1
                logger.error(f"Failed to write {event.event_type.value} to sink {sink.name}: {e}")
        return event

    async def close(self) -> None:
        """Close all sinks."""
        for sink in self.sinks:
            try:
                await sink.close()
            except Exception as e:
                logger.error(f"Failed to close sink {sink.name}: {e}")

    @property
    def event_count(self) -> int:
        return self._event_count

    @property
    def error_count(self) -> int:
        return self._error_count
