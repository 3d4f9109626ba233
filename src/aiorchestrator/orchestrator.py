# src/aiorchestrator/orchestrator.py
"""
AI task orchestrator.

Accepts tasks, keeps them in a priority queue, and runs them on a bounded
pool of asyncio workers. Each worker pulls the next task only when it is
free, so the priority order is applied at every dispatch decision and the
number of tasks in flight never exceeds ``concurrency_limit``.

Processing one task:
    1. Look the input up in the semantic result cache; a hit short-circuits.
    2. Ask the registry for the best-scoring backend; none means failure.
    3. Invoke the backend adapter (optional timeout, optional retries).
    4. Estimate cost, cache the successful result, publish the outcome.

Every failure along the way becomes a failed TaskResult; nothing raised by a
backend, the cache or an event sink escapes the worker loop.

Usage:
    orchestrator = build_orchestrator(load_orchestrator_config())
    await orchestrator.start()

    task_id = await orchestrator.submit_task(
        "analysis", "high", {"rows": [1, 2, 3]}, submitter_id="tenant-42"
    )
    result = await orchestrator.wait_for_result(task_id, timeout=30)

    await orchestrator.stop(drain=True)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .backends.base import BackendRequest, BackendResponse, BaseModelBackend
from .backends.simulated import SimulatedBackend
from .cache.result_cache import ResultCache
from .config.models import AdapterType, ModelEntryConfig, OrchestratorConfig
from .embedding.hashing import HashEmbeddingProvider
from .events import EventBus, TaskEvent
from .exceptions import BackendError, BackendTimeoutError, NoBackendAvailableError, TaskNotFoundError, TaskValidationError
from .logging_config import log_display
from .models import ModelDescriptor, Task, TaskKind, TaskPriority, TaskResult, TaskState, TaskStatus
from .monitor import MonitorStats, PerformanceMonitor
from .queue import AgingPolicy, TaskQueue
from .registry import ModelRegistry, default_model_descriptors

logger = logging.getLogger(__name__)


class OrchestratorStats(BaseModel):
    """Consistent snapshot of the orchestrator's load."""

    queue_depth: int
    queue_by_priority: Dict[str, int]
    active_jobs: int
    concurrency_limit: int
    running: bool
    tasks_by_state: Dict[str, int] = Field(default_factory=dict)
    total_tasks: int = 0


def _error_text(error: BaseException) -> str:
    """The message of an invocation error, without wrapper decoration."""
    if isinstance(error, BackendError):
        return error.detail
    return str(error) or type(error).__name__


class Orchestrator:
    """
    Queues, dispatches and tracks AI tasks.

    Args:
        registry: Backend descriptors and adapters to select from.
        cache: Semantic result cache; None disables caching.
        config: Tuning knobs (concurrency, queue capacity, retry, timeout).
        events: Bus that receives task lifecycle events.
        monitor: Performance counters updated after every task.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        cache: Optional[ResultCache] = None,
        config: Optional[OrchestratorConfig] = None,
        events: Optional[EventBus] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.registry = registry
        self.cache = cache if self.config.cache.enabled else None
        self.events = events or EventBus()
        self.monitor = monitor or PerformanceMonitor()

        queue_config = self.config.queue
        aging = AgingPolicy(queue_config.aging_boost_after_seconds) if queue_config.aging_enabled else None
        self.queue = TaskQueue(max_size=queue_config.max_size, aging=aging)

        self._states: Dict[str, TaskState] = {}
        self._results: Dict[str, TaskResult] = {}
        self._done: Dict[str, asyncio.Event] = {}
        self._finished: Deque[str] = deque()

        self._active_jobs = 0
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._started_at = time.monotonic()

        logger.info(
            f"Orchestrator initialized (concurrency_limit={self.config.concurrency_limit}, "
            f"queue_max_size={queue_config.max_size or 'unbounded'}, aging={'on' if aging else 'off'}, "
            f"cache={'on' if self.cache else 'off'}, retry_max_attempts={self.config.retry.max_attempts})"
        )

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_task(
        self,
        kind: Union[TaskKind, str],
        priority: Union[TaskPriority, str],
        input: Any,
        *,
        submitter_id: str,
        context: Optional[Dict[str, Any]] = None,
        requested_model: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Queue a task for processing and return its id immediately.

        Submission is accepted whether or not the worker pool is running,
        including while `stop()` waits for in-flight work.

        Raises:
            TaskValidationError: If the kind, priority or submitter is invalid.
            QueueFullError: If the queue is at its configured capacity.
        """
        try:
            task = Task(
                kind=kind,
                priority=priority,
                input=input,
                context=context or {},
                submitter_id=submitter_id,
                requested_model=requested_model,
                metadata=metadata or {},
            )
        except ValidationError as e:
            raise TaskValidationError(f"Invalid task submission: {e}") from e

        self.queue.enqueue(task)
        self._states[task.id] = TaskState.QUEUED
        self._done[task.id] = asyncio.Event()
        self._idle.clear()
        logger.debug(
            f"Queued task {task.id} (kind={task.kind.value}, priority={task.priority.value}, "
            f"submitter={task.submitter_id}, depth={self.queue.size()})"
        )
        await self.events.emit(TaskEvent.queued(task))
        return task.id

    # =========================================================================
    # Worker pool
    # =========================================================================

    async def start(self) -> None:
        """Spawn the worker pool. Calling it on a running orchestrator is a no-op."""
        if self._running:
            return
        self.queue.reopen()
        self._running = True
        self._started_at = time.monotonic()
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"aiorchestrator-worker-{i}")
            for i in range(self.config.concurrency_limit)
        ]
        log_display(logger, logging.INFO, f"Orchestrator started with {len(self._workers)} workers")

    async def stop(self, drain: bool = False) -> None:
        """
        Stop pulling tasks from the queue.

        In-flight tasks always finish. With `drain=True` the call first waits
        until the queue is empty and no task is in flight. Tasks still queued
        afterwards stay queued and are picked up by the next `start()`.
        Submissions made while it waits are queued the same way.
        """
        if not self._running:
            return
        if drain:
            logger.info(f"Draining {self.queue.size()} queued and {self._active_jobs} in-flight tasks")
            await self._idle.wait()
        self.queue.close()
        await asyncio.gather(*self._workers)
        self._workers = []
        self._running = False
        self.queue.reopen()
        log_display(logger, logging.INFO, f"Orchestrator stopped ({self.queue.size()} tasks left queued)")

    async def close(self) -> None:
        """Stop the pool and release adapter and sink resources."""
        await self.stop()
        for adapter in self.registry.adapters():
            try:
                await adapter.close()
            except Exception as e:
                logger.error(f"Failed to close adapter for '{adapter.get_name()}': {e}")
        await self.events.close()

    async def __aenter__(self) -> "Orchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def running(self) -> bool:
        return self._running

    async def _worker(self, index: int) -> None:
        while True:
            task = await self.queue.get()
            if task is None:
                break
            self._active_jobs += 1
            self._states[task.id] = TaskState.DISPATCHED
            try:
                result = await self.process_task(task)
            except Exception as e:
                logger.exception(f"Worker {index} hit an unexpected error on task {task.id}: {e}")
                result = TaskResult.failure(task.id, f"Internal error: {_error_text(e)}")
            try:
                await self._finalize(task, result)
            except Exception as e:
                logger.exception(f"Worker {index} failed to record the result of task {task.id}: {e}")
            finally:
                self._active_jobs -= 1
                if self._active_jobs == 0 and self.queue.size() == 0:
                    self._idle.set()
        logger.debug(f"Worker {index} exiting")

    # =========================================================================
    # Processing
    # =========================================================================

    async def process_task(self, task: Task) -> TaskResult:
        """Run the cache, selection and invocation pipeline for one task."""
        started = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - started) * 1000.0

        if self.cache is not None:
            try:
                lookup = await self.cache.search(task, self.config.cache.similarity_threshold)
            except Exception as e:
                logger.warning(f"Cache lookup failed for task {task.id}; treating as miss: {e}")
            else:
                if lookup.hit:
                    cached = lookup.result
                    logger.info(f"Task {task.id} served from cache (similarity={lookup.similarity:.4f})")
                    return TaskResult(
                        task_id=task.id,
                        succeeded=True,
                        output=cached.output,
                        model_used=cached.model_used,
                        processing_time_ms=elapsed_ms(),
                        estimated_cost=0.0,
                        from_cache=True,
                        attempts=0,
                    )

        descriptor = self.registry.select_optimal_model(task)
        if descriptor is None:
            return TaskResult.failure(task.id, NoBackendAvailableError().detail, processing_time_ms=elapsed_ms())

        try:
            adapter = self.registry.get_adapter(descriptor.name)
        except Exception as e:
            logger.error(f"No adapter available for model '{descriptor.name}': {e}")
            return TaskResult.failure(
                task.id, _error_text(e), model_used=descriptor.name, processing_time_ms=elapsed_ms()
            )

        request = BackendRequest.for_descriptor(descriptor, task.id, task.kind, task.input, task.context)
        retry = self.config.retry
        response: Optional[BackendResponse] = None
        error: Optional[BaseException] = None
        attempts = 0
        while attempts < retry.max_attempts:
            attempts += 1
            try:
                response = await self._invoke(adapter, request)
                error = None
                break
            except Exception as e:
                error = e
                logger.warning(
                    f"Task {task.id} attempt {attempts}/{retry.max_attempts} on '{descriptor.name}' failed: "
                    f"{_error_text(e)}"
                )
                if attempts < retry.max_attempts:
                    await asyncio.sleep(retry.delay_for(attempts))

        if response is None:
            return TaskResult.failure(
                task.id,
                _error_text(error) if error is not None else "Backend returned no response",
                model_used=descriptor.name,
                processing_time_ms=elapsed_ms(),
                attempts=attempts,
            )

        units = response.units_used if response.units_used is not None else self.config.default_cost_units
        result = TaskResult(
            task_id=task.id,
            succeeded=True,
            output=response.output,
            model_used=descriptor.name,
            processing_time_ms=elapsed_ms(),
            estimated_cost=descriptor.cost_per_unit * units,
            attempts=attempts,
        )

        if self.cache is not None:
            try:
                await self.cache.store(task, result)
            except Exception as e:
                logger.warning(f"Failed to cache result of task {task.id}: {e}")
        return result

    async def _invoke(self, adapter: BaseModelBackend, request: BackendRequest) -> BackendResponse:
        timeout = self.config.task_timeout_seconds
        if timeout is None:
            return await adapter.invoke(request)
        try:
            return await asyncio.wait_for(adapter.invoke(request), timeout)
        except asyncio.TimeoutError as e:
            raise BackendTimeoutError(adapter.get_name(), timeout) from e

    async def _finalize(self, task: Task, result: TaskResult) -> None:
        if self._states.get(task.id, TaskState.QUEUED).is_terminal:
            logger.error(f"Ignoring second terminal result for task {task.id}")
            return
        self._results[task.id] = result
        self._states[task.id] = TaskState.COMPLETED if result.succeeded else TaskState.FAILED

        if result.from_cache:
            self.monitor.record_cache_hit(task.kind)
        elif result.succeeded:
            self.monitor.record_processing(
                task.kind, result.processing_time_ms, result.model_used, result.estimated_cost or 0.0
            )
        else:
            self.monitor.record_error(task.kind, result.error_message)

        if result.succeeded:
            logger.info(
                f"Task {task.id} completed by '{result.model_used}' in {result.processing_time_ms:.1f}ms "
                f"(cached={result.from_cache}, cost={result.estimated_cost})"
            )
            event = TaskEvent.completed(task, result)
        else:
            logger.error(f"Task {task.id} failed: {result.error_message}")
            event = TaskEvent.failed(task, result)

        self._retire(task.id)
        done = self._done.pop(task.id, None)
        if done is not None:
            done.set()
        await self.events.emit(event)

    def _retire(self, task_id: str) -> None:
        """Remember a finished task, forgetting the oldest beyond `result_retention`."""
        retention = self.config.result_retention
        if not retention:
            return
        self._finished.append(task_id)
        while len(self._finished) > retention:
            expired = self._finished.popleft()
            self._states.pop(expired, None)
            self._results.pop(expired, None)

    # =========================================================================
    # Status and observability
    # =========================================================================

    def get_task_status(self, task_id: str) -> TaskStatus:
        """
        Raises:
            TaskNotFoundError: If the id was never submitted to this orchestrator.
        """
        state = self._states.get(task_id)
        if state is None:
            raise TaskNotFoundError(task_id)
        return TaskStatus(task_id=task_id, state=state, result=self._results.get(task_id))

    async def wait_for_result(self, task_id: str, timeout: Optional[float] = None) -> TaskResult:
        """
        Wait until the task reaches a terminal state and return its result.

        Raises:
            TaskNotFoundError: If the id is unknown or its result was retired.
            asyncio.TimeoutError: If `timeout` elapses first.
        """
        result = self._results.get(task_id)
        if result is not None:
            return result
        done = self._done.get(task_id)
        if done is None:
            raise TaskNotFoundError(task_id)
        await asyncio.wait_for(done.wait(), timeout)
        result = self._results.get(task_id)
        if result is None:
            raise TaskNotFoundError(task_id)
        return result

    def queue_depth(self) -> int:
        return self.queue.size()

    def active_job_count(self) -> int:
        return self._active_jobs

    def stats(self) -> OrchestratorStats:
        by_state = {state.value: 0 for state in TaskState}
        for state in self._states.values():
            by_state[state.value] += 1
        return OrchestratorStats(
            queue_depth=self.queue.size(),
            queue_by_priority=self.queue.size_by_priority(),
            active_jobs=self._active_jobs,
            concurrency_limit=self.config.concurrency_limit,
            running=self._running,
            tasks_by_state=by_state,
            total_tasks=len(self._states),
        )

    def get_health(self) -> Dict[str, Any]:
        registry_health = self.registry.get_health()
        if not self._running:
            status = "stopped"
        elif registry_health["total_models"] == 0:
            status = "degraded"
        else:
            status = "healthy"
        return {
            "status": status,
            "running": self._running,
            "uptime_seconds": time.monotonic() - self._started_at,
            "active_jobs": self._active_jobs,
            "concurrency_limit": self.config.concurrency_limit,
            "registry": registry_health,
            "queue": self.queue.get_stats(),
            "cache": self.cache.stats().to_dict() if self.cache is not None else {"enabled": False},
            "events": {"emitted": self.events.event_count, "sink_errors": self.events.error_count},
        }

    def get_metrics(self) -> MonitorStats:
        return self.monitor.get_stats()

    # =========================================================================
    # Backend administration
    # =========================================================================

    async def register_backend(self, descriptor: ModelDescriptor, adapter: Optional[BaseModelBackend] = None) -> None:
        """Add or replace a backend; a replaced adapter is closed."""
        previous = self.registry.created_adapter(descriptor.name)
        self.registry.register(descriptor, adapter)
        if previous is not None and previous is not adapter:
            await self._close_adapter(descriptor.name, previous)

    async def unregister_backend(self, name: str) -> bool:
        """Remove a backend and close its adapter if one was created."""
        adapter = self.registry.created_adapter(name)
        removed = self.registry.unregister(name)
        if removed and adapter is not None:
            await self._close_adapter(name, adapter)
        return removed

    async def _close_adapter(self, name: str, adapter: BaseModelBackend) -> None:
        try:
            await adapter.close()
        except Exception as e:
            logger.error(f"Failed to close adapter for '{name}': {e}")


# =============================================================================
# Composition root
# =============================================================================


def descriptor_from_entry(entry: ModelEntryConfig) -> ModelDescriptor:
    return ModelDescriptor(
        name=entry.name,
        endpoint=entry.endpoint,
        credential=entry.resolve_credential(),
        max_tokens=entry.max_tokens,
        temperature=entry.temperature,
        capabilities=frozenset(entry.capabilities),
        cost_per_unit=entry.cost_per_unit,
    )


def build_orchestrator(
    config: Optional[OrchestratorConfig] = None,
    events: Optional[EventBus] = None,
) -> Orchestrator:
    """
    Wire an Orchestrator from configuration.

    Models declared under `models` are registered in order; HTTP models get
    their adapter lazily on first use. With no models declared and
    `use_default_models` on, the stock Gemini descriptors are registered
    with simulated adapters.
    """
    config = config or OrchestratorConfig()
    logging.getLogger("aiorchestrator").setLevel(config.log_level)

    registry = ModelRegistry()
    for entry in config.models:
        descriptor = descriptor_from_entry(entry)
        adapter = SimulatedBackend(descriptor) if entry.adapter == AdapterType.SIMULATED else None
        registry.register(descriptor, adapter)
    if not config.models and config.use_default_models:
        for descriptor in default_model_descriptors():
            registry.register(descriptor, SimulatedBackend(descriptor))

    cache = None
    if config.cache.enabled:
        cache = ResultCache(
            HashEmbeddingProvider(config.cache.embedding_dimension),
            threshold=config.cache.similarity_threshold,
            max_entries=config.cache.max_entries,
            ttl_seconds=config.cache.ttl_seconds,
        )

    return Orchestrator(registry, cache, config=config, events=events, monitor=PerformanceMonitor())
