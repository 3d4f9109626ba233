# tests/test_orchestrator.py
"""
Tests for the Orchestrator.

Tests cover:
- Submission, status tracking and lifecycle events
- Priority dispatch order and FIFO within a tier
- The concurrency bound
- Semantic cache short-circuit
- Failure handling: no backend, backend errors, retry, timeout
- Queue capacity, drain and restart
- Backend administration, health and metrics
- Composition from configuration
"""

import asyncio

import pytest

from aiorchestrator.backends.simulated import SimulatedBackend
from aiorchestrator.cache import ResultCache
from aiorchestrator.config import OrchestratorConfig, load_orchestrator_config
from aiorchestrator.embedding import HashEmbeddingProvider
from aiorchestrator.events import CallbackSink, EventBus, EventType, InMemorySink
from aiorchestrator.exceptions import BackendError, QueueFullError, TaskNotFoundError, TaskValidationError
from aiorchestrator.models import TaskKind, TaskPriority, TaskState
from aiorchestrator.orchestrator import Orchestrator, build_orchestrator
from aiorchestrator.registry import ModelRegistry

from conftest import (
    FailingBackend,
    FailingEmbeddingProvider,
    GatedBackend,
    RecordingBackend,
    make_descriptor,
    wait_until,
)


def _config(**overrides) -> OrchestratorConfig:
    return load_orchestrator_config(overrides=overrides)


def _orchestrator(backend=None, cache=None, config=None, events=None) -> Orchestrator:
    registry = ModelRegistry()
    if backend is not None:
        registry.register(backend.descriptor, backend)
    return Orchestrator(registry, cache, config=config or _config(), events=events)


async def _submit(orchestrator, input, kind="completion", priority="medium", **kwargs):
    return await orchestrator.submit_task(kind, priority, input, submitter_id="tenant-1", **kwargs)


# =============================================================================
# SUBMISSION AND STATUS
# =============================================================================


class TestSubmission:
    @pytest.mark.asyncio
    async def test_submit_returns_id_and_queues(self, recording_backend):
        sink = InMemorySink()
        orchestrator = _orchestrator(recording_backend, events=EventBus([sink]))

        task_id = await _submit(orchestrator, {"q": 1}, metadata={"trace": "abc"})

        assert task_id.startswith("ai-task-")
        assert orchestrator.queue_depth() == 1
        status = orchestrator.get_task_status(task_id)
        assert status.state is TaskState.QUEUED
        assert status.result is None
        assert [e.event_type for e in sink.events] == [EventType.TASK_QUEUED]
        assert sink.events[0].task.metadata == {"trace": "abc"}

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, recording_backend):
        orchestrator = _orchestrator(recording_backend)
        ids = {await _submit(orchestrator, i) for i in range(100)}
        assert len(ids) == 100

    @pytest.mark.asyncio
    async def test_invalid_submissions(self, recording_backend):
        orchestrator = _orchestrator(recording_backend)
        with pytest.raises(TaskValidationError):
            await orchestrator.submit_task("telepathy", "high", {}, submitter_id="s")
        with pytest.raises(TaskValidationError):
            await orchestrator.submit_task("completion", "urgent", {}, submitter_id="s")
        with pytest.raises(TaskValidationError):
            await orchestrator.submit_task("completion", "high", {}, submitter_id="")
        assert orchestrator.queue_depth() == 0

    def test_unknown_task_status(self, recording_backend):
        with pytest.raises(TaskNotFoundError):
            _orchestrator(recording_backend).get_task_status("ai-task-nope")

    @pytest.mark.asyncio
    async def test_wait_for_unknown_task(self, recording_backend):
        with pytest.raises(TaskNotFoundError):
            await _orchestrator(recording_backend).wait_for_result("ai-task-nope")

    @pytest.mark.asyncio
    async def test_finished_tasks_beyond_retention_are_forgotten(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(concurrency_limit=1, result_retention=2))
        ids = [await _submit(orchestrator, i) for i in range(3)]
        async with orchestrator:
            await orchestrator.wait_for_result(ids[-1], timeout=2)

        with pytest.raises(TaskNotFoundError):
            orchestrator.get_task_status(ids[0])
        with pytest.raises(TaskNotFoundError):
            await orchestrator.wait_for_result(ids[0], timeout=1)
        assert orchestrator.get_task_status(ids[1]).state is TaskState.COMPLETED
        assert (await orchestrator.wait_for_result(ids[1], timeout=1)).succeeded
        assert orchestrator.stats().total_tasks == 2
        assert orchestrator._done == {}

    @pytest.mark.asyncio
    async def test_zero_retention_keeps_every_result(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(result_retention=0))
        ids = [await _submit(orchestrator, i) for i in range(5)]
        async with orchestrator:
            for task_id in ids:
                await orchestrator.wait_for_result(task_id, timeout=2)

        assert all(orchestrator.get_task_status(t).state is TaskState.COMPLETED for t in ids)
        assert orchestrator._done == {}

    @pytest.mark.asyncio
    async def test_queue_capacity(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(queue={"max_size": 2}))
        await _submit(orchestrator, 1)
        await _submit(orchestrator, 2)
        with pytest.raises(QueueFullError):
            await _submit(orchestrator, 3, priority="critical")
        assert orchestrator.queue_depth() == 2


# =============================================================================
# PROCESSING
# =============================================================================


class TestProcessing:
    @pytest.mark.asyncio
    async def test_successful_task(self, recording_backend):
        sink = InMemorySink()
        orchestrator = _orchestrator(recording_backend, events=EventBus([sink]))
        async with orchestrator:
            task_id = await _submit(orchestrator, {"q": "hello"}, context={"lang": "fr"})
            result = await orchestrator.wait_for_result(task_id, timeout=2)

        assert result.succeeded
        assert result.output == {"echo": {"q": "hello"}, "model": "model-a"}
        assert result.model_used == "model-a"
        assert result.from_cache is False
        assert result.attempts == 1
        assert result.estimated_cost == pytest.approx(0.0001 * 1000)
        assert result.processing_time_ms >= 0
        assert recording_backend.requests[0].context == {"lang": "fr"}
        assert orchestrator.get_task_status(task_id).state is TaskState.COMPLETED
        assert [e.event_type for e in sink.get_events(task_id=task_id)] == [
            EventType.TASK_QUEUED,
            EventType.TASK_COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_reported_units_drive_cost(self, descriptor):
        backend = RecordingBackend(descriptor, units=42)
        orchestrator = _orchestrator(backend)
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, "x"), timeout=2)
        assert result.estimated_cost == pytest.approx(0.0001 * 42)

    @pytest.mark.asyncio
    async def test_default_cost_units_configurable(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(default_cost_units=10))
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, "x"), timeout=2)
        assert result.estimated_cost == pytest.approx(0.0001 * 10)

    @pytest.mark.asyncio
    async def test_empty_registry_fails_without_hanging(self):
        sink = InMemorySink()
        orchestrator = _orchestrator(events=EventBus([sink]))
        async with orchestrator:
            task_id = await _submit(orchestrator, {"q": 1})
            result = await orchestrator.wait_for_result(task_id, timeout=2)

        assert not result.succeeded
        assert result.error_message == "No suitable model found for task"
        assert result.attempts == 0
        assert orchestrator.get_task_status(task_id).state is TaskState.FAILED
        failed = sink.get_events(event_type=EventType.TASK_FAILED)
        assert len(failed) == 1
        assert failed[0].error == "No suitable model found for task"

    @pytest.mark.asyncio
    async def test_requested_model_is_honoured(self):
        registry = ModelRegistry()
        strong = RecordingBackend(make_descriptor("strong"))
        weak = RecordingBackend(make_descriptor("weak", set()))
        registry.register(strong.descriptor, strong)
        registry.register(weak.descriptor, weak)
        orchestrator = Orchestrator(registry, None, config=_config())
        async with orchestrator:
            plain = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
            hinted = await orchestrator.wait_for_result(
                await _submit(orchestrator, 2, requested_model="weak"), timeout=2
            )
        assert plain.model_used == "strong"
        assert hinted.model_used == "weak"


class TestFailures:
    @pytest.mark.asyncio
    async def test_backend_error_message_is_verbatim(self, descriptor, backend_error):
        orchestrator = _orchestrator(FailingBackend(descriptor, backend_error))
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert not result.succeeded
        assert result.error_message == "upstream exploded"
        assert result.model_used == "model-a"
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_arbitrary_exception_becomes_failed_result(self, descriptor):
        orchestrator = _orchestrator(FailingBackend(descriptor, RuntimeError("socket closed")))
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert result.error_message == "socket closed"

    @pytest.mark.asyncio
    async def test_failure_does_not_halt_later_tasks(self, descriptor, backend_error):
        backend = FailingBackend(descriptor, backend_error, fail_times=1)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=1))
        async with orchestrator:
            first = await _submit(orchestrator, 1)
            second = await _submit(orchestrator, 2)
            results = [await orchestrator.wait_for_result(t, timeout=2) for t in (first, second)]
        assert [r.succeeded for r in results] == [False, True]

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self, descriptor, backend_error):
        backend = FailingBackend(descriptor, backend_error, fail_times=1)
        orchestrator = _orchestrator(backend)
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert not result.succeeded
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_retry_recovers(self, descriptor, backend_error):
        backend = FailingBackend(descriptor, backend_error, fail_times=2)
        config = _config(retry={"max_attempts": 3, "backoff_seconds": 0.0})
        orchestrator = _orchestrator(backend, config=config)
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert result.succeeded
        assert result.attempts == 3
        assert result.output == {"recovered_after": 2}

    @pytest.mark.asyncio
    async def test_retry_exhausted(self, descriptor, backend_error):
        backend = FailingBackend(descriptor, backend_error)
        config = _config(retry={"max_attempts": 2, "backoff_seconds": 0.01})
        orchestrator = _orchestrator(backend, config=config)
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert not result.succeeded
        assert result.attempts == 2
        assert backend.calls == 2
        assert result.error_message == "upstream exploded"

    @pytest.mark.asyncio
    async def test_timeout(self, descriptor):
        backend = RecordingBackend(descriptor, delay=1.0)
        orchestrator = _orchestrator(backend, config=_config(task_timeout_seconds=0.05))
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert not result.succeeded
        assert result.error_message == "Invocation timed out after 0.05s."

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_affect_dispatch(self, recording_backend):
        def explode(event):
            raise RuntimeError("sink down")

        memory = InMemorySink()
        orchestrator = _orchestrator(recording_backend, events=EventBus([CallbackSink(explode), memory]))
        async with orchestrator:
            result = await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert result.succeeded
        assert [e.event_type for e in memory.events] == [EventType.TASK_QUEUED, EventType.TASK_COMPLETED]
        assert orchestrator.events.error_count == 2


# =============================================================================
# ORDERING AND CONCURRENCY
# =============================================================================


class TestDispatch:
    @pytest.mark.asyncio
    async def test_priority_order_with_single_worker(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(concurrency_limit=1))
        ids = [
            await _submit(orchestrator, "A", priority="low"),
            await _submit(orchestrator, "B", priority="critical"),
            await _submit(orchestrator, "C", priority="medium"),
        ]
        async with orchestrator:
            for task_id in ids:
                await orchestrator.wait_for_result(task_id, timeout=2)
        assert recording_backend.inputs == ["B", "C", "A"]

    @pytest.mark.asyncio
    async def test_priority_order_behind_busy_worker(self, descriptor):
        backend = GatedBackend(descriptor)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=1))
        async with orchestrator:
            blocker = await _submit(orchestrator, {"block": True})
            await wait_until(lambda: len(backend.requests) == 1)
            ids = [
                await _submit(orchestrator, "A", priority="low"),
                await _submit(orchestrator, "B", priority="critical"),
                await _submit(orchestrator, "C", priority="medium"),
            ]
            assert orchestrator.queue_depth() == 3
            assert orchestrator.active_job_count() == 1
            assert orchestrator.get_task_status(blocker).state is TaskState.DISPATCHED

            backend.release()
            for task_id in [blocker, *ids]:
                await orchestrator.wait_for_result(task_id, timeout=2)

        assert backend.inputs[1:] == ["B", "C", "A"]

    @pytest.mark.asyncio
    async def test_fifo_within_tier(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(concurrency_limit=1))
        ids = [await _submit(orchestrator, i, priority="high") for i in range(5)]
        async with orchestrator:
            for task_id in ids:
                await orchestrator.wait_for_result(task_id, timeout=2)
        assert recording_backend.inputs == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_concurrency_bound_is_never_exceeded(self, descriptor):
        backend = RecordingBackend(descriptor, delay=0.02)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=3))
        samples = []
        async with orchestrator:
            ids = [await _submit(orchestrator, i) for i in range(12)]
            while not all(orchestrator.get_task_status(t).state.is_terminal for t in ids):
                samples.append(orchestrator.active_job_count())
                await asyncio.sleep(0.002)
        assert backend.max_in_flight == 3
        assert max(samples) <= 3
        assert orchestrator.active_job_count() == 0

    @pytest.mark.asyncio
    async def test_aging_lets_old_low_task_through(self, descriptor):
        backend = GatedBackend(descriptor)
        config = _config(concurrency_limit=1, queue={"aging_enabled": True, "aging_boost_after_seconds": 0.05})
        orchestrator = _orchestrator(backend, config=config)
        async with orchestrator:
            blocker = await _submit(orchestrator, {"block": True})
            await wait_until(lambda: len(backend.requests) == 1)
            old_low = await _submit(orchestrator, "old-low", priority="low")
            await asyncio.sleep(0.12)
            fresh_medium = await _submit(orchestrator, "fresh-medium", priority="medium")
            backend.release()
            for task_id in (blocker, old_low, fresh_medium):
                await orchestrator.wait_for_result(task_id, timeout=2)
        assert backend.inputs[1:] == ["old-low", "fresh-medium"]


# =============================================================================
# CACHE
# =============================================================================


class TestCaching:
    @pytest.mark.asyncio
    async def test_duplicate_analysis_served_from_cache(self, recording_backend):
        cache = ResultCache(HashEmbeddingProvider())
        orchestrator = _orchestrator(recording_backend, cache=cache)
        payload = {"dataset": "sales-q3", "metrics": ["revenue", "churn"]}
        async with orchestrator:
            first = await orchestrator.wait_for_result(
                await _submit(orchestrator, payload, kind="analysis"), timeout=2
            )
            second = await orchestrator.wait_for_result(
                await _submit(orchestrator, dict(reversed(list(payload.items()))), kind="analysis"), timeout=2
            )

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.output == first.output
        assert second.model_used == first.model_used
        assert second.estimated_cost == 0.0
        assert second.attempts == 0
        assert len(recording_backend.requests) == 1
        metrics = orchestrator.get_metrics()
        assert metrics.cache_hits == 1
        assert metrics.processed == 1

    @pytest.mark.asyncio
    async def test_cache_disabled_by_config(self, recording_backend):
        cache = ResultCache(HashEmbeddingProvider())
        orchestrator = _orchestrator(recording_backend, cache=cache, config=_config(cache={"enabled": False}))
        async with orchestrator:
            for _ in range(2):
                await orchestrator.wait_for_result(await _submit(orchestrator, "same"), timeout=2)
        assert len(recording_backend.requests) == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_failed_results_are_not_cached(self, descriptor, backend_error):
        cache = ResultCache(HashEmbeddingProvider())
        orchestrator = _orchestrator(FailingBackend(descriptor, backend_error), cache=cache)
        async with orchestrator:
            await orchestrator.wait_for_result(await _submit(orchestrator, "x"), timeout=2)
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_backend_call(self, recording_backend):
        cache = ResultCache(FailingEmbeddingProvider())
        orchestrator = _orchestrator(recording_backend, cache=cache)
        async with orchestrator:
            results = [
                await orchestrator.wait_for_result(await _submit(orchestrator, "same"), timeout=2)
                for _ in range(2)
            ]
        assert all(r.succeeded and not r.from_cache for r in results)
        assert len(recording_backend.requests) == 2


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_with_drain_finishes_everything(self, descriptor):
        backend = RecordingBackend(descriptor, delay=0.01)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=2))
        await orchestrator.start()
        ids = [await _submit(orchestrator, i) for i in range(6)]
        await orchestrator.stop(drain=True)

        assert not orchestrator.running
        assert orchestrator.queue_depth() == 0
        assert all(orchestrator.get_task_status(t).state is TaskState.COMPLETED for t in ids)

    @pytest.mark.asyncio
    async def test_stop_leaves_queued_tasks_for_next_start(self, descriptor):
        backend = GatedBackend(descriptor)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=1))
        await orchestrator.start()
        blocker = await _submit(orchestrator, {"block": True})
        await wait_until(lambda: len(backend.requests) == 1)
        waiting = await _submit(orchestrator, "later")

        stopping = asyncio.create_task(orchestrator.stop())
        await asyncio.sleep(0.01)
        assert not stopping.done()
        backend.release()
        await asyncio.wait_for(stopping, 2)

        assert orchestrator.get_task_status(blocker).state is TaskState.COMPLETED
        assert orchestrator.get_task_status(waiting).state is TaskState.QUEUED

        await orchestrator.start()
        result = await orchestrator.wait_for_result(waiting, timeout=2)
        await orchestrator.stop()
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_submit_while_stopping_is_queued(self, descriptor):
        backend = GatedBackend(descriptor)
        orchestrator = _orchestrator(backend, config=_config(concurrency_limit=1))
        await orchestrator.start()
        await _submit(orchestrator, {"block": True})
        await wait_until(lambda: len(backend.requests) == 1)

        stopping = asyncio.create_task(orchestrator.stop())
        await asyncio.sleep(0.01)
        assert not stopping.done()

        late = await _submit(orchestrator, "late")
        assert orchestrator.get_task_status(late).state is TaskState.QUEUED

        backend.release()
        await asyncio.wait_for(stopping, 2)
        assert orchestrator.get_task_status(late).state is TaskState.QUEUED
        assert orchestrator.queue_depth() == 1

        await orchestrator.start()
        result = await orchestrator.wait_for_result(late, timeout=2)
        await orchestrator.stop()
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_submit_on_stopped_orchestrator_is_queued(self, recording_backend):
        orchestrator = _orchestrator(recording_backend)
        await orchestrator.start()
        await orchestrator.stop()

        task_id = await _submit(orchestrator, 1)
        assert orchestrator.get_task_status(task_id).state is TaskState.QUEUED

        async with orchestrator:
            result = await orchestrator.wait_for_result(task_id, timeout=2)
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, recording_backend):
        orchestrator = _orchestrator(recording_backend, config=_config(concurrency_limit=2))
        await orchestrator.start()
        await orchestrator.start()
        assert len(orchestrator._workers) == 2
        await orchestrator.stop()
        await orchestrator.stop()
        assert not orchestrator.running

    @pytest.mark.asyncio
    async def test_close_releases_adapters(self, recording_backend):
        orchestrator = _orchestrator(recording_backend)
        async with orchestrator:
            await orchestrator.wait_for_result(await _submit(orchestrator, 1), timeout=2)
        assert recording_backend.closed


# =============================================================================
# ADMINISTRATION AND OBSERVABILITY
# =============================================================================


class TestAdministration:
    @pytest.mark.asyncio
    async def test_register_and_unregister_backend(self, recording_backend):
        orchestrator = _orchestrator()
        await orchestrator.register_backend(recording_backend.descriptor, recording_backend)
        orchestrator.registry.get_adapter("model-a")
        assert await orchestrator.unregister_backend("model-a") is True
        assert recording_backend.closed
        assert await orchestrator.unregister_backend("model-a") is False

    @pytest.mark.asyncio
    async def test_replacing_backend_closes_previous_adapter(self, descriptor):
        first, second = RecordingBackend(descriptor), RecordingBackend(descriptor)
        orchestrator = _orchestrator()
        await orchestrator.register_backend(descriptor, first)
        assert orchestrator.registry.get_adapter("model-a") is first

        await orchestrator.register_backend(descriptor, second)
        assert first.closed
        assert not second.closed
        assert orchestrator.registry.get_adapter("model-a") is second

        # re-registering the same adapter leaves it open
        await orchestrator.register_backend(descriptor, second)
        assert not second.closed

        await orchestrator.close()
        assert second.closed

    @pytest.mark.asyncio
    async def test_stats_snapshot(self, descriptor, backend_error):
        orchestrator = _orchestrator(FailingBackend(descriptor, backend_error, fail_times=1))
        await _submit(orchestrator, 1, priority="high")
        await _submit(orchestrator, 2, priority="low")
        stats = orchestrator.stats()
        assert stats.queue_depth == 2
        assert stats.queue_by_priority["high"] == 1
        assert stats.tasks_by_state["queued"] == 2
        assert stats.running is False

        async with orchestrator:
            await wait_until(lambda: orchestrator.stats().tasks_by_state["queued"] == 0)
            await wait_until(lambda: orchestrator.active_job_count() == 0)
        stats = orchestrator.stats()
        assert stats.tasks_by_state == {"queued": 0, "dispatched": 0, "completed": 1, "failed": 1}
        assert stats.total_tasks == 2

    @pytest.mark.asyncio
    async def test_health_and_metrics(self, descriptor, backend_error):
        orchestrator = _orchestrator(
            FailingBackend(descriptor, backend_error), cache=ResultCache(HashEmbeddingProvider())
        )
        assert orchestrator.get_health()["status"] == "stopped"
        async with orchestrator:
            health = orchestrator.get_health()
            assert health["status"] == "healthy"
            assert health["registry"]["total_models"] == 1
            assert health["cache"]["entries"] == 0
            await orchestrator.wait_for_result(await _submit(orchestrator, "x", kind="vision"), timeout=2)

        metrics = orchestrator.get_metrics()
        assert metrics.errors == 1
        assert metrics.error_rate == 1.0
        assert metrics.recent_errors[0].message == "upstream exploded"
        assert metrics.by_kind["vision"].errors == 1

    @pytest.mark.asyncio
    async def test_health_degraded_without_models(self):
        orchestrator = _orchestrator()
        async with orchestrator:
            health = orchestrator.get_health()
        assert health["status"] == "degraded"
        assert health["cache"] == {"enabled": False}


# =============================================================================
# COMPOSITION
# =============================================================================


class TestBuildOrchestrator:
    def test_default_models_are_simulated(self):
        orchestrator = build_orchestrator(OrchestratorConfig())
        names = [d.name for d in orchestrator.registry.list_models()]
        assert names == ["gemini-pro", "gemini-vision"]
        assert isinstance(orchestrator.registry.get_adapter("gemini-pro"), SimulatedBackend)
        assert orchestrator.cache is not None
        assert orchestrator.cache.threshold == 0.95

    def test_configured_models_replace_defaults(self, monkeypatch):
        monkeypatch.setenv("REMOTE_KEY", "secret")
        config = _config(
            models=[
                {"name": "local-sim", "adapter": "simulated", "capabilities": ["ocr"]},
                {
                    "name": "remote",
                    "adapter": "http",
                    "endpoint": "http://models.internal",
                    "credential_env": "REMOTE_KEY",
                    "cost_per_unit": 0.5,
                },
            ],
            cache={"enabled": False},
        )
        orchestrator = build_orchestrator(config)
        assert [d.name for d in orchestrator.registry.list_models()] == ["local-sim", "remote"]
        assert isinstance(orchestrator.registry.get_adapter("local-sim"), SimulatedBackend)
        assert orchestrator.registry.created_adapter("remote") is None
        assert orchestrator.registry.lookup("remote").credential.get_secret_value() == "secret"
        assert orchestrator.cache is None

    def test_defaults_can_be_disabled(self):
        orchestrator = build_orchestrator(_config(use_default_models=False))
        assert len(orchestrator.registry) == 0

    def test_queue_settings_applied(self):
        orchestrator = build_orchestrator(_config(queue={"max_size": 7, "aging_enabled": True}))
        assert orchestrator.queue.max_size == 7
        assert orchestrator.queue.aging is not None
