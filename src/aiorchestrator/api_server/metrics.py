# src/aiorchestrator/api_server/metrics.py
"""
Prometheus metrics for the orchestrator API.

Each application owns a CollectorRegistry so that several apps (or test
clients) can live in one process. Queue depth and active jobs are gauges
read from the orchestrator at scrape time; task outcomes, cache hits and
latency are recorded from lifecycle events by PrometheusSink. HTTP request
metrics come from prometheus-fastapi-instrumentator, registered on the same
registry.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from ..events import EventSink, TaskEvent
from ..models import TaskKind, TaskResult
from ..orchestrator import Orchestrator

logger = logging.getLogger(__name__)

LATENCY_BUCKETS = [0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, float('inf')]


class OrchestratorMetrics:
    """Orchestrator gauges, counters and histograms on a dedicated registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        # ====================================================================
        # Load
        # ====================================================================

        self.queue_depth = Gauge(
            'aiorchestrator_task_queue_depth',
            'Number of tasks waiting in the priority queue',
            registry=self.registry,
        )
        self.active_jobs = Gauge(
            'aiorchestrator_active_jobs',
            'Number of tasks currently being processed',
            registry=self.registry,
        )

        # ====================================================================
        # Task outcomes
        # ====================================================================

        self.task_completions_total = Counter(
            'aiorchestrator_task_completions_total',
            'Total number of finished tasks',
            ['kind', 'status'],  # status: completed|failed
            registry=self.registry,
        )
        self.cache_hits_total = Counter(
            'aiorchestrator_cache_hits_total',
            'Total number of tasks served from the result cache',
            ['kind'],
            registry=self.registry,
        )
        self.task_duration_seconds = Histogram(
            'aiorchestrator_task_duration_seconds',
            'Processing time of finished tasks in seconds',
            ['kind'],
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )
        self.estimated_cost_total = Counter(
            'aiorchestrator_estimated_cost_total',
            'Accumulated estimated cost of backend invocations',
            ['model'],
            registry=self.registry,
        )

    def bind(self, orchestrator: Orchestrator) -> None:
        """Read the load gauges from `orchestrator` on every scrape."""
        self.queue_depth.set_function(orchestrator.queue_depth)
        self.active_jobs.set_function(orchestrator.active_job_count)

    def record_task_completion(self, kind: TaskKind, result: TaskResult) -> None:
        kind_label = kind.value
        status = 'completed' if result.succeeded else 'failed'
        self.task_completions_total.labels(kind=kind_label, status=status).inc()
        self.task_duration_seconds.labels(kind=kind_label).observe(result.processing_time_ms / 1000.0)
        if result.from_cache:
            self.cache_hits_total.labels(kind=kind_label).inc()
        elif result.estimated_cost and result.model_used:
            self.estimated_cost_total.labels(model=result.model_used).inc(result.estimated_cost)

    def render(self) -> bytes:
        """Text exposition of every metric on this registry."""
        return generate_latest(self.registry)


class PrometheusSink(EventSink):
    """Event sink that feeds finished-task events into OrchestratorMetrics."""

    def __init__(self, metrics: OrchestratorMetrics) -> None:
        self.metrics = metrics

    async def write(self, event: TaskEvent) -> None:
        if event.result is None:
            return
        self.metrics.record_task_completion(event.task.kind, event.result)
