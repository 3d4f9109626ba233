# src/aiorchestrator/monitor.py
"""
Performance counters for task processing.

Tracks request volume, latency, cache effectiveness, errors, estimated cost
and per-model usage across the orchestrator's lifetime. All recording
methods are synchronous and cheap; they are called from the worker loop
after each task finishes.

Usage:
    >>> monitor = PerformanceMonitor()
    >>> monitor.record_processing("completion", 120.5, "gemini-pro", cost=0.1)
    >>> monitor.record_cache_hit("completion")
    >>> stats = monitor.get_stats()
    >>> stats.cache_hit_rate
    0.5
"""

from __future__ import annotations

import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MAX_RECENT_ERRORS = 50
MAX_LATENCY_SAMPLES = 1000


class ErrorRecord(BaseModel):
    """A recorded processing error."""

    timestamp: datetime
    kind: str
    message: str


class KindCounters(BaseModel):
    requests: int = 0
    cache_hits: int = 0
    errors: int = 0


class MonitorStats(BaseModel):
    """Point-in-time snapshot of the monitor's counters."""

    total_requests: int = 0
    processed: int = 0
    cache_hits: int = 0
    errors: int = 0
    average_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    cache_hit_rate: float = 0.0
    error_rate: float = 0.0
    total_estimated_cost: float = 0.0
    model_usage: Dict[str, int] = Field(default_factory=dict)
    by_kind: Dict[str, KindCounters] = Field(default_factory=dict)
    recent_errors: List[ErrorRecord] = Field(default_factory=list)
    uptime_seconds: float = 0.0


class PerformanceMonitor:
    """
    In-process performance counters.

    A "request" is any finished task: backend-processed, served from cache
    or failed.
    """

    def __init__(self, max_recent_errors: int = MAX_RECENT_ERRORS) -> None:
        self._max_recent_errors = max_recent_errors
        self.reset()

    def reset(self) -> None:
        """Zero every counter and restart the uptime clock."""
        self._started = time.monotonic()
        self._latencies: Deque[float] = deque(maxlen=MAX_LATENCY_SAMPLES)
        self._latency_sum = 0.0
        self._processed = 0
        self._cache_hits = 0
        self._errors = 0
        self._total_cost = 0.0
        self._model_usage: Dict[str, int] = {}
        self._by_kind: Dict[str, KindCounters] = {}
        self._recent_errors: Deque[ErrorRecord] = deque(maxlen=self._max_recent_errors)

    def _kind(self, kind: str) -> KindCounters:
        key = getattr(kind, "value", kind)
        counters = self._by_kind.get(key)
        if counters is None:
            counters = self._by_kind[key] = KindCounters()
        return counters

    def record_processing(self, kind: str, duration_ms: float, model: Optional[str], cost: float = 0.0) -> None:
        """Record a task processed by a backend."""
        self._processed += 1
        self._latency_sum += duration_ms
        self._latencies.append(duration_ms)
        self._total_cost += cost or 0.0
        if model:
            self._model_usage[model] = self._model_usage.get(model, 0) + 1
        self._kind(kind).requests += 1

    def record_cache_hit(self, kind: str) -> None:
        self._cache_hits += 1
        counters = self._kind(kind)
        counters.requests += 1
        counters.cache_hits += 1

    def record_error(self, kind: str, message: str) -> None:
        """Record a failed task; only the most recent errors are kept."""
        self._errors += 1
        logger.debug(f"Recorded processing error for '{getattr(kind, 'value', kind)}': {message}")
        counters = self._kind(kind)
        counters.requests += 1
        counters.errors += 1
        self._recent_errors.append(
            ErrorRecord(timestamp=datetime.now(timezone.utc), kind=getattr(kind, "value", kind), message=message)
        )

    def get_stats(self) -> MonitorStats:
        total = self._processed + self._cache_hits + self._errors
        samples = sorted(self._latencies)
        p95 = samples[min(len(samples) - 1, int(len(samples) * 0.95))] if samples else 0.0
        return MonitorStats(
            total_requests=total,
            processed=self._processed,
            cache_hits=self._cache_hits,
            errors=self._errors,
            average_latency_ms=self._latency_sum / self._processed if self._processed else 0.0,
            p95_latency_ms=p95,
            cache_hit_rate=self._cache_hits / total if total else 0.0,
            error_rate=self._errors / total if total else 0.0,
            total_estimated_cost=self._total_cost,
            model_usage=dict(self._model_usage),
            by_kind={k: v.model_copy() for k, v in self._by_kind.items()},
            recent_errors=list(self._recent_errors),
            uptime_seconds=time.monotonic() - self._started,
        )
