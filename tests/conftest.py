# tests/conftest.py
"""
Shared fixtures and test doubles for the aiorchestrator test suite.

Provides:
- Descriptor factory for registering backends with chosen capabilities
- Controllable backend adapters (recording, failing, gated, slow)
- Fixed-vector and failing embedding providers
- A polling helper for asynchronous conditions
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from aiorchestrator.backends.base import BackendRequest, BackendResponse, BaseModelBackend
from aiorchestrator.cache.result_cache import canonical_input
from aiorchestrator.embedding.base import EmbeddingProvider
from aiorchestrator.exceptions import BackendError, EmbeddingError
from aiorchestrator.models import ModelDescriptor, Task, TaskKind, TaskPriority


ALL_CAPABILITIES = frozenset({
    "text-generation",
    "context-understanding",
    "reasoning",
    "data-analysis",
    "forecasting",
    "pattern-recognition",
    "creative-writing",
    "image-understanding",
    "ocr",
    "speech-recognition",
    "speech-synthesis",
})


# =============================================================================
# BACKEND DOUBLES
# =============================================================================


class RecordingBackend(BaseModelBackend):
    """
    Answers immediately (or after `delay`) and records every invocation.

    Tracks the highest number of concurrent invocations observed.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        delay: float = 0.0,
        units: Optional[int] = None,
        output_fn: Optional[Callable[[BackendRequest], Any]] = None,
    ):
        super().__init__(descriptor)
        self.delay = delay
        self.units = units
        self.output_fn = output_fn or (lambda request: {"echo": request.input, "model": request.model})
        self.requests: List[BackendRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            return BackendResponse(output=self.output_fn(request), units_used=self.units)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True

    @property
    def inputs(self) -> List[Any]:
        return [r.input for r in self.requests]


class FailingBackend(BaseModelBackend):
    """Raises `error` for the first `fail_times` calls, then succeeds."""

    def __init__(self, descriptor: ModelDescriptor, error: Exception, fail_times: int = 10**6):
        super().__init__(descriptor)
        self.error = error
        self.fail_times = fail_times
        self.calls = 0

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error
        return BackendResponse(output={"recovered_after": self.calls - 1})


class GatedBackend(RecordingBackend):
    """Blocks invocations whose input is marked ``{"block": True}`` until `release()`."""

    def __init__(self, descriptor: ModelDescriptor):
        super().__init__(descriptor)
        self._gate: Optional[asyncio.Event] = None

    def _get_gate(self) -> asyncio.Event:
        if self._gate is None:
            self._gate = asyncio.Event()
        return self._gate

    def release(self) -> None:
        self._get_gate().set()

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        if isinstance(request.input, dict) and request.input.get("block"):
            self.requests.append(request)
            await self._get_gate().wait()
            return BackendResponse(output={"released": True})
        return await super().invoke(request)


# =============================================================================
# EMBEDDING DOUBLES
# =============================================================================


class FixedEmbeddingProvider(EmbeddingProvider):
    """Returns preset vectors keyed by the canonical form of a task input."""

    def __init__(self, vectors: Dict[str, Sequence[float]], default: Optional[Sequence[float]] = None):
        self.vectors = {canonical_input(k): list(v) for k, v in vectors.items()}
        self.default = list(default) if default is not None else None
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        if self.default is not None:
            return self.default
        raise EmbeddingError(self.name, f"No vector for {text!r}")


class FailingEmbeddingProvider(EmbeddingProvider):
    async def embed(self, text: str) -> List[float]:
        raise EmbeddingError(self.name, "embedding service unavailable")


# =============================================================================
# HELPERS
# =============================================================================


def make_descriptor(
    name: str = "model-a",
    capabilities=ALL_CAPABILITIES,
    cost_per_unit: float = 0.0001,
    **kwargs: Any,
) -> ModelDescriptor:
    return ModelDescriptor(name=name, capabilities=frozenset(capabilities), cost_per_unit=cost_per_unit, **kwargs)


def make_task(
    kind: TaskKind = TaskKind.COMPLETION,
    priority: TaskPriority = TaskPriority.MEDIUM,
    input: Any = None,
    **kwargs: Any,
) -> Task:
    kwargs.setdefault("submitter_id", "tester")
    return Task(kind=kind, priority=priority, input=input, **kwargs)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll `predicate` until it is true; fail the test after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(interval)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def descriptor() -> ModelDescriptor:
    return make_descriptor()


@pytest.fixture
def recording_backend(descriptor) -> RecordingBackend:
    return RecordingBackend(descriptor)


@pytest.fixture
def backend_error() -> BackendError:
    return BackendError("model-a", "upstream exploded")
