# src/aiorchestrator/__init__.py
"""
aiorchestrator - priority-queued, capability-routed AI task orchestration.

Tasks are queued by priority, matched to the best-scoring registered model
backend, served from a semantic result cache when a close-enough input was
seen before, and executed on a concurrency-bounded asyncio worker pool.
"""

from importlib.metadata import PackageNotFoundError, version

from .backends import BackendRequest, BackendResponse, BaseModelBackend, HTTPBackend, SimulatedBackend
from .cache import CacheLookup, CacheStats, LinearScanIndex, ResultCache, VectorIndex, cosine_similarity
from .config import OrchestratorConfig, load_orchestrator_config
from .embedding import EmbeddingProvider, HashEmbeddingProvider
from .events import (
    CallbackSink,
    EventBus,
    EventSink,
    EventType,
    InMemorySink,
    LoggingSink,
    QueueSink,
    TaskEvent,
)
from .exceptions import (
    BackendError,
    BackendNotFoundError,
    BackendTimeoutError,
    ConfigError,
    EmbeddingError,
    NoBackendAvailableError,
    OrchestratorError,
    QueueFullError,
    TaskNotFoundError,
    TaskValidationError,
)
from .models import ModelDescriptor, Task, TaskKind, TaskPriority, TaskResult, TaskState, TaskStatus
from .monitor import MonitorStats, PerformanceMonitor
from .orchestrator import Orchestrator, OrchestratorStats, build_orchestrator
from .queue import AgingPolicy, TaskQueue
from .registry import ModelRegistry

try:
    __version__ = version("aiorchestrator")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = [
    # ==========================================================================
    # Core API
    # ==========================================================================
    "Orchestrator",
    "OrchestratorStats",
    "build_orchestrator",

    # ==========================================================================
    # Data Models
    # ==========================================================================
    "ModelDescriptor",
    "Task",
    "TaskKind",
    "TaskPriority",
    "TaskResult",
    "TaskState",
    "TaskStatus",

    # ==========================================================================
    # Components
    # ==========================================================================
    "AgingPolicy",
    "TaskQueue",
    "ModelRegistry",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "VectorIndex",
    "LinearScanIndex",
    "ResultCache",
    "CacheLookup",
    "CacheStats",
    "cosine_similarity",
    "BackendRequest",
    "BackendResponse",
    "BaseModelBackend",
    "HTTPBackend",
    "SimulatedBackend",
    "PerformanceMonitor",
    "MonitorStats",

    # ==========================================================================
    # Events
    # ==========================================================================
    "EventBus",
    "EventSink",
    "EventType",
    "TaskEvent",
    "InMemorySink",
    "CallbackSink",
    "QueueSink",
    "LoggingSink",

    # ==========================================================================
    # Configuration
    # ==========================================================================
    "OrchestratorConfig",
    "load_orchestrator_config",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    "OrchestratorError",
    "ConfigError",
    "TaskValidationError",
    "QueueFullError",
    "TaskNotFoundError",
    "BackendError",
    "BackendNotFoundError",
    "BackendTimeoutError",
    "NoBackendAvailableError",
    "EmbeddingError",

    "__version__",
]
