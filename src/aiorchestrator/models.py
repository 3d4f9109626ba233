# src/aiorchestrator/models.py
"""
Core data models for the aiorchestrator package.

This module defines the Pydantic models used to represent tasks submitted
for AI processing, the results produced for them, and the descriptors of
the model backends that can process them. Tasks and descriptors are frozen:
once built they are read-only for the rest of their lifetime.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator


class _CaseInsensitiveEnum(str, Enum):
    """String enum that accepts values regardless of case."""

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        if isinstance(value, str):
            lower_value = value.strip().lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class TaskKind(_CaseInsensitiveEnum):
    """The kind of AI work a task asks for."""
    COMPLETION = "completion"
    ANALYSIS = "analysis"
    PREDICTION = "prediction"
    GENERATION = "generation"
    VISION = "vision"
    VOICE = "voice"


class TaskPriority(_CaseInsensitiveEnum):
    """
    Dispatch priority tiers, highest first.

    The declaration order is the dispatch order: a lower `rank` is served first.
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS: Dict[TaskPriority, int] = {p: i for i, p in enumerate(TaskPriority)}


class TaskState(_CaseInsensitiveEnum):
    """Lifecycle states of a task. `completed` and `failed` are terminal."""
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED)


def generate_task_id() -> str:
    """Return a fresh, process-unique task identifier."""
    return f"ai-task-{uuid.uuid4().hex}"


class Task(BaseModel):
    """
    A unit of work submitted for AI processing.

    Attributes:
        id: Unique identifier assigned by the orchestrator at submission time.
        kind: The kind of processing requested.
        priority: Dispatch tier; fixed at submission.
        requested_model: Optional advisory hint naming a backend.
        input: Opaque payload handed to the backend.
        context: Optional auxiliary key/value data passed alongside the input.
        submitter_id: Identifies the caller or tenant for later correlation.
        submitted_at: UTC submission timestamp, used as FIFO tie-break inside a tier.
        metadata: Free-form data carried with the task but never interpreted.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_task_id, description="Unique task identifier.")
    kind: TaskKind = Field(description="Kind of AI processing requested.")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Dispatch priority tier.")
    requested_model: Optional[str] = Field(default=None, description="Advisory backend name hint.")
    input: Any = Field(default=None, description="Opaque payload passed to the backend.")
    context: Dict[str, Any] = Field(default_factory=dict, description="Auxiliary key/value data.")
    submitter_id: str = Field(description="Caller or tenant identifier.")
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Submission timestamp (UTC).")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Uninterpreted task metadata.")

    @field_validator('submitter_id')
    @classmethod
    def submitter_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("submitter_id must not be empty")
        return v

    @field_validator('submitted_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        """Ensure the timestamp is timezone-aware and in UTC if naive."""
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=timezone.utc)
            return v.astimezone(timezone.utc)
        return v


class TaskResult(BaseModel):
    """
    Outcome of processing a task.

    Exactly one terminal TaskResult is produced for each task id.
    `error_message` is set if and only if `succeeded` is False.
    """
    task_id: str = Field(description="Id of the originating task.")
    succeeded: bool = Field(description="Outcome flag.")
    output: Any = Field(default=None, description="Backend payload on success.")
    model_used: Optional[str] = Field(default=None, description="Backend that produced (or originally produced) the output.")
    processing_time_ms: float = Field(default=0.0, ge=0.0, description="Wall-clock duration observed by the orchestrator.")
    estimated_cost: Optional[float] = Field(default=None, description="Backend-dependent cost estimate.")
    from_cache: bool = Field(default=False, description="True when served by the result cache.")
    error_message: Optional[str] = Field(default=None, description="Human-readable error, failures only.")
    attempts: int = Field(default=0, ge=0, description="Number of backend invocations made.")
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="When the result was produced (UTC).")

    @model_validator(mode='after')
    def check_error_message(self) -> "TaskResult":
        if self.succeeded and self.error_message is not None:
            raise ValueError("A successful result cannot carry an error_message")
        if not self.succeeded and not self.error_message:
            raise ValueError("A failed result requires an error_message")
        return self

    @classmethod
    def failure(cls, task_id: str, error_message: str, **kwargs: Any) -> "TaskResult":
        """Build a failed result for `task_id`."""
        return cls(task_id=task_id, succeeded=False, error_message=error_message, **kwargs)


class ModelDescriptor(BaseModel):
    """
    Describes a model backend and its capability/cost profile.

    Descriptors are registered once (at startup or through the admin path)
    and are read-only while tasks are scored and dispatched.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Unique backend name.")
    endpoint: str = Field(default="", description="Base URL of the backend service.")
    credential: SecretStr = Field(default=SecretStr(""), description="API key or token; never logged.")
    max_tokens: int = Field(default=4096, gt=0, description="Maximum tokens the backend may generate.")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature.")
    capabilities: FrozenSet[str] = Field(default_factory=frozenset, description="Capability tags.")
    cost_per_unit: float = Field(default=0.0, ge=0.0, description="Cost per processed unit.")

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Backend name must not be empty")
        return v.strip()


class TaskStatus(BaseModel):
    """Polling view of a task: its current state and, once terminal, its result."""
    task_id: str
    state: TaskState
    result: Optional[TaskResult] = None
