# src/aiorchestrator/api_server/models.py
"""
Pydantic models for the orchestrator HTTP API.

This module defines the request and response models for task submission,
status polling and model listing.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import TaskKind, TaskPriority, TaskResult, TaskState


class TaskSubmissionRequest(BaseModel):
    """
    Request model for task submission.

    `kind` and `priority` accept the enum values case-insensitively.
    """
    model_config = ConfigDict(extra='forbid')

    kind: TaskKind = Field(description="Kind of AI processing requested.")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Dispatch priority tier.")
    input: Any = Field(default=None, description="Opaque payload passed to the backend.")
    submitter_id: str = Field(description="Caller or tenant identifier.")
    context: Dict[str, Any] = Field(default_factory=dict, description="Auxiliary key/value data.")
    requested_model: Optional[str] = Field(default=None, description="Advisory backend name hint.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Uninterpreted task metadata.")


class TaskSubmissionResponse(BaseModel):
    """Returned when a task is successfully enqueued."""
    task_id: str = Field(description="The unique ID of the submitted task.")
    status: TaskState = Field(default=TaskState.QUEUED, description="The initial status of the task.")


class TaskStatusResponse(BaseModel):
    """Current state of a task and, once terminal, its result."""
    task_id: str
    status: TaskState
    result: Optional[TaskResult] = None


class ModelInfo(BaseModel):
    """Public view of a registered backend. The credential is never exposed."""
    name: str
    endpoint: str
    max_tokens: int
    temperature: float
    capabilities: List[str]
    cost_per_unit: float


class ModelListResponse(BaseModel):
    models: List[ModelInfo]
