# src/aiorchestrator/backends/base.py
"""
Abstract Base Class for model backend adapters.

Every registered backend is invoked through the same call shape: the task's
input and context plus the model parameters taken from its descriptor.
Adapters own the translation to a backend's wire format; the orchestrator
never sees it. An adapter either returns a BackendResponse or raises.
Any exception it raises becomes a failed TaskResult carrying the message.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models import ModelDescriptor, TaskKind


@dataclass(frozen=True)
class BackendRequest:
    """Uniform invocation payload handed to an adapter."""

    task_id: str
    kind: TaskKind
    input: Any
    context: Dict[str, Any] = field(default_factory=dict)
    model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7

    @classmethod
    def for_descriptor(cls, descriptor: ModelDescriptor, task_id: str, kind: TaskKind,
                       input: Any, context: Optional[Dict[str, Any]] = None) -> "BackendRequest":
        return cls(
            task_id=task_id,
            kind=kind,
            input=input,
            context=dict(context or {}),
            model=descriptor.name,
            max_tokens=descriptor.max_tokens,
            temperature=descriptor.temperature,
        )


@dataclass(frozen=True)
class BackendResponse:
    """
    Successful adapter output.

    Attributes:
        output: Backend payload, passed through to TaskResult.output.
        units_used: Billable units reported by the backend, if any.
    """

    output: Any
    units_used: Optional[int] = None


class BaseModelBackend(abc.ABC):
    """
    Abstract Base Class for model backend integrations.

    Implementations are constructed with the descriptor they serve and
    must be safe to invoke concurrently from several workers.
    """

    def __init__(self, descriptor: ModelDescriptor):
        self.descriptor = descriptor

    def get_name(self) -> str:
        """Return the name of the backend this adapter serves."""
        return self.descriptor.name

    @abc.abstractmethod
    async def invoke(self, request: BackendRequest) -> BackendResponse:
        """
        Process one request.

        Args:
            request: Input, context and model parameters for the call.

        Returns:
            The backend's successful response.

        Raises:
            BackendError: Or any other exception, for network failures,
                          backend-reported errors or timeouts.
        """
        pass

    async def close(self) -> None:
        """Release network clients or other resources. Default: nothing to do."""
        return None
