# src/aiorchestrator/registry.py
"""
Model Registry - descriptors, adapters and capability scoring.

This module provides the ModelRegistry class which:
1. Keeps the registered backend descriptors in registration order
2. Owns the adapter used to invoke each backend
3. Maps task kinds to the capabilities they require
4. Scores descriptors against a task and selects the best one

The registry is constructed explicitly and handed to the orchestrator;
there is no process-wide instance.

Example:
    >>> registry = ModelRegistry()
    >>> registry.register(ModelDescriptor(name="gemini-pro", capabilities={"text-generation"}))
    >>> best = registry.select_optimal_model(task)
"""

from __future__ import annotations

import logging
import os
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .backends.base import BaseModelBackend
from .backends.http import HTTPBackend
from .exceptions import BackendNotFoundError
from .models import ModelDescriptor, Task, TaskKind

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ModelDescriptor], BaseModelBackend]

CAPABILITY_SCORE = 10.0
COST_WEIGHT = 0.001
REQUESTED_MODEL_BONUS = 100.0

REQUIRED_CAPABILITIES: Dict[TaskKind, Tuple[str, ...]] = {
    TaskKind.COMPLETION: ("text-generation", "context-understanding"),
    TaskKind.ANALYSIS: ("reasoning", "data-analysis"),
    TaskKind.PREDICTION: ("forecasting", "pattern-recognition"),
    TaskKind.GENERATION: ("creative-writing", "text-generation"),
    TaskKind.VISION: ("image-understanding", "ocr"),
    TaskKind.VOICE: ("speech-recognition", "speech-synthesis"),
}

GEMINI_DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


def default_model_descriptors() -> List[ModelDescriptor]:
    """
    The stock Gemini descriptors, with endpoint and key taken from the
    GEMINI_API_ENDPOINT and GEMINI_API_KEY environment variables.
    """
    endpoint = os.environ.get("GEMINI_API_ENDPOINT", GEMINI_DEFAULT_ENDPOINT)
    credential = os.environ.get("GEMINI_API_KEY", "")
    return [
        ModelDescriptor(
            name="gemini-pro",
            endpoint=endpoint,
            credential=credential,
            max_tokens=32768,
            temperature=0.7,
            capabilities=frozenset({
                "text-generation",
                "context-understanding",
                "reasoning",
                "data-analysis",
                "creative-writing",
            }),
            cost_per_unit=0.0001,
        ),
        ModelDescriptor(
            name="gemini-vision",
            endpoint=endpoint,
            credential=credential,
            max_tokens=16384,
            temperature=0.5,
            capabilities=frozenset({"image-understanding", "ocr", "visual-reasoning"}),
            cost_per_unit=0.0002,
        ),
    ]


class ModelRegistry:
    """
    Registry of model backends.

    Args:
        adapter_factory: Builds an adapter for descriptors registered without
                         one. Defaults to HTTPBackend. The adapter is only
                         created when the backend is first invoked.
    """

    def __init__(self, adapter_factory: Optional[AdapterFactory] = None) -> None:
        self._descriptors: "OrderedDict[str, ModelDescriptor]" = OrderedDict()
        self._adapters: Dict[str, BaseModelBackend] = {}
        self._adapter_factory: AdapterFactory = adapter_factory or HTTPBackend

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, descriptor: ModelDescriptor, adapter: Optional[BaseModelBackend] = None) -> None:
        """
        Add a backend, or replace the one registered under the same name.

        A replaced backend keeps its original position for tie-breaking.
        """
        name = descriptor.name
        replaced = name in self._descriptors
        self._descriptors[name] = descriptor
        self._adapters.pop(name, None)
        if adapter is not None:
            self._adapters[name] = adapter
        logger.info(
            f"{'Replaced' if replaced else 'Registered'} model '{name}' "
            f"(capabilities={sorted(descriptor.capabilities)}, cost_per_unit={descriptor.cost_per_unit})"
        )

    def unregister(self, name: str) -> bool:
        """Remove a backend; returns False if `name` was not registered."""
        if self._descriptors.pop(name, None) is None:
            logger.debug(f"Unregister ignored: model '{name}' is not registered")
            return False
        self._adapters.pop(name, None)
        logger.info(f"Unregistered model '{name}'")
        return True

    def lookup(self, name: str) -> Optional[ModelDescriptor]:
        return self._descriptors.get(name)

    def get_adapter(self, name: str) -> BaseModelBackend:
        """
        Return the adapter for a registered backend, creating it on first use.

        Raises:
            BackendNotFoundError: If no backend is registered under `name`.
        """
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise BackendNotFoundError(name)
        adapter = self._adapters.get(name)
        if adapter is None:
            adapter = self._adapter_factory(descriptor)
            self._adapters[name] = adapter
            logger.debug(f"Created {type(adapter).__name__} for model '{name}'")
        return adapter

    def list_models(self) -> List[ModelDescriptor]:
        """All descriptors in registration order."""
        return list(self._descriptors.values())

    def created_adapter(self, name: str) -> Optional[BaseModelBackend]:
        """The adapter for `name` if one exists already; never creates one."""
        return self._adapters.get(name)

    def adapters(self) -> Iterable[BaseModelBackend]:
        """Adapters created so far."""
        return list(self._adapters.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    # =========================================================================
    # Scoring
    # =========================================================================

    @staticmethod
    def required_capabilities(kind: TaskKind) -> Tuple[str, ...]:
        return REQUIRED_CAPABILITIES.get(TaskKind(kind), ())

    def score_model(self, descriptor: ModelDescriptor, task: Task) -> float:
        """
        Score a descriptor for a task.

        +10 for each required capability the descriptor advertises, minus
        ``cost_per_unit * 0.001``, plus 100 when the task names this model.
        """
        score = 0.0
        for capability in self.required_capabilities(task.kind):
            if capability in descriptor.capabilities:
                score += CAPABILITY_SCORE
        score -= descriptor.cost_per_unit * COST_WEIGHT
        if task.requested_model and task.requested_model == descriptor.name:
            score += REQUESTED_MODEL_BONUS
        return score

    def select_optimal_model(self, task: Task) -> Optional[ModelDescriptor]:
        """
        Pick the highest-scoring descriptor for `task`.

        Only a strictly higher score displaces the current best, so ties go
        to the earliest registered backend. Returns None only when the
        registry is empty.
        """
        best: Optional[ModelDescriptor] = None
        best_score = float("-inf")
        for descriptor in self._descriptors.values():
            score = self.score_model(descriptor, task)
            if score > best_score:
                best, best_score = descriptor, score
        if best is None:
            logger.warning(f"No model registered to process task {task.id} ({task.kind.value})")
        else:
            logger.debug(f"Selected model '{best.name}' for task {task.id} (score={best_score:.4f})")
        return best

    # =========================================================================
    # Health
    # =========================================================================

    def get_health(self) -> Dict[str, Any]:
        """Summary of registered models, their capabilities and average cost."""
        capability_index: Dict[str, List[str]] = {}
        for descriptor in self._descriptors.values():
            for capability in sorted(descriptor.capabilities):
                capability_index.setdefault(capability, []).append(descriptor.name)
        costs = [d.cost_per_unit for d in self._descriptors.values()]
        return {
            "total_models": len(self._descriptors),
            "models": list(self._descriptors.keys()),
            "capabilities": capability_index,
            "average_cost_per_unit": sum(costs) / len(costs) if costs else 0.0,
        }
