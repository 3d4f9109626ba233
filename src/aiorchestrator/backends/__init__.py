# src/aiorchestrator/backends/__init__.py
"""
Model backend adapters.

Adapters translate the orchestrator's uniform BackendRequest into a
concrete service call and back into a BackendResponse.
"""

from .base import BackendRequest, BackendResponse, BaseModelBackend
from .http import HTTPBackend
from .simulated import SimulatedBackend

__all__ = [
    "BackendRequest",
    "BackendResponse",
    "BaseModelBackend",
    "HTTPBackend",
    "SimulatedBackend",
]
