# src/aiorchestrator/api_server/__init__.py
"""
HTTP boundary for the orchestrator, built on FastAPI.
"""

from .main import create_app
from .metrics import OrchestratorMetrics, PrometheusSink

__all__ = ["OrchestratorMetrics", "PrometheusSink", "create_app"]
