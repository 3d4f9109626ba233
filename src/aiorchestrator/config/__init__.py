# src/aiorchestrator/config/__init__.py
"""
Configuration for the aiorchestrator package.

Settings are validated with Pydantic and can be layered from a TOML file,
a dictionary, `AIORCH__*` environment variables and runtime overrides.
"""

from .models import (
    AdapterType,
    CacheConfig,
    ModelEntryConfig,
    OrchestratorConfig,
    QueueConfig,
    RetryConfig,
    load_orchestrator_config,
)

__all__ = [
    "AdapterType",
    "CacheConfig",
    "ModelEntryConfig",
    "OrchestratorConfig",
    "QueueConfig",
    "RetryConfig",
    "load_orchestrator_config",
]
