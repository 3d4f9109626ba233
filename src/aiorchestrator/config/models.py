# src/aiorchestrator/config/models.py
"""
Orchestrator configuration models.

This module defines Pydantic models for every orchestrator configuration
section. The defaults reproduce the reference behavior: five concurrent
jobs, an unbounded queue with strict priority, a 0.95 cache similarity
threshold, no retries and no per-task timeout. Each of the open behaviors
(retry, timeout, capacity, aging) is a separate knob.

The configuration hierarchy:
    OrchestratorConfig (root, [orchestrator] table)
    ├── QueueConfig   - capacity and aging policy
    ├── CacheConfig   - semantic result cache
    ├── RetryConfig   - backend invocation retry policy
    └── models        - list of ModelEntryConfig backend declarations

Usage:
    >>> from aiorchestrator.config import OrchestratorConfig, load_orchestrator_config
    >>> config = OrchestratorConfig()  # All defaults
    >>> config.concurrency_limit
    5

    >>> config = load_orchestrator_config(
    ...     config_dict={"orchestrator": {"retry": {"max_attempts": 3}}}
    ... )
    >>> config.retry.max_attempts
    3
"""

from __future__ import annotations

import copy
import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

ENV_PREFIX = "AIORCH__"


# =============================================================================
# ENUMS
# =============================================================================


class AdapterType(str, Enum):
    """Which backend adapter to build for a configured model."""

    HTTP = "http"
    SIMULATED = "simulated"


# =============================================================================
# SECTION CONFIGS
# =============================================================================


class QueueConfig(BaseModel):
    """
    Configuration for the priority task queue.

    `max_size=0` keeps the queue unbounded. Aging is off by default, which
    keeps strict priority order (and its starvation of low tiers).
    """

    max_size: int = Field(
        default=0, ge=0, description="Maximum pending tasks (0 = unbounded)"
    )
    aging_enabled: bool = Field(
        default=False, description="Promote long-waiting tasks one tier per interval"
    )
    aging_boost_after_seconds: float = Field(
        default=30.0, gt=0.0, description="Wait time that earns a one-tier promotion"
    )


class CacheConfig(BaseModel):
    """Configuration for the semantic result cache."""

    enabled: bool = Field(default=True, description="Consult and populate the result cache")
    similarity_threshold: float = Field(
        default=0.95, ge=0.0, le=1.0, description="Minimum cosine similarity for a hit"
    )
    max_entries: int = Field(default=1000, ge=1, description="Entries kept before eviction")
    ttl_seconds: float = Field(
        default=24 * 60 * 60, gt=0.0, description="Lifetime of a cached result"
    )
    embedding_dimension: int = Field(
        default=768, ge=1, description="Dimension of the placeholder hash embedding"
    )


class RetryConfig(BaseModel):
    """
    Retry policy for backend invocations.

    The default of a single attempt means a failed invocation is final.
    """

    max_attempts: int = Field(default=1, ge=1, le=20, description="Total invocation attempts")
    backoff_seconds: float = Field(default=0.5, ge=0.0, description="Delay before the first retry")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        return self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))


class ModelEntryConfig(BaseModel):
    """A model backend declared in configuration."""

    name: str = Field(description="Unique backend name")
    adapter: AdapterType = Field(default=AdapterType.HTTP, description="Adapter implementation")
    endpoint: str = Field(default="", description="Base URL of the backend")
    credential_env: Optional[str] = Field(
        default=None, description="Environment variable holding the credential"
    )
    max_tokens: int = Field(default=4096, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    capabilities: List[str] = Field(default_factory=list)
    cost_per_unit: float = Field(default=0.0, ge=0.0)

    def resolve_credential(self) -> str:
        if not self.credential_env:
            return ""
        return os.environ.get(self.credential_env, "")


# =============================================================================
# ROOT CONFIG
# =============================================================================


class OrchestratorConfig(BaseModel):
    """
    Root configuration model for the orchestrator.

    It corresponds to the [orchestrator] table in TOML configuration.
    """

    concurrency_limit: int = Field(
        default=5, ge=1, le=1000, description="Maximum tasks in flight"
    )
    task_timeout_seconds: Optional[float] = Field(
        default=None, gt=0.0, description="Per-invocation timeout (None = backend decides)"
    )
    default_cost_units: int = Field(
        default=1000, ge=0, description="Units billed when a backend reports no usage"
    )
    log_level: str = Field(default="INFO", description="Level for the aiorchestrator logger")
    result_retention: int = Field(
        default=10000, ge=0, description="Finished tasks kept for status polling (0 = keep all)"
    )

    queue: QueueConfig = Field(default_factory=QueueConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    models: List[ModelEntryConfig] = Field(default_factory=list)
    use_default_models: bool = Field(
        default=True,
        description="Register the stock Gemini descriptors (simulated) when no models are configured",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# CONFIG LOADING
# =============================================================================


def load_orchestrator_config(
    config_path: Optional[Path] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> OrchestratorConfig:
    """
    Load orchestrator configuration from a TOML file or dictionary.

    Configuration is loaded and merged in order:
        1. Default values (from Pydantic models)
        2. [orchestrator] table of the TOML config file (if provided)
        3. [orchestrator] key of the config dictionary (if provided)
        4. Environment variables (AIORCH__*)
        5. Runtime overrides (if provided)

    Args:
        config_path: Optional path to TOML config file
        config_dict: Optional config dictionary
        overrides: Optional runtime overrides (already scoped to the orchestrator table)

    Returns:
        OrchestratorConfig instance

    Raises:
        ConfigError: If the file cannot be parsed or the merged values are invalid.
    """
    merged_config: Dict[str, Any] = {}

    if config_path is not None:
        try:
            with open(config_path, "rb") as f:
                full_config = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {config_path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
        merged_config = _deep_merge(merged_config, full_config.get("orchestrator", {}))
        logger.debug(f"Loaded orchestrator config from {config_path}")

    if config_dict is not None:
        merged_config = _deep_merge(merged_config, config_dict.get("orchestrator", {}))

    merged_config = _apply_env_overrides(merged_config)

    if overrides is not None:
        merged_config = _deep_merge(merged_config, overrides)

    try:
        return OrchestratorConfig(**merged_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid orchestrator configuration: {e}") from e


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base dictionary
        override: Override dictionary (values take precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            # the merged tree is mutated by env overrides; never share caller dicts
            result[key] = copy.deepcopy(value)
    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides.

    Environment variables follow the pattern:
        AIORCH__<KEY>=value
        AIORCH__<SECTION>__<KEY>=value

    Examples:
        AIORCH__CONCURRENCY_LIMIT=8
        AIORCH__RETRY__MAX_ATTEMPTS=3
        AIORCH__CACHE__ENABLED=false
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        path_parts = [p for p in key[len(ENV_PREFIX):].lower().split("__") if p]
        if not path_parts:
            continue

        current = config
        for part in path_parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[path_parts[-1]] = _convert_env_value(value)

    return config


def _convert_env_value(value: str) -> Any:
    """Convert environment variable string to bool, int, float or string."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value
