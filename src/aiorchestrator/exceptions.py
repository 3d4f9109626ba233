# src/aiorchestrator/exceptions.py
"""
Custom exceptions for the aiorchestrator package.

This module defines a hierarchy of custom exception classes so that callers
can distinguish configuration problems, submission refusals and backend
failures. Inside the dispatch loop every backend or embedding failure is
captured into a TaskResult; these exceptions only cross the orchestrator
boundary for synchronous caller errors (bad config, full queue, unknown id).
"""

class OrchestratorError(Exception):
    """Base class for all aiorchestrator specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in the orchestrator."):
        super().__init__(message)

class ConfigError(OrchestratorError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class TaskValidationError(OrchestratorError):
    """Raised when a submitted task cannot be built (unknown kind or priority, bad payload)."""
    def __init__(self, message: str = "Invalid task submission."):
        super().__init__(message)

class QueueFullError(OrchestratorError):
    """Raised when the task queue is at its configured capacity."""
    def __init__(self, capacity: int = 0, message: str = "Task queue is full."):
        self.capacity = capacity
        super().__init__(f"{message} Capacity: {capacity}")

class TaskNotFoundError(OrchestratorError):
    """Raised when a task id is not known to the orchestrator."""
    def __init__(self, task_id: str, message: str = "Task not found."):
        self.task_id = task_id
        super().__init__(f"{message} Task ID: '{task_id}'")

class BackendError(OrchestratorError):
    """Raised for errors originating from a model backend (API errors, connection issues)."""
    def __init__(self, backend_name: str = "Unknown", message: str = "Backend error."):
        self.backend_name = backend_name
        self.detail = message
        super().__init__(f"Error with backend '{backend_name}': {message}")

class BackendNotFoundError(BackendError):
    """Raised when a backend name is not present in the registry."""
    def __init__(self, backend_name: str):
        super().__init__(backend_name, "Backend is not registered.")

class BackendTimeoutError(BackendError):
    """Raised when a backend invocation exceeds the configured task timeout."""
    def __init__(self, backend_name: str = "Unknown", timeout: float = 0.0):
        self.timeout = timeout
        super().__init__(backend_name, f"Invocation timed out after {timeout:g}s.")

class NoBackendAvailableError(BackendError):
    """Raised when the registry yields no backend for a task."""
    def __init__(self, message: str = "No suitable model found for task"):
        super().__init__("none", message)

class EmbeddingError(OrchestratorError):
    """Raised for errors related to embedding generation."""
    def __init__(self, model_name: str = "Unknown", message: str = "Embedding generation error."):
        self.model_name = model_name
        super().__init__(f"Error with embedding model '{model_name}': {message}")
