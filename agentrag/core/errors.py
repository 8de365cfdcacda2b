"""
Application errors for the orchestration core.

Services raise these; only the API layer maps them to HTTP status codes.
Recoverable kinds (AnalysisError, ExecutionError, StoreError) are caught inside
the workflow and turned into degraded results plus an error message in the
workflow log.
"""


class AgentRAGError(Exception):
    """Base class for all core errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AgentRAGError):
    """Missing or empty content/question; rejected before any workflow starts."""


class WorkflowConflictError(ValidationError):
    """A caller-supplied workflow id is already active."""


class AnalysisError(AgentRAGError):
    """The content analyzer cannot produce a profile (empty or oversized content)."""


class StrategyNotFoundError(AgentRAGError):
    """No strategy with the given name exists in the catalog."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown strategy: {name!r}")


class NoStrategiesAvailable(AgentRAGError):
    """The catalog is empty; fatal for the request."""


class ExecutionError(AgentRAGError):
    """The dispatcher or the LLM behind it failed to produce an answer."""


class LLMError(AgentRAGError):
    """The language-model capability failed, timed out, or returned nothing."""


class StoreError(AgentRAGError):
    """The memory store's persistence layer is unavailable."""


class InvalidTransitionError(AgentRAGError):
    """A workflow state change would move backwards or leave a terminal state."""
