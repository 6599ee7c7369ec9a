"""Error taxonomy of the orchestration layer.

- ValidationError: malformed workflow input, fails fast with no side effects
- ActivityTransientError: retryable activity failure (network, 5xx, rate limit)
- ActivityFatalError: non-retryable activity failure (4xx, malformed response)
- DuplicateInvocationError: an invocation already exists for the workflow ID;
  the Gateway answers with the existing handle or cached result
- GatewayTimeoutError: a synchronous wait hit the caller's deadline; the
  invocation keeps running
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowflex.runtime.schemas import WorkflowInvocation


class OrchestrationError(Exception):
    """Base class for orchestration errors."""


class ValidationError(OrchestrationError):
    """Workflow input failed structural validation."""

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        # Short code surfaced in results, e.g. 'Invalid customerData'
        self.error = error or message


class ActivityError(OrchestrationError):
    """An activity failed after its retry policy was applied."""

    retryable: bool = True

    def __init__(
        self, message: str, *, activity_name: str | None = None, attempts: int = 0, details: Any = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.activity_name = activity_name
        self.attempts = attempts
        self.details = details


class ActivityTransientError(ActivityError):
    """Retryable failure: network errors, timeouts, 5xx and 429 responses."""

    retryable = True


class ActivityFatalError(ActivityError):
    """Non-retryable failure: client errors and unusable responses."""

    retryable = False


class DuplicateInvocationError(OrchestrationError):
    """An invocation with this workflow ID already exists."""

    def __init__(self, invocation: 'WorkflowInvocation') -> None:
        super().__init__(f'Workflow {invocation.workflow_id} already exists ({invocation.status.value})')
        self.invocation = invocation


class GatewayTimeoutError(OrchestrationError):
    """A synchronous wait exceeded its deadline. Poll the workflow ID instead."""

    def __init__(self, workflow_id: str, timeout: float | None) -> None:
        super().__init__(f'Workflow {workflow_id} still running after {timeout}s')
        self.workflow_id = workflow_id
        self.timeout = timeout


class InvalidTransitionError(OrchestrationError):
    """A status change violated Pending -> Running -> {Completed, Failed}."""


class NotRegisteredError(OrchestrationError, LookupError):
    """No workflow or activity is registered under the requested name."""


class InvocationNotFoundError(OrchestrationError, LookupError):
    """No invocation exists for the workflow ID."""


class BackendUnavailableError(OrchestrationError):
    """The Gateway could not reach its backend within its retry budget."""
