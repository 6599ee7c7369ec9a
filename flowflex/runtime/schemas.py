"""Data contracts of the orchestration layer.

These are shared between:
- Gateway -> Backend (invocations, handles)
- Worker -> Workflow definitions (invocations, results)
- Workflow definitions -> Activities (attempt records)
- Gateway -> API (results, start outcomes)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flowflex.runtime.errors import InvalidTransitionError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for models serialized to JSON callers (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================


class WorkflowType(str, Enum):
    """Workflow types; the value doubles as the idempotency key prefix."""

    ORDER_CONFIRMATION = 'order-confirmation'
    ORDER_CANCELLATION = 'order-cancellation'
    CATALOGUE_MESSAGING = 'catalogue-messaging'
    CATALOGUE_BROADCAST = 'catalogue-broadcast'
    BACK_IN_STOCK = 'back-in-stock'
    BACK_IN_STOCK_NOTIFICATION = 'back-in-stock-notification'


class InvocationStatus(str, Enum):
    """Status of a workflow invocation."""

    PENDING = 'pending'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (InvocationStatus.COMPLETED, InvocationStatus.FAILED)


class RunMode(str, Enum):
    """How the Gateway treats a start: wait for the result or return a handle."""

    SYNC = 'sync'
    ASYNC = 'async'


class AttemptOutcome(str, Enum):
    SUCCESS = 'success'
    TRANSIENT_FAILURE = 'transient_failure'
    FATAL_FAILURE = 'fatal_failure'


# =============================================================================
# Results
# =============================================================================


class WorkflowTimestamps(CamelModel):
    started_at: datetime | None = None
    completed_at: datetime | None = None


class WorkflowResult(CamelModel):
    """Structured outcome shared by every workflow type.

    `{success, message, entityId, messageId?, data | error, timestamps}`
    """

    success: bool
    message: str
    entity_id: str | None = None
    message_id: str | None = Field(None, description='Channel message ID when a single message was sent')
    data: dict[str, Any] | None = None
    error: str | None = None
    timestamps: WorkflowTimestamps = Field(default_factory=WorkflowTimestamps)

    @classmethod
    def ok(
        cls,
        message: str,
        *,
        entity_id: str | None = None,
        message_id: str | None = None,
        data: dict[str, Any] | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> 'WorkflowResult':
        return cls(
            success=True,
            message=message,
            entity_id=entity_id,
            message_id=message_id,
            data=data,
            timestamps=WorkflowTimestamps(started_at=started_at, completed_at=completed_at),
        )

    @classmethod
    def failure(
        cls,
        message: str,
        error: str,
        *,
        entity_id: str | None = None,
        data: dict[str, Any] | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> 'WorkflowResult':
        return cls(
            success=False,
            message=message,
            entity_id=entity_id,
            error=error,
            data=data,
            timestamps=WorkflowTimestamps(started_at=started_at, completed_at=completed_at),
        )


# =============================================================================
# Activity attempts
# =============================================================================


class ActivityAttempt(CamelModel):
    """One execution attempt of an activity inside a workflow invocation."""

    activity_name: str
    attempt_number: int
    max_attempts: int
    backoff_schedule: list[float] = Field(default_factory=list, description='Delays (s) between attempts')
    start_to_close_timeout: float = Field(description='Wall-clock bound of this attempt (s)')
    outcome: AttemptOutcome
    result: Any = None
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None


# =============================================================================
# Invocations
# =============================================================================


class WorkflowProgress(CamelModel):
    """Steps of an invocation, as tracked by `WorkflowContext.step`."""

    current_step: str | None = None
    completed_steps: list[str] = Field(default_factory=list)


class WorkflowInvocation(CamelModel):
    """One execution of a workflow, identified by its idempotency key.

    Lifecycle: Pending -> Running -> {Completed, Failed}. Terminal states are
    immutable; `result` (completed) and `error` (failed) are written once.
    """

    workflow_id: str
    workflow_type: WorkflowType
    workflow_name: str
    task_queue: str
    args: tuple[Any, ...] = ()
    status: InvocationStatus = InvocationStatus.PENDING
    result: WorkflowResult | None = None
    error: WorkflowResult | None = None
    attempts: list[ActivityAttempt] = Field(default_factory=list)
    progress: WorkflowProgress = Field(default_factory=WorkflowProgress)
    worker_id: str | None = None
    parent_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def outcome(self) -> WorkflowResult | None:
        """The terminal result, successful or not."""
        return self.result if self.result is not None else self.error

    def mark_running(self, worker_id: str) -> 'WorkflowInvocation':
        if self.status != InvocationStatus.PENDING:
            raise InvalidTransitionError(f'{self.workflow_id}: cannot start from {self.status.value}')
        self.status = InvocationStatus.RUNNING
        self.worker_id = worker_id
        self.started_at = utcnow()
        return self

    def release(self, worker_id: str) -> 'WorkflowInvocation':
        """Hand a claimed invocation back to the queue (worker shutdown)."""
        self._require_owner(worker_id)
        self.status = InvocationStatus.PENDING
        self.worker_id = None
        self.attempts = []
        self.progress = WorkflowProgress()
        return self

    def record_progress(self, worker_id: str, progress: WorkflowProgress) -> 'WorkflowInvocation':
        self._require_owner(worker_id)
        self.progress = progress.model_copy(deep=True)
        return self

    def finish(self, worker_id: str, outcome: WorkflowResult) -> 'WorkflowInvocation':
        """Record the terminal outcome; status follows `outcome.success`."""
        self._require_owner(worker_id)
        if outcome.success:
            self.status = InvocationStatus.COMPLETED
            self.result = outcome
        else:
            self.status = InvocationStatus.FAILED
            self.error = outcome
        self.completed_at = utcnow()
        return self

    def _require_owner(self, worker_id: str) -> None:
        if self.status != InvocationStatus.RUNNING:
            raise InvalidTransitionError(f'{self.workflow_id}: not running ({self.status.value})')
        if self.worker_id != worker_id:
            raise InvalidTransitionError(f'{self.workflow_id}: held by {self.worker_id}, not {worker_id}')


class WorkflowHandle(CamelModel):
    """Reference to an invocation that callers can poll."""

    workflow_id: str
    workflow_type: WorkflowType
    task_queue: str
    status: InvocationStatus

    @classmethod
    def from_invocation(cls, invocation: WorkflowInvocation) -> 'WorkflowHandle':
        return cls(
            workflow_id=invocation.workflow_id,
            workflow_type=invocation.workflow_type,
            task_queue=invocation.task_queue,
            status=invocation.status,
        )


class StartOutcome(CamelModel):
    """What the Gateway hands back for a start request."""

    handle: WorkflowHandle
    result: WorkflowResult | None = None
    deduplicated: bool = Field(False, description='An existing invocation answered the request')
    still_running: bool = Field(False, description='Caller should poll for the result')

    @property
    def workflow_id(self) -> str:
        return self.handle.workflow_id


# =============================================================================
# Fan-out
# =============================================================================


class ChildWorkflow(BaseModel):
    """A child invocation requested by a fan-out workflow."""

    workflow_type: WorkflowType
    args: tuple[Any, ...]
    recipient_id: str = Field(description='Recipient the child is responsible for')


class ChildOutcome(CamelModel):
    workflow_id: str
    recipient_id: str
    result: WorkflowResult
