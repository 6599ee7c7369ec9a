"""Temporal adapters for the service's activities.

Each `ActivityDefinition` becomes a `@activity.defn` function under the same
name. Activity errors become `ApplicationError`s: fatal ones are marked
non-retryable so Temporal stops retrying them.
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

from pydantic import BaseModel
from temporalio import activity
from temporalio.client import WorkflowFailureError
from temporalio.common import RetryPolicy as TemporalRetryPolicy
from temporalio.exceptions import ApplicationError

from flowflex.activities import ACTIVITIES
from flowflex.runtime.errors import ActivityError, ActivityFatalError
from flowflex.runtime.registry import ActivityDefinition
from flowflex.runtime.retry import RetryPolicy
from flowflex.runtime.schemas import WorkflowResult, utcnow

FATAL_ERROR_TYPE = 'ActivityFatalError'
TRANSIENT_ERROR_TYPE = 'ActivityTransientError'


def to_temporal_retry_policy(policy: RetryPolicy) -> TemporalRetryPolicy:
    """Translate a RetryPolicy 1:1 into Temporal's retry policy."""
    return TemporalRetryPolicy(
        initial_interval=timedelta(seconds=policy.initial_interval),
        backoff_coefficient=policy.backoff_coefficient,
        maximum_interval=timedelta(seconds=policy.maximum_interval),
        maximum_attempts=policy.max_attempts,
        non_retryable_error_types=[FATAL_ERROR_TYPE],
    )


def to_application_error(error: ActivityError) -> ApplicationError:
    details = [error.details] if error.details is not None else []
    if isinstance(error, ActivityFatalError):
        return ApplicationError(error.message, *details, type=FATAL_ERROR_TYPE, non_retryable=True)
    return ApplicationError(error.message, *details, type=TRANSIENT_ERROR_TYPE)


def as_temporal_activity(definition: ActivityDefinition) -> Callable[..., Any]:
    """Wrap an activity definition as a Temporal activity of the same name."""

    async def run_activity(input: BaseModel) -> BaseModel:
        activity.logger.debug(f'Running {definition.name} (attempt {activity.info().attempt})')
        try:
            return await definition.fn(input)
        except ActivityError as e:
            raise to_application_error(e) from e

    # The data converter decodes the input from these annotations
    run_activity.__annotations__ = {'input': definition.input_type, 'return': definition.output_type}
    run_activity.__name__ = definition.name
    run_activity.__qualname__ = definition.name
    return activity.defn(name=definition.name)(run_activity)


# =============================================================================
# Workflow results
# =============================================================================

AWAIT_RESULT_TIMEOUT = timedelta(minutes=15)


class AwaitWorkflowResultInput(BaseModel):
    workflow_id: str


@activity.defn(name='await_workflow_result')
async def await_workflow_result(input: AwaitWorkflowResultInput) -> WorkflowResult:
    """Result of an existing workflow run, waiting while it is still open.

    A fan-out parent uses it to attach to a child ID that was already started,
    so the child is never run a second time.
    """
    handle = activity.client().get_workflow_handle(input.workflow_id, result_type=WorkflowResult)
    try:
        return await handle.result()
    except WorkflowFailureError as e:
        return WorkflowResult.failure('Workflow failed', str(e.cause or e), completed_at=utcnow())


TEMPORAL_ACTIVITIES: list[Callable[..., Any]] = [as_temporal_activity(d) for d in ACTIVITIES] + [await_workflow_result]

ACTIVITY_OPTIONS: dict[str, ActivityDefinition] = {d.name: d for d in ACTIVITIES}
