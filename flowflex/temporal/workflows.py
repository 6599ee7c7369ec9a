"""Temporal workflows wrapping the service's workflow definitions.

Every definition gets a `@workflow.defn` class registered under the
definition's name. The class only adapts: it hands the definition a
`TemporalWorkflowContext`, whose activities, timers and child workflows are
Temporal's own, so invocations survive worker and process restarts.

Example:
    await client.start_workflow(
        'OrderConfirmationWorkflow',
        TemporalWorkflowInput(args=[order, customer, org]),
        id='order-confirmation-1001',
        task_queue=ORDER_CONFIRMATION_QUEUE,
    )
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field
from temporalio import workflow
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import ActivityError as TemporalActivityError
from temporalio.exceptions import ApplicationError, ChildWorkflowError, WorkflowAlreadyStartedError

with workflow.unsafe.imports_passed_through():
    from flowflex.runtime.context import WorkflowContext
    from flowflex.runtime.errors import ActivityFatalError, ActivityTransientError, ValidationError
    from flowflex.runtime.retry import DEFAULT_RETRY
    from flowflex.runtime.schemas import ChildOutcome, ChildWorkflow, WorkflowProgress, WorkflowResult, WorkflowType
    from flowflex.temporal.activities import (
        ACTIVITY_OPTIONS,
        AWAIT_RESULT_TIMEOUT,
        FATAL_ERROR_TYPE,
        AwaitWorkflowResultInput,
        await_workflow_result,
        to_temporal_retry_policy,
    )
    from flowflex.workflows import (
        BackInStockNotificationWorkflow,
        BackInStockWorkflow,
        CatalogueBroadcastWorkflow,
        CatalogueMessagingWorkflow,
        OrderCancellationWorkflow,
        OrderConfirmationWorkflow,
        WorkflowDefinition,
    )


class TemporalWorkflowInput(BaseModel):
    """Positional workflow arguments plus runtime settings fixed at start."""

    args: list[Any] = Field(default_factory=list, description='Workflow arguments, in order')
    settle_delay: float = Field(0.0, description='Post-completion settle wait (s)')


class TemporalWorkflowContext(WorkflowContext):
    """WorkflowContext backed by Temporal activities, timers and child workflows."""

    def __init__(self, definition: WorkflowDefinition, settle_delay: float = 0.0) -> None:
        super().__init__(workflow.info().workflow_id, definition.workflow_type)
        self._settle_delay = settle_delay

    @property
    def logger(self) -> logging.LoggerAdapter:
        return workflow.logger

    def now(self) -> datetime:
        return workflow.now()

    async def execute_activity(self, name: str, input: BaseModel) -> Any:
        options = ACTIVITY_OPTIONS[name]
        try:
            return await workflow.execute_activity(
                name,
                input,
                start_to_close_timeout=timedelta(seconds=options.start_to_close_timeout),
                retry_policy=to_temporal_retry_policy(options.retry_policy),
                result_type=options.output_type,
            )
        except TemporalActivityError as e:
            cause = e.cause
            message = cause.message if isinstance(cause, ApplicationError) else str(cause or e)
            attempts = options.retry_policy.max_attempts
            if isinstance(cause, ApplicationError) and (cause.non_retryable or cause.type == FATAL_ERROR_TYPE):
                raise ActivityFatalError(message, activity_name=name) from e
            raise ActivityTransientError(message, activity_name=name, attempts=attempts) from e

    async def settle(self) -> None:
        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)

    async def start_children(self, children: list[ChildWorkflow]) -> list[ChildOutcome]:
        return list(await asyncio.gather(*(self._run_child(child) for child in children)))

    async def _run_child(self, child: ChildWorkflow) -> ChildOutcome:
        definition = DEFINITIONS_BY_TYPE[child.workflow_type]
        try:
            child_id = definition.workflow_id(*child.args)
        except ValidationError as e:
            return ChildOutcome(
                workflow_id=f'{child.workflow_type.value}-{child.recipient_id}',
                recipient_id=child.recipient_id,
                result=WorkflowResult.failure(e.message, e.error, completed_at=workflow.now()),
            )

        try:
            result = await workflow.execute_child_workflow(
                definition.name,
                TemporalWorkflowInput(args=list(child.args), settle_delay=self._settle_delay),
                id=child_id,
                task_queue=definition.task_queue,
                result_type=WorkflowResult,
                id_reuse_policy=WorkflowIDReusePolicy.REJECT_DUPLICATE,
            )
        except WorkflowAlreadyStartedError:
            workflow.logger.info(f'{self.workflow_id}: child {child_id} already exists, attaching to it')
            result = await self._existing_result(child_id)
        except ChildWorkflowError as e:
            workflow.logger.error(f'{self.workflow_id}: child {child_id} failed: {e}')
            result = WorkflowResult.failure('Child workflow could not be run', str(e), completed_at=workflow.now())

        return ChildOutcome(workflow_id=child_id, recipient_id=child.recipient_id, result=result)

    async def _existing_result(self, workflow_id: str) -> WorkflowResult:
        try:
            return await workflow.execute_activity(
                await_workflow_result,
                AwaitWorkflowResultInput(workflow_id=workflow_id),
                start_to_close_timeout=AWAIT_RESULT_TIMEOUT,
                retry_policy=to_temporal_retry_policy(DEFAULT_RETRY),
            )
        except TemporalActivityError as e:
            workflow.logger.error(f'{self.workflow_id}: could not read child {workflow_id}: {e}')
            return WorkflowResult.failure(
                'Child workflow could not be run', str(e.cause or e), completed_at=workflow.now()
            )


# =============================================================================
# Workflow classes
# =============================================================================


class DefinitionWorkflow:
    """Runs a `WorkflowDefinition` and answers the `progress` query while it does."""

    definition: WorkflowDefinition

    def __init__(self) -> None:
        self._ctx: TemporalWorkflowContext | None = None

    async def _run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        self._ctx = TemporalWorkflowContext(self.definition, settle_delay=input.settle_delay)
        return await self.definition.run(self._ctx, *input.args)

    @workflow.query
    def progress(self) -> WorkflowProgress:
        return self._ctx.progress if self._ctx is not None else WorkflowProgress()


@workflow.defn(name=OrderConfirmationWorkflow.name)
class OrderConfirmationTemporalWorkflow(DefinitionWorkflow):
    definition = OrderConfirmationWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


@workflow.defn(name=OrderCancellationWorkflow.name)
class OrderCancellationTemporalWorkflow(DefinitionWorkflow):
    definition = OrderCancellationWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


@workflow.defn(name=CatalogueMessagingWorkflow.name)
class CatalogueMessagingTemporalWorkflow(DefinitionWorkflow):
    definition = CatalogueMessagingWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


@workflow.defn(name=CatalogueBroadcastWorkflow.name)
class CatalogueBroadcastTemporalWorkflow(DefinitionWorkflow):
    definition = CatalogueBroadcastWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


@workflow.defn(name=BackInStockWorkflow.name)
class BackInStockTemporalWorkflow(DefinitionWorkflow):
    definition = BackInStockWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


@workflow.defn(name=BackInStockNotificationWorkflow.name)
class BackInStockNotificationTemporalWorkflow(DefinitionWorkflow):
    definition = BackInStockNotificationWorkflow()

    @workflow.run
    async def run(self, input: TemporalWorkflowInput) -> WorkflowResult:
        return await self._run(input)


TEMPORAL_WORKFLOWS: list[type[DefinitionWorkflow]] = [
    OrderConfirmationTemporalWorkflow,
    OrderCancellationTemporalWorkflow,
    CatalogueMessagingTemporalWorkflow,
    CatalogueBroadcastTemporalWorkflow,
    BackInStockTemporalWorkflow,
    BackInStockNotificationTemporalWorkflow,
]

DEFINITIONS_BY_TYPE: dict[WorkflowType, WorkflowDefinition] = {
    w.definition.workflow_type: w.definition for w in TEMPORAL_WORKFLOWS
}


def workflows_for_queue(task_queue: str) -> list[type[DefinitionWorkflow]]:
    return [w for w in TEMPORAL_WORKFLOWS if w.definition.task_queue == task_queue]
