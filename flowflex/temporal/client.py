"""Temporal client and the Temporal-backed Gateway backend.

Example usage:
    from flowflex.registry import build_registry
    from flowflex.runtime import Gateway
    from flowflex.temporal.client import TemporalBackend

    registry = build_registry()
    gateway = Gateway(TemporalBackend(registry), registry)
    outcome = await gateway.start('order-confirmation', order, customer, org)
"""

import asyncio
import logging

from temporalio.client import Client, WorkflowExecutionStatus, WorkflowFailureError, WorkflowHandle
from temporalio.common import WorkflowIDConflictPolicy, WorkflowIDReusePolicy
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.service import RPCError, RPCStatusCode

from flowflex.core.configs import app_config
from flowflex.runtime.backend import WorkflowBackend
from flowflex.runtime.errors import DuplicateInvocationError, GatewayTimeoutError, InvocationNotFoundError
from flowflex.runtime.registry import Registry
from flowflex.runtime.schemas import InvocationStatus, WorkflowInvocation, WorkflowResult, utcnow
from flowflex.temporal.workflows import TemporalWorkflowInput

logger = logging.getLogger('temporal.client')


class _ClientHolder:
    """Holder for singleton Temporal client instance."""

    instance: Client | None = None


async def get_temporal_client() -> Client:
    """Get or create the Temporal client.

    Uses a singleton pattern to reuse connections.
    """
    if _ClientHolder.instance is None:
        logger.info('Connecting to Temporal at %s...', app_config.TEMPORAL_HOST)

        try:
            _ClientHolder.instance = await Client.connect(
                app_config.TEMPORAL_HOST,
                namespace=app_config.TEMPORAL_NAMESPACE,
                data_converter=pydantic_data_converter,
            )

            logger.info('Connected to Temporal successfully (namespace: %s)', app_config.TEMPORAL_NAMESPACE)
        except Exception:
            logger.exception('Failed to connect to Temporal at %s', app_config.TEMPORAL_HOST)
            raise

    return _ClientHolder.instance


_TERMINAL_FAILURES = {
    WorkflowExecutionStatus.FAILED: 'Workflow failed',
    WorkflowExecutionStatus.CANCELED: 'Workflow was cancelled',
    WorkflowExecutionStatus.TERMINATED: 'Workflow was terminated',
    WorkflowExecutionStatus.TIMED_OUT: 'Workflow timed out',
}


class TemporalBackend(WorkflowBackend):
    """Runs invocations as Temporal workflows.

    The workflow ID is the Temporal workflow ID. Duplicate starts are rejected
    by the server, including after the first run has closed.
    """

    name = 'temporal'

    def __init__(self, registry: Registry, client: Client | None = None, settle_delay: float | None = None) -> None:
        self._registry = registry
        self._client = client
        self._settle_delay = settle_delay if settle_delay is not None else app_config.WORKFLOW_SETTLE_DELAY_SECONDS

    async def _get_client(self) -> Client:
        if self._client is None:
            self._client = await get_temporal_client()
        return self._client

    async def _handle(self, workflow_id: str) -> WorkflowHandle:
        client = await self._get_client()
        return client.get_workflow_handle(workflow_id, result_type=WorkflowResult)

    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        handle = await self._handle(workflow_id)
        try:
            description = await handle.describe()
        except RPCError as e:
            if e.status == RPCStatusCode.NOT_FOUND:
                return None
            raise

        definition = self._registry.get_workflow(description.workflow_type)
        invocation = WorkflowInvocation(
            workflow_id=workflow_id,
            workflow_type=definition.workflow_type,
            workflow_name=definition.name,
            task_queue=description.task_queue,
            status=InvocationStatus.RUNNING,
            created_at=description.start_time,
            started_at=description.start_time,
            completed_at=description.close_time,
        )

        if description.status == WorkflowExecutionStatus.COMPLETED:
            result = await handle.result()
            if result.success:
                invocation.status = InvocationStatus.COMPLETED
                invocation.result = result
            else:
                invocation.status = InvocationStatus.FAILED
                invocation.error = result
        elif description.status in _TERMINAL_FAILURES:
            invocation.status = InvocationStatus.FAILED
            invocation.error = WorkflowResult.failure(
                _TERMINAL_FAILURES[description.status],
                description.status.name,
                completed_at=description.close_time or utcnow(),
            )
        return invocation

    async def create(self, invocation: WorkflowInvocation) -> WorkflowInvocation:
        client = await self._get_client()
        try:
            await client.start_workflow(
                invocation.workflow_name,
                TemporalWorkflowInput(args=list(invocation.args), settle_delay=self._settle_delay),
                id=invocation.workflow_id,
                task_queue=invocation.task_queue,
                id_reuse_policy=WorkflowIDReusePolicy.REJECT_DUPLICATE,
                id_conflict_policy=WorkflowIDConflictPolicy.FAIL,
            )
        except WorkflowAlreadyStartedError as e:
            existing = await self.get(invocation.workflow_id)
            if existing is None:
                raise
            raise DuplicateInvocationError(existing) from e

        logger.info(f'Started {invocation.workflow_id} on {invocation.task_queue}')
        created = invocation.model_copy()
        created.status = InvocationStatus.PENDING
        return created

    async def wait(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        handle = await self._handle(workflow_id)
        try:
            await asyncio.wait_for(handle.result(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise GatewayTimeoutError(workflow_id, timeout) from e
        except WorkflowFailureError as e:
            logger.warning(f'{workflow_id}: workflow closed without a result: {e}')
        except RPCError as e:
            if e.status == RPCStatusCode.NOT_FOUND:
                raise InvocationNotFoundError(f'No invocation for workflow ID {workflow_id}') from e
            raise

        invocation = await self.get(workflow_id)
        if invocation is None:
            raise InvocationNotFoundError(f'No invocation for workflow ID {workflow_id}')
        return invocation

    async def health(self) -> bool:
        client = await self._get_client()
        return await client.service_client.check_health()
