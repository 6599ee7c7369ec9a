"""Gateway - the single entry point for starting workflows.

Computes the idempotency key of a start request, starts or finds the invocation
on the configured backend, and either waits for the outcome (sync) or hands
back a handle (async).

Example:
    gateway = Gateway(LocalBackend(), build_registry())
    outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)
    if outcome.still_running:
        invocation = await gateway.wait(outcome.workflow_id, timeout=30)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from flowflex.runtime.backend import WorkflowBackend
from flowflex.runtime.errors import (
    ActivityError,
    BackendUnavailableError,
    DuplicateInvocationError,
    GatewayTimeoutError,
    InvocationNotFoundError,
    NotRegisteredError,
    ValidationError,
)
from flowflex.runtime.registry import Registry
from flowflex.runtime.retry import GATEWAY_RETRY, RetryPolicy, execute_with_retry
from flowflex.runtime.schemas import RunMode, StartOutcome, WorkflowHandle, WorkflowInvocation, WorkflowType

logger = logging.getLogger('runtime.gateway')

T = TypeVar('T')

# Errors that carry an answer rather than a backend fault
_PASSTHROUGH_ERRORS = (
    DuplicateInvocationError,
    GatewayTimeoutError,
    InvocationNotFoundError,
    NotRegisteredError,
    ValidationError,
)


class Gateway:
    """Starts workflows idempotently on a backend."""

    def __init__(
        self,
        backend: WorkflowBackend,
        registry: Registry,
        *,
        retry_policy: RetryPolicy = GATEWAY_RETRY,
        sync_timeout: float | None = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.registry = registry
        self._retry_policy = retry_policy
        self._sync_timeout = sync_timeout
        self._sleep = sleep

    async def start(
        self,
        workflow_type: WorkflowType | str,
        *args: Any,
        mode: RunMode | str | None = None,
        timeout: float | None = None,
    ) -> StartOutcome:
        """Start a workflow, or answer from the invocation already holding its key.

        Args:
            workflow_type: Workflow type to start
            *args: Workflow arguments (business entity, customer, org, ...)
            mode: `sync` waits for the outcome, `async` returns the handle;
                defaults to the definition's mode
            timeout: Sync wait bound (s); defaults to the gateway's sync timeout

        Returns:
            StartOutcome with the handle, and the result when it is known

        Raises:
            NotRegisteredError: Unknown workflow type
            ValidationError: No entity ID can be derived from the arguments
            BackendUnavailableError: The backend kept failing
        """
        definition = self.registry.workflow_for_type(workflow_type)
        invocation = definition.new_invocation(*args)
        workflow_id = invocation.workflow_id

        existing = await self._call(lambda: self.backend.get(workflow_id), f'get {workflow_id}')
        deduplicated = existing is not None
        if existing is None:
            try:
                current = await self._call(lambda: self.backend.create(invocation), f'create {workflow_id}')
            except DuplicateInvocationError as e:
                current = e.invocation
                deduplicated = True
        else:
            current = existing

        if current.is_terminal:
            logger.info(f'{workflow_id}: already {current.status.value}, returning cached result')
            return StartOutcome(
                handle=WorkflowHandle.from_invocation(current),
                result=current.outcome,
                deduplicated=True,
            )

        if deduplicated:
            logger.info(f'{workflow_id}: already {current.status.value}, attaching to existing invocation')

        run_mode = RunMode(mode) if mode else definition.default_mode
        if run_mode == RunMode.ASYNC:
            return StartOutcome(
                handle=WorkflowHandle.from_invocation(current),
                deduplicated=deduplicated,
                still_running=True,
            )

        try:
            finished = await self.wait(workflow_id, timeout if timeout is not None else self._sync_timeout)
        except GatewayTimeoutError:
            logger.info(f'{workflow_id}: still running after sync wait, returning handle')
            latest = await self.get(workflow_id) or current
            return StartOutcome(
                handle=WorkflowHandle.from_invocation(latest),
                deduplicated=deduplicated,
                still_running=True,
            )

        return StartOutcome(
            handle=WorkflowHandle.from_invocation(finished),
            result=finished.outcome,
            deduplicated=deduplicated,
        )

    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        """Current state of an invocation, or None if unknown."""
        return await self._call(lambda: self.backend.get(workflow_id), f'get {workflow_id}')

    async def wait(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        """Wait for an invocation to become terminal.

        Abandoning the wait (timeout or caller cancellation) never cancels
        the invocation itself.

        Raises:
            GatewayTimeoutError: If `timeout` elapses first
            InvocationNotFoundError: If the workflow ID is unknown
        """
        return await self._call(
            lambda: asyncio.shield(self.backend.wait(workflow_id, timeout)),
            f'wait {workflow_id}',
        )

    async def health(self) -> bool:
        return await self.backend.health()

    async def close(self) -> None:
        await self.backend.close()

    async def _call(self, fn: Callable[[], Awaitable[T]], name: str) -> T:
        try:
            return await execute_with_retry(
                fn,
                self._retry_policy,
                name=f'gateway {name}',
                non_retryable=_PASSTHROUGH_ERRORS,
                sleep=self._sleep,
            )
        except ActivityError as e:
            raise BackendUnavailableError(f'Backend {self.backend.name} unavailable: {e.message}') from e
