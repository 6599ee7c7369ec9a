"""Workflow context: the only door from a workflow definition to the outside.

Definitions call activities, settle waits and child fan-out through a
`WorkflowContext`, which keeps them deterministic and backend-agnostic:

    async with ctx.step('send', 'Send confirmation'):
        sent = await ctx.execute_activity('send_template_message', message_input)

`LocalWorkflowContext` runs activities in-process under `execute_with_retry`.
The Temporal backend provides `TemporalWorkflowContext`.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager, nullcontext
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from flowflex.runtime.backend import WorkflowBackend
from flowflex.runtime.errors import DuplicateInvocationError, OrchestrationError, ValidationError
from flowflex.runtime.registry import Registry
from flowflex.runtime.retry import execute_with_retry
from flowflex.runtime.schemas import (
    ActivityAttempt,
    ChildOutcome,
    ChildWorkflow,
    WorkflowInvocation,
    WorkflowProgress,
    WorkflowResult,
    WorkflowType,
    utcnow,
)


class WorkflowContext(ABC):
    """Execution context handed to `WorkflowDefinition.run`."""

    def __init__(self, workflow_id: str, workflow_type: WorkflowType) -> None:
        self.workflow_id = workflow_id
        self.workflow_type = workflow_type
        self.progress = WorkflowProgress()

    @property
    @abstractmethod
    def logger(self) -> logging.Logger | logging.LoggerAdapter:
        """Logger safe to use from workflow code."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as seen by the workflow."""

    @abstractmethod
    async def execute_activity(self, name: str, input: BaseModel) -> Any:
        """Run a registered activity under its retry policy and timeout.

        Returns:
            The activity's output model

        Raises:
            ActivityFatalError: On a non-retryable failure
            ActivityTransientError: When every attempt failed transiently
        """

    @abstractmethod
    async def settle(self) -> None:
        """Post-completion settle wait; suspends only this invocation."""

    @abstractmethod
    async def start_children(self, children: list[ChildWorkflow]) -> list[ChildOutcome]:
        """Start independent child invocations and wait for all of them.

        A child's failure is reported in its outcome; it never cancels or
        retries its siblings.
        """

    @asynccontextmanager
    async def step(self, step_id: str, step_name: str) -> AsyncGenerator[None, None]:
        """Track a named step of the workflow in logs and `progress`.

        Example:
            async with ctx.step('lookup', 'Look up channel'):
                channel = await ctx.execute_activity('lookup_channel', lookup_input)
        """
        self.progress.current_step = step_id
        await self.report_progress()
        self.logger.debug(f'{self.workflow_id}: {step_name}...')
        try:
            yield
        except Exception as e:
            self.logger.warning(f'{self.workflow_id}: step {step_id} failed: {e}')
            raise
        self.progress.completed_steps.append(step_id)
        self.progress.current_step = None
        await self.report_progress()

    async def report_progress(self) -> None:  # noqa: B027
        """Publish `progress` outside the workflow. No-op by default."""

    def client_reference(self, step: str) -> str:
        """Deterministic per-step reference forwarded to the channel for dedup."""
        return f'{self.workflow_id}:{step}'


class LocalWorkflowContext(WorkflowContext):
    """Context for invocations run by the in-process `Worker`."""

    def __init__(
        self,
        invocation: WorkflowInvocation,
        *,
        registry: Registry,
        backend: WorkflowBackend,
        settle_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        wait_scope: Callable[[], AbstractAsyncContextManager[None]] | None = None,
        progress_sink: Callable[[WorkflowProgress], Awaitable[None]] | None = None,
    ) -> None:
        super().__init__(invocation.workflow_id, invocation.workflow_type)
        self.attempts: list[ActivityAttempt] = []
        self._registry = registry
        self._backend = backend
        self._settle_delay = settle_delay
        self._sleep = sleep
        # Entered while waiting on children, e.g. to hand back a worker slot
        self._wait_scope = wait_scope or nullcontext
        self._progress_sink = progress_sink
        self._logger = logging.getLogger(f'workflows.{invocation.workflow_type.value}')

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def now(self) -> datetime:
        return utcnow()

    async def execute_activity(self, name: str, input: BaseModel) -> Any:
        activity = self._registry.get_activity(name)
        if not isinstance(input, activity.input_type):
            input = activity.input_type.model_validate(input)

        return await execute_with_retry(
            lambda: activity(input),
            activity.retry_policy,
            name=name,
            start_to_close_timeout=activity.start_to_close_timeout,
            sleep=self._sleep,
            on_attempt=self.attempts.append,
        )

    async def report_progress(self) -> None:
        if self._progress_sink is not None:
            await self._progress_sink(self.progress)

    async def settle(self) -> None:
        if self._settle_delay <= 0:
            return
        self._logger.debug(f'{self.workflow_id}: settling for {self._settle_delay}s')
        await self._sleep(self._settle_delay)

    async def start_children(self, children: list[ChildWorkflow]) -> list[ChildOutcome]:
        if not children:
            return []
        self._logger.info(f'{self.workflow_id}: starting {len(children)} child workflows')
        async with self._wait_scope():
            return list(await asyncio.gather(*(self._run_child(child) for child in children)))

    async def _run_child(self, child: ChildWorkflow) -> ChildOutcome:
        definition = self._registry.workflow_for_type(child.workflow_type)
        try:
            invocation = definition.new_invocation(*child.args, parent_id=self.workflow_id)
        except ValidationError as e:
            return ChildOutcome(
                workflow_id=f'{child.workflow_type.value}-{child.recipient_id}',
                recipient_id=child.recipient_id,
                result=WorkflowResult.failure(e.message, e.error, completed_at=utcnow()),
            )

        try:
            try:
                await self._backend.create(invocation)
            except DuplicateInvocationError:
                self._logger.info(f'{self.workflow_id}: child {invocation.workflow_id} already exists')
            finished = await self._backend.wait(invocation.workflow_id)
        except OrchestrationError as e:
            self._logger.error(f'{self.workflow_id}: child {invocation.workflow_id} failed to run: {e}')
            return ChildOutcome(
                workflow_id=invocation.workflow_id,
                recipient_id=child.recipient_id,
                result=WorkflowResult.failure('Child workflow could not be run', str(e), completed_at=utcnow()),
            )

        outcome = finished.outcome
        assert outcome is not None
        return ChildOutcome(workflow_id=invocation.workflow_id, recipient_id=child.recipient_id, result=outcome)
