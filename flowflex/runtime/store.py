"""Invocation store: the single source of truth for invocation state.

Every mutation happens under one lock, which makes `create` an atomic
check-and-insert (at most one invocation per workflow ID) and `claim` an atomic
Pending -> Running transition (at most one worker holds an invocation).
Callers always receive copies; the stored records are never shared.
"""

import asyncio
from abc import ABC, abstractmethod

from flowflex.runtime.errors import DuplicateInvocationError, GatewayTimeoutError, InvocationNotFoundError
from flowflex.runtime.schemas import (
    ActivityAttempt,
    InvocationStatus,
    WorkflowInvocation,
    WorkflowProgress,
    WorkflowResult,
)


class InvocationStore(ABC):
    """Interface for invocation persistence."""

    @abstractmethod
    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        """Return a copy of the invocation, or None if it does not exist."""

    @abstractmethod
    async def create(self, invocation: WorkflowInvocation) -> WorkflowInvocation:
        """Insert a new Pending invocation.

        Raises:
            DuplicateInvocationError: If the workflow ID is already taken; the
                error carries the existing invocation
        """

    @abstractmethod
    async def claim(self, workflow_id: str, worker_id: str) -> WorkflowInvocation | None:
        """Move a Pending invocation to Running for `worker_id`.

        Returns:
            The claimed invocation, or None if it is not Pending (already
            claimed by another worker or terminal)
        """

    @abstractmethod
    async def finish(
        self,
        workflow_id: str,
        worker_id: str,
        outcome: WorkflowResult,
        attempts: list[ActivityAttempt] | None = None,
    ) -> WorkflowInvocation:
        """Write the terminal outcome of an invocation held by `worker_id`."""

    @abstractmethod
    async def record_progress(self, workflow_id: str, worker_id: str, progress: WorkflowProgress) -> None:
        """Update the step progress of an invocation held by `worker_id`."""

    @abstractmethod
    async def release(self, workflow_id: str, worker_id: str) -> WorkflowInvocation:
        """Return an invocation held by `worker_id` to Pending."""

    @abstractmethod
    async def wait_terminal(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        """Block until the invocation is terminal.

        Raises:
            InvocationNotFoundError: If the invocation does not exist
            GatewayTimeoutError: If `timeout` elapses first
        """

    @abstractmethod
    async def list_invocations(self, status: InvocationStatus | None = None) -> list[WorkflowInvocation]:
        """List invocations, optionally filtered by status."""


class InMemoryInvocationStore(InvocationStore):
    """Process-local store. Terminal invocations are kept for dedup lookups."""

    def __init__(self) -> None:
        self._invocations: dict[str, WorkflowInvocation] = {}
        self._terminal_events: dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        async with self._lock:
            invocation = self._invocations.get(workflow_id)
            return invocation.model_copy(deep=True) if invocation else None

    async def create(self, invocation: WorkflowInvocation) -> WorkflowInvocation:
        async with self._lock:
            existing = self._invocations.get(invocation.workflow_id)
            if existing is not None:
                raise DuplicateInvocationError(existing.model_copy(deep=True))

            stored = invocation.model_copy(deep=True)
            stored.status = InvocationStatus.PENDING
            self._invocations[stored.workflow_id] = stored
            self._terminal_events[stored.workflow_id] = asyncio.Event()
            return stored.model_copy(deep=True)

    async def claim(self, workflow_id: str, worker_id: str) -> WorkflowInvocation | None:
        async with self._lock:
            invocation = self._require(workflow_id)
            if invocation.status != InvocationStatus.PENDING:
                return None
            invocation.mark_running(worker_id)
            return invocation.model_copy(deep=True)

    async def finish(
        self,
        workflow_id: str,
        worker_id: str,
        outcome: WorkflowResult,
        attempts: list[ActivityAttempt] | None = None,
    ) -> WorkflowInvocation:
        async with self._lock:
            invocation = self._require(workflow_id)
            invocation.finish(worker_id, outcome)
            if attempts:
                invocation.attempts.extend(attempts)
            self._terminal_events[workflow_id].set()
            return invocation.model_copy(deep=True)

    async def record_progress(self, workflow_id: str, worker_id: str, progress: WorkflowProgress) -> None:
        async with self._lock:
            self._require(workflow_id).record_progress(worker_id, progress)

    async def release(self, workflow_id: str, worker_id: str) -> WorkflowInvocation:
        async with self._lock:
            invocation = self._require(workflow_id)
            invocation.release(worker_id)
            return invocation.model_copy(deep=True)

    async def wait_terminal(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        async with self._lock:
            self._require(workflow_id)
            event = self._terminal_events[workflow_id]

        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise GatewayTimeoutError(workflow_id, timeout) from e

        invocation = await self.get(workflow_id)
        assert invocation is not None
        return invocation

    async def list_invocations(self, status: InvocationStatus | None = None) -> list[WorkflowInvocation]:
        async with self._lock:
            return [
                invocation.model_copy(deep=True)
                for invocation in self._invocations.values()
                if status is None or invocation.status == status
            ]

    def _require(self, workflow_id: str) -> WorkflowInvocation:
        invocation = self._invocations.get(workflow_id)
        if invocation is None:
            raise InvocationNotFoundError(f'No invocation for workflow ID {workflow_id}')
        return invocation
