"""Execution backends the Gateway talks to.

`LocalBackend` drives the in-process store and broker. `TemporalBackend`
(`flowflex.temporal.client`) implements the same interface on a Temporal
server.
"""

import logging
from abc import ABC, abstractmethod

from flowflex.runtime.broker import TaskQueueBroker
from flowflex.runtime.schemas import WorkflowInvocation
from flowflex.runtime.store import InMemoryInvocationStore, InvocationStore

logger = logging.getLogger('runtime.backend')


class WorkflowBackend(ABC):
    """Start, look up and wait for workflow invocations."""

    name: str = 'abstract'

    @abstractmethod
    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        """Return the invocation for `workflow_id`, or None."""

    @abstractmethod
    async def create(self, invocation: WorkflowInvocation) -> WorkflowInvocation:
        """Create and schedule a Pending invocation.

        Raises:
            DuplicateInvocationError: If the workflow ID is already taken
        """

    @abstractmethod
    async def wait(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        """Wait until the invocation is terminal.

        Raises:
            GatewayTimeoutError: If `timeout` elapses first; the invocation
                keeps running
        """

    async def health(self) -> bool:
        return True

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. Override if needed."""


class LocalBackend(WorkflowBackend):
    """In-process backend over an invocation store and a task-queue broker."""

    name = 'local'

    def __init__(self, store: InvocationStore | None = None, broker: TaskQueueBroker | None = None) -> None:
        self.store = store or InMemoryInvocationStore()
        self.broker = broker or TaskQueueBroker()

    async def get(self, workflow_id: str) -> WorkflowInvocation | None:
        return await self.store.get(workflow_id)

    async def create(self, invocation: WorkflowInvocation) -> WorkflowInvocation:
        created = await self.store.create(invocation)
        await self.broker.enqueue(created.task_queue, created.workflow_id)
        logger.info(f'Created {created.workflow_id} on {created.task_queue}')
        return created

    async def wait(self, workflow_id: str, timeout: float | None = None) -> WorkflowInvocation:
        return await self.store.wait_terminal(workflow_id, timeout)
