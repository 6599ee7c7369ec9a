"""In-process task-queue broker.

One FIFO `asyncio.Queue` of workflow IDs per task queue. Each enqueued ID is
handed to exactly one claiming worker; the Pending -> Running claim in the
invocation store still decides whether that worker may run it.
"""

import asyncio
import logging

logger = logging.getLogger('runtime.broker')


class TaskQueueBroker:
    """Named FIFO queues of workflow IDs."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[str]] = {}

    def _queue(self, task_queue: str) -> asyncio.Queue[str]:
        queue = self._queues.get(task_queue)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[task_queue] = queue
        return queue

    async def enqueue(self, task_queue: str, workflow_id: str) -> None:
        await self._queue(task_queue).put(workflow_id)
        logger.debug(f'Enqueued {workflow_id} on {task_queue}')

    async def claim(self, task_queue: str) -> str:
        """Wait for the next workflow ID on `task_queue`."""
        return await self._queue(task_queue).get()

    def pending(self, task_queue: str) -> int:
        return self._queue(task_queue).qsize()

    def task_queues(self) -> list[str]:
        return sorted(self._queues)
