"""Local Worker - runs workflow invocations from one task queue.

Usage:
    async with Worker(ORDER_CONFIRMATION_QUEUE, registry, store, broker):
        await shutdown_event.wait()

Workers sharing a queue compete for its IDs; the Pending -> Running claim in
the store guarantees a single holder per invocation. On shutdown, invocations
still in flight are released to Pending and re-enqueued, so they run again on
the next worker (at-least-once).
"""

import asyncio
import functools
import logging
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from flowflex.core.services.log import bind_invocation
from flowflex.runtime.backend import LocalBackend
from flowflex.runtime.broker import TaskQueueBroker
from flowflex.runtime.context import LocalWorkflowContext
from flowflex.runtime.errors import NotRegisteredError
from flowflex.runtime.registry import Registry
from flowflex.runtime.schemas import WorkflowInvocation, WorkflowResult, utcnow
from flowflex.runtime.store import InvocationStore

logger = logging.getLogger('runtime.worker')


class Worker:
    """Pulls workflow IDs from a task queue and executes their definitions."""

    def __init__(
        self,
        task_queue: str,
        registry: Registry,
        store: InvocationStore,
        broker: TaskQueueBroker,
        *,
        max_concurrent: int = 100,
        identity: str | None = None,
        settle_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.task_queue = task_queue
        self.identity = identity or f'worker-{task_queue}-{uuid.uuid4().hex[:8]}'
        self._registry = registry
        self._store = store
        self._broker = broker
        self._backend = LocalBackend(store, broker)
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._slots = asyncio.Semaphore(max_concurrent)
        self._tasks: set[asyncio.Task[None]] = set()
        # Tasks currently holding one of the `max_concurrent` slots
        self._holding: set[asyncio.Task[Any]] = set()
        self._poller: asyncio.Task[None] | None = None

        names = [d.name for d in registry.workflows_for_queue(task_queue)]
        if not names:
            logger.warning(f'No workflows registered for {task_queue}!')
        logger.debug(f'{self.identity}: serving {names}')

    @property
    def running(self) -> bool:
        return self._poller is not None and not self._poller.done()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._poller = asyncio.create_task(self._poll(), name=f'{self.identity}-poller')
        logger.info(f'{self.identity}: started on {self.task_queue}')

    async def shutdown(self) -> None:
        """Stop claiming work and hand in-flight invocations back to the queue."""
        if self._poller is not None:
            self._poller.cancel()
            await asyncio.gather(self._poller, return_exceptions=True)
            self._poller = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f'{self.identity}: released {len(tasks)} in-flight invocations')
        logger.info(f'{self.identity}: stopped')

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Run until `shutdown_event` is set."""
        async with self:
            await shutdown_event.wait()

    async def __aenter__(self) -> 'Worker':
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Internals
    # =========================================================================

    async def _poll(self) -> None:
        while True:
            await self._slots.acquire()
            try:
                workflow_id = await self._broker.claim(self.task_queue)
            except BaseException:
                self._slots.release()
                raise

            task = asyncio.create_task(self._execute(workflow_id), name=f'{self.identity}-{workflow_id}')
            self._tasks.add(task)
            self._holding.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task in self._holding:
            self._holding.discard(task)
            self._slots.release()
        if not task.cancelled() and task.exception() is not None:
            logger.error(f'{self.identity}: task {task.get_name()} crashed: {task.exception()!r}')

    @asynccontextmanager
    async def _slot_released(self) -> AsyncGenerator[None, None]:
        """Give the current task's slot back while it waits on other invocations.

        Children of a fan-out parent run on the same queue and need free slots.
        """
        task = asyncio.current_task()
        if task not in self._holding:
            yield
            return

        self._holding.discard(task)
        self._slots.release()
        try:
            yield
        finally:
            await self._slots.acquire()
            self._holding.add(task)

    async def _execute(self, workflow_id: str) -> None:
        invocation = await self._store.claim(workflow_id, self.identity)
        if invocation is None:
            logger.debug(f'{self.identity}: {workflow_id} already claimed or finished, skipping')
            return

        with bind_invocation(workflow_id, invocation.workflow_type.value, self.identity):
            await self._execute_claimed(invocation)

    async def _execute_claimed(self, invocation: WorkflowInvocation) -> None:
        workflow_id = invocation.workflow_id
        logger.info(f'{self.identity}: running {workflow_id}')
        ctx = LocalWorkflowContext(
            invocation,
            registry=self._registry,
            backend=self._backend,
            settle_delay=self._settle_delay,
            sleep=self._sleep,
            wait_scope=self._slot_released,
            progress_sink=functools.partial(self._store.record_progress, workflow_id, self.identity),
        )

        try:
            outcome = await self._run_definition(invocation, ctx)
        except asyncio.CancelledError:
            await self._store.release(workflow_id, self.identity)
            await self._broker.enqueue(self.task_queue, workflow_id)
            logger.info(f'{self.identity}: {workflow_id} released back to {self.task_queue}')
            raise
        except Exception as e:
            logger.exception(f'{self.identity}: {workflow_id} crashed outside its definition')
            outcome = WorkflowResult.failure('Workflow crashed', str(e) or type(e).__name__, completed_at=utcnow())

        # The terminal write completes even when shutdown cancels this task
        finishing = asyncio.ensure_future(self._store.finish(workflow_id, self.identity, outcome, ctx.attempts))
        try:
            await asyncio.shield(finishing)
        except asyncio.CancelledError:
            await finishing
            raise

        status = 'completed' if outcome.success else 'failed'
        logger.info(f'{self.identity}: {workflow_id} {status}: {outcome.message}')

    async def _run_definition(self, invocation: WorkflowInvocation, ctx: LocalWorkflowContext) -> WorkflowResult:
        try:
            definition = self._registry.get_workflow(invocation.workflow_name)
        except NotRegisteredError as e:
            logger.error(f'{self.identity}: {e}')
            return WorkflowResult.failure('Workflow not registered', str(e), completed_at=utcnow())

        return await definition.run(ctx, *invocation.args)
