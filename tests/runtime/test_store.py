"""Tests for the in-memory invocation store and the invocation lifecycle."""

import asyncio

import pytest

from flowflex.runtime.errors import (
    DuplicateInvocationError,
    GatewayTimeoutError,
    InvalidTransitionError,
    InvocationNotFoundError,
)
from flowflex.runtime.schemas import (
    InvocationStatus,
    WorkflowInvocation,
    WorkflowProgress,
    WorkflowResult,
    WorkflowType,
)
from flowflex.runtime.store import InMemoryInvocationStore
from flowflex.runtime.task_queues import ORDER_CONFIRMATION_QUEUE


def make_invocation(workflow_id: str = 'order-confirmation-1001') -> WorkflowInvocation:
    return WorkflowInvocation(
        workflow_id=workflow_id,
        workflow_type=WorkflowType.ORDER_CONFIRMATION,
        workflow_name='OrderConfirmationWorkflow',
        task_queue=ORDER_CONFIRMATION_QUEUE,
        args=({'id': 1001},),
    )


@pytest.fixture
def store() -> InMemoryInvocationStore:
    return InMemoryInvocationStore()


class TestCreate:
    async def test_create_is_pending(self, store):
        created = await store.create(make_invocation())

        assert created.status == InvocationStatus.PENDING
        assert (await store.get('order-confirmation-1001')).status == InvocationStatus.PENDING

    async def test_duplicate_create_carries_existing(self, store):
        await store.create(make_invocation())

        with pytest.raises(DuplicateInvocationError) as exc_info:
            await store.create(make_invocation())

        assert exc_info.value.invocation.workflow_id == 'order-confirmation-1001'

    async def test_concurrent_creates_admit_one(self, store):
        results = await asyncio.gather(*(store.create(make_invocation()) for _ in range(10)), return_exceptions=True)

        created = [r for r in results if isinstance(r, WorkflowInvocation)]
        duplicates = [r for r in results if isinstance(r, DuplicateInvocationError)]
        assert len(created) == 1
        assert len(duplicates) == 9
        assert len(await store.list_invocations()) == 1

    async def test_get_returns_copies(self, store):
        await store.create(make_invocation())

        copy = await store.get('order-confirmation-1001')
        copy.status = InvocationStatus.FAILED

        assert (await store.get('order-confirmation-1001')).status == InvocationStatus.PENDING

    async def test_get_unknown_is_none(self, store):
        assert await store.get('order-confirmation-missing') is None


class TestLifecycle:
    async def test_claim_is_exclusive(self, store):
        await store.create(make_invocation())

        first = await store.claim('order-confirmation-1001', 'worker-a')
        second = await store.claim('order-confirmation-1001', 'worker-b')

        assert first.status == InvocationStatus.RUNNING
        assert first.worker_id == 'worker-a'
        assert first.started_at is not None
        assert second is None

    async def test_finish_success_sets_result(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        finished = await store.finish('order-confirmation-1001', 'worker-a', WorkflowResult.ok('sent'))

        assert finished.status == InvocationStatus.COMPLETED
        assert finished.result.message == 'sent'
        assert finished.error is None
        assert finished.completed_at is not None

    async def test_finish_failure_sets_error(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        finished = await store.finish(
            'order-confirmation-1001', 'worker-a', WorkflowResult.failure('Failed', '400 Bad Request')
        )

        assert finished.status == InvocationStatus.FAILED
        assert finished.result is None
        assert finished.outcome.error == '400 Bad Request'

    async def test_finish_by_other_worker_is_rejected(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        with pytest.raises(InvalidTransitionError):
            await store.finish('order-confirmation-1001', 'worker-b', WorkflowResult.ok('sent'))

    async def test_terminal_is_immutable(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')
        await store.finish('order-confirmation-1001', 'worker-a', WorkflowResult.ok('sent'))

        with pytest.raises(InvalidTransitionError):
            await store.finish('order-confirmation-1001', 'worker-a', WorkflowResult.failure('late', 'late'))
        with pytest.raises(InvalidTransitionError):
            await store.release('order-confirmation-1001', 'worker-a')
        assert await store.claim('order-confirmation-1001', 'worker-b') is None

    async def test_release_returns_to_pending(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        released = await store.release('order-confirmation-1001', 'worker-a')

        assert released.status == InvocationStatus.PENDING
        assert released.worker_id is None
        assert (await store.claim('order-confirmation-1001', 'worker-b')).worker_id == 'worker-b'

    async def test_list_filters_by_status(self, store):
        await store.create(make_invocation('order-confirmation-1'))
        await store.create(make_invocation('order-confirmation-2'))
        await store.claim('order-confirmation-2', 'worker-a')

        pending = await store.list_invocations(InvocationStatus.PENDING)

        assert [i.workflow_id for i in pending] == ['order-confirmation-1']


class TestProgress:
    async def test_owner_records_progress(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')
        progress = WorkflowProgress(current_step='send', completed_steps=['lookup_channel'])

        await store.record_progress('order-confirmation-1001', 'worker-a', progress)
        progress.completed_steps.append('mutated')

        stored = await store.get('order-confirmation-1001')
        assert stored.progress == WorkflowProgress(current_step='send', completed_steps=['lookup_channel'])

    async def test_other_worker_is_rejected(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        with pytest.raises(InvalidTransitionError):
            await store.record_progress('order-confirmation-1001', 'worker-b', WorkflowProgress())

    async def test_release_clears_progress(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')
        await store.record_progress(
            'order-confirmation-1001', 'worker-a', WorkflowProgress(completed_steps=['lookup_channel'])
        )

        released = await store.release('order-confirmation-1001', 'worker-a')

        assert released.progress == WorkflowProgress()


class TestWaitTerminal:
    async def test_wakes_on_finish(self, store):
        await store.create(make_invocation())
        await store.claim('order-confirmation-1001', 'worker-a')

        waiter = asyncio.create_task(store.wait_terminal('order-confirmation-1001', timeout=5))
        await asyncio.sleep(0)
        await store.finish('order-confirmation-1001', 'worker-a', WorkflowResult.ok('sent'))

        assert (await waiter).status == InvocationStatus.COMPLETED

    async def test_timeout(self, store):
        await store.create(make_invocation())

        with pytest.raises(GatewayTimeoutError):
            await store.wait_terminal('order-confirmation-1001', timeout=0.01)

    async def test_unknown_workflow(self, store):
        with pytest.raises(InvocationNotFoundError):
            await store.wait_terminal('order-confirmation-missing', timeout=0.01)
