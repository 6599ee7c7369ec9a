"""Order confirmation and cancellation workflows, end to end on local workers."""

import pytest

from flowflex.core.services.channel.exceptions import ChannelError, ChannelTransportError
from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.providers.static.service import StaticDirectoryService
from flowflex.core.services.directory.service import _DirectoryServiceHolder
from flowflex.runtime.backend import LocalBackend
from flowflex.runtime.gateway import Gateway
from flowflex.runtime.schemas import AttemptOutcome, InvocationStatus, WorkflowType
from flowflex.runtime.task_queues import ORDER_CANCELLATION_QUEUE, ORDER_CONFIRMATION_QUEUE
from flowflex.runtime.worker import Worker

pytestmark = pytest.mark.usefixtures('directory', 'workers')


def body_parameters(message) -> list[str]:
    return [p.text for p in message.template.components[0].parameters]


class TestOrderConfirmation:
    async def test_sends_confirmation_template(self, gateway, channel, order, customer, org):
        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        result = outcome.result
        assert result.success is True
        assert result.message == 'Order confirmation workflow completed successfully'
        assert result.data == {
            'orderId': str(order['id']),
            'customerPhone': customer['phone'],
            'channelId': 'ch-1',
            'provider': 'interakt',
            'templateName': 'order_confirmation',
        }
        assert result.timestamps.started_at <= result.timestamps.completed_at

        [message] = channel.sent
        assert message.to == customer['phone']
        assert message.template.name == 'order_confirmation'
        assert body_parameters(message) == [
            customer['name'],
            order['order_number'],
            '49.90',
            'Linen Shirt (2x), Cap (1x)',
        ]
        assert message.client_reference == f'order-confirmation-{order["id"]}:send'

    async def test_defaults_for_sparse_order(self, gateway, channel, org):
        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, {'id': 'A-1'}, {'phone': '+15550001'}, org)

        assert outcome.result.success is True
        assert body_parameters(channel.sent[0]) == ['Customer', 'A-1', '0', 'Items']

    @pytest.mark.parametrize(
        ('customer', 'org', 'message', 'error'),
        [
            (
                {'name': 'No Phone'},
                {'orgId': 'org-1'},
                "Invalid customerData: must be an object with a 'phone' property",
                'Invalid customerData',
            ),
            (
                'not-an-object',
                {'orgId': 'org-1'},
                "Invalid customerData: must be an object with a 'phone' property",
                'Invalid customerData',
            ),
            (
                {'phone': '+15550001'},
                {'branchId': 'b-1'},
                "Invalid orgData: must be an object with an 'orgId' property",
                'Invalid orgData',
            ),
        ],
    )
    async def test_validation_fails_fast(self, gateway, channel, order, customer, org, message, error):
        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.handle.status == InvocationStatus.FAILED
        assert outcome.result.success is False
        assert outcome.result.message == message
        assert outcome.result.error == error
        assert outcome.result.entity_id == str(order['id'])
        assert channel.attempts == []

        invocation = await gateway.get(outcome.workflow_id)
        assert invocation.attempts == []

    async def test_client_error_is_not_retried(self, gateway, channel, sleep, order, customer, org):
        channel.fail(customer['phone'], ChannelError('interakt HTTP error: 400', status_code=400))

        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.result.success is False
        assert outcome.result.message == 'Failed to send WhatsApp confirmation message'
        assert '400' in outcome.result.error
        assert len(channel.attempts) == 1
        assert sleep.delays == []

        invocation = await gateway.get(outcome.workflow_id)
        send_attempts = [a for a in invocation.attempts if a.activity_name == 'send_template_message']
        assert [a.outcome for a in send_attempts] == [AttemptOutcome.FATAL_FAILURE]

    async def test_server_errors_are_retried(self, gateway, channel, sleep, order, customer, org):
        channel.fail(
            customer['phone'],
            ChannelError('interakt HTTP error: 503', status_code=503),
            ChannelTransportError('interakt request timed out'),
        )

        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.result.success is True
        assert len(channel.attempts) == 3
        assert len(channel.sent) == 1
        assert sleep.delays == [1.0, 2.0]
        # Every attempt carries the same reference so the BSP can drop duplicates
        assert {m.client_reference for m in channel.attempts} == {f'order-confirmation-{order["id"]}:send'}

        invocation = await gateway.get(outcome.workflow_id)
        send_attempts = [a for a in invocation.attempts if a.activity_name == 'send_template_message']
        assert [a.outcome for a in send_attempts] == [
            AttemptOutcome.TRANSIENT_FAILURE,
            AttemptOutcome.TRANSIENT_FAILURE,
            AttemptOutcome.SUCCESS,
        ]
        assert send_attempts[0].backoff_schedule == [1.0, 2.0]

    async def test_gives_up_after_retries(self, gateway, channel, order, customer, org):
        channel.fail(customer['phone'], *[ChannelError('rate limited', status_code=429) for _ in range(3)])

        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.result.success is False
        assert outcome.result.error == 'rate limited'
        assert len(channel.attempts) == 3
        assert channel.sent == []

    async def test_unknown_org_has_no_channel(self, gateway, channel, order, customer):
        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, {'orgId': 'org-unknown'})

        assert outcome.result.success is False
        assert outcome.result.error == 'No active WhatsApp channel found for org org-unknown'
        assert channel.attempts == []

    async def test_missing_template(self, gateway, channel, monkeypatch, order, customer, org):
        bare = StaticDirectoryService()
        bare.add_channel('org-1', ChannelConfig(channel_id='ch-1', phone_number_id='1555000'))
        monkeypatch.setattr(_DirectoryServiceHolder, 'instance', bare)

        outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.result.success is False
        assert outcome.result.error == (
            "Template 'order_confirmation' not found. Please create an approved template first."
        )
        assert channel.attempts == []


class TestSettle:
    @pytest.fixture
    def settle_gateway(self, registry, sleep) -> tuple[Gateway, LocalBackend]:
        backend = LocalBackend()
        return Gateway(backend, registry, sleep=sleep), backend

    def settling_worker(self, queue: str, registry, backend, sleep) -> Worker:
        return Worker(queue, registry, backend.store, backend.broker, sleep=sleep, settle_delay=2.5)

    async def test_confirmation_settles_after_success(self, settle_gateway, channel, registry, sleep, order, customer, org):
        gateway, backend = settle_gateway
        async with self.settling_worker(ORDER_CONFIRMATION_QUEUE, registry, backend, sleep):
            outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)

        assert outcome.result.success is True
        assert sleep.delays == [2.5]

    async def test_failed_confirmation_does_not_settle(self, settle_gateway, registry, sleep, order, org):
        gateway, backend = settle_gateway
        async with self.settling_worker(ORDER_CONFIRMATION_QUEUE, registry, backend, sleep):
            outcome = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, {'name': 'No Phone'}, org)

        assert outcome.result.success is False
        assert sleep.delays == []

    async def test_cancellation_does_not_settle(self, settle_gateway, channel, registry, sleep, order, customer, org):
        gateway, backend = settle_gateway
        async with self.settling_worker(ORDER_CANCELLATION_QUEUE, registry, backend, sleep):
            outcome = await gateway.start(WorkflowType.ORDER_CANCELLATION, order, customer, org)

        assert outcome.result.success is True
        assert sleep.delays == []


class TestOrderCancellation:
    async def test_sends_cancellation_template(self, gateway, channel, order, customer, org):
        order = {**order, 'cancel_reason': 'customer'}

        outcome = await gateway.start(WorkflowType.ORDER_CANCELLATION, order, customer, org)

        assert outcome.workflow_id == f'order-cancellation-{order["id"]}'
        assert outcome.result.success is True
        assert outcome.result.message == 'Order cancellation workflow completed successfully'
        [message] = channel.sent
        assert message.template.name == 'order_cancellation'
        assert body_parameters(message) == [
            customer['name'],
            order['order_number'],
            '49.90',
            'Linen Shirt, Cap',
            'customer',
        ]

    async def test_reason_defaults(self, gateway, channel, customer, org):
        await gateway.start(WorkflowType.ORDER_CANCELLATION, {'id': 55}, customer, org)

        assert body_parameters(channel.sent[0])[-1] == 'Not specified'

    async def test_confirmation_and_cancellation_are_independent(self, gateway, channel, order, customer, org):
        confirmed = await gateway.start(WorkflowType.ORDER_CONFIRMATION, order, customer, org)
        cancelled = await gateway.start(WorkflowType.ORDER_CANCELLATION, order, customer, org)

        assert confirmed.workflow_id != cancelled.workflow_id
        assert cancelled.deduplicated is False
        assert len(channel.sent) == 2
