"""Order confirmation workflow.

Sends the `order_confirmation` WhatsApp template when an order is placed:
    lookup_channel -> fetch_template -> send_template_message -> settle

Arguments (as received from the e-commerce platform):
    order:    {'id', 'order_number' | 'name', 'total_price', 'line_items': [...]}
    customer: {'phone', 'name'?}
    org:      {'orgId', 'branchId'?}
"""

from typing import Any, ClassVar

from flowflex.activities import (
    FetchTemplateInput,
    FetchTemplateOutput,
    LookupChannelInput,
    LookupChannelOutput,
    SendMessageOutput,
    SendTemplateMessageInput,
)
from flowflex.runtime.context import WorkflowContext
from flowflex.runtime.schemas import WorkflowResult, WorkflowType
from flowflex.runtime.task_queues import ORDER_CONFIRMATION_QUEUE
from flowflex.workflows.base import WorkflowDefinition, entity_key, require_object


def order_number(order: dict[str, Any]) -> str:
    return str(order.get('order_number') or order.get('orderNumber') or order.get('name') or order['id'])


def order_total(order: dict[str, Any]) -> str:
    return str(order.get('total_price') or order.get('totalPrice') or '0')


def order_items(order: dict[str, Any]) -> str:
    """`"Shirt (2x), Hat (1x)"`, or `"Items"` when the order has no line items."""
    items = order.get('line_items') or order.get('items') or []
    labels = [
        f'{item.get("name") or item.get("title") or "Item"} ({item.get("quantity", 1)}x)'
        for item in items
        if isinstance(item, dict)
    ]
    return ', '.join(labels) or 'Items'


def customer_name(customer: dict[str, Any]) -> str:
    return str(customer.get('name') or customer.get('first_name') or 'Customer')


class OrderConfirmationWorkflow(WorkflowDefinition):
    """Order placed -> confirmation template to the customer."""

    name = 'OrderConfirmationWorkflow'
    workflow_type = WorkflowType.ORDER_CONFIRMATION
    task_queue = ORDER_CONFIRMATION_QUEUE
    failure_message = 'Failed to send WhatsApp confirmation message'

    template_name: ClassVar[str] = 'order_confirmation'
    success_message: ClassVar[str] = 'Order confirmation workflow completed successfully'

    def entity_id(self, order: Any = None, *args: Any) -> str | None:
        return entity_key(order, 'id')

    def validate(self, order: Any = None, customer: Any = None, org: Any = None, *args: Any) -> None:
        require_object(order, 'orderData', 'id')
        require_object(customer, 'customerData', 'phone')
        require_object(org, 'orgData', 'orgId')

    def template_parameters(self, order: dict[str, Any], customer: dict[str, Any]) -> list[str]:
        return [customer_name(customer), order_number(order), order_total(order), order_items(order)]

    async def execute(
        self,
        ctx: WorkflowContext,
        order: dict[str, Any],
        customer: dict[str, Any],
        org: dict[str, Any],
        *args: Any,
    ) -> WorkflowResult:
        org_id = str(org['orgId'])
        branch_id = entity_key(org, 'branchId')

        async with ctx.step('lookup_channel', 'Look up WhatsApp channel'):
            found: LookupChannelOutput = await ctx.execute_activity(
                'lookup_channel', LookupChannelInput(org_id=org_id, branch_id=branch_id)
            )

        async with ctx.step('fetch_template', 'Fetch message template'):
            fetched: FetchTemplateOutput = await ctx.execute_activity(
                'fetch_template', FetchTemplateInput(name=self.template_name, org_id=org_id, branch_id=branch_id)
            )

        async with ctx.step('send', 'Send WhatsApp message'):
            sent: SendMessageOutput = await ctx.execute_activity(
                'send_template_message',
                SendTemplateMessageInput(
                    to=str(customer['phone']),
                    channel=found.channel,
                    template_name=fetched.template.name,
                    language=fetched.template.language,
                    parameters=self.template_parameters(order, customer),
                    client_reference=ctx.client_reference('send'),
                ),
            )

        return WorkflowResult.ok(
            self.success_message,
            entity_id=str(order['id']),
            message_id=sent.message_id,
            data={
                'orderId': str(order['id']),
                'customerPhone': str(customer['phone']),
                'channelId': sent.channel_id,
                'provider': sent.provider.value,
                'templateName': fetched.template.name,
            },
        )

    async def settle(self, ctx: WorkflowContext) -> None:
        await ctx.settle()
