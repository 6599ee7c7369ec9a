"""Order cancellation workflow.

Same shape as the confirmation workflow with the `order_cancellation` template
and the cancellation reason as an extra body parameter. No settle wait.
"""

from typing import Any

from flowflex.runtime.context import WorkflowContext
from flowflex.runtime.schemas import WorkflowType
from flowflex.runtime.task_queues import ORDER_CANCELLATION_QUEUE
from flowflex.workflows.order_confirmation import (
    OrderConfirmationWorkflow,
    customer_name,
    order_number,
    order_total,
)


def cancelled_items(order: dict[str, Any]) -> str:
    items = order.get('line_items') or order.get('items') or []
    labels = [item.get('title') or item.get('name') or 'Item' for item in items if isinstance(item, dict)]
    return ', '.join(labels) or 'Items'


class OrderCancellationWorkflow(OrderConfirmationWorkflow):
    """Order cancelled -> cancellation template to the customer."""

    name = 'OrderCancellationWorkflow'
    workflow_type = WorkflowType.ORDER_CANCELLATION
    task_queue = ORDER_CANCELLATION_QUEUE
    failure_message = 'Failed to send WhatsApp cancellation notification'

    template_name = 'order_cancellation'
    success_message = 'Order cancellation workflow completed successfully'

    def template_parameters(self, order: dict[str, Any], customer: dict[str, Any]) -> list[str]:
        return [
            customer_name(customer),
            order_number(order),
            order_total(order),
            cancelled_items(order),
            str(order.get('cancel_reason') or 'Not specified'),
        ]

    async def settle(self, ctx: WorkflowContext) -> None:
        return None
