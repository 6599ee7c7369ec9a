"""Back-in-stock workflows.

BackInStockWorkflow runs when variants of a product are restocked and fans
out one BackInStockNotificationWorkflow child per subscription. Each child
sends the `back_in_stock_notification` template and flags its subscription as
notified, independently of its siblings.

Arguments:
    product:       {'id', 'title', 'handle'?}
    variants:      [{'id', 'variant_title'}, ...] back in stock
    subscriptions: [{'_id' | 'id', 'customer_phone', 'customer_name'?}, ...]
    org:           {'orgId', 'branchId'?, 'shopDomain'?}
    options:       {'restockId'?} optional; a restock ID scopes the idempotency keys to that
                   restock, so the same variants can be announced again next time
"""

from typing import Any

from flowflex.activities import (
    FetchTemplateInput,
    FetchTemplateOutput,
    LookupChannelInput,
    LookupChannelOutput,
    MarkSubscriptionNotifiedInput,
    SendMessageOutput,
    SendTemplateMessageInput,
)
from flowflex.runtime.context import WorkflowContext
from flowflex.runtime.errors import ActivityError, ValidationError
from flowflex.runtime.schemas import ChildWorkflow, WorkflowResult, WorkflowType
from flowflex.runtime.task_queues import BACK_IN_STOCK_QUEUE
from flowflex.workflows.base import WorkflowDefinition, entity_key, require_list, require_object

TEMPLATE_NAME = 'back_in_stock_notification'


def subscription_id(subscription: Any) -> str | None:
    return entity_key(subscription, '_id') or entity_key(subscription, 'id')


def product_link(product: dict[str, Any], org: dict[str, Any]) -> str:
    path = product.get('handle') or product['id']
    domain = org.get('shopDomain')
    if not domain:
        return f'/products/{path}'
    return f'https://{domain}/products/{path}'


def variant_info(variants: list[Any]) -> str:
    titles = [str(v.get('variant_title') or v.get('title')) for v in variants if isinstance(v, dict)]
    titles = [t for t in titles if t and t != 'None']
    return ', '.join(titles) or 'Multiple variants'


def _scoped(key: str, options: Any) -> str:
    restock_id = entity_key(options, 'restockId')
    return f'{key}-{restock_id}' if restock_id else key


def _require_options(options: Any) -> None:
    if options is not None and not isinstance(options, dict):
        raise ValidationError('Invalid options: must be an object', error='Invalid options')


def _variant_ids(variants: Any) -> list[str]:
    if not isinstance(variants, list):
        return []
    return sorted(key for key in (entity_key(v, 'id') for v in variants) if key)


class BackInStockWorkflow(WorkflowDefinition):
    """Restock event -> one notification child per subscription."""

    name = 'BackInStockWorkflow'
    workflow_type = WorkflowType.BACK_IN_STOCK
    task_queue = BACK_IN_STOCK_QUEUE
    failure_message = 'Failed to send back-in-stock notifications'

    def entity_id(
        self,
        product: Any = None,
        variants: Any = None,
        subscriptions: Any = None,
        org: Any = None,
        options: Any = None,
        *args: Any,
    ) -> str | None:
        product_id = entity_key(product, 'id')
        if product_id is None:
            return None
        variant_ids = _variant_ids(variants)
        return _scoped(f'{product_id}-{"_".join(variant_ids)}' if variant_ids else product_id, options)

    def validate(
        self,
        product: Any = None,
        variants: Any = None,
        subscriptions: Any = None,
        org: Any = None,
        options: Any = None,
        *args: Any,
    ) -> None:
        require_object(product, 'productData', 'id')
        require_list(variants, 'backInStockVariants')
        if not isinstance(subscriptions, list) or not subscriptions:
            raise ValidationError('No subscriptions found for this product', error='No subscriptions')
        require_object(org, 'orgData', 'orgId')
        _require_options(options)

    async def execute(
        self,
        ctx: WorkflowContext,
        product: dict[str, Any],
        variants: list[Any],
        subscriptions: list[Any],
        org: dict[str, Any],
        options: dict[str, Any] | None = None,
        *args: Any,
    ) -> WorkflowResult:
        children = []
        skipped = []
        for subscription in subscriptions:
            sub_id = subscription_id(subscription)
            if not entity_key(subscription, 'customer_phone') or sub_id is None:
                ctx.logger.warning(f'{ctx.workflow_id}: skipping subscription {sub_id} - no phone number')
                skipped.append({'subscriptionId': sub_id, 'reason': 'No phone number'})
                continue
            children.append(
                ChildWorkflow(
                    workflow_type=WorkflowType.BACK_IN_STOCK_NOTIFICATION,
                    args=(product, variants, subscription, org, options),
                    recipient_id=sub_id,
                )
            )

        async with ctx.step('fan_out', f'Notify {len(children)} subscribers'):
            outcomes = await ctx.start_children(children)

        results = [
            {
                'subscriptionId': outcome.recipient_id,
                'customerPhone': (outcome.result.data or {}).get('customerPhone'),
                'workflowId': outcome.workflow_id,
                'success': outcome.result.success,
                'messageId': outcome.result.message_id,
                'error': outcome.result.error,
            }
            for outcome in outcomes
        ]
        success_count = sum(1 for r in results if r['success'])
        failure_count = len(results) - success_count
        succeeded = success_count > 0 or failure_count == 0

        return WorkflowResult(
            success=succeeded,
            message=f'Back-in-stock notifications processed: {success_count} sent, {failure_count} failed',
            error=None if succeeded else 'All notifications failed',
            data={
                'productId': str(product['id']),
                'productTitle': product.get('title'),
                'variantsBackInStock': len(variants),
                'totalSubscriptions': len(subscriptions),
                'successCount': success_count,
                'failureCount': failure_count,
                'skippedCount': len(skipped),
                'results': results,
                'skipped': skipped,
            },
        )


class BackInStockNotificationWorkflow(WorkflowDefinition):
    """One back-in-stock message to one subscriber."""

    name = 'BackInStockNotificationWorkflow'
    workflow_type = WorkflowType.BACK_IN_STOCK_NOTIFICATION
    task_queue = BACK_IN_STOCK_QUEUE
    failure_message = 'Failed to send back-in-stock notification'

    def entity_id(
        self,
        product: Any = None,
        variants: Any = None,
        subscription: Any = None,
        org: Any = None,
        options: Any = None,
        *args: Any,
    ) -> str | None:
        product_id = entity_key(product, 'id')
        sub_id = subscription_id(subscription)
        if product_id is None or sub_id is None:
            return None
        return _scoped(f'{product_id}-{sub_id}', options)

    def validate(
        self,
        product: Any = None,
        variants: Any = None,
        subscription: Any = None,
        org: Any = None,
        options: Any = None,
        *args: Any,
    ) -> None:
        require_object(product, 'productData', 'id')
        require_list(variants, 'backInStockVariants')
        require_object(subscription, 'subscription', 'customer_phone')
        if subscription_id(subscription) is None:
            raise ValidationError("Invalid subscription: must have an '_id' property", error='Invalid subscription')
        require_object(org, 'orgData', 'orgId')
        _require_options(options)

    async def execute(
        self,
        ctx: WorkflowContext,
        product: dict[str, Any],
        variants: list[Any],
        subscription: dict[str, Any],
        org: dict[str, Any],
        *args: Any,
    ) -> WorkflowResult:
        org_id = str(org['orgId'])
        branch_id = entity_key(org, 'branchId')
        sub_id = subscription_id(subscription)
        assert sub_id is not None
        phone = str(subscription['customer_phone'])

        async with ctx.step('lookup_channel', 'Look up WhatsApp channel'):
            found: LookupChannelOutput = await ctx.execute_activity(
                'lookup_channel', LookupChannelInput(org_id=org_id, branch_id=branch_id)
            )

        async with ctx.step('fetch_template', 'Fetch message template'):
            fetched: FetchTemplateOutput = await ctx.execute_activity(
                'fetch_template', FetchTemplateInput(name=TEMPLATE_NAME, org_id=org_id, branch_id=branch_id)
            )

        async with ctx.step('send', 'Send back-in-stock message'):
            sent: SendMessageOutput = await ctx.execute_activity(
                'send_template_message',
                SendTemplateMessageInput(
                    to=phone,
                    channel=found.channel,
                    template_name=fetched.template.name,
                    language=fetched.template.language,
                    parameters=[
                        str(subscription.get('customer_name') or 'Customer'),
                        str(product.get('title') or 'Product'),
                        product_link(product, org),
                        variant_info(variants),
                    ],
                    client_reference=ctx.client_reference('send'),
                ),
            )

        data: dict[str, Any] = {
            'productId': str(product['id']),
            'subscriptionId': sub_id,
            'customerPhone': phone,
            'channelId': sent.channel_id,
            'notified': True,
        }

        # The message is out; a failed status update must not fail the notification
        try:
            async with ctx.step('mark_notified', 'Mark subscription notified'):
                await ctx.execute_activity(
                    'mark_subscription_notified', MarkSubscriptionNotifiedInput(subscription_id=sub_id)
                )
        except ActivityError as e:
            data['notified'] = False
            data['warning'] = f'Subscription status not updated: {e.message}'

        return WorkflowResult.ok(
            f'Back-in-stock notification sent to {phone}',
            message_id=sent.message_id,
            data=data,
        )
