"""Catalogue messaging workflows.

CatalogueMessagingWorkflow sends one catalogue promotion to one customer,
either as a text listing of the products (default) or as a catalogue template.

CatalogueBroadcastWorkflow fans the same promotion out to many customers, one
CatalogueMessagingWorkflow child per recipient, each with its own idempotency
key (`catalogue-messaging-{broadcastId}-{phone}`).

message_config:
    {'type': 'interactive' | 'template', 'message'?, 'templateName'?,
     'templateLanguage'?, 'templateData'?, 'broadcastId'?}
"""

from typing import Any

from flowflex.activities import (
    FetchCatalogueInput,
    FetchCatalogueOutput,
    LookupChannelInput,
    LookupChannelOutput,
    SendCatalogueMessageInput,
    SendCatalogueTemplateInput,
    SendMessageOutput,
)
from flowflex.activities.messaging import DEFAULT_CATALOGUE_MESSAGE
from flowflex.core.services.directory.schemas import CatalogueProduct
from flowflex.runtime.context import WorkflowContext
from flowflex.runtime.errors import ValidationError
from flowflex.runtime.schemas import ChildWorkflow, RunMode, WorkflowResult, WorkflowType
from flowflex.runtime.task_queues import CATALOGUE_MESSAGING_QUEUE
from flowflex.workflows.base import WorkflowDefinition, entity_key, require_list, require_object


def _products(catalogue: dict[str, Any]) -> list[CatalogueProduct]:
    return [CatalogueProduct.model_validate(p) for p in catalogue.get('products') or [] if isinstance(p, dict)]


def _template_parameters(template_data: Any) -> list[str]:
    """Template body values: a list as-is, a mapping in insertion order."""
    if isinstance(template_data, dict):
        return [str(value) for value in template_data.values()]
    if isinstance(template_data, list):
        return [str(value) for value in template_data]
    return []


class CatalogueMessagingWorkflow(WorkflowDefinition):
    """Catalogue promotion to a single customer."""

    name = 'CatalogueMessagingWorkflow'
    workflow_type = WorkflowType.CATALOGUE_MESSAGING
    task_queue = CATALOGUE_MESSAGING_QUEUE
    failure_message = 'Failed to send catalogue message'

    def entity_id(
        self,
        customer: Any = None,
        catalogue: Any = None,
        org: Any = None,
        message_config: Any = None,
        *args: Any,
    ) -> str | None:
        phone = entity_key(customer, 'phone')
        scope = entity_key(message_config, 'broadcastId') or entity_key(catalogue, 'catalogueId')
        if not phone or not scope:
            return None
        return f'{scope}-{phone}'

    def validate(
        self,
        customer: Any = None,
        catalogue: Any = None,
        org: Any = None,
        message_config: Any = None,
        *args: Any,
    ) -> None:
        require_object(customer, 'customerData', 'phone')
        require_object(catalogue, 'catalogueData', 'catalogueId')
        require_object(org, 'orgData', 'orgId')
        if message_config is not None and not isinstance(message_config, dict):
            raise ValidationError('Invalid messageConfig: must be an object', error='Invalid messageConfig')
        if (message_config or {}).get('type') == 'template' and not message_config.get('templateName'):
            raise ValidationError(
                "Invalid messageConfig: template messages require a 'templateName' property",
                error='Invalid messageConfig',
            )

    async def execute(
        self,
        ctx: WorkflowContext,
        customer: dict[str, Any],
        catalogue: dict[str, Any],
        org: dict[str, Any],
        message_config: dict[str, Any] | None = None,
        *args: Any,
    ) -> WorkflowResult:
        config = message_config or {}
        message_type = config.get('type') or 'interactive'
        phone = str(customer['phone'])
        catalogue_id = str(catalogue['catalogueId'])
        org_id = str(org['orgId'])

        async with ctx.step('lookup_channel', 'Look up WhatsApp channel'):
            found: LookupChannelOutput = await ctx.execute_activity(
                'lookup_channel', LookupChannelInput(org_id=org_id, branch_id=entity_key(org, 'branchId'))
            )

        products = _products(catalogue)
        if not products and catalogue.get('products') is None:
            async with ctx.step('fetch_catalogue', 'Fetch catalogue products'):
                fetched: FetchCatalogueOutput = await ctx.execute_activity(
                    'fetch_catalogue', FetchCatalogueInput(catalogue_id=catalogue_id, org_id=org_id)
                )
            if fetched.catalogue is not None:
                products = fetched.catalogue.products

        async with ctx.step('send', 'Send catalogue message'):
            if message_type == 'template':
                sent: SendMessageOutput = await ctx.execute_activity(
                    'send_catalogue_template',
                    SendCatalogueTemplateInput(
                        to=phone,
                        channel=found.channel,
                        template_name=config['templateName'],
                        language=config.get('templateLanguage') or 'en',
                        catalogue_id=catalogue_id,
                        parameters=_template_parameters(config.get('templateData')),
                        thumbnail_product_retailer_id=next((p.retailer_id for p in products if p.retailer_id), None),
                        client_reference=ctx.client_reference('send'),
                    ),
                )
            else:
                sent = await ctx.execute_activity(
                    'send_catalogue_message',
                    SendCatalogueMessageInput(
                        to=phone,
                        channel=found.channel,
                        catalogue_id=catalogue_id,
                        message=config.get('message') or DEFAULT_CATALOGUE_MESSAGE,
                        products=products,
                        client_reference=ctx.client_reference('send'),
                    ),
                )

        return WorkflowResult.ok(
            'Catalogue message sent successfully',
            message_id=sent.message_id,
            data={
                'phone': phone,
                'catalogueId': catalogue_id,
                'type': message_type,
                'broadcastId': config.get('broadcastId'),
            },
        )


class CatalogueBroadcastWorkflow(WorkflowDefinition):
    """Catalogue promotion to many customers, one child workflow each."""

    name = 'CatalogueBroadcastWorkflow'
    workflow_type = WorkflowType.CATALOGUE_BROADCAST
    task_queue = CATALOGUE_MESSAGING_QUEUE
    default_mode = RunMode.ASYNC
    failure_message = 'Catalogue broadcast failed'

    def entity_id(
        self,
        recipients: Any = None,
        catalogue: Any = None,
        org: Any = None,
        message_config: Any = None,
        *args: Any,
    ) -> str | None:
        return entity_key(message_config, 'broadcastId')

    def validate(
        self,
        recipients: Any = None,
        catalogue: Any = None,
        org: Any = None,
        message_config: Any = None,
        *args: Any,
    ) -> None:
        require_list(recipients, 'recipients')
        require_object(catalogue, 'catalogueData', 'catalogueId')
        require_object(org, 'orgData', 'orgId')
        require_object(message_config, 'messageConfig', 'broadcastId')

    async def execute(
        self,
        ctx: WorkflowContext,
        recipients: list[Any],
        catalogue: dict[str, Any],
        org: dict[str, Any],
        message_config: dict[str, Any],
        *args: Any,
    ) -> WorkflowResult:
        children = []
        skipped = []
        seen: set[str] = set()
        for recipient in recipients:
            phone = entity_key(recipient, 'phone')
            if phone is None:
                skipped.append({'recipient': recipient, 'reason': 'No phone number'})
                continue
            if phone in seen:
                continue
            seen.add(phone)
            children.append(
                ChildWorkflow(
                    workflow_type=WorkflowType.CATALOGUE_MESSAGING,
                    args=(recipient, catalogue, org, message_config),
                    recipient_id=phone,
                )
            )

        async with ctx.step('fan_out', f'Send to {len(children)} recipients'):
            outcomes = await ctx.start_children(children)

        results = [
            {
                'phone': outcome.recipient_id,
                'workflowId': outcome.workflow_id,
                'success': outcome.result.success,
                'messageId': outcome.result.message_id,
                'error': outcome.result.error,
            }
            for outcome in outcomes
        ]
        success_count = sum(1 for r in results if r['success'])
        failure_count = len(results) - success_count

        return WorkflowResult(
            success=success_count > 0 or failure_count == 0,
            message=f'Catalogue broadcast processed: {success_count} sent, {failure_count} failed',
            error=None if success_count > 0 or failure_count == 0 else 'All recipients failed',
            data={
                'broadcastId': str(message_config['broadcastId']),
                'catalogueId': str(catalogue['catalogueId']),
                'total': len(recipients),
                'successCount': success_count,
                'failureCount': failure_count,
                'skippedCount': len(skipped),
                'results': results,
                'skipped': skipped,
            },
        )
