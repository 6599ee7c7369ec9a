"""Messaging activities: sends through the WhatsApp BSP.

Every send carries a deterministic `client_reference` (`{workflow_id}:{step}`).
Retried attempts reuse it, so the BSP can drop duplicates on its side.

Channel errors are classified here:
- transport failures, timeouts, 5xx, 408 and 429 -> ActivityTransientError
- any other 4xx and unusable 2xx responses -> ActivityFatalError
"""

import logging

from pydantic import BaseModel, Field

from flowflex.core.services.channel.exceptions import ChannelError, ChannelResponseError, ChannelTransportError
from flowflex.core.services.channel.schemas import (
    ChannelConfig,
    ChannelProvider,
    MessageType,
    OutboundMessage,
    SendResult,
    TemplateComponent,
    TemplateParameter,
    TemplatePayload,
)
from flowflex.core.services.channel.service import get_channel
from flowflex.core.services.directory.schemas import CatalogueProduct
from flowflex.runtime.errors import ActivityError, ActivityFatalError, ActivityTransientError

logger = logging.getLogger('activities.messaging')

DEFAULT_CATALOGUE_MESSAGE = 'Check out our latest products!'
CATALOGUE_LINK = 'https://www.facebook.com/commerce/products/?catalog_id={catalogue_id}'


def classify_channel_error(error: ChannelError) -> ActivityError:
    """Map a channel failure onto the activity error taxonomy."""
    details = {'status_code': error.status_code, 'detail': error.detail}
    if isinstance(error, ChannelTransportError):
        return ActivityTransientError(str(error), details=details)
    if isinstance(error, ChannelResponseError):
        return ActivityFatalError(str(error), details=details)

    status = error.status_code
    if status is None or status >= 500 or status in (408, 429):
        return ActivityTransientError(str(error), details=details)
    return ActivityFatalError(str(error), details=details)


async def _send(message: OutboundMessage, channel: ChannelConfig) -> SendResult:
    try:
        return await get_channel(channel.bsp).send(message, channel)
    except ChannelError as e:
        raise classify_channel_error(e) from e
    except ValueError as e:
        # Unrenderable message or misconfigured channel
        raise ActivityFatalError(str(e)) from e


class SendMessageOutput(BaseModel):
    """Output of every send activity."""

    message_id: str = Field(..., description='WhatsApp message ID returned by the BSP')
    provider: ChannelProvider
    to: str
    channel_id: str

    @classmethod
    def from_result(cls, result: SendResult, channel: ChannelConfig) -> 'SendMessageOutput':
        return cls(message_id=result.message_id, provider=result.provider, to=result.to, channel_id=channel.channel_id)


# =============================================================================
# Template messages
# =============================================================================


class SendTemplateMessageInput(BaseModel):
    """Input for template message activity."""

    to: str = Field(..., description='Recipient phone number')
    channel: ChannelConfig
    template_name: str
    language: str = Field('en', description='Template language code')
    parameters: list[str] = Field(default_factory=list, description='Body placeholder values, in order')
    client_reference: str | None = None


async def send_template_message(input: SendTemplateMessageInput) -> SendMessageOutput:
    """Send an approved template with body parameters."""
    components = []
    if input.parameters:
        components.append(
            TemplateComponent(type='body', parameters=[TemplateParameter(text=value) for value in input.parameters])
        )

    message = OutboundMessage(
        to=input.to,
        message_type=MessageType.TEMPLATE,
        template=TemplatePayload(name=input.template_name, language=input.language, components=components),
        client_reference=input.client_reference,
    )
    result = await _send(message, input.channel)
    logger.info(f'Template {input.template_name} sent to {input.to}: {result.message_id}')
    return SendMessageOutput.from_result(result, input.channel)


# =============================================================================
# Catalogue messages
# =============================================================================


def render_catalogue_text(message: str, catalogue_id: str, products: list[CatalogueProduct]) -> str:
    """Text body listing catalogue products, or a catalogue link when there are none."""
    body = f'🛍️ {message}\n\n📦 *Our Latest Products:*\n\n'
    if not products:
        return body + f'📦 Browse our products: {CATALOGUE_LINK.format(catalogue_id=catalogue_id)}'

    for number, product in enumerate(products, start=1):
        body += f'{number}. *{product.name}*\n'
        if product.price:
            body += f'   💰 Price: {product.price}\n'
        if product.availability:
            body += f'   📦 Status: {product.availability}\n'
        if product.retailer_id:
            body += f'   🏷️ SKU: {product.retailer_id}\n'
        body += '\n'
    return body + '💬 Reply with the product number to order!'


class SendCatalogueMessageInput(BaseModel):
    """Input for catalogue text message activity."""

    to: str
    channel: ChannelConfig
    catalogue_id: str
    message: str = DEFAULT_CATALOGUE_MESSAGE
    products: list[CatalogueProduct] = Field(default_factory=list)
    client_reference: str | None = None


async def send_catalogue_message(input: SendCatalogueMessageInput) -> SendMessageOutput:
    """Send the catalogue as a text listing (or link)."""
    message = OutboundMessage(
        to=input.to,
        message_type=MessageType.TEXT,
        text=render_catalogue_text(input.message, input.catalogue_id, input.products),
        client_reference=input.client_reference,
    )
    result = await _send(message, input.channel)
    logger.info(f'Catalogue {input.catalogue_id} sent to {input.to}: {result.message_id}')
    return SendMessageOutput.from_result(result, input.channel)


class SendCatalogueTemplateInput(BaseModel):
    """Input for catalogue template activity."""

    to: str
    channel: ChannelConfig
    template_name: str
    language: str = 'en'
    catalogue_id: str
    parameters: list[str] = Field(default_factory=list)
    thumbnail_product_retailer_id: str | None = Field(
        None, description='Product shown as the catalogue button thumbnail'
    )
    client_reference: str | None = None


async def send_catalogue_template(input: SendCatalogueTemplateInput) -> SendMessageOutput:
    """Send a catalogue template (body parameters plus a CATALOG button)."""
    components = []
    if input.parameters:
        components.append(
            TemplateComponent(type='body', parameters=[TemplateParameter(text=value) for value in input.parameters])
        )
    if input.thumbnail_product_retailer_id:
        components.append(
            TemplateComponent(
                type='button',
                sub_type='CATALOG',
                index='0',
                parameters=[
                    TemplateParameter(
                        type='action',
                        action={'thumbnail_product_retailer_id': input.thumbnail_product_retailer_id},
                    )
                ],
            )
        )

    message = OutboundMessage(
        to=input.to,
        message_type=MessageType.TEMPLATE,
        template=TemplatePayload(name=input.template_name, language=input.language, components=components),
        client_reference=input.client_reference,
    )
    result = await _send(message, input.channel)
    logger.info(f'Catalogue template {input.template_name} ({input.catalogue_id}) sent to {input.to}')
    return SendMessageOutput.from_result(result, input.channel)
