from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChannelProvider(str, Enum):
    """Supported WhatsApp Business Service Providers."""

    INTERAKT = 'interakt'
    GUPSHUP = 'gupshup'


class MessageType(str, Enum):
    """WhatsApp message types sent by this service."""

    TEXT = 'text'
    TEMPLATE = 'template'
    INTERACTIVE = 'interactive'


class ChannelConfig(BaseModel):
    """A WhatsApp channel owned by an organisation."""

    channel_id: str = Field(description='Channel identifier in the directory')
    bsp: ChannelProvider = Field(ChannelProvider.INTERAKT, description='BSP that fronts this channel')
    waba_id: str | None = Field(None, description='WhatsApp Business Account ID')
    phone_number_id: str = Field(description='Sender phone number ID')
    app_id: str | None = Field(None, description='BSP app ID (Gupshup)')
    app_token: str | None = Field(None, description='BSP app token (Gupshup)')


class TemplateParameter(BaseModel):
    type: str = 'text'
    text: str | None = None
    action: dict[str, Any] | None = Field(None, description='Button action, e.g. catalogue thumbnail')


class TemplateComponent(BaseModel):
    type: str = Field('body', description='Component type: header, body, button')
    sub_type: str | None = Field(None, description='Button sub-type, e.g. CATALOG')
    index: str | None = None
    parameters: list[TemplateParameter] = Field(default_factory=list)


class TemplatePayload(BaseModel):
    """Template reference plus the values for its placeholders."""

    name: str
    language: str = 'en'
    components: list[TemplateComponent] = Field(default_factory=list)


class OutboundMessage(BaseModel):
    """A single message to one recipient."""

    to: str = Field(description='Recipient phone number in E.164 format')
    message_type: MessageType
    text: str | None = None
    template: TemplatePayload | None = None
    interactive: dict[str, Any] | None = None
    client_reference: str | None = Field(
        None,
        description='Deterministic reference echoed by the BSP; lets retried sends be deduplicated remotely',
    )

    def to_payload(self) -> dict[str, Any]:
        """Render the Cloud API message payload accepted by both BSPs."""
        payload: dict[str, Any] = {
            'messaging_product': 'whatsapp',
            'recipient_type': 'individual',
            'to': self.to,
            'type': self.message_type.value,
        }

        if self.message_type == MessageType.TEXT:
            payload['text'] = {'preview_url': True, 'body': self.text or ''}
        elif self.message_type == MessageType.TEMPLATE:
            if self.template is None:
                raise ValueError('Template messages require a template payload')
            payload['template'] = {
                'name': self.template.name,
                'language': {'code': self.template.language},
                'components': [component.model_dump(exclude_none=True) for component in self.template.components],
            }
        elif self.message_type == MessageType.INTERACTIVE:
            if self.interactive is None:
                raise ValueError('Interactive messages require an interactive payload')
            payload['interactive'] = self.interactive

        if self.client_reference:
            payload['biz_opaque_callback_data'] = self.client_reference

        return payload


class SendResult(BaseModel):
    """Outcome of a successful send."""

    message_id: str = Field(description='BSP/WhatsApp message ID')
    provider: ChannelProvider
    to: str
    raw: dict[str, Any] = Field(default_factory=dict, description='Raw provider response')
