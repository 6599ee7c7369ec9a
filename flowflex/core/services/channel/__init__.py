from flowflex.core.services.channel.base_service import ChannelServiceInterface
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
from flowflex.core.services.channel.service import get_channel, get_channel_service

__all__ = [
    'ChannelConfig',
    'ChannelError',
    'ChannelProvider',
    'ChannelResponseError',
    'ChannelServiceInterface',
    'ChannelTransportError',
    'MessageType',
    'OutboundMessage',
    'SendResult',
    'TemplateComponent',
    'TemplateParameter',
    'TemplatePayload',
    'get_channel',
    'get_channel_service',
]
