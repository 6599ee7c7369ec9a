from flowflex.core.configs import app_config
from flowflex.core.services.channel.providers.common import CloudApiChannelService
from flowflex.core.services.channel.schemas import ChannelConfig, ChannelProvider


class GupshupChannelService(CloudApiChannelService):
    """Gupshup partner API. Credentials are per app and live on the channel."""

    provider = ChannelProvider.GUPSHUP

    def __init__(self) -> None:
        super().__init__(app_config.GUPSHUP_PARTNER_API)

    def _endpoint(self, channel: ChannelConfig) -> str:
        if not channel.app_id:
            raise ValueError(f'Channel {channel.channel_id} has no Gupshup app_id')
        return f'/partner/app/{channel.app_id}/v3/message'

    def _headers(self, channel: ChannelConfig) -> dict[str, str]:
        token = channel.app_token or app_config.GUPSHUP_TOKEN
        if not token:
            raise ValueError(f'Channel {channel.channel_id} has no Gupshup token')
        return {'Authorization': token}
