from flowflex.core.configs import app_config
from flowflex.core.services.channel.providers.common import CloudApiChannelService
from flowflex.core.services.channel.schemas import ChannelConfig, ChannelProvider


class InteraktChannelService(CloudApiChannelService):
    """Interakt BSP: Cloud API proxy authenticated with a partner token."""

    provider = ChannelProvider.INTERAKT

    def __init__(self) -> None:
        if not app_config.INTERAKT_TOKEN:
            raise ValueError('INTERAKT_TOKEN is not set. Please set it in your environment or .env file.')
        self._token: str = app_config.INTERAKT_TOKEN
        super().__init__(app_config.INTERAKT_API_URL)

    def _endpoint(self, channel: ChannelConfig) -> str:
        return f'/{channel.phone_number_id}/messages'

    def _headers(self, channel: ChannelConfig) -> dict[str, str]:
        headers = {'x-access-token': self._token}
        if channel.waba_id:
            headers['x-waba-id'] = channel.waba_id
        return headers
