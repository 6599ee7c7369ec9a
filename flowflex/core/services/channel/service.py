from flowflex.core.configs import app_config
from flowflex.core.services.channel.base_service import ChannelServiceInterface
from flowflex.core.services.channel.schemas import ChannelProvider


def get_channel_service(provider: ChannelProvider | None = None) -> ChannelServiceInterface:
    """Factory function to get a channel service instance.

    Args:
        provider: BSP to use (default: CHANNEL_PROVIDER setting)

    Returns:
        ChannelServiceInterface implementation
    """
    if provider is None:
        provider = ChannelProvider(app_config.CHANNEL_PROVIDER)

    if provider == ChannelProvider.INTERAKT:
        from flowflex.core.services.channel.providers.interakt.service import InteraktChannelService

        return InteraktChannelService()
    if provider == ChannelProvider.GUPSHUP:
        from flowflex.core.services.channel.providers.gupshup.service import GupshupChannelService

        return GupshupChannelService()
    raise ValueError(f'Unsupported channel provider: {provider}')


class _ChannelServiceHolder:
    """Holder for singleton channel service instances, one per BSP."""

    instances: dict[ChannelProvider, ChannelServiceInterface] = {}


def get_channel(provider: ChannelProvider | None = None) -> ChannelServiceInterface:
    """Get the shared channel service for a BSP (singleton per provider)."""
    if provider is None:
        provider = ChannelProvider(app_config.CHANNEL_PROVIDER)

    if provider not in _ChannelServiceHolder.instances:
        _ChannelServiceHolder.instances[provider] = get_channel_service(provider)
    return _ChannelServiceHolder.instances[provider]
