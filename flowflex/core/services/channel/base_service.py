from abc import ABC, abstractmethod

from flowflex.core.services.channel.schemas import ChannelConfig, OutboundMessage, SendResult


class ChannelServiceInterface(ABC):
    """Interface for the channel-messaging gateway."""

    async def close(self) -> None:  # noqa: B027
        """Close any resources held by the service.

        Override in implementations that need cleanup.
        """

    @abstractmethod
    async def send(self, message: OutboundMessage, channel: ChannelConfig) -> SendResult:
        """Send a message through the given channel.

        Args:
            message: Message to deliver
            channel: Channel (sender number, BSP credentials) to deliver through

        Returns:
            SendResult with the provider message ID

        Raises:
            ChannelError: On HTTP errors, transport failures or unusable responses
        """
        raise NotImplementedError
