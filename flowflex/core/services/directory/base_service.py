from abc import ABC, abstractmethod

from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.schemas import Catalogue, MessageTemplate


class DirectoryServiceInterface(ABC):
    """Read-only view of channels, templates and catalogues.

    The only write is flagging a back-in-stock subscription as notified.
    """

    async def close(self) -> None:  # noqa: B027
        """Close any resources held by the service."""

    @abstractmethod
    async def find_channel(self, org_id: str, branch_id: str | None = None) -> ChannelConfig | None:
        """Return the active WhatsApp channel of an organisation, if any."""
        raise NotImplementedError

    @abstractmethod
    async def get_template(self, name: str, org_id: str, branch_id: str | None = None) -> MessageTemplate | None:
        """Return an approved template by name, if the organisation has one."""
        raise NotImplementedError

    @abstractmethod
    async def get_catalogue(self, catalogue_id: str, org_id: str) -> Catalogue | None:
        """Return a product catalogue, if known."""
        raise NotImplementedError

    @abstractmethod
    async def mark_subscription_notified(self, subscription_id: str) -> None:
        """Flag a back-in-stock subscription as notified."""
        raise NotImplementedError
