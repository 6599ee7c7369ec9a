from pathlib import Path

from flowflex.core.services.channel.schemas import ChannelConfig
from flowflex.core.services.directory.base_service import DirectoryServiceInterface
from flowflex.core.services.directory.schemas import Catalogue, DirectorySeed, MessageTemplate


class StaticDirectoryService(DirectoryServiceInterface):
    """In-memory directory for local runs and tests.

    Example:
        directory = StaticDirectoryService()
        directory.add_channel('org-1', ChannelConfig(channel_id='ch-1', phone_number_id='1555'))
        directory.add_template(MessageTemplate(name='order_confirmation'))
    """

    def __init__(self, seed: DirectorySeed | None = None) -> None:
        seed = seed or DirectorySeed()
        self._channels: dict[str, ChannelConfig] = dict(seed.channels)
        self._templates: list[MessageTemplate] = list(seed.templates)
        self._catalogues: dict[str, Catalogue] = {c.catalogue_id: c for c in seed.catalogues}
        self.notified_subscriptions: list[str] = []

    @classmethod
    def from_file(cls, path: str | Path) -> 'StaticDirectoryService':
        """Load a directory seed from a JSON file."""
        seed = DirectorySeed.model_validate_json(Path(path).read_text(encoding='utf-8'))
        return cls(seed)

    def add_channel(self, org_id: str, channel: ChannelConfig) -> None:
        self._channels[org_id] = channel

    def add_template(self, template: MessageTemplate) -> None:
        self._templates.append(template)

    def add_catalogue(self, catalogue: Catalogue) -> None:
        self._catalogues[catalogue.catalogue_id] = catalogue

    async def find_channel(self, org_id: str, branch_id: str | None = None) -> ChannelConfig | None:
        return self._channels.get(org_id)

    async def get_template(self, name: str, org_id: str, branch_id: str | None = None) -> MessageTemplate | None:
        # Most specific match wins: org+branch, then org, then a global template
        candidates = [t for t in self._templates if t.name == name]
        for template in candidates:
            if template.org_id == org_id and branch_id and template.branch_id == branch_id:
                return template
        for template in candidates:
            if template.org_id == org_id and template.branch_id is None:
                return template
        for template in candidates:
            if template.org_id is None:
                return template
        return None

    async def get_catalogue(self, catalogue_id: str, org_id: str) -> Catalogue | None:
        return self._catalogues.get(catalogue_id)

    async def mark_subscription_notified(self, subscription_id: str) -> None:
        self.notified_subscriptions.append(subscription_id)
