from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from flowflex.core.services.channel.schemas import ChannelConfig


class DirectoryProvider(str, Enum):
    """Where channel/template/catalogue lookups are served from."""

    HTTP = 'http'
    STATIC = 'static'


class MessageTemplate(BaseModel):
    """An approved WhatsApp template."""

    name: str
    language: str = 'en'
    template_id: str | None = Field(None, description='WhatsApp template ID')
    org_id: str | None = None
    branch_id: str | None = None


class CatalogueProduct(BaseModel):
    name: str = 'Product'
    price: str | None = None
    availability: str | None = None
    retailer_id: str | None = Field(None, description='SKU')


class Catalogue(BaseModel):
    catalogue_id: str
    products: list[CatalogueProduct] = Field(default_factory=list)


class SubscriptionUpdate(BaseModel):
    subscription_id: str
    notified: bool = True
    notified_at: datetime | None = None


class DirectorySeed(BaseModel):
    """Static directory contents, loaded from a JSON file in local setups."""

    channels: dict[str, ChannelConfig] = Field(default_factory=dict, description='org_id -> channel')
    templates: list[MessageTemplate] = Field(default_factory=list)
    catalogues: list[Catalogue] = Field(default_factory=list)
