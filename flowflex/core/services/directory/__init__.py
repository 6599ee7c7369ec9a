from flowflex.core.services.directory.base_service import DirectoryServiceInterface
from flowflex.core.services.directory.exceptions import DirectoryError, DirectoryResponseError
from flowflex.core.services.directory.schemas import (
    Catalogue,
    CatalogueProduct,
    DirectoryProvider,
    DirectorySeed,
    MessageTemplate,
)
from flowflex.core.services.directory.service import get_directory, get_directory_service

__all__ = [
    'Catalogue',
    'CatalogueProduct',
    'DirectoryError',
    'DirectoryProvider',
    'DirectoryResponseError',
    'DirectorySeed',
    'DirectoryServiceInterface',
    'MessageTemplate',
    'get_directory',
    'get_directory_service',
]
