from flowflex.core.configs import app_config
from flowflex.core.services.directory.base_service import DirectoryServiceInterface
from flowflex.core.services.directory.schemas import DirectoryProvider


def get_directory_service(provider: DirectoryProvider | None = None) -> DirectoryServiceInterface:
    """Get a directory service instance.

    Args:
        provider: Explicit provider to use. If None, uses the HTTP directory when
            DIRECTORY_API_URL is configured and the static one otherwise.

    Returns:
        DirectoryServiceInterface implementation
    """
    if provider is None:
        provider = DirectoryProvider(app_config.directory_provider)

    if provider == DirectoryProvider.HTTP:
        from flowflex.core.services.directory.providers.http.service import HttpDirectoryService

        return HttpDirectoryService()

    if provider == DirectoryProvider.STATIC:
        from flowflex.core.services.directory.providers.static.service import StaticDirectoryService

        if app_config.DIRECTORY_STATIC_FILE:
            return StaticDirectoryService.from_file(app_config.DIRECTORY_STATIC_FILE)
        return StaticDirectoryService()

    raise ValueError(f'Unsupported directory provider: {provider}')


class _DirectoryServiceHolder:
    """Holder for singleton directory service instance."""

    instance: DirectoryServiceInterface | None = None


def get_directory() -> DirectoryServiceInterface:
    """Get the default directory service (singleton)."""
    if _DirectoryServiceHolder.instance is None:
        _DirectoryServiceHolder.instance = get_directory_service()
    return _DirectoryServiceHolder.instance
