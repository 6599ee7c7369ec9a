from typing import Any, ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base settings loaded from the environment and an optional `.env` file.

    Subclasses list secret field names in `_default_secrets`; those are masked
    by `safe_dump()` so configs can be logged at startup.
    """

    _default_secrets: ClassVar[list[str]] = []

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    @staticmethod
    def _parse_list(value: Any) -> Any:
        """Accept comma separated strings for list fields (e.g. `stream,file`)."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(',') if item.strip()]
        return value

    def safe_dump(self) -> dict[str, Any]:
        """Dump settings with secret values masked."""
        data = self.model_dump()
        for key in self._default_secrets:
            if data.get(key):
                data[key] = '***'
        return data
