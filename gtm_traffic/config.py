import json
from functools import lru_cache
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from gtm_traffic.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # EdgeGrid credentials for the reporting API (empty string means not configured)
    client_secret: str = ""
    host: str = ""  # e.g. akab-xxxx.luna.akamaiapis.net
    access_token: str = ""
    client_token: str = ""

    # Transport
    request_timeout_seconds: float = 15.0
    max_body: int = 131072  # largest request body the signer hashes

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="GTM_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()


class Credentials(BaseModel):
    """The four opaque EdgeGrid strings, as sent in the datasource JSON."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_secret: str = Field(alias="clientSecret", min_length=1)
    host: str = Field(min_length=1)
    access_token: str = Field(alias="accessToken", min_length=1)
    client_token: str = Field(alias="clientToken", min_length=1)

    def __repr__(self) -> str:
        return f"Credentials(host={self.host!r})"

    __str__ = __repr__

    @classmethod
    def decode(cls, raw: str | bytes | dict[str, Any]) -> "Credentials":
        """Decode a datasource settings payload. Raises ConfigurationError on any problem."""
        try:
            payload = json.loads(raw) if isinstance(raw, str | bytes) else raw
            return cls.model_validate(payload)
        except (ValueError, ValidationError) as e:
            # ValidationError text echoes the input, which holds secrets
            raise ConfigurationError("Failed to decode datasource settings") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "Credentials":
        return cls.decode(
            {
                "clientSecret": settings.client_secret,
                "host": settings.host,
                "accessToken": settings.access_token,
                "clientToken": settings.client_token,
            }
        )
