from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_ODATA_ROOT = "/sap/c4c/odata/v1/c4codataapi"


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "C4C Text Explorer"
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Upstream tenant and the default Basic Auth pair used when a request
    # does not carry its own credentials.
    C4C_TENANT_URL: str = Field(default="", validation_alias=AliasChoices("C4C_TENANT_URL", "C4C_BASE_URL"))
    C4C_USERNAME: str = ""
    C4C_PASSWORD: str = ""
    C4C_ODATA_ROOT: str = DEFAULT_ODATA_ROOT
    C4C_HTTP_TIMEOUT: float = 30.0

    @property
    def odata_root(self) -> str:
        root = (self.C4C_ODATA_ROOT or DEFAULT_ODATA_ROOT).strip()
        return "/" + root.strip("/")

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


settings = get_settings()
