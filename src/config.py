from __future__ import annotations

from decimal import Decimal
from functools import cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    pricing_api_url: str = "https://cloudapis.hilti.com/dus/graphql/v1"
    pricing_api_authorization: SecretStr | None = None
    pricing_client_name: str = "hdms-frontend"
    pricing_extra_headers: dict[str, str] = {}
    pricing_api_timeout: float = 10.0
    pricing_country: str = "US"
    pricing_language: str = "en"
    pricing_currency: str = "USD"
    pricing_max_retries: int = 2

    default_tax_rate: Decimal = Decimal("0")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
