from functools import lru_cache
import json
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Comma-separated in the environment; the validator below splits it.
CsvList = Annotated[list[str], NoDecode]


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except Exception:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )
    environment: str = Field(default="development", validation_alias=AliasChoices("ENVIRONMENT"))
    database_url: str = "sqlite:///./sales_assistant.db"
    auto_create_tables: bool = True

    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)
    expose_error_details: bool = False

    marketplace_api_url: str = Field(
        default="",
        validation_alias=AliasChoices("MARKETPLACE_API_URL", "NEXT_PUBLIC_API_URL"),
    )
    marketplace_timeout_seconds: float = 10.0

    auth_jwt_secret: str = ""
    auth_jwt_audience: str = ""
    auth_allowed_roles_raw: str = Field(
        default="CUSTOMER",
        validation_alias=AliasChoices("AUTH_ALLOWED_ROLES"),
    )

    enable_sales_assistant: bool = True
    enable_server_extraction: bool = True
    extraction_debounce_seconds: float = Field(
        default=1.5,
        validation_alias=AliasChoices("EXTRACTION_DEBOUNCE_SECONDS"),
    )
    catalog_cache_ttl_seconds: int = 300

    budget_min_amount: float = 1.0
    budget_max_amount: float = 100_000.0
    recommendation_limit: int = 3

    security_headers_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("SECURITY_HEADERS_ENABLED", "SECURE_HEADERS_ENABLED"),
    )

    cors_allow_origins: CsvList = Field(default_factory=list)
    cors_allow_methods: CsvList = Field(default_factory=lambda: [
        "GET",
        "POST",
        "PUT",
        "OPTIONS",
    ])
    cors_allow_headers: CsvList = Field(default_factory=lambda: [
        "Authorization",
        "Content-Type",
        "Accept",
    ])

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def auth_allowed_roles(self) -> list[str]:
        return [role.upper() for role in _parse_list_value(self.auth_allowed_roles_raw)]

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"production", "prod"}

    def validate_required_config(self) -> list[str]:
        """Return human-readable problems with the current configuration."""
        problems: list[str] = []
        if not self.auth_jwt_secret:
            problems.append("AUTH_JWT_SECRET is not set")
        if not self.marketplace_api_url:
            problems.append("MARKETPLACE_API_URL is not set (mock marketplace will be used)")
        if not self.database_url:
            problems.append("DATABASE_URL is not set")
        if self.budget_min_amount <= 0 or self.budget_max_amount <= self.budget_min_amount:
            problems.append("BUDGET_MIN_AMOUNT/BUDGET_MAX_AMOUNT must form a positive range")
        if self.extraction_debounce_seconds < 0:
            problems.append("EXTRACTION_DEBOUNCE_SECONDS must be >= 0")
        return problems

@lru_cache

def get_settings() -> Settings:
    return Settings()
