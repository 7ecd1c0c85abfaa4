"""Marketplace backend contracts: chat sessions, catalog, pricing, recommendations.

The remote backend speaks camelCase JSON; every model accepts both the
wire alias and the Python field name.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SenderType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatTurn(_WireModel):
    """One transcript turn as returned by the session transport."""

    id: str = ""
    sender_type: SenderType = Field(validation_alias="senderType", serialization_alias="senderType")
    message: str = ""
    created_at: Optional[datetime] = Field(
        default=None, validation_alias="createdAt", serialization_alias="createdAt"
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def is_user(self) -> bool:
        return self.sender_type == SenderType.USER


class ChatSession(_WireModel):
    id: str = ""
    session_id: str = Field(validation_alias="sessionId", serialization_alias="sessionId")
    summary: Optional[str] = None
    is_active: bool = Field(default=True, validation_alias="isActive", serialization_alias="isActive")
    created_at: Optional[datetime] = Field(
        default=None, validation_alias="createdAt", serialization_alias="createdAt"
    )
    messages: list[ChatTurn] = Field(default_factory=list)

    @field_validator("id", "session_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("messages", mode="before")
    @classmethod
    def _null_messages(cls, v: Any) -> Any:
        return v or []


class ChatExchange(_WireModel):
    """Result of sending one user message: the stored user turn and the AI reply."""

    user_message: ChatTurn = Field(validation_alias="userMessage", serialization_alias="userMessage")
    ai_message: ChatTurn = Field(validation_alias="aiMessage", serialization_alias="aiMessage")


class CatalogService(_WireModel):
    id: int
    name: str
    category: str = ""
    description: str = ""

    @field_validator("category", "description", mode="before")
    @classmethod
    def _null_to_empty(cls, v: Any) -> str:
        return v or ""


class PriceRange(_WireModel):
    min: float = 0.0
    max: float

    @model_validator(mode="after")
    def _ordered(self):
        if self.max < self.min:
            msg = f"Price range max ({self.max}) is below min ({self.min})"
            raise ValueError(msg)
        return self


_EXTRACTION_FIELDS = ("service", "budget", "zipcode", "requirements")


class ServerExtraction(_WireModel):
    """Best-effort structured guess of the collected fields over the full transcript."""

    service: Optional[str] = None
    budget: Optional[str] = None
    zipcode: Optional[str] = None
    requirements: Optional[str] = None

    @field_validator(*_EXTRACTION_FIELDS, mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    def to_partial(self) -> dict[str, str]:
        """Only the fields the extractor actually found."""
        result: dict[str, str] = {}
        for field_name in _EXTRACTION_FIELDS:
            value = getattr(self, field_name)
            if value:
                result[field_name] = value
        return result


class RecommendedProvider(_WireModel):
    id: int
    business_name: Optional[str] = Field(
        default=None, validation_alias="businessName", serialization_alias="businessName"
    )
    owner_name: str = Field(default="", validation_alias="ownerName", serialization_alias="ownerName")
    rating: float = 0.0
    total_jobs: int = Field(default=0, validation_alias="totalJobs", serialization_alias="totalJobs")
    min_price: Optional[float] = Field(default=None, validation_alias="minPrice", serialization_alias="minPrice")
    max_price: Optional[float] = Field(default=None, validation_alias="maxPrice", serialization_alias="maxPrice")
    location: str = ""
    service_areas: list[str] = Field(
        default_factory=list, validation_alias="serviceAreas", serialization_alias="serviceAreas"
    )
    experience: int = 0
    slug: Optional[str] = None


class ProviderRecommendation(_WireModel):
    providers: list[RecommendedProvider] = Field(default_factory=list)
    count: int = 0
    service: str = ""
    location: str = ""
