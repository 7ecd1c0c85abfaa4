from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.services.assistant.contracts import CollectedFields
from app.services.assistant.session import ConversationState
from app.services.marketplace.contracts import CatalogService, ChatTurn, RecommendedProvider


class CollectedFieldsOut(BaseModel):
    service: Optional[str] = None
    budget: Optional[str] = None
    zipcode: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_fields(cls, fields: CollectedFields) -> "CollectedFieldsOut":
        return cls(**fields.model_dump())


class ChatTurnOut(BaseModel):
    id: str
    sender_type: str
    message: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_turn(cls, turn: ChatTurn) -> "ChatTurnOut":
        return cls(
            id=turn.id,
            sender_type=turn.sender_type.value,
            message=turn.message,
            created_at=turn.created_at,
        )


class SessionStateOut(BaseModel):
    session_id: str
    fields: CollectedFieldsOut
    locked_fields: List[str] = Field(default_factory=list)
    turn_count: int = 0
    complete: bool = False
    missing: List[str] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: ConversationState) -> "SessionStateOut":
        return cls(
            session_id=state.session_id,
            fields=CollectedFieldsOut.from_fields(state.fields),
            locked_fields=sorted(state.locked_fields),
            turn_count=state.turn_count,
            complete=state.is_complete(),
            missing=state.missing(),
        )


class SessionOut(BaseModel):
    session: SessionStateOut
    messages: List[ChatTurnOut] = Field(default_factory=list)
    is_active: bool = True


class MessageIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class MessageOut(BaseModel):
    session: SessionStateOut
    user_message: ChatTurnOut
    reply: ChatTurnOut
    source: str


class FieldEditIn(BaseModel):
    value: Optional[str] = Field(default=None, max_length=2000)


class ServiceSelectIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class CompletenessOut(BaseModel):
    complete: bool
    missing: List[str] = Field(default_factory=list)
    missing_labels: List[str] = Field(default_factory=list)
    fields: CollectedFieldsOut


class SummaryLineOut(BaseModel):
    label: str
    value: str


class ProviderOut(BaseModel):
    id: int
    business_name: Optional[str] = None
    owner_name: str = ""
    rating: float = 0.0
    total_jobs: int = 0
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    location: str = ""
    service_areas: List[str] = Field(default_factory=list)
    experience: int = 0
    slug: Optional[str] = None

    @classmethod
    def from_provider(cls, provider: RecommendedProvider) -> "ProviderOut":
        return cls(**provider.model_dump())


class FinishOut(BaseModel):
    session: SessionStateOut
    summary: str
    summary_lines: List[SummaryLineOut] = Field(default_factory=list)
    providers: List[ProviderOut] = Field(default_factory=list)
    message: Optional[str] = None


class CatalogServiceOut(BaseModel):
    id: int
    name: str
    category: str = ""
    description: str = ""

    @classmethod
    def from_service(cls, service: CatalogService) -> "CatalogServiceOut":
        return cls(**service.model_dump())


class ServiceMatchResponse(BaseModel):
    keyword: str
    items: List[CatalogServiceOut] = Field(default_factory=list)
