"""Mock marketplace: deterministic in-memory backend for local runs and tests."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from .base import MarketplaceBackend, MarketplaceError
from .contracts import (
    CatalogService,
    ChatExchange,
    ChatSession,
    ChatTurn,
    PriceRange,
    ProviderRecommendation,
    RecommendedProvider,
    SenderType,
    ServerExtraction,
)

DEFAULT_CATALOG = (
    CatalogService(id=1, name="Plumbing", category="Home Repair"),
    CatalogService(id=2, name="Electrical", category="Home Repair"),
    CatalogService(id=3, name="House Cleaning", category="Cleaning"),
    CatalogService(id=4, name="Deep Cleaning", category="Cleaning"),
    CatalogService(id=5, name="Painting", category="Home Improvement"),
    CatalogService(id=6, name="HVAC", category="Home Repair"),
    CatalogService(id=7, name="Landscaping", category="Outdoor"),
    CatalogService(id=8, name="Roofing", category="Home Improvement"),
    CatalogService(id=9, name="Flooring", category="Home Improvement"),
)

DEFAULT_PRICE_RANGES = {
    "plumbing": PriceRange(min=75, max=1500),
    "electrical": PriceRange(min=80, max=2000),
    "house cleaning": PriceRange(min=60, max=600),
    "deep cleaning": PriceRange(min=120, max=900),
    "painting": PriceRange(min=200, max=6000),
    "hvac": PriceRange(min=100, max=8000),
    "landscaping": PriceRange(min=50, max=5000),
    "roofing": PriceRange(min=300, max=20000),
    "flooring": PriceRange(min=250, max=12000),
}

MOCK_REPLY = "Thanks! Could you tell me your zip code, budget and any special requirements?"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MockMarketplace(MarketplaceBackend):
    name = "mock"

    def __init__(
        self,
        *,
        catalog: Optional[list[CatalogService]] = None,
        price_ranges: Optional[dict[str, PriceRange]] = None,
        extraction: Optional[ServerExtraction] = None,
    ) -> None:
        self.catalog = list(DEFAULT_CATALOG if catalog is None else catalog)
        self.price_ranges = dict(DEFAULT_PRICE_RANGES if price_ranges is None else price_ranges)
        self.extraction = extraction or ServerExtraction()
        self.sessions: dict[str, ChatSession] = {}
        self.active_session_id: Optional[str] = None

    def _require(self, session_id: str) -> ChatSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise MarketplaceError("Session not found", status_code=404)
        return session

    async def create_session(self) -> ChatSession:
        session_id = str(uuid.uuid4())
        session = ChatSession(id=session_id, session_id=session_id, created_at=_now())
        self.sessions[session_id] = session
        self.active_session_id = session_id
        return session

    async def get_active_session(self) -> Optional[ChatSession]:
        if not self.active_session_id:
            return None
        return self.sessions.get(self.active_session_id)

    async def get_session(self, session_id: str) -> ChatSession:
        return self._require(session_id)

    async def send_message(self, session_id: str, message: str) -> ChatExchange:
        session = self._require(session_id)
        if not session.is_active:
            raise MarketplaceError("Session has ended", status_code=409)
        user_turn = ChatTurn(id=str(uuid.uuid4()), sender_type=SenderType.USER, message=message, created_at=_now())
        ai_turn = ChatTurn(
            id=str(uuid.uuid4()), sender_type=SenderType.ASSISTANT, message=MOCK_REPLY, created_at=_now()
        )
        session.messages.extend([user_turn, ai_turn])
        return ChatExchange(user_message=user_turn, ai_message=ai_turn)

    async def extract_data(self, session_id: str) -> ServerExtraction:
        self._require(session_id)
        return self.extraction

    async def generate_summary(self, session_id: str) -> str:
        session = self._require(session_id)
        user_lines = [t.message for t in session.messages if t.is_user]
        summary = "Requirements: " + (" ".join(user_lines) if user_lines else "none")
        session.summary = summary
        return summary

    async def end_session(self, session_id: str) -> None:
        session = self._require(session_id)
        session.is_active = False
        if self.active_session_id == session_id:
            self.active_session_id = None

    async def recommend_providers(self, service: str, zipcode: str) -> ProviderRecommendation:
        provider = RecommendedProvider(
            id=1,
            business_name=f"{service} Pros",
            owner_name="Alex Morgan",
            rating=4.8,
            total_jobs=120,
            location=zipcode,
            service_areas=[zipcode],
            experience=8,
        )
        return ProviderRecommendation(providers=[provider], count=1, service=service, location=zipcode)

    async def list_services(self) -> list[CatalogService]:
        return list(self.catalog)

    async def get_service_price_range(self, service_name: str) -> Optional[PriceRange]:
        return self.price_ranges.get(service_name.strip().lower())
