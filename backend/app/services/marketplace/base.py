"""Abstract base for the remote marketplace backend."""

from __future__ import annotations

import abc
from typing import Optional

from .contracts import (
    CatalogService,
    ChatExchange,
    ChatSession,
    PriceRange,
    ProviderRecommendation,
    ServerExtraction,
)


class MarketplaceError(Exception):
    """A collaborator call failed; ``message`` is safe to show to the customer."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MarketplaceBackend(abc.ABC):
    """Contract every marketplace backend must implement."""

    name: str = "base"

    @abc.abstractmethod
    async def create_session(self) -> ChatSession:
        """Open a new assistant chat session."""

    @abc.abstractmethod
    async def get_active_session(self) -> Optional[ChatSession]:
        """Return the customer's active session with its transcript, or ``None``."""

    @abc.abstractmethod
    async def get_session(self, session_id: str) -> ChatSession:
        """Return a session by id with its transcript."""

    @abc.abstractmethod
    async def send_message(self, session_id: str, message: str) -> ChatExchange:
        """Append a user turn and return it together with the assistant reply."""

    @abc.abstractmethod
    async def extract_data(self, session_id: str) -> ServerExtraction:
        """Server-side best-effort extraction over the full transcript."""

    @abc.abstractmethod
    async def generate_summary(self, session_id: str) -> str:
        """Summarize the conversation for provider handoff."""

    @abc.abstractmethod
    async def end_session(self, session_id: str) -> None:
        """Close a session."""

    @abc.abstractmethod
    async def recommend_providers(self, service: str, zipcode: str) -> ProviderRecommendation:
        """Top providers for *service* near *zipcode*."""

    @abc.abstractmethod
    async def list_services(self) -> list[CatalogService]:
        """The catalog of bookable services."""

    @abc.abstractmethod
    async def get_service_price_range(self, service_name: str) -> Optional[PriceRange]:
        """Plausible price range for *service_name*, ``None`` when unknown."""
