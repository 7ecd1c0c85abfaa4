"""HTTP marketplace backend."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .base import MarketplaceBackend, MarketplaceError
from .contracts import (
    CatalogService,
    ChatExchange,
    ChatSession,
    PriceRange,
    ProviderRecommendation,
    ServerExtraction,
)

logger = logging.getLogger(__name__)


class HttpMarketplaceClient(MarketplaceBackend):
    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        access_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout_seconds = timeout_seconds
        # Injected in tests (httpx.MockTransport).
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        failure: str,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                resp = await client.request(method, url, headers=self._headers(), json=json, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Marketplace %s %s failed: %s", method, path, exc)
            raise MarketplaceError(failure) from exc

        if resp.status_code >= 400:
            message = _error_message(resp) or failure
            logger.warning("Marketplace %s %s returned %s: %s", method, path, resp.status_code, message)
            raise MarketplaceError(message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            body = resp.json()
        except ValueError as exc:
            raise MarketplaceError(failure, status_code=resp.status_code) from exc
        return _unwrap(body, failure)

    async def create_session(self) -> ChatSession:
        data = await self._request("POST", "/customer/ai-chat/sessions", failure="Failed to create session")
        return _parse(ChatSession, data, "Failed to create session")

    async def get_active_session(self) -> Optional[ChatSession]:
        try:
            data = await self._request(
                "GET", "/customer/ai-chat/sessions/active", failure="Failed to get active session"
            )
        except MarketplaceError as exc:
            # 404 means no active session
            if exc.status_code == 404:
                return None
            raise
        if not data:
            return None
        return _parse(ChatSession, data, "Failed to get active session")

    async def get_session(self, session_id: str) -> ChatSession:
        data = await self._request(
            "GET", f"/customer/ai-chat/sessions/{quote(session_id, safe='')}", failure="Failed to get session"
        )
        return _parse(ChatSession, data, "Failed to get session")

    async def send_message(self, session_id: str, message: str) -> ChatExchange:
        data = await self._request(
            "POST",
            f"/customer/ai-chat/sessions/{quote(session_id, safe='')}/messages",
            json={"message": message},
            failure="Failed to send message",
        )
        return _parse(ChatExchange, data, "Failed to send message")

    async def extract_data(self, session_id: str) -> ServerExtraction:
        data = await self._request(
            "POST",
            f"/customer/ai-chat/sessions/{quote(session_id, safe='')}/extract",
            failure="Failed to extract conversation data",
        )
        return _parse(ServerExtraction, data or {}, "Failed to extract conversation data")

    async def generate_summary(self, session_id: str) -> str:
        data = await self._request(
            "POST",
            f"/customer/ai-chat/sessions/{quote(session_id, safe='')}/summary",
            failure="Failed to generate summary",
        )
        if isinstance(data, dict):
            return str(data.get("summary") or "")
        return str(data or "")

    async def end_session(self, session_id: str) -> None:
        await self._request(
            "POST",
            f"/customer/ai-chat/sessions/{quote(session_id, safe='')}/end",
            failure="Failed to end session",
        )

    async def recommend_providers(self, service: str, zipcode: str) -> ProviderRecommendation:
        data = await self._request(
            "POST",
            "/customer/ai-chat/providers/recommend",
            json={"service": service, "zipcode": zipcode},
            failure="Failed to get recommended providers",
        )
        return _parse(ProviderRecommendation, data or {}, "Failed to get recommended providers")

    async def list_services(self) -> list[CatalogService]:
        data = await self._request("GET", "/admin/services", failure="Failed to fetch services")
        if not isinstance(data, list):
            return []
        services: list[CatalogService] = []
        for item in data:
            try:
                services.append(CatalogService.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed catalog entry: %r", item)
        return services

    async def get_service_price_range(self, service_name: str) -> Optional[PriceRange]:
        data = await self._request(
            "GET",
            "/homepage/services/price-range",
            params={"service": service_name},
            failure="Failed to fetch price range",
        )
        if not data:
            return None
        return _parse(PriceRange, data, "Failed to fetch price range")


def _unwrap(body: Any, failure: str) -> Any:
    """Unwrap the ``{success, data, error}`` envelope some endpoints use."""
    if isinstance(body, dict) and "success" in body and ("data" in body or "error" in body):
        if body.get("success"):
            return body.get("data")
        error = body.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise MarketplaceError(message or failure)
    return body


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    for key in ("message", "detail"):
        if isinstance(body.get(key), str):
            return body[key]
    return ""


def _parse(model, data: Any, failure: str):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Unexpected marketplace payload for %s: %s", model.__name__, exc)
        raise MarketplaceError(failure) from exc
