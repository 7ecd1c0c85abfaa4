"""HTTP marketplace client and catalog cache, driven through httpx.MockTransport."""

import json

import httpx
import pytest

from app.services.marketplace import MockMarketplace, get_marketplace_backend
from app.services.marketplace.base import MarketplaceError
from app.services.marketplace.catalog import CatalogCache
from app.services.marketplace.contracts import PriceRange, SenderType
from app.services.marketplace.http import HttpMarketplaceClient

BASE = "https://api.example.test/api"


def _client(handler, token="tok-123"):
    return HttpMarketplaceClient(BASE, access_token=token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_message_posts_body_and_parses_camel_case():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "userMessage": {"id": 10, "senderType": "user", "message": "zip 75001", "createdAt": None},
                    "aiMessage": {"id": 11, "senderType": "assistant", "message": "Thanks!"},
                },
            },
        )

    exchange = await _client(handler).send_message("abc", "zip 75001")

    assert seen == {
        "method": "POST",
        "path": "/api/customer/ai-chat/sessions/abc/messages",
        "auth": "Bearer tok-123",
        "body": {"message": "zip 75001"},
    }
    assert exchange.user_message.id == "10"
    assert exchange.user_message.sender_type is SenderType.USER
    assert exchange.ai_message.message == "Thanks!"


@pytest.mark.asyncio
async def test_active_session_404_means_none():
    def handler(request):
        return httpx.Response(404, json={"message": "No active session"})

    assert await _client(handler).get_active_session() is None


@pytest.mark.asyncio
async def test_get_session_parses_messages():
    def handler(request):
        assert request.url.path == "/api/customer/ai-chat/sessions/s-1"
        return httpx.Response(
            200,
            json={
                "id": 5,
                "sessionId": "s-1",
                "isActive": True,
                "messages": [{"id": 1, "senderType": "user", "message": "Plumbing"}],
            },
        )

    session = await _client(handler).get_session("s-1")
    assert session.session_id == "s-1"
    assert session.messages[0].is_user


@pytest.mark.asyncio
async def test_error_envelope_message_surfaces():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": {"message": "Session has ended"}})

    with pytest.raises(MarketplaceError) as exc:
        await _client(handler).send_message("abc", "hi")
    assert exc.value.message == "Session has ended"


@pytest.mark.asyncio
async def test_http_error_status_carries_message():
    def handler(request):
        return httpx.Response(503, json={"error": {"message": "AI temporarily unavailable"}})

    with pytest.raises(MarketplaceError) as exc:
        await _client(handler).extract_data("abc")
    assert exc.value.status_code == 503
    assert exc.value.message == "AI temporarily unavailable"


@pytest.mark.asyncio
async def test_transport_error_uses_fallback_message():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(MarketplaceError) as exc:
        await _client(handler).generate_summary("abc")
    assert exc.value.message == "Failed to generate summary"
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_summary_and_recommendations():
    def handler(request):
        if request.url.path.endswith("/summary"):
            return httpx.Response(200, json={"summary": "Service: Plumbing | Budget: $300"})
        assert json.loads(request.content) == {"service": "Plumbing", "zipcode": "75001"}
        return httpx.Response(
            200,
            json={
                "providers": [{"id": 3, "businessName": "Ace", "totalJobs": 12, "serviceAreas": ["75001"]}],
                "count": 1,
                "service": "Plumbing",
                "location": "75001",
            },
        )

    client = _client(handler)
    assert await client.generate_summary("abc") == "Service: Plumbing | Budget: $300"
    recommendation = await client.recommend_providers("Plumbing", "75001")
    assert recommendation.providers[0].business_name == "Ace"
    assert recommendation.providers[0].total_jobs == 12


@pytest.mark.asyncio
async def test_list_services_skips_malformed_entries():
    def handler(request):
        assert request.url.path == "/api/admin/services"
        return httpx.Response(200, json=[{"id": 1, "name": "Plumbing", "category": None}, {"name": "no id"}])

    services = await _client(handler).list_services()
    assert [s.name for s in services] == ["Plumbing"]
    assert services[0].category == ""


@pytest.mark.asyncio
async def test_price_range_query_param():
    def handler(request):
        assert request.url.params["service"] == "Deep Cleaning"
        return httpx.Response(200, json={"min": 120, "max": 900})

    price_range = await _client(handler).get_service_price_range("Deep Cleaning")
    assert price_range == PriceRange(min=120, max=900)


# ─── Catalog cache ───────────────────────────────────


@pytest.mark.asyncio
async def test_catalog_cache_reuses_fresh_catalog():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=[{"id": 1, "name": "Plumbing"}])

    cache = CatalogCache(ttl_seconds=60)
    client = _client(handler)
    await cache.services(client)
    await cache.services(client)
    assert calls == ["/api/admin/services"]


@pytest.mark.asyncio
async def test_catalog_cache_degrades_on_failure():
    def handler(request):
        return httpx.Response(500, json={"message": "down"})

    cache = CatalogCache(ttl_seconds=60)
    client = _client(handler)
    assert await cache.services(client) == []
    assert await cache.price_range(client, "Plumbing") is None


@pytest.mark.asyncio
async def test_catalog_cache_serves_stale_catalog_when_refresh_fails():
    state = {"fail": False}

    def handler(request):
        if state["fail"]:
            return httpx.Response(502)
        return httpx.Response(200, json=[{"id": 1, "name": "Plumbing"}])

    cache = CatalogCache(ttl_seconds=0)
    client = _client(handler)
    assert [s.name for s in await cache.services(client)] == ["Plumbing"]
    state["fail"] = True
    assert [s.name for s in await cache.services(client)] == ["Plumbing"]


# ─── Factory ─────────────────────────────────────────


def test_factory_falls_back_to_shared_mock(monkeypatch):
    from app.services.marketplace import reset_mock_marketplace

    monkeypatch.delenv("MARKETPLACE_API_URL", raising=False)
    monkeypatch.delenv("NEXT_PUBLIC_API_URL", raising=False)
    reset_mock_marketplace()

    first = get_marketplace_backend("a")
    second = get_marketplace_backend("b")
    assert isinstance(first, MockMarketplace)
    assert first is second
    reset_mock_marketplace()


def test_factory_builds_http_client(monkeypatch):
    monkeypatch.setenv("MARKETPLACE_API_URL", BASE)
    backend = get_marketplace_backend("tok")
    assert isinstance(backend, HttpMarketplaceClient)
