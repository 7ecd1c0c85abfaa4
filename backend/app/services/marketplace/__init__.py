"""Marketplace backend factory: returns the HTTP client or falls back to mock."""

from __future__ import annotations

import logging
from typing import Optional

from app.core.config import get_settings

from .base import MarketplaceBackend, MarketplaceError
from .mock import MockMarketplace

logger = logging.getLogger(__name__)

__all__ = ["get_marketplace_backend", "MarketplaceBackend", "MarketplaceError", "MockMarketplace"]

_shared_mock: Optional[MockMarketplace] = None


def get_marketplace_backend(access_token: Optional[str] = None) -> MarketplaceBackend:
    """Return a backend bound to the customer's *access_token*.

    Without ``MARKETPLACE_API_URL`` we fall back to a process-wide
    ``MockMarketplace`` so sessions survive across requests in local runs.
    """
    global _shared_mock
    settings = get_settings()

    if not settings.marketplace_api_url:
        if _shared_mock is None:
            logger.warning("MARKETPLACE_API_URL not set; falling back to mock marketplace")
            _shared_mock = MockMarketplace()
        return _shared_mock

    from .http import HttpMarketplaceClient

    return HttpMarketplaceClient(
        settings.marketplace_api_url,
        access_token=access_token,
        timeout_seconds=settings.marketplace_timeout_seconds,
    )


def reset_mock_marketplace() -> None:
    global _shared_mock
    _shared_mock = None
