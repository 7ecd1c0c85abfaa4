"""Process-wide catalog and price-range cache.

Lookup failures never block a conversation: the catalog degrades to an
empty list and a price range to ``None``.
"""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Optional

from .base import MarketplaceBackend, MarketplaceError
from .contracts import CatalogService, PriceRange

logger = logging.getLogger(__name__)


class CatalogCache:
    def __init__(self, *, ttl_seconds: int = 300) -> None:
        self._ttl_seconds = max(0, int(ttl_seconds))
        self._lock = Lock()
        self._services: list[CatalogService] = []
        self._services_at: Optional[float] = None
        self._price_ranges: dict[str, tuple[float, Optional[PriceRange]]] = {}

    def _fresh(self, stamp: Optional[float], now: float) -> bool:
        return stamp is not None and (now - stamp) < self._ttl_seconds

    async def services(self, backend: MarketplaceBackend) -> list[CatalogService]:
        now = time.monotonic()
        with self._lock:
            if self._fresh(self._services_at, now):
                return list(self._services)

        try:
            services = await backend.list_services()
        except MarketplaceError as exc:
            logger.warning("Catalog lookup failed (%s); continuing with cached/empty catalog", exc.message)
            with self._lock:
                return list(self._services)

        with self._lock:
            self._services = list(services)
            self._services_at = now
            return list(self._services)

    async def price_range(self, backend: MarketplaceBackend, service_name: Optional[str]) -> Optional[PriceRange]:
        if not service_name:
            return None
        key = service_name.strip().lower()
        now = time.monotonic()
        with self._lock:
            cached = self._price_ranges.get(key)
            if cached and self._fresh(cached[0], now):
                return cached[1]

        try:
            price_range = await backend.get_service_price_range(service_name)
        except MarketplaceError as exc:
            # Not cached so the next turn retries the lookup.
            logger.warning("Price range lookup failed for %r (%s); using basic budget checks", service_name, exc.message)
            return None

        with self._lock:
            self._price_ranges[key] = (now, price_range)
        return price_range

    def clear(self) -> None:
        with self._lock:
            self._services = []
            self._services_at = None
            self._price_ranges.clear()
