"""Debounced bulk re-extraction.

The server-side extractor reads the whole transcript and is slow, so it runs
at most once per settled assistant turn. Results carry the token they were
requested for and are dropped when the conversation has moved on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .session import ExtractionToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]
ApplyFn = Callable[[ExtractionToken, T], Awaitable[None]]


class ExtractionScheduler:
    def __init__(self, debounce_seconds: float = 1.5) -> None:
        self._debounce_seconds = max(0.0, float(debounce_seconds))
        self._latest: dict[str, ExtractionToken] = {}
        # Tasks still sleeping through their debounce window, per session.
        self._pending: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    def is_current(self, token: ExtractionToken) -> bool:
        return self._latest.get(token.session_id) == token

    def schedule(self, token: ExtractionToken, fetch: FetchFn, apply: ApplyFn) -> asyncio.Task:
        """Replace any pending extraction for the session with one for *token*."""
        self._latest[token.session_id] = token
        previous = self._pending.pop(token.session_id, None)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(self._run(token, fetch, apply))
        self._pending[token.session_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, token: ExtractionToken, fetch: FetchFn, apply: ApplyFn) -> None:
        try:
            await self._fetch_and_apply(token, fetch, apply)
        finally:
            # A settled session leaves no entry behind; a newer token keeps its own.
            if self._latest.get(token.session_id) == token:
                del self._latest[token.session_id]

    async def _fetch_and_apply(self, token: ExtractionToken, fetch: FetchFn, apply: ApplyFn) -> None:
        if self._debounce_seconds:
            await asyncio.sleep(self._debounce_seconds)

        # Past the debounce window: a newer schedule no longer cancels us,
        # the token check below discards the result instead.
        if self._pending.get(token.session_id) is asyncio.current_task():
            self._pending.pop(token.session_id, None)

        try:
            result = await fetch()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Bulk extraction failed for session %s", token.session_id, exc_info=True)
            return

        if not self.is_current(token):
            logger.info(
                "Discarding stale extraction for session %s (turn %s)",
                token.session_id,
                token.turn_count,
            )
            return

        try:
            await apply(token, result)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Applying extraction failed for session %s", token.session_id)

    def cancel(self, session_id: str) -> None:
        """Forget the session: pending timers stop and in-flight results are discarded."""
        self._latest.pop(session_id, None)
        task: Optional[asyncio.Task] = self._pending.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._pending.clear()
        self._latest.clear()
