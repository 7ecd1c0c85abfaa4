"""Debounced extraction scheduler and session-state transitions."""

import asyncio

import pytest

from app.services.assistant.contracts import CollectedFields
from app.services.assistant.scheduler import ExtractionScheduler
from app.services.assistant.session import ConversationState, ExtractionToken


def test_state_transitions_return_new_objects():
    state = ConversationState.start("s1", "c1")
    edited = state.with_manual_edit("zipcode", "90210")
    assert state.fields.zipcode is None
    assert edited.fields.zipcode == "90210"
    assert edited.locked_fields == frozenset({"zipcode"})

    merged = edited.with_extraction({"zipcode": "75001", "budget": "$200"})
    assert merged.fields.zipcode == "90210"
    assert merged.fields.budget == "$200"


def test_with_extraction_without_changes_returns_same_state():
    state = ConversationState.start("s1", "c1").with_extraction({"budget": "$200"})
    assert state.with_extraction({"budget": "$300"}) is state


def test_token_tracks_turn_count():
    state = ConversationState.start("s1", "c1")
    advanced = state.next_turn()
    assert advanced.token == ExtractionToken("s1", 1)
    assert advanced.matches(ExtractionToken("s1", 1))
    assert not advanced.matches(state.token)


def test_with_service_locks_service():
    state = ConversationState(session_id="s1", customer_id="c1", fields=CollectedFields(service="Plumbing"))
    updated = state.with_service("HVAC")
    assert updated.fields.service == "HVAC"
    assert "service" in updated.locked_fields
    assert updated.missing() == ["budget", "zipcode", "requirements"]


@pytest.mark.asyncio
async def test_schedule_applies_current_result():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    applied = []

    async def fetch():
        return {"budget": "$200"}

    async def apply(token, result):
        applied.append((token, result))

    token = ExtractionToken("s1", 1)
    await scheduler.schedule(token, fetch, apply)
    assert applied == [(token, {"budget": "$200"})]


@pytest.mark.asyncio
async def test_newer_schedule_cancels_pending_debounce():
    scheduler = ExtractionScheduler(debounce_seconds=0.05)
    calls = []

    def fetcher(label):
        async def fetch():
            calls.append(label)
            return label

        return fetch

    applied = []

    async def apply(token, result):
        applied.append(result)

    first = scheduler.schedule(ExtractionToken("s1", 1), fetcher("first"), apply)
    second = scheduler.schedule(ExtractionToken("s1", 2), fetcher("second"), apply)
    await asyncio.gather(first, second, return_exceptions=True)

    assert first.cancelled()
    assert calls == ["second"]
    assert applied == ["second"]


@pytest.mark.asyncio
async def test_stale_in_flight_result_is_discarded():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    release = asyncio.Event()
    applied = []

    async def slow_fetch():
        await release.wait()
        return "stale"

    async def fast_fetch():
        return "fresh"

    async def apply(token, result):
        applied.append(result)

    slow = scheduler.schedule(ExtractionToken("s1", 1), slow_fetch, apply)
    await asyncio.sleep(0)  # let the first task start fetching
    fast = scheduler.schedule(ExtractionToken("s1", 2), fast_fetch, apply)
    await fast
    release.set()
    await slow

    assert applied == ["fresh"]


@pytest.mark.asyncio
async def test_cancel_discards_in_flight_result():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    release = asyncio.Event()
    applied = []

    async def fetch():
        await release.wait()
        return "late"

    async def apply(token, result):
        applied.append(result)

    task = scheduler.schedule(ExtractionToken("s1", 1), fetch, apply)
    await asyncio.sleep(0)
    scheduler.cancel("s1")
    release.set()
    await asyncio.gather(task, return_exceptions=True)

    assert applied == []
    assert not scheduler.is_current(ExtractionToken("s1", 1))


@pytest.mark.asyncio
async def test_fetch_failure_is_swallowed():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    applied = []

    async def fetch():
        raise RuntimeError("extractor down")

    async def apply(token, result):
        applied.append(result)

    await scheduler.schedule(ExtractionToken("s1", 1), fetch, apply)
    assert applied == []


@pytest.mark.asyncio
async def test_sessions_are_independent():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    applied = []

    def fetch_for(label):
        async def fetch():
            return label

        return fetch

    async def apply(token, result):
        applied.append((token.session_id, result))

    a = scheduler.schedule(ExtractionToken("a", 1), fetch_for("A"), apply)
    b = scheduler.schedule(ExtractionToken("b", 1), fetch_for("B"), apply)
    await asyncio.gather(a, b)
    assert sorted(applied) == [("a", "A"), ("b", "B")]


@pytest.mark.asyncio
async def test_aclose_cancels_pending():
    scheduler = ExtractionScheduler(debounce_seconds=10)

    async def fetch():
        return "never"

    async def apply(token, result):
        raise AssertionError("should not run")

    task = scheduler.schedule(ExtractionToken("s1", 1), fetch, apply)
    await scheduler.aclose()
    assert task.cancelled()


@pytest.mark.asyncio
async def test_settled_sessions_release_their_tokens():
    scheduler = ExtractionScheduler(debounce_seconds=0)

    async def fetch():
        return None

    async def apply(token, result):
        return None

    tasks = [scheduler.schedule(ExtractionToken(f"s{i}", 1), fetch, apply) for i in range(50)]
    await asyncio.gather(*tasks)
    assert scheduler._latest == {}
    assert scheduler._pending == {}
    assert not scheduler._tasks


@pytest.mark.asyncio
async def test_finished_stale_task_keeps_newer_token():
    scheduler = ExtractionScheduler(debounce_seconds=0)
    release_old = asyncio.Event()
    release_new = asyncio.Event()
    applied = []

    def fetch_after(event, label):
        async def fetch():
            await event.wait()
            return label

        return fetch

    async def apply(token, result):
        applied.append(result)

    old = scheduler.schedule(ExtractionToken("s1", 1), fetch_after(release_old, "old"), apply)
    await asyncio.sleep(0)
    newer = ExtractionToken("s1", 2)
    new = scheduler.schedule(newer, fetch_after(release_new, "new"), apply)

    release_old.set()
    await old
    assert scheduler.is_current(newer)

    release_new.set()
    await new
    assert applied == ["new"]
    assert scheduler._latest == {}
