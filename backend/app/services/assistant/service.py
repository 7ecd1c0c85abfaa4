"""Sales assistant orchestration.

Glues the pure collector to the marketplace collaborators, the state store
and the bulk extraction scheduler. One instance per request; the store,
scheduler and catalog cache it is given are process-wide.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from app.core.config import Settings
from app.services.marketplace.base import MarketplaceBackend, MarketplaceError
from app.services.marketplace.catalog import CatalogCache
from app.services.marketplace.contracts import (
    CatalogService,
    ChatSession,
    ChatTurn,
    PriceRange,
    RecommendedProvider,
    SenderType,
    ServerExtraction,
)

from . import messages
from .collector import ConversationFieldCollector
from .contracts import ALL_FIELDS, FIELD_LABELS, CollectedFields
from .scheduler import ExtractionScheduler
from .session import ConversationState, ExtractionToken
from .store import SessionStateStore
from .validation import (
    FieldValidationError,
    validate_budget,
    validate_requirements,
    validate_service,
    validate_zipcode,
)

logger = logging.getLogger(__name__)


class AssistantError(Exception):
    pass


class SessionNotFoundError(AssistantError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class IncompleteFieldsError(AssistantError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(messages.missing_fields_message(missing))
        self.missing = list(missing)
        self.message = str(self)


REPLY_TRANSPORT = "transport"
REPLY_CLARIFICATION = "clarification"
REPLY_SERVICES = "services"


@dataclass(frozen=True)
class SessionSnapshot:
    state: ConversationState
    messages: list[ChatTurn] = field(default_factory=list)
    is_active: bool = True


@dataclass(frozen=True)
class MessageResult:
    state: ConversationState
    user_message: ChatTurn
    reply: ChatTurn
    source: str = REPLY_TRANSPORT


@dataclass(frozen=True)
class Completeness:
    complete: bool
    missing: list[str]
    missing_labels: list[str]
    fields: CollectedFields


@dataclass(frozen=True)
class FinishResult:
    state: ConversationState
    summary: str
    summary_lines: list[tuple[str, str]]
    providers: list[RecommendedProvider]
    message: Optional[str] = None


def _local_turn(sender: SenderType, text: str, suffix: str) -> ChatTurn:
    return ChatTurn(
        id=f"local-{uuid.uuid4().hex[:12]}-{suffix}",
        sender_type=sender,
        message=text,
        created_at=datetime.now(timezone.utc),
    )


def _user_turn_count(session: ChatSession) -> int:
    return sum(1 for turn in session.messages if turn.is_user)


class SalesAssistantService:
    def __init__(
        self,
        backend: MarketplaceBackend,
        *,
        store: SessionStateStore,
        scheduler: ExtractionScheduler,
        catalog_cache: CatalogCache,
        settings: Settings,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.backend = backend
        self.store = store
        self.scheduler = scheduler
        self.catalog_cache = catalog_cache
        self.settings = settings
        self._rng = rng

    # ─── Helpers ───────────────────────────────────────

    async def _catalog(self) -> list[CatalogService]:
        return await self.catalog_cache.services(self.backend)

    async def _price_range(self, service: Optional[str]) -> Optional[PriceRange]:
        return await self.catalog_cache.price_range(self.backend, service)

    def _collector(self, catalog: list[CatalogService]) -> ConversationFieldCollector:
        return ConversationFieldCollector(
            catalog,
            budget_min=self.settings.budget_min_amount,
            budget_max=self.settings.budget_max_amount,
        )

    def _require_state(self, customer_id: str, session_id: str) -> ConversationState:
        state = self.store.load(session_id)
        if state is None or state.customer_id != customer_id:
            raise SessionNotFoundError(session_id)
        return state

    async def _fetch_remote(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if session_id is None:
            return await self.backend.get_active_session()
        try:
            return await self.backend.get_session(session_id)
        except MarketplaceError as exc:
            if exc.status_code == 404:
                raise SessionNotFoundError(session_id) from exc
            raise

    # ─── Session lifecycle ─────────────────────────────

    async def start_session(self, customer_id: str) -> SessionSnapshot:
        remote = await self.backend.create_session()
        session_id = remote.session_id or remote.id
        state = ConversationState.start(session_id, customer_id)
        self.store.save(state)
        greeting = _local_turn(SenderType.ASSISTANT, messages.pick_greeting(self._rng), "greeting")
        logger.info("Assistant session started: session=%s", session_id)
        return SessionSnapshot(state=state, messages=[greeting], is_active=remote.is_active)

    async def resume_session(self, customer_id: str, session_id: Optional[str] = None) -> Optional[SessionSnapshot]:
        """Rebuild the fields from the remote transcript; ``None`` when nothing is active."""
        remote = await self._fetch_remote(session_id)
        if remote is None:
            return None
        session_id = remote.session_id or remote.id

        stored = self.store.load(session_id)
        if stored is not None and stored.customer_id != customer_id:
            raise SessionNotFoundError(session_id)

        collector = self._collector(await self._catalog())
        rebuilt = collector.extract_from_history(remote.messages)
        if rebuilt.service:
            price_range = await self._price_range(rebuilt.service)
            if price_range is not None:
                rebuilt = collector.extract_from_history(
                    remote.messages, {rebuilt.service.lower(): price_range}
                )

        if stored is None:
            state = ConversationState(
                session_id=session_id,
                customer_id=customer_id,
                turn_count=_user_turn_count(remote),
            )
        else:
            state = stored
        state = state.with_extraction(rebuilt)
        self.store.save(state)
        return SessionSnapshot(state=state, messages=list(remote.messages), is_active=remote.is_active)

    async def reset(self, customer_id: str, session_id: str) -> SessionSnapshot:
        self._require_state(customer_id, session_id)
        self.scheduler.cancel(session_id)
        try:
            await self.backend.end_session(session_id)
        except MarketplaceError as exc:
            logger.warning("Ending session %s failed (%s); starting a new one anyway", session_id, exc.message)
        self.store.discard(session_id)
        return await self.start_session(customer_id)

    # ─── Conversation ──────────────────────────────────

    async def send_message(self, customer_id: str, session_id: str, text: str) -> MessageResult:
        text = (text or "").strip()
        if not text:
            raise FieldValidationError("message", "Message must not be empty.")
        state = self._require_state(customer_id, session_id)
        catalog = await self._catalog()
        collector = self._collector(catalog)

        partial: dict[str, str] = {}
        match = collector.match_catalog_service(text)
        if match is not None:
            partial["service"] = match.name
        service = state.fields.service or partial.get("service")
        known = state.fields.model_copy(update={"service": service}) if service else state.fields
        partial.update(collector.extract_from_turn(text, known, await self._price_range(service)))
        if not state.fields.requirements:
            requirement = collector.classify_as_requirement(text)
            if requirement:
                partial["requirements"] = requirement
        state = state.with_extraction(partial)

        keyword = messages.find_service_keyword(text)
        if keyword and not state.fields.service:
            matches = collector.find_matching_services(keyword)
            if len(matches) > 1:
                self.store.save(state)
                return self._local_reply(state, text, messages.clarification_message(keyword, matches), REPLY_CLARIFICATION)

        if messages.is_asking_about_services(text):
            self.store.save(state)
            return self._local_reply(state, text, messages.services_list_message(catalog), REPLY_SERVICES)

        exchange = await self.backend.send_message(session_id, text)
        state = state.next_turn()
        self.store.save(state)
        if self.settings.enable_server_extraction:
            self.scheduler.schedule(state.token, self._fetch_extraction(session_id), self.apply_server_extraction)
        return MessageResult(state=state, user_message=exchange.user_message, reply=exchange.ai_message)

    def _local_reply(self, state: ConversationState, text: str, reply: str, source: str) -> MessageResult:
        return MessageResult(
            state=state,
            user_message=_local_turn(SenderType.USER, text, "user"),
            reply=_local_turn(SenderType.ASSISTANT, reply, source),
            source=source,
        )

    def _fetch_extraction(self, session_id: str):
        async def fetch() -> ServerExtraction:
            return await self.backend.extract_data(session_id)

        return fetch

    async def apply_server_extraction(
        self, token: ExtractionToken, extraction: ServerExtraction
    ) -> Optional[ConversationState]:
        """Merge a bulk extraction when the stored state is still at *token*."""
        state = self.store.load(token.session_id)
        if state is None or not state.matches(token):
            logger.info("Dropping extraction for session %s: conversation moved on", token.session_id)
            return None

        partial = extraction.to_partial()
        if "service" in partial:
            catalog = await self._catalog()
            match = self._collector(catalog).match_catalog_service(partial["service"])
            if match is not None:
                partial["service"] = match.name
            elif catalog:
                # Only exact catalog names may become the service.
                partial.pop("service")
        if "zipcode" in partial:
            try:
                partial["zipcode"] = validate_zipcode(partial["zipcode"])
            except FieldValidationError:
                partial.pop("zipcode")
        if "budget" in partial:
            try:
                partial["budget"] = validate_budget(
                    partial["budget"],
                    minimum=self.settings.budget_min_amount,
                    maximum=self.settings.budget_max_amount,
                )
            except FieldValidationError:
                partial.pop("budget")

        merged = state.with_extraction(partial)
        if merged is not state:
            self.store.save(merged)
        return merged

    # ─── Manual edits ──────────────────────────────────

    async def edit_field(self, customer_id: str, session_id: str, field_name: str, value: str) -> ConversationState:
        if field_name not in ALL_FIELDS:
            raise FieldValidationError(field_name, f"Unknown field: {field_name}")
        state = self._require_state(customer_id, session_id)
        normalized = await self._validate(state, field_name, value)
        state = state.with_manual_edit(field_name, normalized)
        self.store.save(state)
        logger.info("Field %s edited manually: session=%s", field_name, session_id)
        return state

    async def _validate(self, state: ConversationState, field_name: str, value: str) -> Optional[str]:
        raw = (value or "").strip()
        if not raw:
            return None
        if field_name == "zipcode":
            return validate_zipcode(raw)
        if field_name == "budget":
            service = state.fields.service
            return validate_budget(
                raw,
                price_range=await self._price_range(service),
                service=service,
                minimum=self.settings.budget_min_amount,
                maximum=self.settings.budget_max_amount,
            )
        if field_name == "requirements":
            return validate_requirements(raw)
        if field_name == "service":
            return validate_service(raw, await self._catalog())
        return raw

    async def select_service(self, customer_id: str, session_id: str, name: str) -> ConversationState:
        state = self._require_state(customer_id, session_id)
        state = state.with_service(validate_service(name, await self._catalog()))
        self.store.save(state)
        return state

    async def find_matching_services(self, keyword: str) -> list[CatalogService]:
        return self._collector(await self._catalog()).find_matching_services(keyword)

    # ─── Completion ────────────────────────────────────

    def completeness(self, customer_id: str, session_id: str) -> Completeness:
        state = self._require_state(customer_id, session_id)
        missing = state.missing()
        return Completeness(
            complete=not missing,
            missing=missing,
            missing_labels=[FIELD_LABELS[name] for name in missing],
            fields=state.fields,
        )

    async def finish(self, customer_id: str, session_id: str) -> FinishResult:
        state = self._require_state(customer_id, session_id)
        missing = state.missing()
        if missing:
            raise IncompleteFieldsError(missing)

        summary = await self.backend.generate_summary(session_id)
        service, zipcode = state.fields.service, state.fields.zipcode
        recommendation = await self.backend.recommend_providers(service, zipcode)
        providers = recommendation.providers[: max(0, self.settings.recommendation_limit)]
        logger.info("Recommendations for session %s: %s provider(s)", session_id, len(providers))
        return FinishResult(
            state=state,
            summary=summary,
            summary_lines=messages.parse_summary(summary),
            providers=providers,
            message=None if providers else messages.no_providers_message(service, zipcode),
        )
