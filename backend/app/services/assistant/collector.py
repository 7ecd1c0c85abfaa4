"""Conversation field collector.

Turns an append-only transcript into the ``CollectedFields`` record:

* ``service`` only from an exact catalog match or an explicit selection,
  never from free-text matching;
* ``zipcode``/``budget``/``location`` from the rule tables in ``rules``;
* ``requirements`` from the ordered requirement classifier.

The collector is synchronous and keeps no per-conversation state; callers
own the fields record and the manual-edit lock set.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from app.services.marketplace.contracts import CatalogService, ChatTurn, PriceRange

from . import rules
from .contracts import ALL_FIELDS, GATING_FIELDS, NO_REQUIREMENTS, CollectedFields
from .validation import DEFAULT_BUDGET_MAX, DEFAULT_BUDGET_MIN, budget_problem

PartialFields = dict[str, str]
LockedFields = frozenset[str]


# ─── Pure state transitions ───────────────────────────


def merge_extraction(
    current: CollectedFields,
    extracted: Mapping[str, str] | CollectedFields,
    locked: Iterable[str] = (),
) -> CollectedFields:
    """Fill only empty, unlocked fields from *extracted*."""
    if isinstance(extracted, CollectedFields):
        extracted = extracted.to_partial()
    locked_set = frozenset(locked)
    update: dict[str, str] = {}
    for name in ALL_FIELDS:
        if current.value(name) or name in locked_set:
            continue
        candidate = (extracted.get(name) or "").strip()
        if candidate:
            update[name] = candidate
    if not update:
        return current
    return current.model_copy(update=update)


def record_manual_edit(
    fields: CollectedFields,
    locked: Iterable[str],
    field: str,
    value: Optional[str],
) -> tuple[CollectedFields, LockedFields]:
    """Set *field* unconditionally and lock it against extraction."""
    if field not in ALL_FIELDS:
        raise ValueError(f"Unknown field: {field}")
    cleaned = (value or "").strip() or None
    return fields.model_copy(update={field: cleaned}), frozenset(locked) | {field}


def select_service(
    fields: CollectedFields,
    locked: Iterable[str],
    name: str,
) -> tuple[CollectedFields, LockedFields]:
    return record_manual_edit(fields, locked, "service", name)


def missing_fields(fields: CollectedFields) -> list[str]:
    return [name for name in GATING_FIELDS if not fields.value(name)]


def is_complete(fields: CollectedFields) -> bool:
    return not missing_fields(fields)


# ─── Catalog-aware extraction ─────────────────────────


class ConversationFieldCollector:
    merge_extraction = staticmethod(merge_extraction)
    record_manual_edit = staticmethod(record_manual_edit)
    select_service = staticmethod(select_service)
    missing_fields = staticmethod(missing_fields)
    is_complete = staticmethod(is_complete)

    def __init__(
        self,
        catalog: Iterable[CatalogService] = (),
        *,
        budget_min: float = DEFAULT_BUDGET_MIN,
        budget_max: float = DEFAULT_BUDGET_MAX,
    ) -> None:
        self._catalog = tuple(catalog)
        self._budget_min = budget_min
        self._budget_max = budget_max
        self._requirement_rules = (
            rules.RequirementRule("question", self._rule_question),
            rules.RequirementRule("simple_value", self._rule_simple_value),
            rules.RequirementRule("explicit_none", self._rule_explicit_none),
            rules.RequirementRule("long_with_signals", self._rule_long_with_signals),
            rules.RequirementRule("multi_word", self._rule_multi_word),
        )

    @property
    def catalog(self) -> tuple[CatalogService, ...]:
        return self._catalog

    # --- catalog queries ---

    def match_catalog_service(self, text: str) -> Optional[CatalogService]:
        """Exact (case-insensitive, trimmed) catalog match; nothing fuzzy."""
        needle = (text or "").strip().lower()
        if not needle:
            return None
        for service in self._catalog:
            if service.name.strip().lower() == needle:
                return service
        return None

    def find_matching_services(self, keyword: str) -> list[CatalogService]:
        """Every catalog entry related to *keyword*, for caller-driven disambiguation."""
        needle = (keyword or "").strip().lower()
        if not needle:
            return []
        matches = []
        for service in self._catalog:
            name = service.name.strip().lower()
            first_word = name.split()[0] if name.split() else name
            if needle in name or first_word in needle:
                matches.append(service)
        return matches

    # --- per-turn extraction ---

    def extract_from_turn(
        self,
        text: str,
        known: Optional[CollectedFields] = None,
        price_range: Optional[PriceRange] = None,
    ) -> PartialFields:
        """Zip, budget and location found in one user turn. Never returns ``service``."""
        text = text or ""
        known = known or CollectedFields()
        extracted: PartialFields = {}

        zipcode = rules.find_zipcode(text)
        if zipcode:
            extracted["zipcode"] = zipcode

        budget = self._extract_budget(
            text,
            zip_guards={z for z in (zipcode, known.zipcode) if z},
            price_range=price_range,
            service=known.service,
        )
        if budget:
            extracted["budget"] = budget

        location = rules.find_location(text)
        if location:
            extracted["location"] = location

        return extracted

    def _extract_budget(
        self,
        text: str,
        *,
        zip_guards: set[str],
        price_range: Optional[PriceRange],
        service: Optional[str],
    ) -> Optional[str]:
        for rule in rules.BUDGET_RULES:
            amount = rule.candidate(text)
            if amount is None:
                continue
            if amount in zip_guards:
                continue
            problem = budget_problem(
                float(amount),
                price_range=price_range,
                service=service,
                minimum=self._budget_min,
                maximum=self._budget_max,
            )
            if problem:
                continue
            return rules.format_budget(amount)
        return None

    # --- requirement classification ---

    def classify_as_requirement(self, text: str) -> Optional[str]:
        for rule in self._requirement_rules:
            verdict = rule.decide(text or "")
            if verdict is not None:
                return verdict.value
        return None

    def _rule_question(self, text: str) -> Optional[rules.Verdict]:
        return rules.Verdict(None) if rules.is_question(text) else None

    def _rule_simple_value(self, text: str) -> Optional[rules.Verdict]:
        if rules.simple_value_kind(text) or self.match_catalog_service(text):
            return rules.Verdict(None)
        return None

    def _rule_explicit_none(self, text: str) -> Optional[rules.Verdict]:
        return rules.Verdict(NO_REQUIREMENTS) if rules.negates_requirements(text) else None

    def _rule_long_with_signals(self, text: str) -> Optional[rules.Verdict]:
        stripped = text.strip()
        if len(stripped) <= rules.LONG_TURN_LENGTH:
            return None
        has_signal = (
            rules.find_zipcode(stripped) is not None
            or rules.has_budget_mention(stripped)
            or rules.has_domain_keyword(stripped)
        )
        if not has_signal:
            return None
        return rules.Verdict(rules.isolate_requirement_clause(stripped) or stripped)

    def _rule_multi_word(self, text: str) -> Optional[rules.Verdict]:
        stripped = text.strip()
        if len(stripped.split()) > 1 and len(stripped) > rules.REQUIREMENT_MIN_LENGTH:
            return rules.Verdict(stripped)
        return rules.Verdict(None)

    # --- full-history replay ---

    def extract_from_history(
        self,
        turns: Iterable[ChatTurn],
        price_ranges: Optional[Mapping[str, PriceRange]] = None,
    ) -> CollectedFields:
        """Rebuild the record from scratch; earlier turns win for every field."""
        price_ranges = price_ranges or {}
        fields = CollectedFields()
        for turn in turns:
            if not turn.is_user:
                continue
            text = turn.message or ""
            update: dict[str, str] = {}

            if not fields.service:
                match = self.match_catalog_service(text)
                if match:
                    update["service"] = match.name
                    fields = fields.model_copy(update=update)

            price_range = price_ranges.get(fields.service.lower()) if fields.service else None
            for name, value in self.extract_from_turn(text, fields, price_range).items():
                if not fields.value(name):
                    update[name] = value

            if not fields.requirements:
                requirement = self.classify_as_requirement(text)
                if requirement:
                    update["requirements"] = requirement

            if update:
                fields = fields.model_copy(update=update)
        return fields
