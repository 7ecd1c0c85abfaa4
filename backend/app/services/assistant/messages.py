"""Canned assistant replies and summary formatting."""

from __future__ import annotations

import random
import re
from typing import Iterable, Optional, Sequence

from app.services.marketplace.contracts import CatalogService

from .contracts import FIELD_LABELS

INITIAL_MESSAGES = (
    "I am SPS Sales Assistant. How can I help you today?",
    "What services are you looking for? I'm here to assist!",
    "Hello! What can I help you find today?",
    "Welcome to SPS! Tell me what services you need.",
    "Hi there! How may I assist you today?",
)

FALLBACK_SERVICE_NAMES = (
    "Plumbing",
    "Electrical",
    "House Cleaning",
    "Painting",
    "HVAC",
    "Landscaping",
    "Roofing",
    "Flooring",
)

SERVICE_KEYWORD_RE = re.compile(
    r"\b(cleaning|plumbing|electrical|hvac|painting|landscaping|roofing|flooring)\b",
    re.IGNORECASE,
)

SERVICES_QUESTION_PHRASES = (
    "what services",
    "what do you offer",
    "what can you",
    "available services",
    "do you provide",
    "types of services",
)

_MARKDOWN_PATTERNS = (
    re.compile(r"\*\*(.+?)\*\*"),
    re.compile(r"__(.+?)__"),
    re.compile(r"\*(.+?)\*"),
    re.compile(r"_(.+?)_"),
)


def pick_greeting(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(INITIAL_MESSAGES)


def find_service_keyword(text: str) -> Optional[str]:
    m = SERVICE_KEYWORD_RE.search(text or "")
    return m.group(1).lower() if m else None


def is_asking_about_services(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in SERVICES_QUESTION_PHRASES)


def _numbered(names: Iterable[str]) -> str:
    return "\n".join(f"{i}. {name}" for i, name in enumerate(names, start=1))


def clarification_message(keyword: str, matches: Sequence[CatalogService]) -> str:
    return (
        f"I found multiple {keyword} services available:\n\n"
        f"{_numbered(s.name for s in matches)}\n\n"
        "Which one would you like?"
    )


def services_list_message(catalog: Sequence[CatalogService]) -> str:
    names = [s.name for s in catalog] or list(FALLBACK_SERVICE_NAMES)
    return (
        "Here are the services available on our platform:\n\n"
        f"{_numbered(names)}\n\n"
        "Which service are you interested in?"
    )


def missing_fields_message(missing: Sequence[str]) -> str:
    labels = [FIELD_LABELS.get(name, name) for name in missing]
    return "Please provide the following information:\n\n" + "\n".join(labels)


def no_providers_message(service: str, zipcode: str) -> str:
    return f"No providers found for {service} in {zipcode}. Please try a different location or service."


def strip_markdown(text: str) -> str:
    for pattern in _MARKDOWN_PATTERNS:
        text = pattern.sub(r"\1", text)
    return text


def parse_summary(raw: str) -> list[tuple[str, str]]:
    """Split a summary into ``(label, value)`` pairs.

    Accepts both ``"Service: X | Budget: Y"`` and one pair per line; entries
    without a label or value are dropped.
    """
    pairs: list[tuple[str, str]] = []
    for item in re.split(r"[|\n]", strip_markdown(raw or "")):
        key, sep, value = item.strip().partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        pairs.append((strip_markdown(key), strip_markdown(value)))
    return pairs
