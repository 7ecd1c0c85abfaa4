"""Ordered extraction rule tables for the sales assistant.

Every table is evaluated first-match-wins; the order of entries is the
business rule. Rules are plain data so each one can be exercised on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"

# Standalone 5-digit token (optionally ZIP+4); not glued to a currency sign or another number.
# A separator comma or period is fine unless a digit precedes it ("1,75001").
ZIP_RE = re.compile(
    r"(?<![\w$])(?<!\d[.,])(\d{5})(?:-\d{4})?(?![\w$]|[.,]\d|\s*(?:dollars|bucks|usd)\b)",
    re.IGNORECASE,
)
# "$ 10000": the amount of a dollar_prefix budget, not a zip.
_CURRENCY_TAIL_RE = re.compile(r"\$\s*$")
ZIP_ONLY_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
ZIP_MIN = 501
ZIP_MAX = 99950

LOCATION_RE = re.compile(
    r"\b(?i:located in|area of|in|at|near|around|city)\s+([A-Z][a-zA-Z]+(?:[ \t]+[A-Z][a-zA-Z]+)*)"
)


@dataclass(frozen=True)
class BudgetRule:
    name: str
    pattern: re.Pattern

    def candidate(self, text: str) -> Optional[str]:
        """Numeric string of the first match, commas removed."""
        m = self.pattern.search(text)
        if not m:
            return None
        return m.group(1).replace(",", "")


BUDGET_RULES: tuple[BudgetRule, ...] = (
    BudgetRule("dollar_prefix", re.compile(r"\$\s*" + AMOUNT)),
    BudgetRule("dollar_suffix", re.compile(AMOUNT + r"\s*\$")),
    BudgetRule("dollars_word", re.compile(AMOUNT + r"\s*dollars\b", re.IGNORECASE)),
    BudgetRule(
        "context_word",
        re.compile(
            r"\b(?:budget|cost|price|maximum|max|around|spend)\s*[:=]?\s*(?:is|of|around)?\s*\$?\s*" + AMOUNT,
            re.IGNORECASE,
        ),
    ),
)


def is_plausible_zip(zipcode: str) -> bool:
    digits = zipcode[:5]
    if len(digits) != 5 or not digits.isdigit():
        return False
    if set(digits) == {"0"}:
        return False
    return ZIP_MIN <= int(digits) <= ZIP_MAX


def find_zipcode(text: str) -> Optional[str]:
    """First standalone zip token; only that first token is considered."""
    text = text or ""
    for m in ZIP_RE.finditer(text):
        if _CURRENCY_TAIL_RE.search(text, 0, m.start()):
            continue
        zipcode = m.group(1)
        return zipcode if is_plausible_zip(zipcode) else None
    return None


def find_location(text: str) -> Optional[str]:
    m = LOCATION_RE.search(text or "")
    return m.group(1).strip() if m else None


def format_budget(amount: str) -> str:
    return "$" + amount.replace(",", "")


def has_budget_mention(text: str) -> bool:
    return any(rule.pattern.search(text) for rule in BUDGET_RULES)


# ─── Requirement classification ───────────────────────

QUESTION_WORDS = frozenset({"what", "how", "when", "where", "why", "who", "which"})

# Auxiliaries open a question only when a subject follows ("do you", "is it");
# "Should be licensed" and "Do not use bleach" are instructions.
AUXILIARY_WORDS = frozenset(
    {"can", "could", "do", "does", "is", "are", "will", "would", "should", "may"}
)
QUESTION_SUBJECTS = frozenset(
    {
        "i",
        "you",
        "it",
        "we",
        "they",
        "he",
        "she",
        "there",
        "this",
        "that",
        "someone",
        "somebody",
        "anyone",
        "anybody",
        "your",
    }
)

SIMPLE_VALUE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("zipcode", ZIP_ONLY_RE),
    ("amount", re.compile(r"^\$?\s*" + AMOUNT + r"\s*\$?$")),
    ("dollars", re.compile(r"^" + AMOUNT + r"\s*dollars$", re.IGNORECASE)),
)

NEGATION_PHRASES = (
    "no requirement",
    "no preference",
    "no special",
    "nothing specific",
    "nothing special",
    "no specific",
    "no particular",
    "don't have any requirement",
    "do not have any requirement",
    "don't have any preference",
    "do not have any preference",
)

# Whole-turn answers to "any requirements?".
NEGATION_TURNS = frozenset({"none", "nothing", "n/a"})

DOMAIN_KEYWORDS = (
    "eco-friendly",
    "same-day",
    "insured",
    "certified",
    "licensed",
    "experienced",
    "professional",
    "fast",
    "affordable",
    "premium",
    "urgent",
    "asap",
    "special",
    "requirement",
    "preference",
    "bathroom",
    "kitchen",
    "bedroom",
    "living",
    "yard",
    "garden",
    "plumb",
    "electric",
    "clean",
    "paint",
    "hvac",
    "landscap",
    "roof",
    "floor",
    "leak",
    "repair",
    "install",
)

REQUIREMENT_MIN_LENGTH = 5
LONG_TURN_LENGTH = 20

LEAD_IN_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("all_i_want", re.compile(r"\ball i (?:want|need) is\s+(.+)", re.IGNORECASE)),
    ("looking_for", re.compile(r"\b(?:i(?:'m| am) )?looking for\s+(.+)", re.IGNORECASE)),
    ("would_like", re.compile(r"\bi(?:'d| would) like\s+(.+)", re.IGNORECASE)),
    ("need_want", re.compile(r"\bi (?:need|want)\s+(.+)", re.IGNORECASE)),
    ("must_have", re.compile(r"\b((?:must|should) (?:be|have)\s+.+)", re.IGNORECASE)),
)

TRAILING_REFERENCE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("budget_clause", re.compile(r"[,;]?\s*(?:and\s+)?(?:my\s+|the\s+)?(?:budget|cost|price|max(?:imum)?)\b.*$", re.IGNORECASE)),
    ("amount", re.compile(r"[,;]?\s*(?:and\s+)?(?:for|under|around|about|of)?\s*\$\s*\d.*$", re.IGNORECASE)),
    ("zip_clause", re.compile(r"[,;]?\s*(?:and\s+)?(?:my\s+)?zip(?:\s*code)?\b.*$", re.IGNORECASE)),
    ("zip_token", re.compile(r"[,;]?\s*(?:in|at|near|around)?\s*\d{5}(?:-\d{4})?\s*$", re.IGNORECASE)),
    (
        "location",
        re.compile(r"[,;]?\s*\b(?i:located in|in|at|near|around)\s+[A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*\s*$"),
    ),
)


def is_question(text: str) -> bool:
    stripped = (text or "").strip()
    if not stripped:
        return False
    if stripped.endswith("?"):
        return True
    words = [w.strip("'\".!").lower() for w in re.split(r"[\s,]+", stripped, maxsplit=2)]
    if words[0] in QUESTION_WORDS:
        return True
    return words[0] in AUXILIARY_WORDS and len(words) > 1 and words[1] in QUESTION_SUBJECTS


def simple_value_kind(text: str) -> Optional[str]:
    stripped = (text or "").strip()
    for name, pattern in SIMPLE_VALUE_PATTERNS:
        if pattern.match(stripped):
            return name
    return None


def negates_requirements(text: str) -> bool:
    lowered = (text or "").lower().replace("’", "'")
    if lowered.strip().strip(".!") in NEGATION_TURNS:
        return True
    return any(phrase in lowered for phrase in NEGATION_PHRASES)


def has_domain_keyword(text: str) -> bool:
    lowered = (text or "").lower()
    return any(kw in lowered for kw in DOMAIN_KEYWORDS)


def strip_trailing_references(clause: str) -> str:
    result = clause
    changed = True
    while changed:
        changed = False
        for _name, pattern in TRAILING_REFERENCE_PATTERNS:
            stripped = pattern.sub("", result, count=1).rstrip(" ,.;:-")
            if stripped != result:
                result = stripped
                changed = True
    return result.strip(" ,.;:-")


def isolate_requirement_clause(text: str) -> Optional[str]:
    """Requirement clause after a lead-in phrase, or ``None`` when isolation fails."""
    for _name, pattern in LEAD_IN_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        clause = strip_trailing_references(m.group(1))
        if len(clause) >= 3:
            return clause
    return None


@dataclass(frozen=True)
class Verdict:
    """Outcome of a requirement rule; ``value=None`` means "not a requirement"."""

    value: Optional[str]


@dataclass(frozen=True)
class RequirementRule:
    """``decide`` returns ``None`` to fall through to the next rule."""

    name: str
    decide: Callable[[str], Optional[Verdict]]
