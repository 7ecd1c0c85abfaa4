"""Field validation for manual edits and budget plausibility."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from app.services.marketplace.contracts import CatalogService, PriceRange

from .rules import AMOUNT, ZIP_ONLY_RE, format_budget, is_plausible_zip

DEFAULT_BUDGET_MIN = 1.0
DEFAULT_BUDGET_MAX = 100_000.0
MAX_REQUIREMENTS_LENGTH = 1000

_BUDGET_INPUT_RE = re.compile(r"^\$?\s*" + AMOUNT + r"\s*(?:\$|dollars|usd)?$", re.IGNORECASE)


class FieldValidationError(ValueError):
    """A manually entered value was rejected; ``message`` is shown to the customer."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


def budget_problem(
    amount: float,
    *,
    price_range: Optional[PriceRange] = None,
    service: Optional[str] = None,
    minimum: float = DEFAULT_BUDGET_MIN,
    maximum: float = DEFAULT_BUDGET_MAX,
) -> Optional[str]:
    """Why *amount* is not a plausible budget, or ``None`` when it is.

    Without a price range only the numeric sanity range applies.
    """
    if amount < minimum or amount > maximum:
        return f"Budget must be between ${minimum:,.0f} and ${maximum:,.0f}."
    if price_range is not None and amount > price_range.max:
        label = service or "this service"
        return f"Budget exceeds the typical maximum of ${price_range.max:,.0f} for {label}."
    return None


def parse_amount(value: str) -> Optional[float]:
    m = _BUDGET_INPUT_RE.match((value or "").strip())
    if not m:
        return None
    return float(m.group(1).replace(",", ""))


def validate_zipcode(value: str) -> str:
    raw = (value or "").strip()
    if not ZIP_ONLY_RE.match(raw):
        raise FieldValidationError("zipcode", "Please enter a valid 5-digit zip code.")
    if not is_plausible_zip(raw):
        raise FieldValidationError("zipcode", f"{raw[:5]} is not a valid US zip code.")
    return raw[:5]


def validate_budget(
    value: str,
    *,
    price_range: Optional[PriceRange] = None,
    service: Optional[str] = None,
    minimum: float = DEFAULT_BUDGET_MIN,
    maximum: float = DEFAULT_BUDGET_MAX,
) -> str:
    amount = parse_amount(value)
    if amount is None:
        raise FieldValidationError("budget", "Please enter the budget as an amount, e.g. $250.")
    problem = budget_problem(amount, price_range=price_range, service=service, minimum=minimum, maximum=maximum)
    if problem:
        raise FieldValidationError("budget", problem)
    m = _BUDGET_INPUT_RE.match(value.strip())
    return format_budget(m.group(1))


def validate_requirements(value: str) -> str:
    text = (value or "").strip()
    if len(text) > MAX_REQUIREMENTS_LENGTH:
        raise FieldValidationError(
            "requirements", f"Requirements must be at most {MAX_REQUIREMENTS_LENGTH} characters."
        )
    return text


def validate_service(value: str, catalog: Iterable[CatalogService]) -> str:
    """Canonical catalog name for *value*; any non-empty name passes when the catalog is unavailable."""
    text = (value or "").strip()
    if not text:
        raise FieldValidationError("service", "Please choose a service.")
    services = list(catalog)
    if not services:
        return text
    for service in services:
        if service.name.strip().lower() == text.lower():
            return service.name
    raise FieldValidationError("service", f"{text} is not one of our services.")
