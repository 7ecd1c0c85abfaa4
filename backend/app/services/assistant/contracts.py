"""Sales assistant contracts: the collected-fields record."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

GATING_FIELDS = ("service", "budget", "zipcode", "requirements")
CONTEXT_FIELDS = ("location",)
ALL_FIELDS = GATING_FIELDS + CONTEXT_FIELDS

FIELD_LABELS = {
    "service": "Service",
    "budget": "Budget",
    "zipcode": "Zipcode",
    "requirements": "Requirements",
    "location": "Location",
}

NO_REQUIREMENTS = "No special requirements"


class CollectedFields(BaseModel):
    """Structured record derived from the transcript.

    ``location`` is best-effort context and never gates the recommendation step.
    Blank strings are normalized to ``None`` so "empty" has a single meaning.
    """

    model_config = ConfigDict(frozen=True)

    service: Optional[str] = None
    budget: Optional[str] = None
    zipcode: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None

    @field_validator(*ALL_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    def value(self, field_name: str) -> str:
        return getattr(self, field_name) or ""

    def to_partial(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in ALL_FIELDS if getattr(self, name)}
