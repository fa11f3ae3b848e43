"""
schemas.py — Pydantic v2 models for the analysis contract.

Field names are snake_case in Python and camelCase on the wire, because
the dashboard and the Gemini response schema both speak camelCase. Every
model accepts either spelling (populate_by_name).

Sequences are tuples and the models are frozen. A result is built once
per run and handed to the presentation layer; nobody gets to patch it
in place.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEADLINE_SENTINEL = "empty"
# Other phrasings the model drifts to when the tender has no deadline.
_ABSENT_DEADLINES = {DEADLINE_SENTINEL, "not found", "not mentioned"}


def is_deadline_present(value: Optional[str]) -> bool:
    """False for None, blank, "empty" or "not found", in any case."""
    if value is None:
        return False
    cleaned = value.strip()
    return bool(cleaned) and cleaned.lower() not in _ABSENT_DEADLINES


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


def _non_blank(value: str, name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{name} cannot be empty or whitespace")
    return value


class FailurePolicy(str, Enum):
    """What a stage does when its backend call fails."""
    FALLBACK_ON_FAILURE = "fallback_on_failure"
    PROPAGATE_FAILURE = "propagate_failure"


# ── Market context ────────────────────────────────────────────────────────

class GroundingSource(_Model):
    """A citable web reference returned with the market context."""
    title: str = Field(default="Source")
    uri: str

    @field_validator("uri")
    @classmethod
    def uri_must_not_be_empty(cls, v: str) -> str:
        return _non_blank(v, "uri")


class MarketContext(_Model):
    text: str
    sources: Tuple[GroundingSource, ...] = Field(default_factory=tuple)


# ── Analysis payload ──────────────────────────────────────────────────────

class Stake(_Model):
    title: str
    description: str
    severity: Literal["High", "Medium", "Low"]

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        # Gemini honours the enum almost always; "high" still turns up.
        return v.strip().capitalize() if isinstance(v, str) else v


class PriorityPoint(_Model):
    title: str
    description: str
    urgency: Literal["Critical", "High", "Standard"]

    @field_validator("urgency", mode="before")
    @classmethod
    def normalize_urgency(cls, v):
        return v.strip().capitalize() if isinstance(v, str) else v


class OutOfScopeItem(_Model):
    """A gap between the tender and the portfolio, with how to close it."""
    point: str
    remediation: str

    @field_validator("point", "remediation")
    @classmethod
    def must_not_be_blank(cls, v: str, info) -> str:
        return _non_blank(v, info.field_name)


class Eligibility(_Model):
    pre_bid_amount: Optional[str] = None
    financial_requirements: Optional[str] = None
    total_cost: Optional[str] = None
    required_team_size: Optional[str] = None


class Effort(_Model):
    employees: int = Field(ge=0)
    duration_months: float = Field(ge=0)
    description: str

    @field_validator("employees", mode="before")
    @classmethod
    def round_employees(cls, v):
        # The schema says NUMBER, so 3.5 people is a legal answer. Round it.
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v):
            return max(0, int(round(v)))
        return v

    @field_validator("duration_months", mode="before")
    @classmethod
    def floor_duration(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v):
            return max(0.0, float(v))
        return v


class AnalysisPayload(_Model):
    """What the analysis model returns, after validation."""
    entity_name: str
    identified_solutions: Tuple[str, ...]
    deadline: Optional[str] = None
    eligibility: Optional[Eligibility] = None
    feasibility_score: int
    alignment_score: int
    reasoning: str
    stakes: Tuple[Stake, ...]
    priority_points: Tuple[PriorityPoint, ...]
    in_scope: Tuple[str, ...]
    out_of_scope: Tuple[OutOfScopeItem, ...]
    effort: Effort

    @field_validator("feasibility_score", "alignment_score", mode="before")
    @classmethod
    def clamp_score(cls, v, info):
        """
        Scores are 0-100 by contract but the model does not always honour
        it (we have seen 105 and -5). Clamp instead of rejecting the whole
        analysis. Non-numeric values still fail validation.
        """
        if isinstance(v, str):
            try:
                v = float(v.strip().rstrip("%"))
            except ValueError:
                return v
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            return v
        clamped = min(100, max(0, int(round(v))))
        if clamped != v:
            logger.warning("Clamped %s from %s to %d", info.field_name, v, clamped)
        return clamped

    @field_validator("reasoning")
    @classmethod
    def reasoning_must_not_be_empty(cls, v: str) -> str:
        return _non_blank(v, "reasoning")

    @field_validator("deadline", mode="before")
    @classmethod
    def blank_deadline_is_sentinel(cls, v):
        if isinstance(v, str) and not v.strip():
            return DEADLINE_SENTINEL
        return v

    @computed_field(alias="hasDeadline")
    @property
    def has_deadline(self) -> bool:
        return is_deadline_present(self.deadline)


class AnalysisResult(AnalysisPayload):
    """Terminal record of one run: the payload plus the market context."""
    market_context: Optional[str] = None
    grounding_sources: Optional[Tuple[GroundingSource, ...]] = None


# ── Requests and chat ─────────────────────────────────────────────────────

class AnalysisRequest(_Model):
    """
    One user-initiated analysis.

    Tagged by ``mode``: "with_grounding" looks the entity up on the web
    first, "without_grounding" uses the caller-supplied market_context
    as-is (e.g. a catalogue description of the offering).
    """
    document: bytes = Field(repr=False)
    entity_name: str
    declared_type: str
    filename: Optional[str] = None
    market_context: Optional[str] = None
    mode: Literal["with_grounding", "without_grounding"] = "with_grounding"

    @field_validator("entity_name")
    @classmethod
    def entity_name_must_not_be_empty(cls, v: str) -> str:
        return _non_blank(v, "entity_name").strip()

    @model_validator(mode="after")
    def context_required_without_grounding(self) -> "AnalysisRequest":
        if self.mode == "without_grounding" and not (self.market_context or "").strip():
            raise ValueError("market_context is required when mode is without_grounding")
        return self

    @classmethod
    def build(
        cls,
        document: bytes,
        entity_name: str,
        declared_type: str,
        filename: Optional[str] = None,
        market_context: Optional[str] = None,
    ) -> "AnalysisRequest":
        """Pick the variant from whether the caller already has context."""
        mode = "without_grounding" if market_context and market_context.strip() else "with_grounding"
        return cls(
            document=document,
            entity_name=entity_name,
            declared_type=declared_type,
            filename=filename,
            market_context=market_context,
            mode=mode,
        )


class ChatTurn(_Model):
    role: Literal["user", "model"]
    text: str
