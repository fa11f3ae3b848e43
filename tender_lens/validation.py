"""
validation.py — Schema enforcement on the analysis payload.

Gemini's response_schema gets us the right shape nearly every time, but
"nearly" is not good enough for a dashboard that indexes straight into
the fields. Everything the model returns goes through the pydantic
models in schemas.py before it is composed. Anything that fails becomes
a SchemaViolationError; we never show a half-parsed analysis.

The repairs that are safe to make (clamping scores, capitalising enum
values, rounding head counts) happen in the model validators. Anything
else is a violation.
"""

from __future__ import annotations

import logging
from typing import Any, List

from pydantic import ValidationError

from tender_lens.errors import SchemaViolationError
from tender_lens.schemas import AnalysisPayload, is_deadline_present

logger = logging.getLogger(__name__)

__all__ = ["validate_analysis", "is_deadline_present"]


def validate_analysis(raw: Any) -> AnalysisPayload:
    """
    Validate a parsed JSON object against the analysis schema.

    Raises:
        SchemaViolationError: with one readable line per problem.
    """
    if not isinstance(raw, dict):
        raise SchemaViolationError(
            f"Analysis payload must be a JSON object, got {type(raw).__name__}",
            problems=[f"root: expected object, got {type(raw).__name__}"],
        )

    try:
        payload = AnalysisPayload.model_validate(raw)
    except ValidationError as exc:
        problems = _format_problems(exc)
        logger.error(
            "Analysis payload failed schema validation (%d problems): %s",
            len(problems), "; ".join(problems[:5]),
        )
        raise SchemaViolationError(
            f"Analysis payload does not match the schema ({len(problems)} problems)",
            problems=problems,
        ) from exc

    logger.info(
        "Validated analysis for '%s': feasibility=%d alignment=%d, "
        "%d stakes, %d priority points, %d gaps, deadline %s",
        payload.entity_name,
        payload.feasibility_score,
        payload.alignment_score,
        len(payload.stakes),
        len(payload.priority_points),
        len(payload.out_of_scope),
        "found" if payload.has_deadline else "not found",
    )
    return payload


def _format_problems(exc: ValidationError) -> List[str]:
    problems: List[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "root"
        problems.append(f"{loc}: {err.get('msg', 'invalid')}")
    return problems
