"""
extraction.py — The schema-constrained analysis call.

The PDF goes to Gemini as an inline part together with the task prompt
and a response_schema. The schema is the contract: the dashboard reads
these fields without checking, so a body that doesn't parse or doesn't
validate is an error, not something we paper over with defaults.

Deadline handling deserves a note. Tenders often say "As per GeM Bid
Document" instead of giving a date. We ask for that phrase verbatim,
and for the literal string "empty" when there is nothing at all. Blank
strings and "EMPTY" are treated the same as "empty" downstream.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from tender_lens.backend import GenerativeBackend
from tender_lens.errors import BackendError, EmptyResponseError, SchemaViolationError
from tender_lens.ingestion import EncodedDocument
from tender_lens.schemas import AnalysisPayload
from tender_lens.validation import validate_analysis

logger = logging.getLogger(__name__)


# The double-brace {{}} is str.format escaping, not a typo
ANALYSIS_PROMPT = """You are a world-class Strategy Consultant and Pre-Sales Architect.

COMPANY CONTEXT:
{market_context}

TASK:
1. Research/Identify: Confirm the primary products/services of "{entity_name}".
2. Analyze: Compare these solutions against the attached Legal/Tender document.
3. Deadline Extraction: Locate the "Bid Close Date", "Submission Deadline", or "Closing Date".
   - If it refers to another document (e.g., "As per GeM Bid Document"), return that exact phrase.
   - If not found or mentioned, return EXACTLY the string "empty".
4. Eligibility Extraction: Search the document for EMD/Pre-bid amounts and Financial requirements.
5. Priority Roadmap: Generate 3-5 "Priority Focus Points" for "{entity_name}".
6. Evaluate Feasibility (0-100) and Alignment (0-100) as whole numbers.
7. List the Stakes, the Effort estimate, the In-Scope items, and the Out-of-Scope
   gaps with a concrete remediation for each gap.

RETURN ONLY VALID JSON matching the response schema, e.g. {{"entityName": "..."}}.
"""


def _obj(properties: Dict[str, Any], required=None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "OBJECT", "properties": properties}
    if required:
        schema["required"] = list(required)
    return schema


_STRING = {"type": "STRING"}
_NUMBER = {"type": "NUMBER"}
_STRING_LIST = {"type": "ARRAY", "items": _STRING}

RESPONSE_SCHEMA: Dict[str, Any] = _obj(
    {
        "entityName": _STRING,
        "identifiedSolutions": _STRING_LIST,
        "deadline": {
            "type": "STRING",
            "description": "Extracted submission deadline. Use 'empty' if not found.",
        },
        "eligibility": _obj({
            "preBidAmount": _STRING,
            "financialRequirements": _STRING,
            "totalCost": _STRING,
            "requiredTeamSize": _STRING,
        }),
        "feasibilityScore": {**_NUMBER, "description": "0-100"},
        "alignmentScore": {**_NUMBER, "description": "0-100"},
        "reasoning": _STRING,
        "stakes": {
            "type": "ARRAY",
            "items": _obj(
                {
                    "title": _STRING,
                    "description": _STRING,
                    "severity": {"type": "STRING", "enum": ["High", "Medium", "Low"]},
                },
                required=["title", "description", "severity"],
            ),
        },
        "priorityPoints": {
            "type": "ARRAY",
            "items": _obj(
                {
                    "title": _STRING,
                    "description": _STRING,
                    "urgency": {"type": "STRING", "enum": ["Critical", "High", "Standard"]},
                },
                required=["title", "description", "urgency"],
            ),
        },
        "inScope": _STRING_LIST,
        "outOfScope": {
            "type": "ARRAY",
            "items": _obj(
                {"point": _STRING, "remediation": _STRING},
                required=["point", "remediation"],
            ),
        },
        "effort": _obj(
            {
                "employees": _NUMBER,
                "durationMonths": _NUMBER,
                "description": _STRING,
            },
            required=["employees", "durationMonths", "description"],
        ),
    },
    required=[
        "entityName",
        "identifiedSolutions",
        "feasibilityScore",
        "alignmentScore",
        "reasoning",
        "stakes",
        "priorityPoints",
        "inScope",
        "outOfScope",
        "effort",
    ],
)


def build_prompt(entity_name: str, market_context: str) -> str:
    return ANALYSIS_PROMPT.format(entity_name=entity_name, market_context=market_context)


def analyze_document(
    backend: GenerativeBackend,
    document: EncodedDocument,
    entity_name: str,
    market_context: str,
) -> AnalysisPayload:
    """
    Run the analysis call and return the validated payload.

    Raises:
        BackendError: the call itself failed (network, quota, rejection).
        EmptyResponseError: the backend returned no body.
        SchemaViolationError: the body is not a JSON object matching the schema.
    """
    prompt = build_prompt(entity_name, market_context)
    try:
        reply = backend.generate_structured(document, prompt, RESPONSE_SCHEMA)
    except Exception as exc:
        raise BackendError(f"Analysis request failed: {exc}") from exc

    raw_output = reply.text
    if raw_output is None or not raw_output.strip():
        raise EmptyResponseError()

    logger.info("Analysis model returned %d chars", len(raw_output))

    parsed = _parse_json_output(raw_output)
    if parsed is None:
        logger.error(
            "Could not parse analysis output as JSON. First 500 chars: %s",
            raw_output[:500],
        )
        raise SchemaViolationError(
            "Analysis output is not valid JSON",
            problems=["root: not valid JSON"],
        )

    return validate_analysis(parsed)


def _parse_json_output(text: str) -> Optional[Any]:
    """
    Parse the model body as JSON.

    With response_mime_type set, the body is plain JSON. We still strip
    markdown fences because preview models have wrapped output in
    ```json despite the mime type. We don't go fishing for a JSON object
    inside free text: if it's not JSON, it's a schema violation.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    cleaned = re.sub(r"```(?:json)?\s*", "", text)
    cleaned = cleaned.strip().rstrip("`")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None
