"""
errors.py — Exception taxonomy for the analysis pipeline.

Only the context stage recovers locally. Everything else propagates to
the caller, which logs the detail and shows the generic failure message.
"""

from __future__ import annotations

from typing import List, Optional


class TenderLensError(Exception):
    """Base class for all pipeline errors."""


class AdmissionError(TenderLensError):
    """Document rejected before any backend call.

    `reason` is one of "type", "size", "empty" or "missing".
    """

    def __init__(self, message: str, reason: str = "type"):
        super().__init__(message)
        self.reason = reason


class EncodingError(TenderLensError):
    """Document could not be read to completion or encoded."""


class ContextRetrievalFailure(TenderLensError):
    """Market-context lookup failed. Only raised under PROPAGATE_FAILURE."""


class EmptyResponseError(TenderLensError):
    """The analysis model returned no content."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "The model returned an empty response. The document might be "
               "too complex or blocked by safety filters."
        )


class SchemaViolationError(TenderLensError):
    """The analysis body did not parse or did not match the declared schema."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or []


class BackendError(TenderLensError):
    """The generative backend could not be set up or the analysis call failed."""
