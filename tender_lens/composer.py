"""
composer.py — Merges the analysis payload with the market context.

Pure function, no I/O. Both inputs are already validated by the stage
that produced them.
"""

from __future__ import annotations

from tender_lens.schemas import AnalysisPayload, AnalysisResult, MarketContext


def compose(analysis: AnalysisPayload, market_context: MarketContext) -> AnalysisResult:
    """Shallow field union: payload fields + marketContext + groundingSources."""
    fields = {name: getattr(analysis, name) for name in AnalysisPayload.model_fields}
    return AnalysisResult(
        **fields,
        market_context=market_context.text,
        grounding_sources=market_context.sources,
    )
