"""
retrieval.py — Grounded market context for the entity being analysed.

One web-search-grounded Gemini call that returns a few bullets about the
company plus the pages it cited. The bullets go into the analysis prompt
and the citations are shown on the results card.

This stage must never take the pipeline down. Search grounding gets
quota-limited, region-restricted and occasionally returns garbage; none
of that is a reason to refuse analysing the document. So under the
default policy any failure turns into a fixed sentence and no sources.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from tender_lens.backend import GenerativeBackend
from tender_lens.config import config
from tender_lens.errors import ContextRetrievalFailure
from tender_lens.schemas import FailurePolicy, GroundingSource, MarketContext

logger = logging.getLogger(__name__)

CONTEXT_PROMPT = (
    "Provide a very short, highly informative bulleted summary (max {max_bullets} "
    "bullets) of {entity_name}'s current market position, core enterprise "
    "offerings, and one major recent contract. Be extremely concise."
)


def fetch_market_context(
    backend: GenerativeBackend,
    entity_name: str,
    policy: FailurePolicy = FailurePolicy.FALLBACK_ON_FAILURE,
) -> MarketContext:
    """
    Look up the entity and return its MarketContext.

    Under FALLBACK_ON_FAILURE (the default) this never raises and never
    returns None. Under PROPAGATE_FAILURE errors surface as
    ContextRetrievalFailure.
    """
    prompt = CONTEXT_PROMPT.format(
        entity_name=entity_name,
        max_bullets=config.context.max_bullets,
    )

    try:
        reply = backend.grounded_search(prompt)
        sources = _collect_sources(reply.provenance)
        text = (reply.text or "").strip()
        if not text:
            text = config.context.empty_text_template.format(entity_name=entity_name)
        logger.info(
            "Market context for '%s': %d chars, %d sources",
            entity_name, len(text), len(sources),
        )
        return MarketContext(text=text, sources=sources)
    except Exception as exc:
        if policy is FailurePolicy.PROPAGATE_FAILURE:
            raise ContextRetrievalFailure(
                f"Market context lookup failed for '{entity_name}': {exc}"
            ) from exc
        logger.warning(
            "Market context search failed or restricted for '%s', using fallback: %s",
            entity_name, exc,
        )
        return fallback_context(entity_name)


def fallback_context(entity_name: str) -> MarketContext:
    """The deterministic stand-in used when grounding is unavailable."""
    return MarketContext(
        text=config.context.fallback_template.format(entity_name=entity_name),
        sources=(),
    )


def _collect_sources(provenance: List[Dict[str, Any]]) -> List[GroundingSource]:
    """
    Keep rank order, drop references without a uri, cap at max_sources.

    Duplicates are kept on purpose. The same page cited twice is still
    two grounding hits as far as the backend is concerned.
    """
    sources: List[GroundingSource] = []
    for ref in provenance or []:
        uri = (ref.get("uri") or "").strip()
        if not uri:
            continue
        title = (ref.get("title") or "").strip() or config.context.default_source_title
        sources.append(GroundingSource(title=title, uri=uri))
        if len(sources) >= config.context.max_sources:
            break
    return sources
