"""
main.py — Pipeline orchestration for TenderLens.

One user action = one run = one pipeline instance:

    Idle → Retrieving context → Analyzing → Composed
                                          ↘ Failed

Admission happens while still Idle, so a rejected upload never costs a
backend call. Encoding the PDF and looking up the market context don't
depend on each other, so they run side by side; the analysis call is
the join point that needs both.

Only the context stage is allowed to recover. Anything else that goes
wrong ends the run in Failed with the typed error re-raised. There is
no partial result: either compose() ran or the caller gets an exception.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

from tender_lens.backend import GeminiBackend, GenerativeBackend
from tender_lens.catalog import get_solution
from tender_lens.composer import compose
from tender_lens.config import config
from tender_lens.errors import TenderLensError
from tender_lens.extraction import analyze_document
from tender_lens.ingestion import admit_document, encode_document, load_document
from tender_lens.retrieval import fetch_market_context
from tender_lens.schemas import (
    AnalysisRequest,
    AnalysisResult,
    FailurePolicy,
    MarketContext,
)

logger = logging.getLogger("tender_lens")


class PipelineState(str, Enum):
    IDLE = "idle"
    RETRIEVING_CONTEXT = "retrieving_context"
    ANALYZING = "analyzing"
    COMPOSED = "composed"
    FAILED = "failed"


class TenderAnalysisPipeline:
    """
    Single-use analysis run.

    Usage:
        backend = GeminiBackend.from_config()
        pipeline = TenderAnalysisPipeline(backend)
        result = pipeline.run(AnalysisRequest.build(pdf_bytes, "Acme Corp", "application/pdf"))
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        context_policy: FailurePolicy = FailurePolicy.FALLBACK_ON_FAILURE,
    ):
        self._backend = backend
        self._context_policy = context_policy
        self.state = PipelineState.IDLE
        self.error: Optional[Exception] = None

    def run(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Run the three stages for one request.

        Raises:
            AdmissionError, EncodingError, BackendError, EmptyResponseError,
            SchemaViolationError, and ContextRetrievalFailure (only under
            PROPAGATE_FAILURE).
            RuntimeError: the pipeline has already been used.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(
                f"Pipeline already used (state={self.state.value}); start a new one"
            )

        overall_start = time.time()
        logger.info("=" * 60)
        logger.info(
            "TenderLens — Analysing %s for '%s' (%s, %.1f KB)",
            request.filename or "document",
            request.entity_name,
            request.mode,
            len(request.document) / 1024,
        )
        logger.info("=" * 60)

        try:
            admit_document(request.document, request.declared_type, request.filename)

            # ── Stage 1: Context (+ encoding in parallel) ────────────
            t0 = time.time()
            self.state = PipelineState.RETRIEVING_CONTEXT
            logger.info("[1/3] Retrieving market context ...")
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tender-lens") as pool:
                encoding = pool.submit(encode_document, request.document)
                context = self._market_context(request)
                encoded = encoding.result()
            logger.info(
                "  ✓ %d sources, document encoded in %.1fs",
                len(context.sources), time.time() - t0,
            )

            # ── Stage 2: Analysis ────────────────────────────────────
            t0 = time.time()
            self.state = PipelineState.ANALYZING
            logger.info("[2/3] Analysing document ...")
            analysis = analyze_document(
                self._backend, encoded, request.entity_name, context.text
            )
            logger.info("  ✓ Analysis in %.1fs", time.time() - t0)

            # ── Stage 3: Composition ─────────────────────────────────
            logger.info("[3/3] Composing result ...")
            result = compose(analysis, context)
        except Exception as exc:
            self.state = PipelineState.FAILED
            self.error = exc
            logger.error(
                "Run failed in %.1fs: %s: %s",
                time.time() - overall_start, type(exc).__name__, exc,
            )
            raise

        self.state = PipelineState.COMPOSED
        logger.info("=" * 60)
        logger.info(
            "DONE in %.1fs | feasibility %d | alignment %d | %d gaps",
            time.time() - overall_start,
            result.feasibility_score,
            result.alignment_score,
            len(result.out_of_scope),
        )
        logger.info("=" * 60)
        return result

    def _market_context(self, request: AnalysisRequest) -> MarketContext:
        if request.mode == "without_grounding":
            return MarketContext(text=request.market_context, sources=())
        return fetch_market_context(
            self._backend, request.entity_name, policy=self._context_policy
        )


def analyze(
    backend: GenerativeBackend,
    document: bytes,
    entity_name: str,
    declared_type: str,
    filename: Optional[str] = None,
    market_context: Optional[str] = None,
    context_policy: FailurePolicy = FailurePolicy.FALLBACK_ON_FAILURE,
) -> AnalysisResult:
    """One-shot entry point: build the request, run a fresh pipeline."""
    request = AnalysisRequest.build(
        document,
        entity_name,
        declared_type,
        filename=filename,
        market_context=market_context,
    )
    return TenderAnalysisPipeline(backend, context_policy=context_policy).run(request)


async def analyze_async(*args, **kwargs) -> AnalysisResult:
    """analyze() for async callers. The backend calls block, so use a thread."""
    return await asyncio.to_thread(analyze, *args, **kwargs)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="tender-lens",
        description="TenderLens — Check a portfolio's fit against a tender PDF",
    )
    parser.add_argument("file", help="Path to the tender document (PDF)")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--entity", "-e", help="Company name to analyse (web-grounded)")
    target.add_argument(
        "--solution", "-s",
        help="Catalogue solution id (cloud-infra, cybersec, data-ai, it-managed)",
    )
    parser.add_argument("--output", "-o", default=None, help="JSON output path (default: stdout)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.solution:
            solution = get_solution(args.solution)
            entity_name, market_context = solution.name, solution.description
        else:
            entity_name, market_context = args.entity, None

        data, declared_type = load_document(args.file)
        backend = GeminiBackend.from_config()
        result = analyze(
            backend,
            data,
            entity_name,
            declared_type,
            filename=os.path.basename(args.file),
            market_context=market_context,
        )
    except (KeyError, ValueError) as exc:
        logger.error("Invalid input: %s", exc)
        sys.exit(1)
    except TenderLensError as exc:
        logger.debug("Failure detail", exc_info=exc)
        logger.error(config.failure_message)
        sys.exit(1)

    payload = result.model_dump(mode="json", by_alias=True)
    if args.output:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.info("Output written to: %s", args.output)
    else:
        print(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
