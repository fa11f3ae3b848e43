"""
assistant.py — Follow-up questions about an analysis.

Stateless: the caller owns the conversation and sends the whole history
every time. Nothing here touches the pipeline, so it is safe to call
while an analysis is still running.
"""

from __future__ import annotations

import logging
from typing import Sequence

from tender_lens.backend import GenerativeBackend
from tender_lens.config import config
from tender_lens.schemas import AnalysisResult, ChatTurn

logger = logging.getLogger(__name__)


def ask_assistant(
    backend: GenerativeBackend,
    history: Sequence[ChatTurn],
    query: str,
) -> str:
    """Answer `query` given the prior turns. Backend errors propagate."""
    turns = list(history) + [ChatTurn(role="user", text=query)]
    reply = backend.chat(turns, config.assistant.system_instruction)

    answer = (reply.text or "").strip()
    if not answer:
        logger.warning("Assistant returned an empty answer after %d turns", len(turns))
        return config.assistant.fallback_answer
    return answer


def summarise_for_assistant(result: AnalysisResult) -> ChatTurn:
    """
    Turn a finished analysis into a model turn to seed the chat with.

    Short on purpose: the lite model answers faster with a compact
    summary than with the full JSON.
    """
    lines = [
        f"Analysis of {result.entity_name} against the uploaded document.",
        f"Feasibility {result.feasibility_score}/100, alignment {result.alignment_score}/100.",
        f"Reasoning: {result.reasoning}",
    ]
    if result.has_deadline:
        lines.append(f"Submission deadline: {result.deadline}")
    if result.identified_solutions:
        lines.append("Solutions: " + ", ".join(result.identified_solutions))
    if result.priority_points:
        lines.append(
            "Priorities: "
            + "; ".join(f"{p.title} ({p.urgency})" for p in result.priority_points)
        )
    if result.out_of_scope:
        lines.append("Gaps: " + "; ".join(item.point for item in result.out_of_scope))
    return ChatTurn(role="model", text="\n".join(lines))
