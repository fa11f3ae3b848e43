"""
catalog.py — The predefined portfolio offerings.

Used when the user picks one of our own solutions instead of typing a
company name. The description doubles as the market context, so these
runs skip the web lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class SolutionOption:
    id: str
    name: str
    description: str


SOLUTIONS: Tuple[SolutionOption, ...] = (
    SolutionOption(
        id="cloud-infra",
        name="Enterprise Cloud Infrastructure",
        description="Scalable cloud hosting, VPC management, and automated scaling solutions.",
    ),
    SolutionOption(
        id="cybersec",
        name="Advanced Cybersecurity Suite",
        description=(
            "Endpoint protection, SOC-as-a-service, and zero-trust "
            "architecture implementation."
        ),
    ),
    SolutionOption(
        id="data-ai",
        name="AI & Data Intelligence",
        description=(
            "Machine learning pipelines, predictive analytics, and "
            "enterprise LLM integration."
        ),
    ),
    SolutionOption(
        id="it-managed",
        name="Managed IT Operations",
        description=(
            "24/7 technical support, infrastructure maintenance, and "
            "compliance monitoring."
        ),
    ),
)

_BY_ID: Dict[str, SolutionOption] = {s.id: s for s in SOLUTIONS}


def get_solution(solution_id: str) -> SolutionOption:
    """Raises KeyError for unknown ids."""
    try:
        return _BY_ID[solution_id]
    except KeyError:
        raise KeyError(
            f"Unknown solution '{solution_id}'. Known: {', '.join(_BY_ID)}"
        ) from None
