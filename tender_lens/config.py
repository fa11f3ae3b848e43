"""
config.py — Central configuration for TenderLens.

All tunable params live here. Model names and the API key come from
environment variables so we can switch Gemini versions per deployment
without a release. The fallback strings are config rather than literals
because the frontend team matches on them in a couple of places.
"""

from dataclasses import dataclass, field
import os
import logging

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """
    Gemini settings.

    Three different models on purpose. Context lookup needs the search
    tool and should be fast, the analysis needs the strongest reasoning
    model we can get with PDF input, and the assistant is chat-latency
    sensitive so it gets the lite model.
    """
    api_key: str = os.getenv("GEMINI_API_KEY", os.getenv("GOOGLE_API_KEY", ""))
    context_model: str = os.getenv("TENDER_LENS_CONTEXT_MODEL", "gemini-3-flash-preview")
    analysis_model: str = os.getenv("TENDER_LENS_ANALYSIS_MODEL", "gemini-3-pro-preview")
    assistant_model: str = os.getenv(
        "TENDER_LENS_ASSISTANT_MODEL", "gemini-2.5-flash-lite-latest"
    )
    # Low but not zero. Scores drift less between reruns of the same tender.
    analysis_temperature: float = 0.2


@dataclass
class ContextConfig:
    """Market-context lookup. Sources beyond the first few are rarely useful."""
    max_sources: int = 5
    max_bullets: int = 4
    fallback_template: str = (
        "Directly analyzing {entity_name}'s solutions against the provided document."
    )
    empty_text_template: str = "Market overview for {entity_name}."
    default_source_title: str = "Source"


@dataclass
class AdmissionConfig:
    """
    Pre-flight checks on uploaded documents.

    20MB matches what the upload widget advertises. Inline PDF parts
    bigger than that get rejected by the API anyway, so checking here
    saves a round trip.
    """
    max_file_size_mb: int = 20
    accepted_types: tuple = ("application/pdf",)
    accepted_suffixes: tuple = (".pdf",)


@dataclass
class AssistantConfig:
    system_instruction: str = (
        "You are a fast legal and tender assistant. Provide concise, "
        "helpful answers about the analysis results."
    )
    fallback_answer: str = "I'm sorry, I couldn't process that."


@dataclass
class Config:
    """Master config, instantiated once and used everywhere."""
    backend: BackendConfig = field(default_factory=BackendConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    admission: AdmissionConfig = field(default_factory=AdmissionConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    failure_message: str = (
        "Analysis failed. Please ensure the document is readable and try again."
    )

    def __post_init__(self):
        """Validate config on startup so we fail fast instead of on the
        first upload."""
        if self.context.max_sources < 1:
            raise ValueError(f"max_sources must be >= 1, got {self.context.max_sources}")
        if self.admission.max_file_size_mb <= 0:
            raise ValueError(
                f"max_file_size_mb must be positive, got {self.admission.max_file_size_mb}"
            )
        if "{entity_name}" not in self.context.fallback_template:
            raise ValueError("fallback_template must contain '{entity_name}'")

        if not self.backend.api_key:
            # Not fatal: tests and offline runs inject their own backend.
            logger.warning(
                "No GEMINI_API_KEY / GOOGLE_API_KEY set. "
                "GeminiBackend.from_config() will fail until one is provided."
            )


# Singleton: every module imports this same instance
config = Config()
