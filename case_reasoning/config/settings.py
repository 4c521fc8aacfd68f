# case_reasoning/config/settings.py
from dataclasses import dataclass, field
from typing import Optional, Dict
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BaseEngineConfig:
    """Base configuration shared by every stage and the oracle wiring."""
    # --- API Keys ---
    groq_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GROQ_API_KEY"))
    openai_api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    anthropic_api_key: Optional[str] = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY"))
    together_api_key: Optional[str] = field(default_factory=lambda: os.getenv("TOGETHER_API_KEY"))

    # --- Oracle model names ---
    primary_llm_model: str = field(
        default_factory=lambda: os.getenv("PRIMARY_LLM_MODEL", "groq/llama-3.3-70b-versatile"))
    secondary_llm_model: Optional[str] = field(
        default_factory=lambda: os.getenv("SECONDARY_LLM_MODEL", "openai/gpt-4o-mini"))

    @property
    def model_roles(self) -> Dict[str, str]:
        """Map pipeline stages to the model role that serves them."""
        return {
            "entity_resolution": "secondary" if self.secondary_llm_model else "primary",
            "contradiction_detection": "primary",
            "suspicion_scoring": "primary",
        }

    # --- Oracle call limits ---
    enable_oracle: bool = field(default_factory=lambda: _env_flag("CASE_REASONING_ENABLE_ORACLE", True))
    oracle_timeout: float = 30.0
    oracle_max_tokens: int = 2000
    circuit_breaker_threshold: int = 3
    circuit_breaker_cooldown: int = 60

    # --- Common parameters ---
    logging_level: str = field(default_factory=lambda: os.getenv("CASE_REASONING_LOG_LEVEL", "INFO"))
    debug_mode: bool = False

    def __post_init__(self):
        """Perform validation after initialization."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging_level.upper() not in valid_levels:
            raise ValueError(f"Invalid logging_level: {self.logging_level}. Must be one of {valid_levels}")
        if self.oracle_timeout <= 0:
            raise ValueError("oracle_timeout must be positive")
        if self.circuit_breaker_threshold < 1:
            raise ValueError("circuit_breaker_threshold must be at least 1")

    @property
    def has_llm_credentials(self) -> bool:
        return any([self.groq_api_key, self.openai_api_key, self.anthropic_api_key, self.together_api_key])


def _check_unit_interval(name: str, value: float) -> None:
    if value < 0 or value > 1:
        raise ValueError(f"{name} must be between 0 and 1")


@dataclass
class EntityResolutionConfig(BaseEngineConfig):
    """Thresholds for mention -> canonical entity resolution."""
    fuzzy_threshold: float = 0.75
    phonetic_matching: bool = True
    phonetic_confidence: float = 0.7
    auto_merge_threshold: float = 0.95
    human_review_threshold: float = 0.6
    oracle_confidence_boost: float = 0.15
    oracle_confidence_ceiling: float = 0.95
    merge_suggestion_threshold: float = 0.7
    merge_suggestion_limit: int = 20
    shared_alias_confidence: float = 0.9
    phonetic_suggestion_boost: float = 0.15
    phonetic_suggestion_floor: float = 0.5
    auto_create_unmatched: bool = True

    def __post_init__(self):
        super().__post_init__()
        for name in ("fuzzy_threshold", "phonetic_confidence", "auto_merge_threshold",
                     "human_review_threshold", "oracle_confidence_ceiling", "merge_suggestion_threshold"):
            _check_unit_interval(name, getattr(self, name))
        if self.oracle_confidence_ceiling > self.auto_merge_threshold:
            # an oracle pick must never outrank a direct deterministic match
            raise ValueError("oracle_confidence_ceiling cannot exceed auto_merge_threshold")
        if self.merge_suggestion_limit < 1:
            raise ValueError("merge_suggestion_limit must be at least 1")


@dataclass
class ContradictionDetectionConfig(BaseEngineConfig):
    """Settings for the rule-based detectors and the optional oracle pass."""
    oracle_sample_size: int = 50
    oracle_sample_seed: int = 0
    major_overlap_minutes: float = 60.0
    significant_overlap_minutes: float = 30.0
    evidence_confidence: float = 0.9

    def __post_init__(self):
        super().__post_init__()
        if self.oracle_sample_size < 1:
            raise ValueError("oracle_sample_size must be at least 1")
        if self.significant_overlap_minutes > self.major_overlap_minutes:
            raise ValueError("significant_overlap_minutes cannot exceed major_overlap_minutes")
        _check_unit_interval("evidence_confidence", self.evidence_confidence)


@dataclass
class SuspicionScoringConfig(BaseEngineConfig):
    """Settings for suspicion scoring and ranking."""
    enable_oracle_refinement: bool = False
    max_claims_in_prompt: int = 10
    max_parallel_scores: int = 4

    def __post_init__(self):
        super().__post_init__()
        if self.max_parallel_scores < 1:
            raise ValueError("max_parallel_scores must be at least 1")


@dataclass
class PipelineConfig(BaseEngineConfig):
    """Bundle of stage configs handed to the workflow builder."""
    entity_resolution: Optional[EntityResolutionConfig] = None
    contradiction_detection: Optional[ContradictionDetectionConfig] = None
    suspicion_scoring: Optional[SuspicionScoringConfig] = None

    def __post_init__(self):
        super().__post_init__()
        shared = dict(
            enable_oracle=self.enable_oracle,
            oracle_timeout=self.oracle_timeout,
            logging_level=self.logging_level,
            debug_mode=self.debug_mode,
        )
        if self.entity_resolution is None:
            self.entity_resolution = EntityResolutionConfig(**shared)
        if self.contradiction_detection is None:
            self.contradiction_detection = ContradictionDetectionConfig(**shared)
        if self.suspicion_scoring is None:
            self.suspicion_scoring = SuspicionScoringConfig(**shared)
