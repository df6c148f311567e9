"""
Value types shared by the tutoring engine.

Every dataclass here is frozen: a step of the dialogue produces new values
instead of mutating old ones, so each exchange can be replayed and audited.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


# =============================================================================
# Enumerations
# =============================================================================


class UnderstandingLevel(str, Enum):
    """Per-exchange understanding inferred from learner text."""
    NONE = "none"
    SURFACE = "surface"
    PARTIAL = "partial"
    DEEP = "deep"
    TRANSFER = "transfer"


class TutorUnderstanding(str, Enum):
    """Tutor-side view of where the learner is in the dialogue."""
    NONE = "none"
    PARTIAL = "partial"
    CORRECT = "correct"
    MISCONCEPTION = "misconception"
    ADVANCED = "advanced"


class QuestionType(str, Enum):
    CLARIFYING = "clarifying"
    PROBING = "probing"
    SCAFFOLDING = "scaffolding"
    CHALLENGING = "challenging"
    REFLECTION = "reflection"
    METACOGNITIVE = "metacognitive"


class EngagementLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Trend(str, Enum):
    STABLE = "stable"
    INCREASING = "increasing"
    DECREASING = "decreasing"


class ReasoningStyle(str, Enum):
    DEDUCTIVE = "deductive"
    INDUCTIVE = "inductive"
    MIXED = "mixed"


class ProcessingStyle(str, Enum):
    SEQUENTIAL = "sequential"
    HOLISTIC = "holistic"
    FLEXIBLE = "flexible"


class AbstractionPreference(str, Enum):
    CONCRETE = "concrete"
    ABSTRACT = "abstract"
    BALANCED = "balanced"


class QuestionQuality(str, Enum):
    SURFACE = "surface"
    DEEP = "deep"
    METACOGNITIVE = "metacognitive"


class ExpertiseLevel(str, Enum):
    NOVICE = "novice"
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class WorkingMemory(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class HelpSeeking(str, Enum):
    AVOIDANT = "avoidant"
    APPROPRIATE = "appropriate"
    EXCESSIVE = "excessive"
    UNKNOWN = "unknown"


class GoalOrientation(str, Enum):
    MASTERY = "mastery"
    PERFORMANCE = "performance"
    BALANCED = "balanced"
    UNKNOWN = "unknown"


class CalibrationStance(str, Enum):
    CHALLENGING = "challenging"
    SUPPORTIVE = "supportive"
    NEUTRAL = "neutral"


class MetacognitiveFocus(str, Enum):
    MONITORING = "monitoring"
    REFLECTION = "reflection"
    ALL = "all"


class EncouragementLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InterventionType(str, Enum):
    TAKE_BREAK = "take_break"
    SWITCH_TOPIC = "switch_topic"
    SIMPLIFY = "simplify"
    CELEBRATE = "celebrate"
    ENCOURAGE = "encourage"
    NONE = "none"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DialogueStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class DialogueKind(str, Enum):
    """Closed set of dialogue modes sharing one extraction/update core."""
    SOCRATIC = "socratic"   # tutor leads with questions
    INVERSE = "inverse"     # learner teaches a simulated peer
    FREEFORM = "freeform"   # learner explores by asking


# =============================================================================
# Extraction Result
# =============================================================================


@dataclass(frozen=True)
class UnderstandingIndicators:
    explanation_quality: float = 0.0
    analogy_aptness: float = 0.4
    elaboration_depth: float = 0.0
    abstraction_level: float = 0.5
    procedural_conceptual_ratio: float = 0.4
    conceptual_connections: int = 0


@dataclass(frozen=True)
class ConfidenceIndicators:
    hedging_rate: float = 0.0
    certainty_rate: float = 0.0
    hedging_markers: tuple[str, ...] = ()
    certainty_markers: tuple[str, ...] = ()
    is_overconfident: bool = False
    is_underconfident: bool = False


@dataclass(frozen=True)
class MetacognitionIndicators:
    self_corrections: tuple[str, ...] = ()
    boundary_awareness: float = 0.0
    boundary_markers: tuple[str, ...] = ()
    question_quality: QuestionQuality = QuestionQuality.SURFACE
    reflection_count: int = 0
    monitoring_count: int = 0
    strategy_verbalization: bool = False

    @property
    def self_correction_count(self) -> int:
        return len(self.self_corrections)


@dataclass(frozen=True)
class ReasoningIndicators:
    reasoning_style: ReasoningStyle = ReasoningStyle.MIXED
    deductive_markers: tuple[str, ...] = ()
    inductive_markers: tuple[str, ...] = ()
    logical_chain_length: int = 0
    causal_reasoning: bool = False
    causal_markers: tuple[str, ...] = ()
    abstraction_preference: AbstractionPreference = AbstractionPreference.BALANCED
    processing_style: ProcessingStyle = ProcessingStyle.HOLISTIC
    divergent_thinking: int = 0


@dataclass(frozen=True)
class EngagementIndicators:
    response_latency_ms: int = 0
    word_count: int = 0
    curiosity_signals: tuple[str, ...] = ()
    frustration_signals: tuple[str, ...] = ()
    engagement_level: EngagementLevel = EngagementLevel.MEDIUM
    persistence_indicator: bool = False
    mastery_orientation: bool = False


@dataclass(frozen=True)
class CommunicationIndicators:
    responsiveness: float = 0.5
    topic_coherence: float = 1.0
    vocabulary_sophistication: float = 0.0
    grammatical_complexity: float = 0.0


@dataclass(frozen=True)
class Assessment:
    understanding_level: UnderstandingLevel = UnderstandingLevel.NONE
    is_discovery_moment: bool = False
    recommended_next_question_type: QuestionType = QuestionType.SCAFFOLDING


@dataclass(frozen=True)
class ExtractionResult:
    """All indicators computed for a single learner turn."""
    exchange_number: int
    understanding: UnderstandingIndicators
    confidence: ConfidenceIndicators
    metacognition: MetacognitionIndicators
    reasoning: ReasoningIndicators
    engagement: EngagementIndicators
    communication: CommunicationIndicators
    misconceptions: tuple[str, ...]
    insights: tuple[str, ...]
    assessment: Assessment

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AggregatedPsychometrics:
    """Dialogue-level summary of every per-exchange extraction."""
    avg_explanation_quality: float = 0.5
    avg_hedging_rate: float = 0.3
    avg_certainty_rate: float = 0.3
    avg_elaboration_depth: float = 0.5
    avg_response_latency_ms: float = 30000.0
    total_self_corrections: int = 0
    total_insights: int = 0
    total_misconceptions: int = 0
    calibration_accuracy: float = 0.5
    dominant_reasoning_style: ReasoningStyle = ReasoningStyle.MIXED
    dominant_processing_style: ProcessingStyle = ProcessingStyle.FLEXIBLE
    overall_engagement: EngagementLevel = EngagementLevel.MEDIUM
    mastery_vs_performance: GoalOrientation = GoalOrientation.BALANCED


# =============================================================================
# Session State
# =============================================================================


@dataclass(frozen=True)
class SessionState:
    """Ephemeral counters for one active dialogue."""
    exchange_count: int = 0
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    current_engagement: EngagementLevel = EngagementLevel.MEDIUM
    session_minutes: float = 0.0
    last_response_latency_ms: int | None = None
    last_extraction: ExtractionResult | None = None


# =============================================================================
# Adaptive Configuration
# =============================================================================


@dataclass(frozen=True)
class QuestionComplexityConfig:
    abstraction_level: AbstractionPreference
    max_reasoning_steps: int
    include_hints: bool
    include_examples: bool
    preferred_style: AbstractionPreference


@dataclass(frozen=True)
class ScaffoldingConfig:
    level: int  # 1 = full support .. 4 = independent
    proactive_hints: bool
    worked_examples: bool
    break_down_complex: bool


@dataclass(frozen=True)
class CalibrationConfig:
    question_style: CalibrationStance
    include_counterexamples: bool
    request_verification: bool
    highlight_correct_reasoning: bool
    celebrate_insights: bool
    prompt_text: str | None = None


@dataclass(frozen=True)
class MetacognitiveConfig:
    prompts: tuple[str, ...]
    frequency: float
    focus_area: MetacognitiveFocus


@dataclass(frozen=True)
class EngagementConfig:
    simplify_questions: bool = False
    offer_break: bool = False
    switch_topic: bool = False
    encouragement_level: EncouragementLevel = EncouragementLevel.MEDIUM
    offer_extensions: bool = False
    cross_domain_connections: bool = False
    challenging_questions: bool = False
    novel_approach: bool = False
    connect_to_interests: bool = False
    shorter_exchanges: bool = False


@dataclass(frozen=True)
class AdaptiveConfig:
    """How the next tutor turn should behave. Always rebuilt, never edited."""
    question_complexity: QuestionComplexityConfig
    scaffolding: ScaffoldingConfig
    calibration: CalibrationConfig
    metacognitive: MetacognitiveConfig
    engagement: EngagementConfig

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Intervention:
    type: InterventionType = InterventionType.NONE
    priority: Priority = Priority.LOW
    message: str = ""

    @property
    def ends_dialogue(self) -> bool:
        return self.type in (InterventionType.TAKE_BREAK, InterventionType.SWITCH_TOPIC)


# =============================================================================
# Engine Tunables
# =============================================================================


@dataclass(frozen=True)
class EngineConfig:
    """Tunables handed explicitly to the orchestrator."""
    ema_alpha: float = 0.3
    max_exchanges: int = 15
    long_session_minutes: float = 45.0
    inverse_max_exchanges: int = 10

    @classmethod
    def from_settings(cls, settings: Any) -> "EngineConfig":
        """Build from a ``config.Settings`` instance."""
        return cls(**settings.get_engine_config())
