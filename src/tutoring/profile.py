"""
Durable learner profile: five indicator axes plus per-axis confidence.

The profile is only ever replaced wholesale by the profile updater at
dialogue completion. Reads from storage go through ``normalize_profile`` so
that a corrupted or hand-edited record is clamped back into range (and
logged) instead of breaking the engine.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, TypeVar

from loguru import logger

from src.tutoring.errors import InvalidProfileState
from src.tutoring.models import (
    AbstractionPreference,
    ExpertiseLevel,
    GoalOrientation,
    HelpSeeking,
    ProcessingStyle,
    QuestionQuality,
    ReasoningStyle,
    Trend,
    UnderstandingLevel,
    WorkingMemory,
)

T = TypeVar("T")


# =============================================================================
# Axes
# =============================================================================


@dataclass(frozen=True)
class UnderstandingProfile:
    explanation_quality: float = 0.5
    analogy_aptness: float = 0.5
    elaboration_depth: float = 0.5
    abstraction_level: float = 0.5
    procedural_conceptual_ratio: float = 0.5
    expertise_level: ExpertiseLevel = ExpertiseLevel.BEGINNER
    working_memory: WorkingMemory = WorkingMemory.MEDIUM


@dataclass(frozen=True)
class ConfidenceProfile:
    hedging_rate: float = 0.3
    certainty_rate: float = 0.3
    calibration_accuracy: float = 0.5
    confidence_trajectory: Trend = Trend.STABLE
    overconfidence_rate: float = 0.0
    underconfidence_rate: float = 0.0


@dataclass(frozen=True)
class MetacognitionProfile:
    self_correction_rate: float = 0.1
    boundary_awareness: float = 0.5
    question_quality: QuestionQuality = QuestionQuality.SURFACE
    reflection_frequency: float = 0.2
    monitoring_frequency: float = 0.2
    help_seeking: HelpSeeking = HelpSeeking.UNKNOWN
    self_monitoring_accuracy: float = 0.5


@dataclass(frozen=True)
class ReasoningProfile:
    reasoning_style: ReasoningStyle = ReasoningStyle.MIXED
    abstraction_preference: AbstractionPreference = AbstractionPreference.BALANCED
    processing_style: ProcessingStyle = ProcessingStyle.FLEXIBLE
    average_logical_chain_length: float = 1.0


@dataclass(frozen=True)
class EngagementProfile:
    average_response_latency_ms: float = 30000.0
    engagement_trend: Trend = Trend.STABLE
    curiosity_score: float = 0.5
    frustration_threshold: float = 5.0
    persistence_after_error: float = 0.5
    persistence_score: float = 0.5
    goal_orientation: GoalOrientation = GoalOrientation.UNKNOWN


@dataclass(frozen=True)
class AxisConfidence:
    """How many observations back each axis, as a value in [0, 1]."""
    understanding: float = 0.3
    calibration: float = 0.3
    metacognition: float = 0.3
    reasoning: float = 0.3
    engagement: float = 0.3


@dataclass(frozen=True)
class DialogueSnapshot:
    """Short record of the most recent completed dialogue."""
    skill_id: str = ""
    skill_name: str = ""
    total_exchanges: int = 0
    discovery_achieved: bool = False
    final_understanding: UnderstandingLevel = UnderstandingLevel.NONE
    effectiveness: float = 0.0
    understanding_progression: tuple[float, ...] = ()
    completed_at: str = ""


AXES = ("understanding", "confidence", "metacognition", "reasoning", "engagement")

_AXIS_TYPES = {
    "understanding": UnderstandingProfile,
    "confidence": ConfidenceProfile,
    "metacognition": MetacognitionProfile,
    "reasoning": ReasoningProfile,
    "engagement": EngagementProfile,
}

# Fields that must stay inside [0, 1]
RATE_FIELDS: dict[str, tuple[str, ...]] = {
    "understanding": (
        "explanation_quality",
        "analogy_aptness",
        "elaboration_depth",
        "abstraction_level",
        "procedural_conceptual_ratio",
    ),
    "confidence": (
        "hedging_rate",
        "certainty_rate",
        "calibration_accuracy",
        "overconfidence_rate",
        "underconfidence_rate",
    ),
    "metacognition": (
        "self_correction_rate",
        "boundary_awareness",
        "reflection_frequency",
        "monitoring_frequency",
        "self_monitoring_accuracy",
    ),
    "reasoning": (),
    "engagement": (
        "curiosity_score",
        "persistence_after_error",
        "persistence_score",
    ),
}

# Fields with a lower bound only
FLOOR_FIELDS: dict[str, tuple[tuple[str, float], ...]] = {
    "reasoning": (("average_logical_chain_length", 0.0),),
    "engagement": (
        ("average_response_latency_ms", 0.0),
        ("frustration_threshold", 1.0),
    ),
}


# =============================================================================
# Learner Profile
# =============================================================================


@dataclass(frozen=True)
class LearnerProfile:
    """Accumulated multi-dimensional model of one learner."""
    learner_id: str
    understanding: UnderstandingProfile = field(default_factory=UnderstandingProfile)
    confidence: ConfidenceProfile = field(default_factory=ConfidenceProfile)
    metacognition: MetacognitionProfile = field(default_factory=MetacognitionProfile)
    reasoning: ReasoningProfile = field(default_factory=ReasoningProfile)
    engagement: EngagementProfile = field(default_factory=EngagementProfile)
    axis_confidence: AxisConfidence = field(default_factory=AxisConfidence)
    misconceptions: tuple[str, ...] = ()
    error_patterns: tuple[str, ...] = ()
    last_dialogue: DialogueSnapshot | None = None
    dialogues_completed: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        data = asdict(self)
        return _jsonable(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearnerProfile":
        """Create from dictionary, clamping anything out of range."""
        kwargs: dict[str, Any] = {"learner_id": str(data.get("learner_id", ""))}
        for axis, axis_cls in _AXIS_TYPES.items():
            kwargs[axis] = _section_from_dict(axis_cls, data.get(axis) or {}, axis)
        kwargs["axis_confidence"] = _section_from_dict(
            AxisConfidence, data.get("axis_confidence") or {}, "axis_confidence"
        )
        kwargs["misconceptions"] = tuple(str(m) for m in data.get("misconceptions") or ())
        kwargs["error_patterns"] = tuple(str(p) for p in data.get("error_patterns") or ())
        last = data.get("last_dialogue")
        kwargs["last_dialogue"] = (
            _section_from_dict(DialogueSnapshot, last, "last_dialogue") if last else None
        )
        kwargs["dialogues_completed"] = int(data.get("dialogues_completed") or 0)
        return normalize_profile(cls(**kwargs))


def default_profile(learner_id: str) -> LearnerProfile:
    """Neutral profile for a learner with no history yet."""
    return LearnerProfile(learner_id=learner_id)


# =============================================================================
# Invariant Checks
# =============================================================================


def normalize_profile(profile: LearnerProfile, strict: bool = False) -> LearnerProfile:
    """
    Clamp every ranged indicator back into bounds.

    Args:
        profile: Profile as read from storage
        strict: Raise InvalidProfileState instead of clamping

    Returns:
        The profile unchanged when valid, otherwise a clamped copy
    """
    violations: list[str] = []
    updates: dict[str, Any] = {}

    for axis in AXES:
        section = getattr(profile, axis)
        defaults = type(section)()
        changes: dict[str, float] = {}

        for name in RATE_FIELDS[axis]:
            value = getattr(section, name)
            fixed = _clamp_or_default(value, 0.0, 1.0, getattr(defaults, name))
            if fixed != value:
                violations.append(f"{axis}.{name}")
                changes[name] = fixed

        for name, floor in FLOOR_FIELDS.get(axis, ()):
            value = getattr(section, name)
            fixed = _clamp_or_default(value, floor, math.inf, getattr(defaults, name))
            if fixed != value:
                violations.append(f"{axis}.{name}")
                changes[name] = fixed

        if changes:
            updates[axis] = replace(section, **changes)

    conf_changes: dict[str, float] = {}
    for f in fields(AxisConfidence):
        value = getattr(profile.axis_confidence, f.name)
        fixed = _clamp_or_default(value, 0.0, 1.0, f.default)
        if fixed != value:
            violations.append(f"axis_confidence.{f.name}")
            conf_changes[f.name] = fixed
    if conf_changes:
        updates["axis_confidence"] = replace(profile.axis_confidence, **conf_changes)

    if not violations:
        return profile

    if strict:
        raise InvalidProfileState(violations)

    logger.warning(
        f"Clamped out-of-range profile fields for {profile.learner_id}: {', '.join(violations)}"
    )
    return replace(profile, **updates)


def _is_nan(value: float) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _clamp_or_default(value: float, low: float, high: float, default: float) -> float:
    if _is_nan(value):
        return default
    return max(low, min(high, value))


# =============================================================================
# Serialization Helpers
# =============================================================================


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _section_from_dict(cls: type[T], data: dict[str, Any], section: str) -> T:
    """Rebuild a flat section dataclass using its defaults to pick each type."""
    defaults = cls()
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        default = getattr(defaults, f.name)
        if f.name not in data or data[f.name] is None:
            continue
        raw = data[f.name]
        try:
            if isinstance(default, Enum):
                kwargs[f.name] = type(default)(raw)
            elif isinstance(default, bool):
                kwargs[f.name] = bool(raw)
            elif isinstance(default, int):
                kwargs[f.name] = int(raw)
            elif isinstance(default, float):
                kwargs[f.name] = float(raw)
            elif isinstance(default, tuple):
                kwargs[f.name] = tuple(float(v) for v in raw)
            else:
                kwargs[f.name] = str(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid value for {section}.{f.name}: {raw!r}")
    return cls(**kwargs)
