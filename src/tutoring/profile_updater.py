"""
Profile Updater: folds a completed dialogue back into the learner profile.

Scalars use an exponential moving average (alpha = 0.3). Indicators backed
by an axis confidence use a confidence-weighted alpha,
``alpha * (0.5 + 0.5 * confidence)``, and the axis confidence then grows by
0.1 per dialogue up to 1. Categorical fields follow the dialogue's majority.

The update never mutates its input: it always returns a full new profile,
so recomputing it from the same two inputs gives the same result.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace

from loguru import logger

from src.tutoring.models import (
    AggregatedPsychometrics,
    EngagementLevel,
    ExtractionResult,
    GoalOrientation,
    HelpSeeking,
    ProcessingStyle,
    QuestionQuality,
    Trend,
    UnderstandingLevel,
    WorkingMemory,
)
from src.tutoring.profile import (
    AxisConfidence,
    DialogueSnapshot,
    LearnerProfile,
)

EMA_ALPHA = 0.3
CONFIDENCE_STEP = 0.1
TREND_MARGIN = 0.1
MAX_ERROR_PATTERNS = 20

ENGAGEMENT_SCORE = {
    EngagementLevel.HIGH: 1.0,
    EngagementLevel.MEDIUM: 0.5,
    EngagementLevel.LOW: 0.0,
}

UNDERSTANDING_PROGRESSION = {
    UnderstandingLevel.NONE: 0.0,
    UnderstandingLevel.SURFACE: 0.25,
    UnderstandingLevel.PARTIAL: 0.5,
    UnderstandingLevel.DEEP: 0.75,
    UnderstandingLevel.TRANSFER: 1.0,
}

# Mastery adjustment reported to the external mastery tracker
MASTERY_BASE = {
    UnderstandingLevel.NONE: -0.10,
    UnderstandingLevel.SURFACE: -0.05,
    UnderstandingLevel.PARTIAL: 0.05,
    UnderstandingLevel.DEEP: 0.15,
    UnderstandingLevel.TRANSFER: 0.25,
}
MASTERY_MIN = -0.20
MASTERY_MAX = 0.35


@dataclass(frozen=True)
class DialogueResults:
    """Everything a completed dialogue hands to the profile updater."""
    skill_id: str
    skill_name: str
    total_exchanges: int
    discovery_achieved: bool
    final_understanding: UnderstandingLevel
    effectiveness: float
    extractions: tuple[ExtractionResult, ...]
    correctness: tuple[bool, ...]
    aggregated: AggregatedPsychometrics
    key_insights: tuple[str, ...]
    misconceptions_identified: tuple[str, ...]
    duration_ms: int
    timestamp: str


# =============================================================================
# EMA Helpers
# =============================================================================


def ema(old: float, observation: float, alpha: float = EMA_ALPHA) -> float:
    return alpha * observation + (1 - alpha) * old


def ema_with_confidence(
    old: float,
    observation: float,
    confidence: float,
    alpha: float = EMA_ALPHA,
) -> tuple[float, float]:
    """Return (new value, new confidence)."""
    weighted = alpha * (0.5 + 0.5 * confidence)
    return ema(old, observation, weighted), min(1.0, confidence + CONFIDENCE_STEP)


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mean(values: list[float]) -> float:
    return sum(values) / max(1, len(values))


def _trend(new: float, old: float) -> Trend:
    if new > old + TREND_MARGIN:
        return Trend.INCREASING
    if new < old - TREND_MARGIN:
        return Trend.DECREASING
    return Trend.STABLE


# =============================================================================
# Dialogue-level Observations
# =============================================================================


def _engagement_trend(extractions: tuple[ExtractionResult, ...]) -> Trend:
    """Second half of the dialogue vs the first half."""
    if len(extractions) < 2:
        return Trend.STABLE
    half = len(extractions) // 2
    scores = [ENGAGEMENT_SCORE[e.engagement.engagement_level] for e in extractions]
    return _trend(_mean(scores[half:]), _mean(scores[:half]))


def _persistence_after_error(extractions: tuple[ExtractionResult, ...]) -> float:
    """Share of weak answers followed by a persistent next attempt."""
    errors = 0
    persisted = 0
    for current, following in zip(extractions, extractions[1:]):
        if current.assessment.understanding_level in (UnderstandingLevel.NONE, UnderstandingLevel.SURFACE):
            errors += 1
            if following.engagement.persistence_indicator:
                persisted += 1
    return persisted / errors if errors else 0.5


def _frustration_point(results: DialogueResults) -> float:
    """1-based exchange of the first frustration signal, else the dialogue length."""
    for index, extraction in enumerate(results.extractions, start=1):
        if extraction.engagement.frustration_signals:
            return float(index)
    return float(max(1, results.total_exchanges))


def _dominant_question_quality(extractions: tuple[ExtractionResult, ...]) -> QuestionQuality:
    counts = Counter(e.metacognition.question_quality for e in extractions)
    best = QuestionQuality.SURFACE
    for quality in QuestionQuality:
        if counts[quality] > counts[best]:
            best = quality
    return best


def _working_memory(agg: AggregatedPsychometrics) -> WorkingMemory:
    if agg.avg_response_latency_ms > 60000 and agg.avg_elaboration_depth < 0.3:
        return WorkingMemory.LOW
    if agg.avg_elaboration_depth > 0.7 and agg.avg_response_latency_ms < 45000:
        return WorkingMemory.HIGH
    if agg.dominant_processing_style == ProcessingStyle.SEQUENTIAL:
        return WorkingMemory.HIGH
    return WorkingMemory.MEDIUM


def _help_seeking(current: HelpSeeking, extractions: tuple[ExtractionResult, ...], quality: float) -> HelpSeeking:
    curiosity = _mean([float(len(e.engagement.curiosity_signals)) for e in extractions])
    if curiosity > 0.5 and quality > 0.5:
        return HelpSeeking.APPROPRIATE
    if curiosity < 0.1 and quality < 0.4:
        return HelpSeeking.AVOIDANT
    return current


def _merge_unique(existing: tuple[str, ...], new: tuple[str, ...]) -> tuple[str, ...]:
    merged = list(existing)
    for item in new:
        if item not in merged:
            merged.append(item)
    return tuple(merged)


# =============================================================================
# Update
# =============================================================================


def update_profile(
    profile: LearnerProfile,
    results: DialogueResults,
    alpha: float = EMA_ALPHA,
) -> LearnerProfile:
    """
    Fold one dialogue's aggregated signals into a new profile value.

    Args:
        profile: Stored profile before this dialogue
        results: Completed dialogue results
        alpha: Base EMA weight for new observations

    Returns:
        New LearnerProfile; ``profile`` is left untouched
    """
    agg = results.aggregated
    extractions = results.extractions
    conf = profile.axis_confidence

    # Understanding axis (confidence-weighted)
    quality, understanding_conf = ema_with_confidence(
        profile.understanding.explanation_quality, agg.avg_explanation_quality, conf.understanding, alpha
    )
    elaboration, _ = ema_with_confidence(
        profile.understanding.elaboration_depth, agg.avg_elaboration_depth, conf.understanding, alpha
    )
    understanding = replace(
        profile.understanding,
        explanation_quality=quality,
        elaboration_depth=elaboration,
        analogy_aptness=ema(
            profile.understanding.analogy_aptness, 0.7 if agg.avg_explanation_quality > 0.6 else 0.4, alpha
        ),
        abstraction_level=ema(
            profile.understanding.abstraction_level,
            _mean([e.understanding.abstraction_level for e in extractions]) if extractions else 0.5,
            alpha,
        ),
        procedural_conceptual_ratio=ema(
            profile.understanding.procedural_conceptual_ratio,
            0.7 if agg.dominant_reasoning_style.value == "deductive" else 0.4,
            alpha,
        ),
        working_memory=_working_memory(agg),
    )

    # Confidence axis (confidence-weighted)
    hedging, calibration_conf = ema_with_confidence(
        profile.confidence.hedging_rate, agg.avg_hedging_rate, conf.calibration, alpha
    )
    certainty, _ = ema_with_confidence(
        profile.confidence.certainty_rate, agg.avg_certainty_rate, conf.calibration, alpha
    )
    calibration, _ = ema_with_confidence(
        profile.confidence.calibration_accuracy, agg.calibration_accuracy, conf.calibration, alpha
    )
    n = len(extractions)
    over = sum(1 for e in extractions if e.confidence.is_overconfident) / n if n else 0.0
    under = sum(1 for e in extractions if e.confidence.is_underconfident) / n if n else 0.0
    confidence = replace(
        profile.confidence,
        hedging_rate=hedging,
        certainty_rate=certainty,
        calibration_accuracy=calibration,
        confidence_trajectory=_trend(calibration, profile.confidence.calibration_accuracy),
        overconfidence_rate=ema(profile.confidence.overconfidence_rate, over, alpha) if n else profile.confidence.overconfidence_rate,
        underconfidence_rate=ema(profile.confidence.underconfidence_rate, under, alpha) if n else profile.confidence.underconfidence_rate,
    )

    # Metacognition axis
    exchanges = max(1, results.total_exchanges)
    meta = profile.metacognition
    metacognition = replace(
        meta,
        self_correction_rate=ema(meta.self_correction_rate, _unit(agg.total_self_corrections / exchanges), alpha),
        boundary_awareness=ema(
            meta.boundary_awareness, _mean([e.metacognition.boundary_awareness for e in extractions]), alpha
        ) if n else meta.boundary_awareness,
        question_quality=_dominant_question_quality(extractions) if n else meta.question_quality,
        reflection_frequency=ema(
            meta.reflection_frequency, _unit(_mean([e.metacognition.reflection_count for e in extractions])), alpha
        ) if n else meta.reflection_frequency,
        monitoring_frequency=ema(
            meta.monitoring_frequency, _unit(_mean([e.metacognition.monitoring_count for e in extractions])), alpha
        ) if n else meta.monitoring_frequency,
        help_seeking=_help_seeking(meta.help_seeking, extractions, agg.avg_explanation_quality) if n else meta.help_seeking,
        self_monitoring_accuracy=ema(
            meta.self_monitoring_accuracy, min(1.0, agg.total_self_corrections / exchanges * 5), alpha
        ),
    )

    # Reasoning axis (majority vote for categories)
    reasoning = replace(
        profile.reasoning,
        reasoning_style=agg.dominant_reasoning_style,
        processing_style=agg.dominant_processing_style,
        abstraction_preference=(
            extractions[-1].reasoning.abstraction_preference if n else profile.reasoning.abstraction_preference
        ),
        average_logical_chain_length=ema(
            profile.reasoning.average_logical_chain_length,
            _mean([float(e.reasoning.logical_chain_length) for e in extractions]),
            alpha,
        ) if n else profile.reasoning.average_logical_chain_length,
    )

    # Engagement axis
    eng = profile.engagement
    goal = eng.goal_orientation
    if agg.mastery_vs_performance in (GoalOrientation.MASTERY, GoalOrientation.PERFORMANCE):
        goal = agg.mastery_vs_performance
    engagement = replace(
        eng,
        average_response_latency_ms=ema(eng.average_response_latency_ms, agg.avg_response_latency_ms, alpha),
        engagement_trend=_engagement_trend(extractions),
        curiosity_score=ema(
            eng.curiosity_score,
            _mean([min(1.0, len(e.engagement.curiosity_signals) / 2) for e in extractions]),
            alpha,
        ) if n else eng.curiosity_score,
        frustration_threshold=max(1.0, ema(eng.frustration_threshold, _frustration_point(results), alpha)),
        persistence_after_error=ema(eng.persistence_after_error, _persistence_after_error(extractions), alpha),
        persistence_score=ema(
            eng.persistence_score,
            sum(1 for e in extractions if e.engagement.persistence_indicator) / n,
            alpha,
        ) if n else eng.persistence_score,
        goal_orientation=goal,
    )

    axis_confidence = AxisConfidence(
        understanding=understanding_conf,
        calibration=calibration_conf,
        metacognition=min(1.0, conf.metacognition + CONFIDENCE_STEP),
        reasoning=min(1.0, conf.reasoning + CONFIDENCE_STEP),
        engagement=min(1.0, conf.engagement + CONFIDENCE_STEP),
    )

    new_patterns = tuple(m for m in results.misconceptions_identified if m not in profile.error_patterns)
    error_patterns = (profile.error_patterns + new_patterns)[-MAX_ERROR_PATTERNS:]

    snapshot = DialogueSnapshot(
        skill_id=results.skill_id,
        skill_name=results.skill_name,
        total_exchanges=results.total_exchanges,
        discovery_achieved=results.discovery_achieved,
        final_understanding=results.final_understanding,
        effectiveness=results.effectiveness,
        understanding_progression=tuple(
            UNDERSTANDING_PROGRESSION[e.assessment.understanding_level] for e in extractions
        ),
        completed_at=results.timestamp,
    )

    updated = replace(
        profile,
        understanding=understanding,
        confidence=confidence,
        metacognition=metacognition,
        reasoning=reasoning,
        engagement=engagement,
        axis_confidence=axis_confidence,
        misconceptions=_merge_unique(profile.misconceptions, results.misconceptions_identified),
        error_patterns=error_patterns,
        last_dialogue=snapshot,
        dialogues_completed=profile.dialogues_completed + 1,
    )

    logger.debug(
        f"Profile {profile.learner_id}: quality {profile.understanding.explanation_quality:.2f} -> "
        f"{quality:.2f}, confidence {conf.understanding:.1f} -> {understanding_conf:.1f}"
    )
    return updated


def calculate_mastery_adjustment(results: DialogueResults) -> float:
    """Signed mastery delta for the external mastery tracker, in [-0.2, 0.35]."""
    adjustment = MASTERY_BASE.get(results.final_understanding, 0.0)
    if results.discovery_achieved:
        adjustment += 0.10
    if len(results.misconceptions_identified) > 2:
        adjustment -= 0.10
    if results.effectiveness > 0.7:
        adjustment += 0.05
    return max(MASTERY_MIN, min(MASTERY_MAX, adjustment))
