"""Learner-facing summary of a Socratic dialogue."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any

from src.tutoring.dialogue_path import calculate_effectiveness
from src.tutoring.models import EngagementLevel
from src.tutoring.state import Dialogue

CONFIDENCE_MARGIN = 0.2


@dataclass(frozen=True)
class DialogueSummary:
    total_exchanges: int
    discovery_made: bool
    final_understanding: str
    effectiveness_score: int
    key_insights: tuple[str, ...]
    misconceptions: tuple[str, ...]
    avg_engagement: str
    avg_confidence: str
    duration: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["key_insights"] = list(self.key_insights)
        data["misconceptions"] = list(self.misconceptions)
        return data


def format_duration(duration_ms: int) -> str:
    minutes, rest = divmod(max(0, duration_ms), 60000)
    return f"{minutes}m {rest // 1000}s"


def summarize_dialogue(dialogue: Dialogue) -> DialogueSummary:
    effectiveness = calculate_effectiveness(dialogue.state, dialogue.known_misconceptions)
    extractions = dialogue.extractions

    # Modal engagement; ties resolve high > medium > low
    counts = Counter(e.engagement.engagement_level for e in extractions)
    avg_engagement = EngagementLevel.HIGH
    for level in EngagementLevel:
        if counts[level] > counts[avg_engagement]:
            avg_engagement = level

    n = max(1, len(extractions))
    hedging = sum(e.confidence.hedging_rate for e in extractions) / n
    certainty = sum(e.confidence.certainty_rate for e in extractions) / n
    if certainty > hedging + CONFIDENCE_MARGIN:
        avg_confidence = "confident"
    elif hedging > certainty + CONFIDENCE_MARGIN:
        avg_confidence = "uncertain"
    else:
        avg_confidence = "balanced"

    final = extractions[-1].assessment.understanding_level.value if extractions else "unknown"

    return DialogueSummary(
        total_exchanges=dialogue.exchange_count,
        discovery_made=dialogue.state.discovery_made,
        final_understanding=final,
        effectiveness_score=round(effectiveness.score * 100),
        key_insights=tuple(dict.fromkeys(i for e in extractions for i in e.insights)),
        misconceptions=tuple(dict.fromkeys(m for e in extractions for m in e.misconceptions)),
        avg_engagement=avg_engagement.value,
        avg_confidence=avg_confidence,
        duration=format_duration(dialogue.duration_ms),
    )
