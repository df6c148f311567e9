"""
Psychometric Feature Extractor: turns one learner utterance into indicators.

Each detector is a heuristic pattern matcher over the lowercased text. None
of them raise; sparse or odd input falls back to neutral values (0.5
abstraction, mixed reasoning, medium engagement).

Detectors:
- Hedging / certainty language (calibration)
- Self-correction and metacognitive markers (boundary, monitoring, reflection)
- Reasoning style, logical chains, causal language
- Abstraction level (concrete vs abstract phrasing)
- Engagement: curiosity, frustration, goal orientation
- Communication: responsiveness, coherence, vocabulary, sentence length
- Explanation quality, misconceptions, insight phrases
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence, TypeVar

from loguru import logger

from src.tutoring.models import (
    AbstractionPreference,
    AggregatedPsychometrics,
    Assessment,
    CommunicationIndicators,
    ConfidenceIndicators,
    EngagementIndicators,
    EngagementLevel,
    ExtractionResult,
    GoalOrientation,
    MetacognitionIndicators,
    ProcessingStyle,
    QuestionQuality,
    QuestionType,
    ReasoningIndicators,
    ReasoningStyle,
    UnderstandingIndicators,
    UnderstandingLevel,
)
from src.tutoring.state import DialogueExchange

E = TypeVar("E")


# =============================================================================
# Marker Inventories
# =============================================================================

HEDGING_MARKERS = (
    "maybe", "i think", "probably", "not sure", "might be", "could be",
    "possibly", "perhaps", "i guess", "i suppose", "sort of", "kind of",
    "i'm not certain", "seems like", "appears to", "i believe", "somewhat",
    "fairly", "rather", "quite", "apparently", "it seems", "it looks like",
    "i feel like", "in a way",
)

CERTAINTY_MARKERS = (
    "definitely", "always", "must be", "obviously", "clearly", "certainly",
    "absolutely", "without doubt", "for sure", "of course", "no question",
    "undoubtedly", "exactly", "precisely", "totally", "i know", "i'm sure",
    "i'm certain", "completely", "entirely",
)

SELF_CORRECTION_MARKERS = (
    "wait", "actually", "let me rethink", "no, that's wrong", "hold on",
    "i made a mistake", "let me reconsider", "on second thought",
    "i take that back", "correction:", "let me correct", "i was wrong",
    "that's not right", "sorry, i meant", "what i meant was", "let me rephrase",
    "hmm, actually", "no wait", "scratch that",
)

BOUNDARY_MARKERS = (
    "i don't know", "i'm not sure about", "i haven't learned", "i need to review",
    "i'm confused about", "i don't understand", "that's beyond what i know",
    "i'm uncertain about", "i would need to check", "i can't remember",
    "this is new to me", "i'm not familiar with", "i'm struggling with",
)

MONITORING_MARKERS = (
    "let me check", "does that make sense?", "am i right?", "i'm not sure if",
    "is that correct?", "let me verify", "did i get that right?",
    "i should double-check",
)

REFLECTION_MARKERS = (
    "i wonder why i thought", "looking back", "i realize",
    "now that i think about it", "in retrospect", "upon reflection",
    "i see now that", "i understand now", "it makes sense because",
)

DEDUCTIVE_MARKERS = (
    "because of the rule", "according to", "by definition", "therefore", "thus",
    "hence", "it follows that", "since", "given that", "as a result of",
)
# "if ... then" spans arbitrary text inside one sentence
IF_THEN_PATTERN = re.compile(r"\bif\b[^.!?]*\bthen\b")

INDUCTIVE_MARKERS = (
    "for example", "like", "such as", "in this case", "i've seen", "based on",
    "from what i know", "generally", "usually", "often", "in my experience",
)

CHAIN_MARKERS = ("therefore", "so", "which means", "thus", "hence", "consequently")

CAUSAL_MARKERS = (
    "because", "causes", "leads to", "results in", "due to", "as a result",
    "consequently", "so that", "in order to", "the reason is", "this happens when",
)

CONCRETE_MARKERS = (
    "for example", "specifically", "in this case", "like when", "such as",
    "imagine", "picture", "think of",
)

ABSTRACT_MARKERS = (
    "in general", "always", "the principle", "the concept", "theoretically",
    "fundamentally", "essentially", "in essence", "the underlying", "at its core",
    "broadly speaking",
)

CURIOSITY_MARKERS = (
    "what about", "i wonder", "can you tell me more", "that's interesting",
    "why does", "how does", "i'd like to know", "what if", "could you explain",
    "i'm curious", "is there more", "tell me more",
)

FRUSTRATION_MARKERS = (
    "this is confusing", "i give up", "this doesn't work", "i don't get it",
    "this makes no sense", "i'm lost", "this is too hard", "i can't do this",
    "i'm frustrated", "this is impossible", "whatever", "never mind",
)

MASTERY_MARKERS = (
    "i want to understand", "i want to learn", "help me see",
    "i'd like to figure out", "let me try", "can i explore",
    "i'm interested in understanding", "how can i improve",
)

PERFORMANCE_MARKERS = (
    "i need to get this right", "just tell me the answer",
    "what's the correct answer", "is this right?", "did i pass?", "what grade",
    "how many did i get",
)

TANGENT_MARKERS = ("by the way", "off topic", "unrelated", "anyway", "speaking of which")

EXPLANATION_MARKERS = (
    "because", "this means", "in other words", "the reason", "this happens when",
    "it works by", "the way this works",
)
EXAMPLE_MARKERS = ("for example", "like when", "such as")
CONNECTION_MARKERS = ("similar to", "related to", "connects to")
CAUSAL_QUALITY_MARKERS = ("causes", "leads to", "results in", "therefore", "consequently")

INSIGHT_MARKERS = (
    "oh!", "aha", "i see", "i get it", "that makes sense", "now i understand",
    "so that's why", "i didn't realize", "wait, so", "oh, because", "that means",
    "i think i see", "now it clicks", "that's it!", "eureka",
)

STRATEGY_MARKERS = ("my approach", "first i", "i'm thinking")

SENTENCE_SPLIT = re.compile(r"[.!?]+")
WH_QUESTION = re.compile(r"\b(what|why|how|when|where|which)\b", re.IGNORECASE)
DIVERGENT_PATTERN = re.compile(r"or maybe|alternatively|another way", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\d+")


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class ExtractionContext:
    """Shallow context for one extraction."""
    target_concept: str
    exchange_number: int = 1
    previous_exchanges: tuple[DialogueExchange, ...] = ()
    known_misconceptions: tuple[str, ...] = ()
    tutor_question: str = ""

    @property
    def question_being_answered(self) -> str:
        if self.tutor_question:
            return self.tutor_question
        if self.previous_exchanges:
            return self.previous_exchanges[-1].tutor_message
        return ""


# =============================================================================
# Helpers
# =============================================================================


def _found(lower: str, markers: Iterable[str]) -> tuple[str, ...]:
    return tuple(m for m in markers if m in lower)


def _sentences(text: str) -> list[str]:
    return SENTENCE_SPLIT.split(text)


def _word_count(text: str) -> int:
    return len(text.split())


def _length_normalized_rate(found: int, word_count: int) -> float:
    return min(1.0, found / max(3.0, word_count / 20))


def _sentences_containing(text: str, markers: Iterable[str], min_length: int = 0) -> tuple[str, ...]:
    """Every sentence containing a marker, once per marker that occurs."""
    lower = text.lower()
    sentences = _sentences(text)
    matched: list[str] = []
    for marker in markers:
        if marker not in lower:
            continue
        for sentence in sentences:
            if marker in sentence.lower() and len(sentence.strip()) > min_length:
                matched.append(sentence.strip())
    return tuple(matched)


# =============================================================================
# Detectors
# =============================================================================


def detect_hedging(text: str) -> tuple[float, tuple[str, ...]]:
    """Hedging rate normalized by response length, plus matched markers."""
    markers = _found(text.lower(), HEDGING_MARKERS)
    return _length_normalized_rate(len(markers), _word_count(text)), markers


def detect_certainty(text: str) -> tuple[float, tuple[str, ...]]:
    markers = _found(text.lower(), CERTAINTY_MARKERS)
    return _length_normalized_rate(len(markers), _word_count(text)), markers


def detect_self_corrections(text: str) -> tuple[str, ...]:
    return _sentences_containing(text, SELF_CORRECTION_MARKERS)


def detect_metacognition(text: str) -> tuple[float, tuple[str, ...], int, int]:
    """Return (boundary awareness, boundary markers, monitoring count, reflection count)."""
    lower = text.lower()
    boundary = _found(lower, BOUNDARY_MARKERS)
    monitoring = _found(lower, MONITORING_MARKERS)
    reflection = _found(lower, REFLECTION_MARKERS)
    return min(1.0, len(boundary) / 3), boundary, len(monitoring), len(reflection)


def classify_reasoning(text: str) -> ReasoningIndicators:
    """Deductive vs inductive style, chain length and causal language."""
    lower = text.lower()
    deductive = _found(lower, DEDUCTIVE_MARKERS)
    if IF_THEN_PATTERN.search(lower):
        deductive = deductive + ("if...then",)
    inductive = _found(lower, INDUCTIVE_MARKERS)

    style = ReasoningStyle.MIXED
    if len(deductive) > len(inductive) * 1.5:
        style = ReasoningStyle.DEDUCTIVE
    elif len(inductive) > len(deductive) * 1.5:
        style = ReasoningStyle.INDUCTIVE

    # Every occurrence counts, including inside longer words
    chain = sum(len(re.findall(re.escape(m), lower)) for m in CHAIN_MARKERS)
    causal = _found(lower, CAUSAL_MARKERS)

    level, preference = measure_abstraction(text)
    return ReasoningIndicators(
        reasoning_style=style,
        deductive_markers=deductive,
        inductive_markers=inductive,
        logical_chain_length=chain,
        causal_reasoning=bool(causal),
        causal_markers=causal,
        abstraction_preference=preference,
        processing_style=ProcessingStyle.SEQUENTIAL if chain > 2 else ProcessingStyle.HOLISTIC,
        divergent_thinking=len(DIVERGENT_PATTERN.findall(text)),
    )


def measure_abstraction(text: str) -> tuple[float, AbstractionPreference]:
    """Abstract share of abstraction markers; 0.5 when none appear."""
    lower = text.lower()
    concrete = len(_found(lower, CONCRETE_MARKERS)) + len(NUMBER_PATTERN.findall(text))
    abstract = len(_found(lower, ABSTRACT_MARKERS))
    total = concrete + abstract
    if total == 0:
        return 0.5, AbstractionPreference.BALANCED

    level = abstract / total
    if level > 0.65:
        return level, AbstractionPreference.ABSTRACT
    if level < 0.35:
        return level, AbstractionPreference.CONCRETE
    return level, AbstractionPreference.BALANCED


def detect_engagement(text: str, latency_ms: int) -> EngagementIndicators:
    lower = text.lower()
    word_count = _word_count(text)
    curiosity = _found(lower, CURIOSITY_MARKERS)
    frustration = _found(lower, FRUSTRATION_MARKERS)
    mastery = len(_found(lower, MASTERY_MARKERS))
    performance = len(_found(lower, PERFORMANCE_MARKERS))

    if word_count > 30 and curiosity and not frustration:
        level = EngagementLevel.HIGH
    elif word_count < 10 or frustration or (latency_ms < 2000 and word_count < 15):
        level = EngagementLevel.LOW
    else:
        level = EngagementLevel.MEDIUM

    return EngagementIndicators(
        response_latency_ms=latency_ms,
        word_count=word_count,
        curiosity_signals=curiosity,
        frustration_signals=frustration,
        engagement_level=level,
        persistence_indicator=False,
        mastery_orientation=mastery > performance,
    )


def analyze_communication(text: str, tutor_question: str) -> CommunicationIndicators:
    lower = text.lower()
    words = text.split()

    responsiveness = 0.5
    if tutor_question and WH_QUESTION.search(tutor_question):
        content_words = [w for w in tutor_question.lower().split() if len(w) > 4]
        response_words = lower.split()
        overlap = sum(1 for w in content_words if w in response_words)
        responsiveness = min(1.0, overlap / max(1, len(content_words)) + 0.3)

    coherence = 1.0
    for marker in TANGENT_MARKERS:
        if marker in lower:
            coherence -= 0.2
    coherence = max(0.0, coherence)

    avg_word_length = sum(len(w) for w in words) / len(words) if words else 0.0
    vocabulary = max(0.0, min(1.0, (avg_word_length - 3) / 5))

    sentences = [s for s in _sentences(text) if s.strip()]
    grammar = min(1.0, (len(words) / max(1, len(sentences))) / 25)

    return CommunicationIndicators(
        responsiveness=responsiveness,
        topic_coherence=coherence,
        vocabulary_sophistication=vocabulary,
        grammatical_complexity=grammar,
    )


def assess_explanation_quality(text: str, target_concept: str) -> float:
    """Additive heuristic over structure, examples, connections and length."""
    lower = text.lower()
    score = 0.0

    if target_concept and target_concept.lower() in lower:
        score += 0.1
    score += 0.1 * len(_found(lower, EXPLANATION_MARKERS))
    if _found(lower, EXAMPLE_MARKERS):
        score += 0.15
    if _found(lower, CONNECTION_MARKERS):
        score += 0.15
    score += min(0.3, _word_count(text) / 100)
    score += 0.05 * len(_found(lower, CAUSAL_QUALITY_MARKERS))

    return min(1.0, score)


def detect_misconceptions(text: str, known: Sequence[str]) -> tuple[str, ...]:
    """Flag a known misconception when enough of its keywords appear."""
    lower = text.lower()
    flagged: list[str] = []
    for misconception in known:
        keywords = [w for w in misconception.lower().split() if len(w) > 4]
        if not keywords:
            continue
        matches = sum(1 for k in keywords if k in lower)
        if matches >= min(2, len(keywords)):
            flagged.append(misconception)
    return tuple(flagged)


def detect_insights(text: str) -> tuple[str, ...]:
    return _sentences_containing(text, INSIGHT_MARKERS, min_length=10)


# =============================================================================
# Main Extraction
# =============================================================================


def extract_response(text: str, latency_ms: int, context: ExtractionContext) -> ExtractionResult:
    """
    Extract every indicator for one learner turn.

    Deterministic: the same text, latency and context always give an equal
    result.
    """
    lower = text.lower()
    word_count = _word_count(text)

    hedging_rate, hedging_markers = detect_hedging(text)
    certainty_rate, certainty_markers = detect_certainty(text)
    corrections = detect_self_corrections(text)
    boundary, boundary_markers, monitoring, reflection = detect_metacognition(text)
    reasoning = classify_reasoning(text)
    abstraction_level, _ = measure_abstraction(text)
    engagement = detect_engagement(text, latency_ms)
    communication = analyze_communication(text, context.question_being_answered)
    quality = assess_explanation_quality(text, context.target_concept)
    misconceptions = detect_misconceptions(text, context.known_misconceptions)
    insights = detect_insights(text)

    if reflection > 0 or monitoring > 0:
        question_quality = QuestionQuality.METACOGNITIVE
    elif reasoning.logical_chain_length > 1 or reasoning.causal_reasoning:
        question_quality = QuestionQuality.DEEP
    else:
        question_quality = QuestionQuality.SURFACE

    if word_count < 10 or engagement.engagement_level == EngagementLevel.LOW:
        level = UnderstandingLevel.NONE
    elif quality < 0.3:
        level = UnderstandingLevel.SURFACE
    elif quality < 0.5:
        level = UnderstandingLevel.PARTIAL
    elif quality < 0.75 or not insights:
        level = UnderstandingLevel.DEEP
    else:
        level = UnderstandingLevel.TRANSFER

    is_discovery = bool(insights) or bool(corrections)

    if is_discovery:
        recommended = QuestionType.REFLECTION
    elif misconceptions:
        recommended = QuestionType.CHALLENGING
    elif level in (UnderstandingLevel.DEEP, UnderstandingLevel.TRANSFER):
        recommended = QuestionType.METACOGNITIVE
    elif level in (UnderstandingLevel.NONE, UnderstandingLevel.SURFACE):
        recommended = QuestionType.CLARIFYING
    elif hedging_rate > 0.3:
        recommended = QuestionType.PROBING
    else:
        recommended = QuestionType.SCAFFOLDING

    result = ExtractionResult(
        exchange_number=context.exchange_number,
        understanding=UnderstandingIndicators(
            explanation_quality=quality,
            analogy_aptness=0.7 if 0.3 < abstraction_level < 0.7 else 0.4,
            elaboration_depth=min(1.0, word_count / 80),
            abstraction_level=abstraction_level,
            procedural_conceptual_ratio=0.7 if reasoning.reasoning_style == ReasoningStyle.DEDUCTIVE else 0.4,
            conceptual_connections=reasoning.logical_chain_length,
        ),
        confidence=ConfidenceIndicators(
            hedging_rate=hedging_rate,
            certainty_rate=certainty_rate,
            hedging_markers=hedging_markers,
            certainty_markers=certainty_markers,
            is_overconfident=certainty_rate > 0.5 and bool(misconceptions),
            is_underconfident=hedging_rate > 0.4 and quality > 0.6,
        ),
        metacognition=MetacognitionIndicators(
            self_corrections=corrections,
            boundary_awareness=boundary,
            boundary_markers=boundary_markers,
            question_quality=question_quality,
            reflection_count=reflection,
            monitoring_count=monitoring,
            strategy_verbalization=any(m in lower for m in STRATEGY_MARKERS),
        ),
        reasoning=reasoning,
        engagement=EngagementIndicators(
            response_latency_ms=engagement.response_latency_ms,
            word_count=engagement.word_count,
            curiosity_signals=engagement.curiosity_signals,
            frustration_signals=engagement.frustration_signals,
            engagement_level=engagement.engagement_level,
            persistence_indicator=bool(corrections) or "let me try" in lower,
            mastery_orientation=engagement.mastery_orientation,
        ),
        communication=communication,
        misconceptions=misconceptions,
        insights=insights,
        assessment=Assessment(
            understanding_level=level,
            is_discovery_moment=is_discovery,
            recommended_next_question_type=recommended,
        ),
    )

    logger.debug(
        f"Exchange {context.exchange_number}: {level.value} understanding, "
        f"quality={quality:.2f}, hedging={hedging_rate:.2f}, next={recommended.value}"
    )
    return result


# =============================================================================
# Aggregation
# =============================================================================


def _dominant(values: Iterable[E], order: Sequence[E]) -> E:
    """Most frequent value; ties go to the earliest entry in ``order``."""
    counts = Counter(values)
    best = order[0]
    for candidate in order:
        if counts[candidate] > counts[best]:
            best = candidate
    return best


def aggregate_extractions(
    extractions: Sequence[ExtractionResult],
    correctness: Sequence[bool],
) -> AggregatedPsychometrics:
    """Fold a dialogue's extractions into one summary."""
    if not extractions:
        return AggregatedPsychometrics()

    n = len(extractions)

    def mean(values: Iterable[float]) -> float:
        return sum(values) / n

    paired = min(len(extractions), len(correctness))
    calibrated = sum(
        1
        for e, correct in zip(extractions[:paired], correctness[:paired])
        if (e.confidence.certainty_rate > e.confidence.hedging_rate) == correct
    )
    calibration = calibrated / paired if paired else 0.5

    mastery = sum(1 for e in extractions if e.engagement.mastery_orientation)
    performance = n - mastery
    if mastery > performance * 1.5:
        orientation = GoalOrientation.MASTERY
    elif performance > mastery * 1.5:
        orientation = GoalOrientation.PERFORMANCE
    else:
        orientation = GoalOrientation.BALANCED

    return AggregatedPsychometrics(
        avg_explanation_quality=mean(e.understanding.explanation_quality for e in extractions),
        avg_hedging_rate=mean(e.confidence.hedging_rate for e in extractions),
        avg_certainty_rate=mean(e.confidence.certainty_rate for e in extractions),
        avg_elaboration_depth=mean(e.understanding.elaboration_depth for e in extractions),
        avg_response_latency_ms=mean(e.engagement.response_latency_ms for e in extractions),
        total_self_corrections=sum(e.metacognition.self_correction_count for e in extractions),
        total_insights=sum(len(e.insights) for e in extractions),
        total_misconceptions=sum(len(e.misconceptions) for e in extractions),
        calibration_accuracy=calibration,
        dominant_reasoning_style=_dominant(
            (e.reasoning.reasoning_style for e in extractions), list(ReasoningStyle)
        ),
        dominant_processing_style=_dominant(
            (e.reasoning.processing_style for e in extractions), list(ProcessingStyle)
        ),
        overall_engagement=_dominant(
            (e.engagement.engagement_level for e in extractions), list(EngagementLevel)
        ),
        mastery_vs_performance=orientation,
    )
