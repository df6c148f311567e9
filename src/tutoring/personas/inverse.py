"""
Inverse (Protege) persona: the learner teaches a simulated peer.

The user explains the concept; the simulated learner asks, gets confused,
confirms or connects ideas depending on its persona and on how clear the
explanation was. Teaching quality is scored from the user's messages and
the simulated learner's understanding rises with good explanations.
"""

from __future__ import annotations

import random
import re
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

from src.tutoring.models import DialogueKind, ExtractionResult, Intervention, QuestionType
from src.tutoring.personas.base import PersonaTurn
from src.tutoring.profile import LearnerProfile
from src.tutoring.state import Dialogue

EMA_ALPHA = 0.3
MAX_LEARNER_UNDERSTANDING = 0.95
UNDERSTANDING_STEP = 0.15


class LearnerPersona(str, Enum):
    CURIOUS_BEGINNER = "curious_beginner"
    ENGAGED_STUDENT = "engaged_student"
    SKEPTICAL_LEARNER = "skeptical_learner"
    CONFUSED_NOVICE = "confused_novice"
    EAGER_PEER = "eager_peer"


@dataclass(frozen=True)
class PersonaTraits:
    description: str
    question_style: str
    confusion_level: float
    challenge_level: float


PERSONAS: dict[LearnerPersona, PersonaTraits] = {
    LearnerPersona.CURIOUS_BEGINNER: PersonaTraits(
        "You are a curious beginner who knows nothing about this topic but is eager to learn.",
        "Ask simple, basic questions like 'What does that mean?' and 'Can you give me an example?'",
        0.7,
        0.1,
    ),
    LearnerPersona.ENGAGED_STUDENT: PersonaTraits(
        "You are an engaged student with some basic knowledge who wants to go deeper.",
        "Ask thoughtful follow-up questions and try to connect ideas.",
        0.4,
        0.3,
    ),
    LearnerPersona.SKEPTICAL_LEARNER: PersonaTraits(
        "You are a skeptical learner who questions everything and wants to understand why.",
        "Challenge explanations with 'But why?' and 'How do you know that?'",
        0.3,
        0.7,
    ),
    LearnerPersona.CONFUSED_NOVICE: PersonaTraits(
        "You are a confused novice who struggles to understand and needs patient explanations.",
        "Express confusion often and ask for simpler explanations.",
        0.9,
        0.1,
    ),
    LearnerPersona.EAGER_PEER: PersonaTraits(
        "You are an eager peer who learns collaboratively and builds on what's explained.",
        "Share related ideas and ask 'What about...' questions to explore connections.",
        0.3,
        0.4,
    ),
}

OPENING_PROMPTS: dict[LearnerPersona, str] = {
    LearnerPersona.CURIOUS_BEGINNER: (
        'Hi! I\'m trying to learn about "{skill}" but I don\'t know anything about it yet. '
        "Could you help explain it to me? I'm really curious to understand!"
    ),
    LearnerPersona.ENGAGED_STUDENT: (
        'Hey! I\'ve heard about "{skill}" and I know a little bit, but I want to understand it better. '
        "Can you teach me? I'll ask questions as we go."
    ),
    LearnerPersona.SKEPTICAL_LEARNER: (
        'I\'ve been hearing about "{skill}" but I\'m not sure I buy all the hype. '
        "Can you explain it to me and help me understand why it matters? I might ask some tough questions."
    ),
    LearnerPersona.CONFUSED_NOVICE: (
        'I\'m supposed to learn about "{skill}" but I\'m really struggling with it. '
        "Could you explain it in simple terms? Please be patient with me!"
    ),
    LearnerPersona.EAGER_PEER: (
        'I\'m also studying "{skill}" and I\'d love to learn from you! '
        "Let's explore it together - I'll share my thoughts and you can teach me what you know."
    ),
}

LEARNER_RESPONSES: dict[str, tuple[str, ...]] = {
    "asking": (
        "Hmm, can you explain that a bit more?",
        "What do you mean by that?",
        "Can you give me an example?",
        "How does that connect to what you said before?",
        "Why does that happen?",
        "What would happen if...?",
    ),
    "confirming": (
        "Oh, I think I'm starting to get it!",
        "So if I understand correctly...",
        "That makes sense because...",
        "Let me see if I got this right...",
    ),
    "confused": (
        "I'm a bit confused. Could you explain it differently?",
        "Wait, I'm not sure I follow that part.",
        "Hmm, that's tricky. Can you break it down more?",
        "I thought it worked differently. Can you clarify?",
    ),
    "connecting": (
        "Oh, is that similar to...?",
        "So this relates to... right?",
        "Does that mean...?",
        "I wonder if that also applies to...",
    ),
    "thanking": (
        "That really helped me understand it better!",
        "Thank you for explaining that so clearly!",
        "I feel like I'm really getting this now!",
        "Great explanation! Now I want to learn more about...",
    ),
}

# Teaching cues in the user's explanation
EXAMPLE_PATTERN = re.compile(r"for example|such as|like when|consider|imagine|let's say", re.IGNORECASE)
ANALOGY_PATTERN = re.compile(r"similar to|like a|just like|think of it as|it's like|comparable to", re.IGNORECASE)
STRUCTURE_PATTERN = re.compile(r"first|second|then|next|finally|step \d|because|therefore|so that", re.IGNORECASE)
SURFACE_PATTERN = re.compile(r"just|simply|basically|it's just that", re.IGNORECASE)
DEEP_PATTERN = re.compile(r"because|the reason is|this happens when|underlying|fundamentally", re.IGNORECASE)
LINK_PATTERN = re.compile(r"relates to|connects with|builds on|depends on|leads to", re.IGNORECASE)
UNCERTAINTY_PATTERN = re.compile(r"i'm not sure|i think|might be|possibly|could be|don't quote me", re.IGNORECASE)
PREREQUISITE_PATTERN = re.compile(
    r"before you can|first you need|you should know|prerequisite|foundation", re.IGNORECASE
)
FACT_OPINION_PATTERN = re.compile(
    r"in my opinion|some people say|the research shows|it's been proven", re.IGNORECASE
)
SIMPLIFY_PATTERN = re.compile(r"let me try|another way|simpler|differently|break it down|step by step", re.IGNORECASE)
CHECK_PATTERN = re.compile(r"does that make sense|do you follow|is that clear|got it\?|understand\?", re.IGNORECASE)
ENCOURAGEMENT_PATTERN = re.compile(r"good question|that's okay|don't worry|you're doing|keep going", re.IGNORECASE)
REPETITION_PATTERN = re.compile(r"and and|but but|so so", re.IGNORECASE)
SELF_CORRECTION_PATTERN = re.compile(r"actually|wait|let me correct|i was wrong|i meant", re.IGNORECASE)
ANTICIPATION_PATTERN = re.compile(r"you might wonder|you might ask|a common question", re.IGNORECASE)

QUESTION_OPENING = re.compile(r"^(do you|did you|are you|what|why|how|when|where|who|can you)", re.IGNORECASE)
CORRECTION_PATTERN = re.compile(
    r"actually|let me correct|i was wrong|i should clarify|to be more precise", re.IGNORECASE
)
SENTENCE_SPLIT = re.compile(r"[.!?]+")


# =============================================================================
# State
# =============================================================================


@dataclass(frozen=True)
class TeachingPsychometrics:
    """Indicators of how well one message teaches."""
    explanation_clarity: float
    explanation_completeness: float
    uses_examples: bool
    uses_analogies: bool
    structure_quality: float
    surface_vs_deep: str
    conceptual_accuracy: float
    corrects_own_mistakes: bool
    responds_to_confusion: bool
    simplifies_when_needed: bool
    elaborates_when_asked: bool
    anticipates_questions: bool
    acknowledges_uncertainty: bool
    distinguishes_fact_from_opinion: bool
    identifies_prerequisites: bool
    patience_level: float
    encouragement_provided: bool
    checks_for_understanding: bool


@dataclass(frozen=True)
class TeachingMetrics:
    overall_explanation_quality: float = 0.5
    conceptual_accuracy: float = 0.5
    teaching_adaptability: float = 0.5
    metacognitive_demonstration: float = 0.5
    patience_and_engagement: float = 0.5
    strength_areas: tuple[str, ...] = ()
    improvement_areas: tuple[str, ...] = ()
    deeper_than_qa: bool = False


@dataclass(frozen=True)
class InverseState:
    persona: LearnerPersona = LearnerPersona.CURIOUS_BEGINNER
    metrics: TeachingMetrics = field(default_factory=TeachingMetrics)
    learner_understanding: float = 0.1
    last_ai_role: str | None = None
    history: tuple[TeachingPsychometrics, ...] = ()


# =============================================================================
# Teaching Psychometrics
# =============================================================================


def extract_teaching_psychometrics(message: str, last_ai_role: str | None) -> TeachingPsychometrics:
    words = message.split()
    sentences = [s for s in SENTENCE_SPLIT.split(message) if s.strip()]

    has_examples = bool(EXAMPLE_PATTERN.search(message))
    has_analogies = bool(ANALOGY_PATTERN.search(message))
    has_structure = bool(STRUCTURE_PATTERN.search(message))
    has_surface_only = bool(SURFACE_PATTERN.search(message)) and len(words) < 30
    has_deep = bool(DEEP_PATTERN.search(message))
    has_links = bool(LINK_PATTERN.search(message))
    acknowledges_uncertainty = bool(UNCERTAINTY_PATTERN.search(message))

    responds_to_confusion = last_ai_role == "confused" and bool(SIMPLIFY_PATTERN.search(message))
    elaborates = last_ai_role == "asking" and len(words) > 40
    encouragement = bool(ENCOURAGEMENT_PATTERN.search(message))

    clarity = min(1.0, (
        (0.3 if has_structure else 0)
        + (0.2 if len(sentences) >= 2 else 0)
        + (0.2 if 20 < len(words) < 150 else 0)
        + (0.15 if has_examples else 0)
        + (0.15 if has_analogies else 0)
    ))

    if len(words) > 30:
        length_score = 0.3
    elif len(words) > 15:
        length_score = 0.15
    else:
        length_score = 0.0
    if len(sentences) >= 3:
        sentence_score = 0.3
    elif len(sentences) >= 2:
        sentence_score = 0.15
    else:
        sentence_score = 0.0
    completeness = min(1.0, (
        length_score + sentence_score + (0.2 if has_examples else 0) + (0.2 if has_links else 0)
    ))

    structure = min(1.0, (
        (0.4 if has_structure else 0)
        + (0.2 if len(sentences) >= 2 else 0)
        + (0.2 if not REPETITION_PATTERN.search(message) else 0)
        + (0.2 if has_links else 0)
    ))

    depth = "mixed"
    if has_surface_only and not has_deep:
        depth = "surface"
    elif has_deep and has_links:
        depth = "deep"

    accuracy = min(1.0, (
        0.5
        + (0.2 if has_deep else 0)
        + (0.1 if acknowledges_uncertainty else 0)
        + (0.1 if has_examples else 0)
        + (0.1 if has_links else 0)
    ))

    return TeachingPsychometrics(
        explanation_clarity=clarity,
        explanation_completeness=completeness,
        uses_examples=has_examples,
        uses_analogies=has_analogies,
        structure_quality=structure,
        surface_vs_deep=depth,
        conceptual_accuracy=accuracy,
        corrects_own_mistakes=bool(SELF_CORRECTION_PATTERN.search(message)),
        responds_to_confusion=responds_to_confusion,
        simplifies_when_needed=responds_to_confusion,
        elaborates_when_asked=elaborates,
        anticipates_questions=bool(ANTICIPATION_PATTERN.search(message)),
        acknowledges_uncertainty=acknowledges_uncertainty,
        distinguishes_fact_from_opinion=bool(FACT_OPINION_PATTERN.search(message)),
        identifies_prerequisites=bool(PREREQUISITE_PATTERN.search(message)),
        patience_level=min(1.0, 0.5 + (0.3 if encouragement else 0) + (0.2 if responds_to_confusion else 0)),
        encouragement_provided=encouragement,
        checks_for_understanding=bool(CHECK_PATTERN.search(message)),
    )


def classify_user_role(message: str, last_ai_role: str | None) -> str:
    """Role of the user's message: questioning, correcting, answering, elaborating or explaining."""
    if message.strip().endswith("?") or QUESTION_OPENING.search(message):
        return "questioning"
    if CORRECTION_PATTERN.search(message):
        return "correcting"
    if last_ai_role in ("asking", "confused"):
        return "answering"
    if last_ai_role in ("connecting", "confirming"):
        return "elaborating"
    return "explaining"


def determine_learner_role(
    persona: LearnerPersona,
    exchange_count: int,
    max_exchanges: int,
    psychometrics: TeachingPsychometrics,
    rng: random.Random,
) -> str:
    """How the simulated learner reacts to the latest explanation."""
    traits = PERSONAS[persona]

    if exchange_count >= max_exchanges - 1:
        return "thanking"

    if psychometrics.explanation_clarity < 0.4 and rng.random() < traits.confusion_level:
        return "confused"

    if (
        psychometrics.explanation_clarity > 0.7
        and psychometrics.conceptual_accuracy > 0.6
        and rng.random() < 0.4
    ):
        return "confirming"

    if persona == LearnerPersona.SKEPTICAL_LEARNER and rng.random() < traits.challenge_level:
        return "asking"

    if persona == LearnerPersona.EAGER_PEER and rng.random() < 0.4:
        return "connecting"

    return "asking"


# =============================================================================
# Metrics
# =============================================================================


def _blend(old: float, observation: float) -> float:
    return EMA_ALPHA * observation + (1 - EMA_ALPHA) * old


def _with(items: tuple[str, ...], item: str) -> tuple[str, ...]:
    return items if item in items else items + (item,)


def update_teaching_metrics(
    current: TeachingMetrics,
    psych: TeachingPsychometrics,
    exchange_count: int,
) -> TeachingMetrics:
    quality = _blend(
        current.overall_explanation_quality,
        (psych.explanation_clarity + psych.explanation_completeness + psych.structure_quality) / 3,
    )
    adaptability = _blend(current.teaching_adaptability, (
        (0.3 if psych.responds_to_confusion else 0)
        + (0.25 if psych.simplifies_when_needed else 0)
        + (0.25 if psych.elaborates_when_asked else 0)
        + (0.2 if psych.anticipates_questions else 0)
        + 0.3
    ))
    metacognitive = _blend(current.metacognitive_demonstration, (
        (0.3 if psych.acknowledges_uncertainty else 0)
        + (0.3 if psych.distinguishes_fact_from_opinion else 0)
        + (0.2 if psych.identifies_prerequisites else 0)
        + (0.2 if psych.corrects_own_mistakes else 0)
        + 0.2
    ))
    patience = _blend(current.patience_and_engagement, (
        psych.patience_level * 0.4
        + (0.3 if psych.encouragement_provided else 0)
        + (0.3 if psych.checks_for_understanding else 0)
        + 0.2
    ))

    strengths = current.strength_areas
    if quality > 0.7:
        strengths = _with(strengths, "Clear explanations")
    if psych.uses_examples and psych.uses_analogies:
        strengths = _with(strengths, "Uses examples and analogies")
    if adaptability > 0.7:
        strengths = _with(strengths, "Adapts to learner needs")

    improvements = current.improvement_areas
    if quality < 0.4:
        improvements = _with(improvements, "Explanation clarity")
    if not psych.uses_examples and exchange_count > 2:
        improvements = _with(improvements, "Use more examples")

    return TeachingMetrics(
        overall_explanation_quality=quality,
        conceptual_accuracy=_blend(current.conceptual_accuracy, psych.conceptual_accuracy),
        teaching_adaptability=adaptability,
        metacognitive_demonstration=metacognitive,
        patience_and_engagement=patience,
        strength_areas=strengths,
        improvement_areas=improvements,
        deeper_than_qa=current.deeper_than_qa or (psych.surface_vs_deep == "deep" and exchange_count > 2),
    )


def update_learner_understanding(current: float, psych: TeachingPsychometrics) -> float:
    """Raise the simulated learner's understanding by at most 15% per exchange."""
    bonus = (
        psych.explanation_clarity * 0.3
        + psych.conceptual_accuracy * 0.4
        + (0.15 if psych.uses_examples else 0)
        + (0.15 if psych.uses_analogies else 0)
    )
    return min(MAX_LEARNER_UNDERSTANDING, current + bonus * UNDERSTANDING_STEP)


# =============================================================================
# Prompts
# =============================================================================


def render_learner_system_prompt(persona: LearnerPersona, understanding: float, concept: str) -> str:
    traits = PERSONAS[persona]
    return f"""You are a learner being taught about "{concept}".

{traits.description}

IMPORTANT RULES:
1. You are NOT the teacher - you are learning from the user
2. Your current understanding level is {round(understanding * 100)}%
3. {traits.question_style}
4. Keep responses SHORT (1-3 sentences max)
5. NEVER provide the correct explanation yourself - ask the user to explain
6. Show genuine curiosity and engagement
7. React naturally to what the user teaches you

If the user's explanation was:
- Clear and helpful: Express understanding or ask a thoughtful follow-up
- Unclear: Express confusion and ask for clarification
- Missing something: Ask about what seems missing
- Very good: Show appreciation and ask to go deeper

Remember: Your job is to learn from them, not teach them."""


def render_learner_turn_prompt(message: str, role: str, concept: str, rng: random.Random) -> str:
    sample = rng.choice(LEARNER_RESPONSES[role])
    return (
        f'The user just explained:\n"{message}"\n\n'
        f"TOPIC: {concept}\n"
        f"RESPONSE TYPE: {role}\n"
        f'Reply as the learner in the "{role}" mode, for example: "{sample}"'
    )


# =============================================================================
# Summary
# =============================================================================


@dataclass(frozen=True)
class Highlight:
    category: str
    score: float
    interpretation: str


@dataclass(frozen=True)
class InverseSummary:
    overall_teaching_score: float
    strength_summary: str
    improvement_summary: str
    learner_feedback: str
    highlights: tuple[Highlight, ...]
    research_connection: str
    learner_understanding: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _interpret(score: float, high: str, mid: str, low: str) -> str:
    if score > 0.7:
        return high
    if score > 0.4:
        return mid
    return low


def summarize_teaching(state: InverseState) -> InverseSummary:
    m = state.metrics
    score = (
        m.overall_explanation_quality * 0.3
        + m.conceptual_accuracy * 0.25
        + m.teaching_adaptability * 0.2
        + m.metacognitive_demonstration * 0.15
        + m.patience_and_engagement * 0.1
    )

    strengths = (
        f"You demonstrated strength in: {', '.join(m.strength_areas)}"
        if m.strength_areas
        else "Keep practicing to develop teaching strengths"
    )
    improvements = (
        f"Areas to develop: {', '.join(m.improvement_areas)}"
        if m.improvement_areas
        else "Great teaching! Keep refining your explanations"
    )

    understanding = state.learner_understanding
    if understanding > 0.8:
        feedback = "I feel like I really understand this now! You're a great teacher!"
    elif understanding > 0.6:
        feedback = "I learned a lot from you. Some parts are still a bit fuzzy, but I'm getting there!"
    elif understanding > 0.4:
        feedback = "I think I understand the basics. Maybe we could go over some parts again?"
    else:
        feedback = "I'm still a bit confused about some things. Could you try explaining differently next time?"

    highlights = (
        Highlight("Explanation Quality", m.overall_explanation_quality, _interpret(
            m.overall_explanation_quality,
            "Clear and comprehensive", "Good but could be clearer", "Needs more structure",
        )),
        Highlight("Conceptual Accuracy", m.conceptual_accuracy, _interpret(
            m.conceptual_accuracy,
            "Accurate understanding", "Mostly correct", "Some gaps in understanding",
        )),
        Highlight("Teaching Adaptability", m.teaching_adaptability, _interpret(
            m.teaching_adaptability,
            "Excellent at adjusting to learner", "Responsive to feedback", "Could adapt more to confusion",
        )),
        Highlight("Metacognitive Awareness", m.metacognitive_demonstration, _interpret(
            m.metacognitive_demonstration,
            "Strong self-awareness", "Good reflection", "Could acknowledge more uncertainty",
        )),
    )

    research = (
        "Teaching helps you learn! Research shows a 50%+ retention boost when you explain "
        "concepts to others (Bargh & Schul, 1980). "
        + (
            "Your explanations revealed deeper understanding than simple Q&A would have!"
            if m.deeper_than_qa
            else "Keep teaching to deepen your understanding!"
        )
    )

    return InverseSummary(score, strengths, improvements, feedback, highlights, research, understanding)


# =============================================================================
# Strategy
# =============================================================================


class InverseStrategy:
    kind = DialogueKind.INVERSE
    closes_with_reply = True

    def initial_state(self, profile: LearnerProfile, persona: str | None) -> InverseState:
        return InverseState(persona=LearnerPersona(persona) if persona else LearnerPersona.CURIOUS_BEGINNER)

    def opening_message(self, dialogue: Dialogue, question_type: QuestionType, rng: random.Random) -> str:
        return OPENING_PROMPTS[dialogue.persona_state.persona].format(skill=dialogue.skill_name)

    def system_prompt(self, dialogue: Dialogue) -> str:
        state: InverseState = dialogue.persona_state
        return render_learner_system_prompt(state.persona, state.learner_understanding, dialogue.target_concept)

    def classify_role(self, dialogue: Dialogue, learner_response: str) -> str:
        return classify_user_role(learner_response, dialogue.persona_state.last_ai_role)

    def respond(
        self,
        dialogue: Dialogue,
        learner_response: str,
        extraction: ExtractionResult,
        question_type: QuestionType,
        rng: random.Random,
    ) -> PersonaTurn:
        state: InverseState = dialogue.persona_state
        psych = extract_teaching_psychometrics(learner_response, state.last_ai_role)
        count = dialogue.exchange_count
        # The role is chosen from the count before this exchange, so thanking lands on the last one
        role = determine_learner_role(state.persona, count - 1, dialogue.max_exchanges, psych, rng)

        new_state = replace(
            state,
            metrics=update_teaching_metrics(state.metrics, psych, count),
            learner_understanding=update_learner_understanding(state.learner_understanding, psych),
            last_ai_role=role,
            history=state.history + (psych,),
        )
        return PersonaTurn(
            response_type=role,
            persona_state=new_state,
            system_prompt=render_learner_system_prompt(
                new_state.persona, new_state.learner_understanding, dialogue.target_concept
            ),
            turn_prompt=render_learner_turn_prompt(learner_response, role, dialogue.target_concept, rng),
        )

    def is_complete(self, dialogue: Dialogue, turn: PersonaTurn, intervention: Intervention) -> bool:
        return turn.response_type == "thanking" or dialogue.exchange_count >= dialogue.max_exchanges

    def summarize(self, dialogue: Dialogue) -> InverseSummary:
        return summarize_teaching(dialogue.persona_state)
