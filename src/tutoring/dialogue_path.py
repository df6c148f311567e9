"""
Question banks and the planned path of question types through a dialogue.

The path is planned once at the start from the learner's starting point and
then adapted after each exchange: discoveries jump to reflection, correct
answers skip remaining scaffolding, misconceptions insert probing and
challenging steps.
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, replace

from src.tutoring.models import AdaptiveConfig, CalibrationStance, QuestionType, TutorUnderstanding
from src.tutoring.state import DialogueExchange, DialogueState


# =============================================================================
# Question Banks
# =============================================================================

QUESTION_BANK: dict[QuestionType, tuple[str, ...]] = {
    QuestionType.CLARIFYING: (
        "What do you think is happening here?",
        "Can you tell me more about your reasoning?",
        "What made you think of that approach?",
        "What do you already know about {concept}?",
        "How would you explain this to a friend?",
        "What parts of this are you certain about?",
        "What seems confusing or unclear?",
    ),
    QuestionType.PROBING: (
        "Why do you think that's the case?",
        "What would happen if {hypothetical}?",
        "How does this connect to {related_concept}?",
        "What evidence supports your thinking?",
        "Is there another way to look at this?",
        "What assumptions are you making?",
        "How confident are you in that reasoning?",
    ),
    QuestionType.SCAFFOLDING: (
        "Let's break this down. What's the first step?",
        "What would you need to know to solve this?",
        "Can you think of a simpler case?",
        "What patterns do you notice?",
        "If we knew {key_fact}, what could we figure out?",
        "Let's start with what we know for certain.",
        "What's the relationship between {a} and {b}?",
    ),
    QuestionType.CHALLENGING: (
        "That's interesting - but what about {counterexample}?",
        "How would you handle the case where {edge_case}?",
        "Can you prove that's always true?",
        "What would someone who disagrees say?",
        "Does this work when {boundary_condition}?",
        "How is this different from {similar_concept}?",
    ),
    QuestionType.REFLECTION: (
        "What do you understand now that you didn't before?",
        "How did your thinking change?",
        "What was the key insight that helped?",
        "Could you teach this to someone else?",
        "What would you do differently next time?",
        "How does this connect to other things you've learned?",
    ),
    QuestionType.METACOGNITIVE: (
        "What's your thinking process here?",
        "How do you know when you've understood something?",
        "What strategies are you using?",
        "What made this challenging?",
        "How did you monitor your own understanding?",
        "What questions are you asking yourself?",
    ),
}

CELEBRATIONS = (
    "Yes! You've discovered a key insight!",
    "Excellent reasoning - you figured it out yourself!",
    "That's exactly it! Your thinking led you there.",
    "Brilliant! That's the breakthrough moment.",
    "You've got it! That understanding came from your own thinking.",
    "Perfect! Notice how you worked through that yourself?",
)

OPENING_TEMPLATES: dict[QuestionType, tuple[str, ...]] = {
    QuestionType.CLARIFYING: (
        "Let's explore {skill} together. What do you already know about {concept}?",
        "I'd like to understand your current thinking about {skill}. "
        "Can you tell me what comes to mind when you think about {concept}?",
        "Before we dive in, what's your understanding of {concept}?",
    ),
    QuestionType.PROBING: (
        "What do you think is the most important aspect of {concept}?",
        "If you had to explain {concept} to someone, what would you say?",
    ),
    QuestionType.SCAFFOLDING: (
        "Let's break down {skill} step by step. What's the first thing we need to understand about {concept}?",
        "To understand {concept}, what do you think we need to know first?",
    ),
    QuestionType.CHALLENGING: (
        "What makes {concept} different from related concepts you might know?",
        "Can you think of a situation where {concept} might not apply the way you'd expect?",
    ),
    QuestionType.REFLECTION: (
        "Think back to what you've learned before. How might {concept} connect to your prior knowledge?",
    ),
    QuestionType.METACOGNITIVE: (
        "What's your approach when learning something new like {concept}?",
        "How confident do you feel about {skill}? What parts seem clear vs unclear?",
    ),
}

REASSURANCE = " Don't worry if you're not sure - we'll figure it out together."


# =============================================================================
# Rendering
# =============================================================================


def _fillers(concept: str, skill: str) -> dict[str, str]:
    return {
        "concept": concept,
        "skill": skill,
        "hypothetical": f"{concept} worked the other way around",
        "related_concept": skill,
        "key_fact": f"what {concept} depends on",
        "a": concept,
        "b": skill,
        "counterexample": f"a case where {concept} seems to break",
        "edge_case": "the values are extreme",
        "boundary_condition": "the simplest possible case applies",
        "similar_concept": f"ideas that look like {concept}",
    }


def _placeholders(template: str) -> set[str]:
    return {name for _, name, _, _ in string.Formatter().parse(template) if name}


def fill_template(template: str, concept: str, skill: str) -> str:
    """Fill a question-bank template; unknown placeholders are left blank."""
    values = _fillers(concept, skill)
    return template.format(**{k: values.get(k, "") for k in _placeholders(template)})


def render_question(
    question_type: QuestionType,
    concept: str,
    skill: str,
    rng: random.Random,
) -> str:
    """Pick and fill a question of the given type."""
    return fill_template(rng.choice(QUESTION_BANK[question_type]), concept, skill)


def render_celebration(rng: random.Random) -> str:
    return rng.choice(CELEBRATIONS)


def render_opening_question(
    question_type: QuestionType,
    skill: str,
    concept: str,
    config: AdaptiveConfig,
    rng: random.Random,
) -> str:
    """
    Choose an opening question uniformly from the type's templates.

    Adds reassurance for learners on heavy scaffolding and softens the
    opener under a supportive calibration stance.
    """
    template = rng.choice(OPENING_TEMPLATES[question_type])
    question = template.format(skill=skill, concept=concept)

    if config.scaffolding.level <= 2:
        question += REASSURANCE
    if config.calibration.question_style == CalibrationStance.SUPPORTIVE:
        question = question.replace("What do you", "I'm curious - what do you")
    return question


# =============================================================================
# Path Planning
# =============================================================================


def plan_dialogue_path(
    starting_understanding: TutorUnderstanding,
    has_misconception: bool,
) -> tuple[QuestionType, ...]:
    """Plan question types from the learner's starting point."""
    path = [QuestionType.CLARIFYING]

    if has_misconception:
        path += [QuestionType.PROBING, QuestionType.CHALLENGING, QuestionType.SCAFFOLDING]
    elif starting_understanding == TutorUnderstanding.PARTIAL:
        path += [QuestionType.SCAFFOLDING, QuestionType.PROBING, QuestionType.CHALLENGING]
    else:
        path += [QuestionType.SCAFFOLDING, QuestionType.PROBING, QuestionType.SCAFFOLDING]

    path += [QuestionType.REFLECTION, QuestionType.METACOGNITIVE]
    return tuple(path)


def adapt_dialogue_path(
    path: tuple[QuestionType, ...],
    index: int,
    understanding: TutorUnderstanding,
    is_discovery: bool,
) -> tuple[tuple[QuestionType, ...], int]:
    """Return the adapted (path, index) after an exchange."""
    if is_discovery:
        return (QuestionType.REFLECTION, QuestionType.METACOGNITIVE), 0

    remaining = path[index + 1:]

    if understanding in (TutorUnderstanding.CORRECT, TutorUnderstanding.ADVANCED):
        skipped = tuple(q for q in remaining if q != QuestionType.SCAFFOLDING)
        if QuestionType.REFLECTION not in skipped:
            skipped = skipped + (QuestionType.REFLECTION,)
        return skipped, 0

    if understanding == TutorUnderstanding.MISCONCEPTION:
        return (QuestionType.PROBING, QuestionType.CHALLENGING) + remaining, 0

    return path, index + 1


# =============================================================================
# Dialogue State Transitions
# =============================================================================


def record_exchange(
    state: DialogueState,
    exchange: DialogueExchange,
    discovery_description: str | None = None,
) -> DialogueState:
    """Append an exchange and fold its outcome into the dialogue state."""
    description = state.discovery_description
    if exchange.is_discovery and description is None:
        description = discovery_description

    return replace(
        state,
        exchanges=state.exchanges + (exchange,),
        current_understanding=exchange.understanding,
        discovery_made=state.discovery_made or exchange.is_discovery,
        discovery_description=description,
    )


def advance_path(state: DialogueState, exchange: DialogueExchange) -> DialogueState:
    path, index = adapt_dialogue_path(
        state.dialogue_path,
        state.current_path_index,
        exchange.understanding,
        exchange.is_discovery,
    )
    return replace(state, dialogue_path=path, current_path_index=index)


def next_question_type(state: DialogueState) -> QuestionType | None:
    """Next planned question type, or None past the end of the path."""
    if 0 <= state.current_path_index < len(state.dialogue_path):
        return state.dialogue_path[state.current_path_index]
    return None


# =============================================================================
# Effectiveness
# =============================================================================


@dataclass(frozen=True)
class Effectiveness:
    score: float
    self_discovery_rate: float
    exchange_efficiency: float
    misconception_addressed: bool
    interpretation: str


def calculate_effectiveness(
    state: DialogueState,
    known_misconceptions: tuple[str, ...] = (),
) -> Effectiveness:
    """Score a dialogue on self-discovery, brevity and misconception repair."""
    n = len(state.exchanges)
    if n == 0:
        return Effectiveness(0.0, 0.0, 0.0, False, "No exchanges yet")

    rate = sum(1 for e in state.exchanges if e.is_discovery) / n
    efficiency = max(0.0, 1 - n / 8)
    addressed = bool(known_misconceptions) and state.current_understanding in (
        TutorUnderstanding.CORRECT,
        TutorUnderstanding.ADVANCED,
    )

    score = (
        0.4 * rate
        + 0.3 * efficiency
        + (0.2 if state.discovery_made else 0.0)
        + (0.1 if addressed else 0.0)
    )

    if score >= 0.7:
        interpretation = "Excellent Socratic dialogue - the student discovered the insight themselves!"
    elif score >= 0.5:
        interpretation = "Good dialogue with meaningful progress toward understanding."
    elif score >= 0.3:
        interpretation = "Some progress made, but may need more scaffolding."
    else:
        interpretation = "Consider adjusting the question types or adding more scaffolding."

    return Effectiveness(score, rate, efficiency, addressed, interpretation)
