"""
Freeform persona: the learner leads by asking, the tutor adapts.

Each message is classified by intent, scored with lightweight
conversational psychometrics and answered with a response type picked from
the intent and the learner's expertise. Every few exchanges a strategic
element (guiding question, challenge, application or reflection prompt) is
appended to deepen the conversation.
"""

from __future__ import annotations

import random
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from src.tutoring.models import DialogueKind, ExpertiseLevel, ExtractionResult, Intervention, QuestionType
from src.tutoring.personas.base import PersonaTurn
from src.tutoring.profile import LearnerProfile
from src.tutoring.state import Dialogue

EMA_ALPHA = 0.3

QUESTION_DEPTH_INDICATORS = {
    "surface": (
        "what is", "define", "list", "name", "when did", "who",
        "what does", "what are", "tell me about",
    ),
    "deep": (
        "why is it that", "what if", "how would", "what are the implications",
        "how does this relate to", "can you analyze", "what would happen if",
        "how might", "what are the consequences", "evaluate", "synthesize",
    ),
}

CONFUSION_MARKERS = (
    "i don't understand", "i'm confused", "this doesn't make sense",
    "what do you mean", "i'm lost", "could you explain again",
    "i'm not following", "huh?", "wait, what?", "this is confusing",
)

INSIGHT_MARKERS = (
    "oh!", "aha", "i see", "i get it now", "that makes sense",
    "so that means", "oh, so", "now i understand", "i think i see",
    "so that's why", "eureka", "it clicked",
)

CURIOSITY_MARKERS = (
    "i wonder", "that's interesting", "tell me more", "what about",
    "i'm curious", "can you elaborate", "why is that", "how come",
    "fascinating", "i'd like to know more",
)

SELF_AWARENESS_MARKERS = (
    "i think i understand", "i'm not sure if", "let me see if i got this",
    "i might be wrong but", "my understanding is", "if i understand correctly",
    "i need to think about", "i realize i don't know",
)

QUESTION_STARTS = ("what", "how", "why", "when", "where", "can you", "could you")

CLARIFYING_PATTERN = re.compile(r"could you (explain|clarify)|what do you mean|can you be more|not sure i follow")
CONFIRMING_PATTERN = re.compile(r"is that right|did i understand|so basically|am i correct|let me check")
CHALLENGING_PATTERN = re.compile(r"but what about|what if|doesn't that contradict|how do you know|are you sure")
APPLYING_PATTERN = re.compile(r"how would i|how can i use|in practice|real world|apply this")
EXPLORING_PATTERN = re.compile(r"what about|i wonder|could there be|is it possible|what else")
REFLECTING_PATTERN = re.compile(r"i think|i realize|looking back|now that i|it seems like")
UNDERSTOOD_PATTERN = re.compile(r"i understand|makes sense|got it|i see")
BOUNDARY_PATTERN = re.compile(r"i don't know|not sure about|beyond my|haven't learned|need to understand")
STRATEGY_PATTERN = re.compile(r"my approach|i'm trying to|let me think|first i|i'll try")
UNCERTAINTY_PATTERN = re.compile(r"maybe|might|perhaps|possibly|not sure|i think")
OVERCONFIDENCE_PATTERN = re.compile(r"obviously|of course|everyone knows|clearly|definitely")
EXAMPLE_PATTERN = re.compile(r"example|for instance|such as|like what|show me")
ANALOGY_PATTERN = re.compile(r"analogy|like|similar to|compare|metaphor")
SENTENCE_SPLIT = re.compile(r"[.!?]+")

QUESTION_INTENTS = ("asking_question", "exploring")

CHALLENGES = (
    "What do you think would happen if the opposite were true?",
    "Can you think of a case where this might not apply?",
    "How would you explain this to someone with no background?",
    "What questions does this raise for you?",
)

WELCOME_MESSAGES = {
    "novice": (
        "Hi! I'm here to help you learn about **{skill}**. Feel free to ask me anything - "
        "there are no silly questions! What would you like to know? I'll explain things step by "
        "step and make sure everything is clear."
    ),
    "advanced": (
        "Hello! Ready to explore **{skill}** with you. Whether you want to dive deep into specific "
        "aspects, discuss edge cases, or explore connections to other concepts - just ask. "
        "What's on your mind?"
    ),
    "intermediate": (
        "Hi there! I'm here to help you understand **{skill}** better. Ask me anything you're "
        "curious about - we can go at whatever pace works for you. What would you like to explore?"
    ),
}

APPROACHES = {
    "scaffolded_explanation": (
        "Break down your explanation into simple steps. Start from basics.",
        "Use simple language appropriate for a {expertise}",
        "Give one concept at a time",
        "Check understanding at each step",
    ),
    "guided_answer": (
        "Lead them toward understanding rather than just giving the answer.",
        "Ask a leading question OR",
        "Provide partial information that prompts thinking",
        "Encourage them to connect the dots",
    ),
    "direct_answer": (
        "Give a clear, direct answer.",
        "Be concise but complete",
        "Match their vocabulary level",
        "Include relevant context",
    ),
    "example_based": (
        "Use concrete examples to illustrate.",
        "Use {example_kind} examples",
        "Walk through the example step by step",
        "Connect the example back to the concept",
    ),
    "connection_making": (
        "Help them see connections to other concepts.",
        "Reference topics they've asked about: {recent_topics}",
        "Show how ideas relate",
        "Build on their existing understanding",
    ),
    "encouragement": (
        "Reinforce their understanding and build confidence.",
        "Acknowledge what they got right",
        "Highlight their progress",
        "Gently correct any minor misunderstandings",
    ),
    "clarifying_question": (
        "Ask for clarification to better help them.",
        "Be specific about what you need to know",
        "Keep your question short",
        "Show you want to help",
    ),
    "probing_question": (
        "Ask a deeper question to extend their thinking.",
        "Build on what they just said",
        "Push them to think one level deeper",
        "Don't make them feel interrogated",
    ),
    "summary": (
        "Summarize the key points covered.",
        "Highlight 2-3 main takeaways",
        "Reference their insights",
        "Suggest what to explore next",
    ),
}

TUTOR_RULES = """IMPORTANT RULES:
1. Keep responses concise (2-4 sentences unless explaining something complex)
2. Match their vocabulary level
3. Be warm and encouraging
4. Don't lecture - respond to what THEY asked
5. NEVER start with "Great question!" - just answer naturally
6. If they're confused, acknowledge it and simplify
7. Use markdown formatting sparingly for emphasis only"""


# =============================================================================
# State
# =============================================================================


@dataclass(frozen=True)
class FreeformLearner:
    """Conversation-level view of the learner derived from the profile."""
    expertise_level: str = "intermediate"
    learning_style: str = "verbal"
    preferred_pace: str = "moderate"
    vocabulary_sophistication: float = 0.5
    abstraction_preference: str = "balanced"
    confidence_level: str = "medium"


@dataclass(frozen=True)
class ConversationalPsychometrics:
    question_depth: str
    question_clarity: float
    question_relevance: float
    shows_prerequisite_knowledge: bool
    understanding_indicators: tuple[str, ...]
    confusion_indicators: tuple[str, ...]
    insight_moments: tuple[str, ...]
    curiosity_level: float
    engagement_level: str
    follow_up_behavior: str
    self_awareness_shown: bool
    boundary_recognition: bool
    strategy_mentioned: bool
    confidence_in_question: float
    uncertainty_expressed: bool
    overconfidence_signals: tuple[str, ...]
    technical_vocabulary_used: bool
    examples_sought: bool
    analogies_requested: bool


@dataclass(frozen=True)
class StrategicElement:
    type: str
    content: str
    purpose: str


@dataclass(frozen=True)
class ConversationMetrics:
    total_questions_asked: int = 0
    average_question_depth: float = 0.5
    question_diversity_score: float = 0.5
    understanding_progression: tuple[float, ...] = ()
    misconceptions_corrected: int = 0
    insights_reached: int = 0
    average_engagement: float = 0.5
    curiosity_trend: str = "stable"
    session_momentum: float = 0.5
    adaptation_success_rate: float = 0.5


@dataclass(frozen=True)
class FreeformState:
    learner: FreeformLearner = field(default_factory=FreeformLearner)
    metrics: ConversationMetrics = field(default_factory=ConversationMetrics)
    intents: tuple[str, ...] = ()
    history: tuple[ConversationalPsychometrics, ...] = ()
    topics_covered: tuple[str, ...] = ()
    questions_asked: tuple[str, ...] = ()
    insights_gained: tuple[str, ...] = ()
    misconceptions_addressed: tuple[str, ...] = ()


def learner_from_profile(profile: LearnerProfile) -> FreeformLearner:
    expertise = profile.understanding.expertise_level
    if expertise == ExpertiseLevel.NOVICE:
        level = "novice"
    elif expertise in (ExpertiseLevel.ADVANCED, ExpertiseLevel.EXPERT):
        level = "advanced"
    else:
        level = "intermediate"

    if profile.confidence.hedging_rate > 0.6:
        confidence = "low"
    elif profile.confidence.certainty_rate > 0.6:
        confidence = "high"
    else:
        confidence = "medium"

    return FreeformLearner(
        expertise_level=level,
        abstraction_preference=profile.reasoning.abstraction_preference.value,
        confidence_level=confidence,
    )


# =============================================================================
# Classification
# =============================================================================


def classify_user_intent(message: str) -> str:
    lower = message.lower()

    if any(marker in lower for marker in CONFUSION_MARKERS):
        return "expressing_confusion"
    if any(marker in lower for marker in INSIGHT_MARKERS):
        return "reflecting"

    if "?" in message or lower.startswith(QUESTION_STARTS):
        if CLARIFYING_PATTERN.search(lower):
            return "clarifying"
        if CONFIRMING_PATTERN.search(lower):
            return "confirming"
        if CHALLENGING_PATTERN.search(lower):
            return "challenging"
        if APPLYING_PATTERN.search(lower):
            return "applying"
        if EXPLORING_PATTERN.search(lower):
            return "exploring"
        return "asking_question"

    if REFLECTING_PATTERN.search(lower):
        return "reflecting"
    return "other"


def extract_conversational_psychometrics(
    message: str,
    previous_intents: tuple[str, ...],
    skill_name: str,
    target_concepts: tuple[str, ...],
) -> ConversationalPsychometrics:
    lower = message.lower()
    words = message.split()
    sentences = [s for s in SENTENCE_SPLIT.split(message) if s.strip()]
    has_question_mark = "?" in message

    if any(i in lower for i in QUESTION_DEPTH_INDICATORS["deep"]):
        depth = "deep"
    elif any(i in lower for i in QUESTION_DEPTH_INDICATORS["surface"]):
        depth = "surface"
    else:
        depth = "intermediate"

    mentions_concept = any(c.lower() in lower for c in target_concepts if c)
    clarity = min(1.0, 0.3 + (0.2 if has_question_mark else 0) + (0.3 if mentions_concept else 0)
                  + (0.2 if 5 < len(words) < 30 else 0))
    relevance = min(1.0, 0.3 + (0.3 if skill_name and skill_name.lower() in lower else 0)
                    + (0.4 if mentions_concept else 0))

    understanding = [m for m in INSIGHT_MARKERS if m in lower]
    if UNDERSTOOD_PATTERN.search(lower):
        understanding.append("explicit understanding")
    confusion = tuple(m for m in CONFUSION_MARKERS if m in lower)

    insights: list[str] = []
    for marker in INSIGHT_MARKERS:
        if marker in lower:
            sentence = next((s for s in sentences if marker in s.lower()), None)
            if sentence:
                insights.append(sentence.strip())

    curiosity_count = sum(1 for m in CURIOSITY_MARKERS if m in lower)
    curiosity = min(1.0, 0.3 + curiosity_count * 0.2 + (0.2 if has_question_mark else 0))

    if len(words) > 30 or curiosity_count >= 2 or insights:
        engagement = "high"
    elif len(words) < 5 or len(confusion) > 1:
        engagement = "low"
    else:
        engagement = "medium"

    follow_up = "reactive"
    if len(previous_intents) >= 2:
        recent = previous_intents[-2:]
        if all(i in QUESTION_INTENTS for i in recent):
            follow_up = "proactive"
        elif all(i == "other" for i in recent):
            follow_up = "passive"

    return ConversationalPsychometrics(
        question_depth=depth,
        question_clarity=clarity,
        question_relevance=relevance,
        shows_prerequisite_knowledge=bool(previous_intents) and depth != "surface" and not confusion,
        understanding_indicators=tuple(understanding),
        confusion_indicators=confusion,
        insight_moments=tuple(insights),
        curiosity_level=curiosity,
        engagement_level=engagement,
        follow_up_behavior=follow_up,
        self_awareness_shown=any(m in lower for m in SELF_AWARENESS_MARKERS),
        boundary_recognition=bool(BOUNDARY_PATTERN.search(lower)),
        strategy_mentioned=bool(STRATEGY_PATTERN.search(lower)),
        confidence_in_question=0.7 if not confusion and clarity > 0.6 else 0.4,
        uncertainty_expressed=bool(UNCERTAINTY_PATTERN.search(lower)),
        overconfidence_signals=tuple(OVERCONFIDENCE_PATTERN.findall(lower)),
        technical_vocabulary_used=mentions_concept,
        examples_sought=bool(EXAMPLE_PATTERN.search(lower)),
        analogies_requested=bool(ANALOGY_PATTERN.search(lower)),
    )


def determine_response_type(
    intent: str,
    psych: ConversationalPsychometrics,
    learner: FreeformLearner,
    exchange_count: int,
) -> str:
    """Tutor response type keyed by intent and learner expertise."""
    if intent == "expressing_confusion":
        return "scaffolded_explanation" if learner.expertise_level == "novice" else "clarifying_question"

    if intent == "asking_question":
        if learner.expertise_level == "novice":
            return "scaffolded_explanation" if psych.question_depth == "surface" else "guided_answer"
        if learner.expertise_level == "advanced" and psych.question_depth != "deep":
            return "direct_answer"
        return "guided_answer"
    if intent == "clarifying":
        return "example_based" if psych.examples_sought else "scaffolded_explanation"
    if intent == "confirming":
        return "encouragement" if psych.understanding_indicators else "direct_answer"
    if intent == "exploring":
        return "guided_answer" if learner.confidence_level == "low" else "connection_making"
    if intent == "challenging":
        return "direct_answer"
    if intent == "applying":
        return "example_based"
    if intent == "reflecting":
        return "summary" if exchange_count >= 3 else "encouragement"
    return "guided_answer"


def strategic_element(
    state: FreeformState,
    psych: ConversationalPsychometrics,
    rng: random.Random,
) -> StrategicElement | None:
    """Optional closing prompt, never early, never for confused or disengaged learners."""
    count = len(state.intents)
    if count < 2 or psych.confusion_indicators or psych.engagement_level == "low":
        return None

    if count % 3 == 0 and psych.engagement_level == "high":
        recent = state.topics_covered[-2:]
        content = (
            f"How do you think {recent[0]} relates to what we discussed earlier?"
            if recent
            else "What aspects of this topic interest you most?"
        )
        return StrategicElement("guiding_question", content, "Deepen understanding through guided inquiry")

    if psych.overconfidence_signals:
        return StrategicElement(
            "challenge", rng.choice(CHALLENGES), "Test understanding and encourage deeper thinking"
        )

    if len(state.insights_gained) >= 2 and count % 4 == 0:
        return StrategicElement(
            "application_prompt",
            "How might you apply what you've learned so far?",
            "Encourage transfer of knowledge",
        )

    if count >= 5 and count % 5 == 0:
        return StrategicElement(
            "reflection_prompt",
            "What's the most interesting thing you've learned so far?",
            "Encourage metacognitive reflection",
        )
    return None


# =============================================================================
# Metrics
# =============================================================================


DEPTH_SCORE = {"deep": 1.0, "intermediate": 0.5, "surface": 0.25}
ENGAGEMENT_SCORE = {"high": 0.9, "medium": 0.6, "low": 0.3}


def update_conversation_metrics(
    current: ConversationMetrics,
    psych: ConversationalPsychometrics,
    had_insight: bool,
) -> ConversationMetrics:
    understanding = (
        (0.3 if psych.insight_moments else 0)
        + (0.3 if psych.understanding_indicators else 0)
        + (0.2 if not psych.confusion_indicators else 0)
        + (0.2 if psych.self_awareness_shown else 0)
    )

    diff = psych.curiosity_level - current.average_engagement
    if diff > 0.1:
        trend = "increasing"
    elif diff < -0.1:
        trend = "decreasing"
    else:
        trend = "stable"

    return replace(
        current,
        total_questions_asked=current.total_questions_asked + (1 if psych.question_clarity > 0.3 else 0),
        average_question_depth=EMA_ALPHA * DEPTH_SCORE[psych.question_depth]
        + (1 - EMA_ALPHA) * current.average_question_depth,
        understanding_progression=current.understanding_progression + (understanding,),
        misconceptions_corrected=current.misconceptions_corrected + (1 if psych.confusion_indicators else 0),
        insights_reached=current.insights_reached + (1 if had_insight else 0),
        average_engagement=EMA_ALPHA * ENGAGEMENT_SCORE[psych.engagement_level]
        + (1 - EMA_ALPHA) * current.average_engagement,
        curiosity_trend=trend,
        session_momentum=min(1.0, current.session_momentum + (0.1 if psych.engagement_level == "high" else -0.05)),
    )


# =============================================================================
# Prompts
# =============================================================================


def render_tutor_prompt(
    skill_name: str,
    state: FreeformState,
    intent: str | None = None,
    response_type: str | None = None,
    psych: ConversationalPsychometrics | None = None,
    element: StrategicElement | None = None,
) -> str:
    learner = state.learner
    lines = [
        f'You are an adaptive tutor helping a learner explore "{skill_name}".',
        "",
        "LEARNER PROFILE:",
        f"- Expertise level: {learner.expertise_level}",
        f"- Learning style: {learner.learning_style}",
        f"- Abstraction preference: {learner.abstraction_preference}",
        f"- Confidence level: {learner.confidence_level}",
        f"- Vocabulary sophistication: {round(learner.vocabulary_sophistication * 100)}%",
    ]

    if intent and psych:
        lines += [
            "",
            "USER'S MESSAGE ANALYSIS:",
            f"- Intent: {intent}",
            f"- Question depth: {psych.question_depth}",
            f"- Engagement: {psych.engagement_level}",
        ]
        if psych.confusion_indicators:
            lines.append(f"- SHOWING CONFUSION: {', '.join(psych.confusion_indicators)}")
        if psych.insight_moments:
            lines.append(f"- HAD INSIGHT: {', '.join(psych.insight_moments)}")
        if psych.examples_sought:
            lines.append("- SEEKING EXAMPLES")

    if response_type:
        approach = APPROACHES[response_type]
        values = {
            "expertise": learner.expertise_level,
            "example_kind": "everyday, relatable" if learner.abstraction_preference == "concrete" else "varied",
            "recent_topics": ", ".join(state.topics_covered[-3:]),
        }
        lines += ["", f"YOUR RESPONSE TYPE: {response_type}", "", f"APPROACH: {approach[0]}"]
        lines += [f"- {line.format(**values)}" for line in approach[1:]]

    if element:
        lines += [
            "",
            "STRATEGIC ELEMENT TO INCLUDE:",
            f"End your response with this {element.type}:",
            f'"{element.content}"',
            f"(Purpose: {element.purpose})",
        ]

    lines += ["", TUTOR_RULES]
    return "\n".join(lines)


def render_turn_prompt(message: str, response_type: str, concept: str, element: StrategicElement | None) -> str:
    lines = [
        f'The learner said:\n"{message}"',
        "",
        f"TOPIC: {concept}",
        f"RESPONSE TYPE: {response_type}",
    ]
    if element:
        lines.append(f"FOLLOW WITH: {element.content}")
    lines.append("Respond to what they asked.")
    return "\n".join(lines)


# =============================================================================
# Summary
# =============================================================================


@dataclass(frozen=True)
class FreeformSummary:
    total_exchanges: int
    topics_covered: tuple[str, ...]
    insights_gained: tuple[str, ...]
    questions_asked: tuple[str, ...]
    engagement_score: float
    understanding_score: float
    question_quality_score: float
    curiosity_trend: str
    highlights: tuple[str, ...]
    suggestions: tuple[str, ...]
    learner_updates: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def infer_learner_updates(state: FreeformState) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    n = max(1, len(state.history))

    confidence = sum(p.confidence_in_question for p in state.history) / n
    if confidence > 0.7:
        updates["confidence_level"] = "high"
    elif confidence < 0.3:
        updates["confidence_level"] = "low"

    vocabulary = sum(1 for p in state.history if p.technical_vocabulary_used) / n
    if vocabulary > 0.5:
        updates["vocabulary_sophistication"] = 0.7
    elif vocabulary < 0.2:
        updates["vocabulary_sophistication"] = 0.3

    if sum(1 for p in state.history if p.examples_sought) / n > 0.5:
        updates["abstraction_preference"] = "concrete"
    return updates


def summarize_conversation(state: FreeformState) -> FreeformSummary:
    m = state.metrics
    progression = m.understanding_progression
    understanding = sum(progression) / len(progression) if progression else 0.5

    highlights = []
    insights = len(state.insights_gained)
    if insights:
        highlights.append(f'You had {insights} "aha" moment{"s" if insights > 1 else ""}!')
    if m.curiosity_trend == "increasing":
        highlights.append("Your curiosity grew throughout the session.")
    if m.average_question_depth > 0.6:
        highlights.append("You asked thoughtful, deep questions.")
    if len(state.topics_covered) > 2:
        highlights.append(f"You explored {len(state.topics_covered)} different aspects of the topic.")

    suggestions = []
    if m.average_question_depth < 0.4:
        suggestions.append('Try asking more "why" and "how" questions to deepen understanding.')
    if state.misconceptions_addressed:
        suggestions.append("Review the areas where you initially had questions.")
    if m.average_engagement < 0.5:
        suggestions.append("Consider shorter, more focused practice sessions.")

    return FreeformSummary(
        total_exchanges=len(state.intents),
        topics_covered=state.topics_covered,
        insights_gained=state.insights_gained,
        questions_asked=state.questions_asked,
        engagement_score=m.average_engagement,
        understanding_score=understanding,
        question_quality_score=m.average_question_depth,
        curiosity_trend=m.curiosity_trend,
        highlights=tuple(highlights),
        suggestions=tuple(suggestions),
        learner_updates=infer_learner_updates(state),
    )


# =============================================================================
# Strategy
# =============================================================================


def _append_new(items: tuple[str, ...], new: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    return items + tuple(i for i in dict.fromkeys(new) if i not in items)


class FreeformStrategy:
    kind = DialogueKind.FREEFORM
    closes_with_reply = True

    def initial_state(self, profile: LearnerProfile, persona: str | None) -> FreeformState:
        return FreeformState(learner=learner_from_profile(profile))

    def opening_message(self, dialogue: Dialogue, question_type: QuestionType, rng: random.Random) -> str:
        level = dialogue.persona_state.learner.expertise_level
        return WELCOME_MESSAGES[level].format(skill=dialogue.skill_name)

    def system_prompt(self, dialogue: Dialogue) -> str:
        return render_tutor_prompt(dialogue.skill_name, dialogue.persona_state)

    def classify_role(self, dialogue: Dialogue, learner_response: str) -> str:
        return classify_user_intent(learner_response)

    def respond(
        self,
        dialogue: Dialogue,
        learner_response: str,
        extraction: ExtractionResult,
        question_type: QuestionType,
        rng: random.Random,
    ) -> PersonaTurn:
        state: FreeformState = dialogue.persona_state
        intent = classify_user_intent(learner_response)
        psych = extract_conversational_psychometrics(
            learner_response, state.intents, dialogue.skill_name, (dialogue.target_concept,)
        )
        response_type = determine_response_type(intent, psych, state.learner, len(state.intents))
        element = strategic_element(state, psych, rng)

        concept = dialogue.target_concept
        topics = ((concept,) if psych.technical_vocabulary_used else ()) + extraction.misconceptions
        new_state = replace(
            state,
            metrics=update_conversation_metrics(state.metrics, psych, bool(psych.insight_moments)),
            intents=state.intents + (intent,),
            history=state.history + (psych,),
            topics_covered=_append_new(state.topics_covered, topics),
            questions_asked=state.questions_asked + ((learner_response,) if "?" in learner_response else ()),
            insights_gained=_append_new(state.insights_gained, psych.insight_moments),
            misconceptions_addressed=_append_new(state.misconceptions_addressed, extraction.misconceptions),
        )
        return PersonaTurn(
            response_type=response_type,
            persona_state=new_state,
            system_prompt=render_tutor_prompt(
                dialogue.skill_name, new_state, intent, response_type, psych, element
            ),
            turn_prompt=render_turn_prompt(learner_response, response_type, concept, element),
        )

    def is_complete(self, dialogue: Dialogue, turn: PersonaTurn, intervention: Intervention) -> bool:
        return dialogue.exchange_count >= dialogue.max_exchanges

    def summarize(self, dialogue: Dialogue) -> FreeformSummary:
        return summarize_conversation(dialogue.persona_state)
