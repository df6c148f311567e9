"""
Adaptive Configuration Engine.

Builds the directives for the next tutor turn from the learner profile and
the live session counters. Five sub-decisions are computed independently:

1. Question complexity   - abstraction, reasoning steps, hints, examples
2. Scaffolding           - level 1 (full support) .. 4 (independent)
3. Calibration stance    - challenge overconfidence, support underconfidence
4. Metacognitive prompts - triggered by weak monitoring/reflection/boundaries
5. Engagement tactics    - fatigue, curiosity and disengagement responses

Everything here is a pure function of its inputs.
"""

from __future__ import annotations

from loguru import logger

from src.tutoring.models import (
    AbstractionPreference,
    AdaptiveConfig,
    CalibrationConfig,
    CalibrationStance,
    EncouragementLevel,
    EngagementConfig,
    EngagementLevel,
    ExpertiseLevel,
    ExtractionResult,
    HelpSeeking,
    Intervention,
    InterventionType,
    MetacognitiveConfig,
    MetacognitiveFocus,
    Priority,
    QuestionComplexityConfig,
    QuestionType,
    ScaffoldingConfig,
    SessionState,
    Trend,
    TutorUnderstanding,
    WorkingMemory,
)
from src.tutoring.profile import LearnerProfile
from src.tutoring.state import DialogueState

BOUNDARY_PROMPTS = (
    "What parts of this are you most/least sure about?",
    "What aspects of this topic feel unclear to you?",
)

REFLECTION_PROMPTS = (
    "What made you change your thinking?",
    "How does this connect to what you knew before?",
    "What was the key insight that helped you here?",
)

MONITORING_PROMPTS = (
    "Does your explanation make sense to you?",
    "Can you check if that follows from what you said earlier?",
    "How confident are you in this reasoning?",
)

DEFAULT_QUESTION_TYPE = {
    TutorUnderstanding.NONE: QuestionType.CLARIFYING,
    TutorUnderstanding.PARTIAL: QuestionType.SCAFFOLDING,
    TutorUnderstanding.CORRECT: QuestionType.PROBING,
    TutorUnderstanding.MISCONCEPTION: QuestionType.CHALLENGING,
    TutorUnderstanding.ADVANCED: QuestionType.METACOGNITIVE,
}


# =============================================================================
# Sub-decisions
# =============================================================================


def question_complexity(profile: LearnerProfile) -> QuestionComplexityConfig:
    expertise = profile.understanding.expertise_level
    if expertise in (ExpertiseLevel.NOVICE, ExpertiseLevel.BEGINNER):
        abstraction = AbstractionPreference.CONCRETE
    elif expertise in (ExpertiseLevel.ADVANCED, ExpertiseLevel.EXPERT):
        abstraction = AbstractionPreference.ABSTRACT
    else:
        abstraction = AbstractionPreference.BALANCED

    memory = profile.understanding.working_memory
    if memory == WorkingMemory.LOW:
        max_steps = 2
    elif memory == WorkingMemory.HIGH:
        max_steps = 5
    else:
        max_steps = 3

    preference = profile.reasoning.abstraction_preference
    return QuestionComplexityConfig(
        abstraction_level=abstraction,
        max_reasoning_steps=max_steps,
        include_hints=profile.understanding.explanation_quality < 0.5,
        include_examples=(
            preference == AbstractionPreference.CONCRETE or expertise == ExpertiseLevel.NOVICE
        ),
        preferred_style=preference,
    )


def scaffolding(profile: LearnerProfile) -> ScaffoldingConfig:
    quality = profile.understanding.explanation_quality
    help_seeking = profile.metacognition.help_seeking

    if help_seeking == HelpSeeking.AVOIDANT and quality < 0.4:
        return ScaffoldingConfig(level=1, proactive_hints=True, worked_examples=True, break_down_complex=True)
    if profile.metacognition.self_correction_rate > 0.3 and quality > 0.6:
        return ScaffoldingConfig(level=4, proactive_hints=False, worked_examples=False, break_down_complex=False)
    if help_seeking == HelpSeeking.EXCESSIVE:
        return ScaffoldingConfig(level=3, proactive_hints=False, worked_examples=True, break_down_complex=True)
    return ScaffoldingConfig(
        level=2,
        proactive_hints=False,
        worked_examples=True,
        break_down_complex=quality < 0.5,
    )


def calibration(profile: LearnerProfile) -> CalibrationConfig:
    conf = profile.confidence
    if conf.overconfidence_rate > 0.4 or conf.certainty_rate > 0.7:
        return CalibrationConfig(
            question_style=CalibrationStance.CHALLENGING,
            include_counterexamples=True,
            request_verification=True,
            highlight_correct_reasoning=False,
            celebrate_insights=False,
            prompt_text="Are you certain? Can you verify that?",
        )
    if conf.underconfidence_rate > 0.4 or conf.hedging_rate > 0.6:
        return CalibrationConfig(
            question_style=CalibrationStance.SUPPORTIVE,
            include_counterexamples=False,
            request_verification=False,
            highlight_correct_reasoning=True,
            celebrate_insights=True,
            prompt_text="That's a good insight! Can you build on that?",
        )
    return CalibrationConfig(
        question_style=CalibrationStance.NEUTRAL,
        include_counterexamples=False,
        request_verification=False,
        highlight_correct_reasoning=True,
        celebrate_insights=True,
    )


def metacognitive_prompting(profile: LearnerProfile) -> MetacognitiveConfig:
    meta = profile.metacognition
    prompts: list[str] = []
    focus = MetacognitiveFocus.ALL
    triggered = 0

    if meta.boundary_awareness < 0.3:
        prompts.extend(BOUNDARY_PROMPTS)
        focus = MetacognitiveFocus.MONITORING
        triggered += 1

    if meta.reflection_frequency < 0.2:
        prompts.extend(REFLECTION_PROMPTS)
        focus = MetacognitiveFocus.ALL if focus == MetacognitiveFocus.MONITORING else MetacognitiveFocus.REFLECTION
        triggered += 1

    if meta.monitoring_frequency < 0.2:
        prompts.extend(MONITORING_PROMPTS)
        if focus != MetacognitiveFocus.ALL:
            focus = MetacognitiveFocus.MONITORING
        triggered += 1

    return MetacognitiveConfig(
        prompts=tuple(prompts),
        frequency=min(0.5, 0.15 * triggered + 0.1),
        focus_area=focus,
    )


def engagement_tactics(profile: LearnerProfile, session: SessionState) -> EngagementConfig:
    eng = profile.engagement

    if session.exchange_count >= 0.8 * eng.frustration_threshold:
        return EngagementConfig(
            simplify_questions=True,
            offer_break=True,
            switch_topic=session.consecutive_failures >= 2,
            encouragement_level=EncouragementLevel.HIGH,
            novel_approach=True,
            connect_to_interests=True,
            shorter_exchanges=True,
        )

    if eng.curiosity_score > 0.7:
        return EngagementConfig(
            encouragement_level=EncouragementLevel.MEDIUM,
            offer_extensions=True,
            cross_domain_connections=True,
            challenging_questions=True,
        )

    if eng.engagement_trend == Trend.DECREASING or session.current_engagement == EngagementLevel.LOW:
        return EngagementConfig(
            simplify_questions=True,
            offer_break=session.session_minutes > 30,
            encouragement_level=EncouragementLevel.HIGH,
            novel_approach=True,
            connect_to_interests=True,
            shorter_exchanges=True,
        )

    return EngagementConfig(
        encouragement_level=EncouragementLevel.MEDIUM,
        offer_extensions=eng.curiosity_score > 0.5,
        cross_domain_connections=eng.curiosity_score > 0.5,
        challenging_questions=session.consecutive_successes >= 2,
    )


def build_adaptive_config(profile: LearnerProfile, session: SessionState) -> AdaptiveConfig:
    """Rebuild the full configuration for the next tutor turn."""
    config = AdaptiveConfig(
        question_complexity=question_complexity(profile),
        scaffolding=scaffolding(profile),
        calibration=calibration(profile),
        metacognitive=metacognitive_prompting(profile),
        engagement=engagement_tactics(profile, session),
    )
    logger.debug(
        f"Config: scaffolding={config.scaffolding.level}, "
        f"stance={config.calibration.question_style.value}, "
        f"focus={config.metacognitive.focus_area.value}"
    )
    return config


# =============================================================================
# Interventions
# =============================================================================


def check_for_interventions(
    profile: LearnerProfile,
    session: SessionState,
    extraction: ExtractionResult | None,
    long_session_minutes: float = 45.0,
) -> Intervention:
    """First matching intervention in priority order."""
    if session.exchange_count >= profile.engagement.frustration_threshold:
        return Intervention(
            InterventionType.TAKE_BREAK,
            Priority.HIGH,
            "You've been working hard! Would you like to take a short break or try a different skill?",
        )

    if extraction and extraction.engagement.frustration_signals:
        return Intervention(
            InterventionType.SIMPLIFY,
            Priority.HIGH,
            "Let's take a step back and approach this differently.",
        )

    if session.consecutive_failures >= 3:
        return Intervention(
            InterventionType.SWITCH_TOPIC,
            Priority.MEDIUM,
            "Let's try a different angle on this topic.",
        )

    if extraction and extraction.assessment.is_discovery_moment:
        return Intervention(
            InterventionType.CELEBRATE,
            Priority.MEDIUM,
            "Excellent! You discovered something important!",
        )

    if session.consecutive_successes >= 5:
        return Intervention(
            InterventionType.CELEBRATE,
            Priority.LOW,
            "You're really getting the hang of this!",
        )

    if session.session_minutes > long_session_minutes:
        return Intervention(
            InterventionType.TAKE_BREAK,
            Priority.MEDIUM,
            "You've been learning for a while. A break might help solidify what you've learned.",
        )

    if session.current_engagement == EngagementLevel.LOW:
        return Intervention(
            InterventionType.ENCOURAGE,
            Priority.LOW,
            "Keep going - you're making progress!",
        )

    return Intervention()


def select_question_type(state: DialogueState, extraction: ExtractionResult | None) -> QuestionType:
    """Pick the next question type for the tutor."""
    if extraction is not None:
        return extraction.assessment.recommended_next_question_type

    if state.discovery_made:
        return QuestionType.REFLECTION

    if 0 <= state.current_path_index < len(state.dialogue_path):
        return state.dialogue_path[state.current_path_index]

    return DEFAULT_QUESTION_TYPE.get(state.current_understanding, QuestionType.CLARIFYING)


# =============================================================================
# Prompts
# =============================================================================

TUTOR_GUIDELINES = """## Guidelines
NEVER:
- Give the answer directly
- Explain the concept to them
- Tell them they're wrong (ask questions instead)
- Rush to the solution

ALWAYS:
- Be patient and encouraging
- Find value in partial understanding
- Build on what they already know
- Celebrate self-discovery"""

QUESTION_TYPE_GUIDANCE = {
    QuestionType.CLARIFYING: ("Helps understand their current thinking", "Is open-ended and non-judgmental"),
    QuestionType.PROBING: ("Digs deeper into their reasoning", "Asks for evidence or justification"),
    QuestionType.SCAFFOLDING: (
        "Breaks down the problem into smaller steps",
        "Points toward the answer without revealing it",
    ),
    QuestionType.CHALLENGING: (
        "Tests the robustness of their understanding",
        "Presents edge cases or counterexamples",
    ),
    QuestionType.REFLECTION: ("Helps them see what they learned", "Connects new and old knowledge"),
    QuestionType.METACOGNITIVE: ("Helps them think about their thinking", "Builds self-awareness"),
}


def render_system_prompt(
    config: AdaptiveConfig,
    skill_name: str,
    target_concept: str,
    misconceptions: tuple[str, ...] | list[str] = (),
) -> str:
    """System prompt for the tutor built from the adaptive configuration."""
    complexity = config.question_complexity
    parts = [
        f"You are a Socratic tutor helping a student understand {skill_name}.\n\n"
        "CRITICAL RULE: NEVER give direct answers or solutions. Instead:\n"
        "1. Ask questions to understand their thinking\n"
        "2. Guide through reasoning with prompts\n"
        "3. Help them discover insights themselves\n"
        "4. Celebrate self-discovery moments\n\n"
        f"Target concept: {target_concept}",
        "\n## Question Complexity Adaptation",
        f"- Use {complexity.abstraction_level.value} language and examples",
        f"- Limit reasoning chains to {complexity.max_reasoning_steps} steps",
    ]
    if complexity.include_hints:
        parts.append("- Include helpful hints in your questions")
    if complexity.include_examples:
        parts.append("- Use concrete examples to illustrate points")

    scaffold = config.scaffolding
    parts.append(f"\n## Scaffolding Level: {scaffold.level}/4")
    if scaffold.level <= 2:
        parts.append("- Provide step-by-step guidance")
        parts.append("- Break complex ideas into smaller pieces")
    if scaffold.proactive_hints:
        parts.append("- Offer hints proactively without waiting to be asked")
    if scaffold.worked_examples:
        parts.append("- Use worked examples when introducing concepts")

    parts.append("\n## Confidence Calibration")
    if config.calibration.question_style == CalibrationStance.CHALLENGING:
        parts.append("- The learner may be overconfident - gently challenge assumptions")
        parts.append('- Ask "Are you sure?" type questions')
        parts.append("- Present counterexamples when appropriate")
    elif config.calibration.question_style == CalibrationStance.SUPPORTIVE:
        parts.append("- The learner may lack confidence - be encouraging")
        parts.append("- Highlight when their reasoning is correct")
        parts.append("- Celebrate insights and progress")

    if config.metacognitive.prompts:
        parts.append("\n## Metacognitive Prompts (use occasionally)")
        parts.extend(f'- "{p}"' for p in config.metacognitive.prompts)

    eng = config.engagement
    parts.append("\n## Engagement Adaptation")
    if eng.encouragement_level == EncouragementLevel.HIGH:
        parts.append("- Provide extra encouragement and positive reinforcement")
    if eng.simplify_questions:
        parts.append("- Keep questions simple and focused")
    if eng.shorter_exchanges:
        parts.append("- Keep your responses concise")
    if eng.offer_extensions:
        parts.append("- Offer to explore extensions and related topics")
    if eng.cross_domain_connections:
        parts.append("- Make connections to other domains when relevant")

    if misconceptions:
        parts.append("\n## Known Misconceptions to Address")
        parts.extend(f"- {m}" for m in misconceptions)

    parts.append("\n" + TUTOR_GUIDELINES)
    return "\n".join(parts)


def render_follow_up_prompt(
    extraction: ExtractionResult,
    question_type: QuestionType,
    target_concept: str = "",
) -> str:
    """Turn prompt asking the generator for the next Socratic question."""
    assessment = extraction.assessment
    parts = [
        "Generate a follow-up Socratic question based on the student's response.\n\n"
        f"Current understanding level: {assessment.understanding_level.value}\n"
        f"TOPIC: {target_concept}\n"
        f"RESPONSE TYPE: {question_type.value}"
    ]

    if assessment.is_discovery_moment:
        parts.append(
            "\nThe student just had a discovery moment! Acknowledge and celebrate it, "
            "then ask a reflection question."
        )
    if extraction.misconceptions:
        parts.append("\nDetected misconceptions to address:")
        parts.extend(f"- {m}" for m in extraction.misconceptions)
    if extraction.insights:
        parts.append("\nInsights detected:")
        parts.extend(f"- {i}" for i in extraction.insights)

    if extraction.confidence.is_overconfident:
        parts.append("\nStudent shows overconfidence - include verification prompts")
    if extraction.confidence.is_underconfident:
        parts.append("\nStudent shows underconfidence - be encouraging")
    if extraction.engagement.engagement_level == EngagementLevel.LOW:
        parts.append("\nEngagement is low - try a more engaging approach")

    parts.append(f"\nGenerate a {question_type.value} question that:")
    parts.extend(f"- {line}" for line in QUESTION_TYPE_GUIDANCE[question_type])
    parts.append("\nReturn only the question, nothing else.")
    return "\n".join(parts)
