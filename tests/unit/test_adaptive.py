"""
Unit tests for the adaptive configuration engine and interventions.
"""

from dataclasses import replace

import pytest

from src.tutoring.adaptive import (
    build_adaptive_config,
    check_for_interventions,
    render_follow_up_prompt,
    render_system_prompt,
    select_question_type,
)
from src.tutoring.extractor import ExtractionContext, extract_response
from src.tutoring.models import (
    AbstractionPreference,
    CalibrationStance,
    EngagementLevel,
    ExpertiseLevel,
    HelpSeeking,
    InterventionType,
    MetacognitiveFocus,
    Priority,
    QuestionType,
    SessionState,
    TutorUnderstanding,
    WorkingMemory,
)
from src.tutoring.state import DialogueState


def with_section(profile, section, **changes):
    return replace(profile, **{section: replace(getattr(profile, section), **changes)})


@pytest.fixture
def context():
    return ExtractionContext(target_concept="acceleration")


class TestEngagementTactics:
    """Tests for fatigue and curiosity handling."""

    def test_near_frustration_threshold_simplifies_and_offers_break(self, profile):
        """Four exchanges against a threshold of five is 80% of the way."""
        config = build_adaptive_config(profile, SessionState(exchange_count=4))

        assert config.engagement.simplify_questions is True
        assert config.engagement.offer_break is True
        assert config.engagement.switch_topic is False

    def test_repeated_failures_near_threshold_switch_topic(self, profile):
        config = build_adaptive_config(profile, SessionState(exchange_count=4, consecutive_failures=2))

        assert config.engagement.switch_topic is True

    def test_curious_learner_gets_extensions(self, profile):
        curious = with_section(profile, "engagement", curiosity_score=0.8)
        config = build_adaptive_config(curious, SessionState(exchange_count=1))

        assert config.engagement.offer_extensions is True
        assert config.engagement.challenging_questions is True
        assert config.engagement.simplify_questions is False

    def test_low_engagement_simplifies_without_break_early(self, profile):
        session = SessionState(exchange_count=1, current_engagement=EngagementLevel.LOW, session_minutes=5)
        config = build_adaptive_config(profile, session)

        assert config.engagement.simplify_questions is True
        assert config.engagement.offer_break is False


class TestCalibration:
    """Tests for the calibration stance."""

    def test_overconfident_learner_is_challenged(self, profile):
        overconfident = with_section(profile, "confidence", overconfidence_rate=0.5, certainty_rate=0.8)
        config = build_adaptive_config(overconfident, SessionState())

        assert config.calibration.question_style == CalibrationStance.CHALLENGING
        assert config.calibration.include_counterexamples is True
        assert config.calibration.celebrate_insights is False

    def test_hedging_learner_is_supported(self, profile):
        hedging = with_section(profile, "confidence", hedging_rate=0.7)
        config = build_adaptive_config(hedging, SessionState())

        assert config.calibration.question_style == CalibrationStance.SUPPORTIVE
        assert config.calibration.celebrate_insights is True

    def test_default_is_neutral(self, profile):
        config = build_adaptive_config(profile, SessionState())

        assert config.calibration.question_style == CalibrationStance.NEUTRAL
        assert config.calibration.prompt_text is None


class TestScaffoldingAndComplexity:
    """Tests for scaffolding levels and question complexity."""

    def test_avoidant_weak_learner_gets_full_support(self, profile):
        learner = with_section(profile, "metacognition", help_seeking=HelpSeeking.AVOIDANT)
        learner = with_section(learner, "understanding", explanation_quality=0.3)
        config = build_adaptive_config(learner, SessionState())

        assert config.scaffolding.level == 1
        assert config.scaffolding.proactive_hints is True

    def test_strong_self_corrector_is_independent(self, profile):
        learner = with_section(profile, "metacognition", self_correction_rate=0.4)
        learner = with_section(learner, "understanding", explanation_quality=0.7)
        config = build_adaptive_config(learner, SessionState())

        assert config.scaffolding.level == 4

    def test_excessive_help_seeker(self, profile):
        learner = with_section(profile, "metacognition", help_seeking=HelpSeeking.EXCESSIVE)
        config = build_adaptive_config(learner, SessionState())

        assert config.scaffolding.level == 3
        assert config.scaffolding.proactive_hints is False
        assert config.scaffolding.worked_examples is True

    def test_default_scaffolding(self, profile):
        config = build_adaptive_config(profile, SessionState())

        assert config.scaffolding.level == 2
        assert config.scaffolding.break_down_complex is False

    def test_complexity_follows_expertise_and_memory(self, profile):
        learner = with_section(
            profile, "understanding",
            expertise_level=ExpertiseLevel.EXPERT, working_memory=WorkingMemory.HIGH,
        )
        config = build_adaptive_config(learner, SessionState())

        assert config.question_complexity.abstraction_level == AbstractionPreference.ABSTRACT
        assert config.question_complexity.max_reasoning_steps == 5

    def test_novice_gets_examples(self, profile):
        learner = with_section(
            profile, "understanding",
            expertise_level=ExpertiseLevel.NOVICE, working_memory=WorkingMemory.LOW,
        )
        config = build_adaptive_config(learner, SessionState())

        assert config.question_complexity.abstraction_level == AbstractionPreference.CONCRETE
        assert config.question_complexity.max_reasoning_steps == 2
        assert config.question_complexity.include_examples is True


class TestMetacognitivePrompting:

    def test_no_weak_areas_no_prompts(self, profile):
        config = build_adaptive_config(profile, SessionState())

        assert config.metacognitive.prompts == ()
        assert config.metacognitive.frequency == pytest.approx(0.1)
        assert config.metacognitive.focus_area == MetacognitiveFocus.ALL

    def test_low_boundary_awareness_focuses_monitoring(self, profile):
        learner = with_section(profile, "metacognition", boundary_awareness=0.2)
        config = build_adaptive_config(learner, SessionState())

        assert config.metacognitive.focus_area == MetacognitiveFocus.MONITORING
        assert config.metacognitive.frequency == pytest.approx(0.25)
        assert len(config.metacognitive.prompts) == 2

    def test_frequency_is_capped(self, profile):
        learner = with_section(
            profile, "metacognition",
            boundary_awareness=0.1, reflection_frequency=0.1, monitoring_frequency=0.1,
        )
        config = build_adaptive_config(learner, SessionState())

        assert config.metacognitive.frequency == 0.5
        assert config.metacognitive.focus_area == MetacognitiveFocus.ALL


class TestInterventions:
    """Tests for the priority-ordered intervention check."""

    def test_five_successes_celebrate(self, profile):
        learner = with_section(profile, "engagement", frustration_threshold=10.0)
        session = SessionState(exchange_count=5, consecutive_successes=5)

        intervention = check_for_interventions(learner, session, None)

        assert intervention.type == InterventionType.CELEBRATE
        assert intervention.priority == Priority.LOW

    def test_threshold_reached_takes_break(self, profile):
        intervention = check_for_interventions(profile, SessionState(exchange_count=5), None)

        assert intervention.type == InterventionType.TAKE_BREAK
        assert intervention.priority == Priority.HIGH
        assert intervention.ends_dialogue is True

    def test_frustration_signals_simplify(self, profile, context, sample_responses):
        extraction = extract_response(sample_responses["frustrated"], 20000, context)

        intervention = check_for_interventions(profile, SessionState(exchange_count=1), extraction)

        assert intervention.type == InterventionType.SIMPLIFY
        assert intervention.ends_dialogue is False

    def test_three_failures_switch_topic(self, profile):
        session = SessionState(exchange_count=3, consecutive_failures=3)

        intervention = check_for_interventions(profile, session, None)

        assert intervention.type == InterventionType.SWITCH_TOPIC
        assert intervention.ends_dialogue is True

    def test_discovery_celebrates(self, profile, context, sample_responses):
        extraction = extract_response(sample_responses["insight"], 20000, context)

        intervention = check_for_interventions(profile, SessionState(exchange_count=1), extraction)

        assert intervention.type == InterventionType.CELEBRATE
        assert intervention.priority == Priority.MEDIUM

    def test_long_session_takes_break(self, profile):
        session = SessionState(exchange_count=1, session_minutes=50)

        intervention = check_for_interventions(profile, session, None)

        assert intervention.type == InterventionType.TAKE_BREAK
        assert intervention.priority == Priority.MEDIUM

    def test_long_session_limit_is_configurable(self, profile):
        session = SessionState(exchange_count=1, session_minutes=50)

        assert check_for_interventions(profile, session, None, long_session_minutes=60).type == InterventionType.NONE

    def test_low_engagement_encourages(self, profile):
        session = SessionState(exchange_count=1, current_engagement=EngagementLevel.LOW)

        assert check_for_interventions(profile, session, None).type == InterventionType.ENCOURAGE

    def test_nothing_to_do(self, profile):
        intervention = check_for_interventions(profile, SessionState(exchange_count=1), None)

        assert intervention.type == InterventionType.NONE
        assert intervention.message == ""


class TestPurity:

    def test_same_inputs_same_config(self, profile):
        session = SessionState(exchange_count=2, consecutive_successes=2)

        assert build_adaptive_config(profile, session) == build_adaptive_config(profile, session)


class TestQuestionSelection:

    def test_extraction_recommendation_wins(self, context, sample_responses):
        extraction = extract_response(sample_responses["insight"], 20000, context)

        assert select_question_type(DialogueState(), extraction) == QuestionType.REFLECTION

    def test_discovery_without_extraction(self):
        state = DialogueState(discovery_made=True, dialogue_path=(QuestionType.PROBING,))

        assert select_question_type(state, None) == QuestionType.REFLECTION

    def test_follows_path(self):
        state = DialogueState(dialogue_path=(QuestionType.CLARIFYING, QuestionType.PROBING), current_path_index=1)

        assert select_question_type(state, None) == QuestionType.PROBING

    def test_falls_back_to_understanding(self):
        state = DialogueState(current_understanding=TutorUnderstanding.MISCONCEPTION)

        assert select_question_type(state, None) == QuestionType.CHALLENGING


class TestPrompts:

    def test_system_prompt_lists_misconceptions(self, profile):
        config = build_adaptive_config(profile, SessionState())
        prompt = render_system_prompt(config, "Newton's laws", "acceleration", ("heavier falls faster",))

        assert "Newton's laws" in prompt
        assert "Target concept: acceleration" in prompt
        assert "- heavier falls faster" in prompt
        assert "Scaffolding Level: 2/4" in prompt

    def test_follow_up_prompt_names_type_and_topic(self, context, sample_responses):
        extraction = extract_response(sample_responses["insight"], 20000, context)
        prompt = render_follow_up_prompt(extraction, QuestionType.REFLECTION, "acceleration")

        assert "RESPONSE TYPE: reflection" in prompt
        assert "TOPIC: acceleration" in prompt
        assert "discovery moment" in prompt
