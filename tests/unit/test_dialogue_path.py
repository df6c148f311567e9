"""
Unit tests for question banks, path planning and dialogue effectiveness.
"""

import pytest

from src.tutoring.adaptive import build_adaptive_config
from src.tutoring.dialogue_path import (
    CELEBRATIONS,
    QUESTION_BANK,
    REASSURANCE,
    adapt_dialogue_path,
    advance_path,
    calculate_effectiveness,
    fill_template,
    plan_dialogue_path,
    record_exchange,
    render_celebration,
    render_opening_question,
    render_question,
)
from src.tutoring.models import QuestionType, SessionState, TutorUnderstanding
from src.tutoring.state import DialogueExchange, DialogueState

Q = QuestionType


def exchange(understanding=TutorUnderstanding.PARTIAL, discovery=False):
    return DialogueExchange(
        tutor_message="What do you think?",
        question_type=Q.CLARIFYING,
        learner_response="Something about force and mass",
        latency_ms=10000,
        understanding=understanding,
        is_discovery=discovery,
    )


class TestPlanning:
    """Tests for the initial question path."""

    def test_misconception_path(self):
        path = plan_dialogue_path(TutorUnderstanding.NONE, has_misconception=True)

        assert path == (Q.CLARIFYING, Q.PROBING, Q.CHALLENGING, Q.SCAFFOLDING, Q.REFLECTION, Q.METACOGNITIVE)

    def test_partial_understanding_path(self):
        path = plan_dialogue_path(TutorUnderstanding.PARTIAL, has_misconception=False)

        assert path == (Q.CLARIFYING, Q.SCAFFOLDING, Q.PROBING, Q.CHALLENGING, Q.REFLECTION, Q.METACOGNITIVE)

    def test_default_path(self):
        path = plan_dialogue_path(TutorUnderstanding.NONE, has_misconception=False)

        assert path == (Q.CLARIFYING, Q.SCAFFOLDING, Q.PROBING, Q.SCAFFOLDING, Q.REFLECTION, Q.METACOGNITIVE)


class TestAdaptation:
    """Tests for path adaptation after each exchange."""

    path = (Q.CLARIFYING, Q.SCAFFOLDING, Q.PROBING, Q.SCAFFOLDING, Q.REFLECTION, Q.METACOGNITIVE)

    def test_discovery_jumps_to_reflection(self):
        assert adapt_dialogue_path(self.path, 1, TutorUnderstanding.PARTIAL, True) == (
            (Q.REFLECTION, Q.METACOGNITIVE),
            0,
        )

    def test_correct_answer_skips_scaffolding(self):
        path, index = adapt_dialogue_path(self.path, 0, TutorUnderstanding.CORRECT, False)

        assert Q.SCAFFOLDING not in path
        assert path == (Q.PROBING, Q.REFLECTION, Q.METACOGNITIVE)
        assert index == 0

    def test_correct_answer_appends_reflection_when_missing(self):
        path, _ = adapt_dialogue_path((Q.CLARIFYING, Q.SCAFFOLDING), 0, TutorUnderstanding.ADVANCED, False)

        assert path == (Q.REFLECTION,)

    def test_misconception_inserts_probing_and_challenging(self):
        path, index = adapt_dialogue_path(self.path, 2, TutorUnderstanding.MISCONCEPTION, False)

        assert path == (Q.PROBING, Q.CHALLENGING, Q.SCAFFOLDING, Q.REFLECTION, Q.METACOGNITIVE)
        assert index == 0

    def test_partial_answer_advances(self):
        assert adapt_dialogue_path(self.path, 2, TutorUnderstanding.PARTIAL, False) == (self.path, 3)


class TestStateTransitions:

    def test_record_exchange_appends_and_tracks_discovery(self):
        state = record_exchange(DialogueState(), exchange(discovery=True), "F=ma clicked")
        state = record_exchange(state, exchange(TutorUnderstanding.CORRECT), "later insight")

        assert len(state.exchanges) == 2
        assert state.discovery_made is True
        assert state.discovery_description == "F=ma clicked"
        assert state.current_understanding == TutorUnderstanding.CORRECT

    def test_advance_path_uses_exchange_outcome(self):
        state = DialogueState(dialogue_path=plan_dialogue_path(TutorUnderstanding.NONE, False))
        state = advance_path(state, exchange(discovery=True))

        assert state.dialogue_path == (Q.REFLECTION, Q.METACOGNITIVE)
        assert state.current_path_index == 0


class TestRendering:

    @pytest.mark.parametrize("question_type", list(QuestionType))
    def test_every_template_is_fully_filled(self, question_type):
        for template in QUESTION_BANK[question_type]:
            text = fill_template(template, "acceleration", "Newton's laws")
            assert "{" not in text and "}" not in text

    def test_render_question_comes_from_bank(self, rng):
        question = render_question(Q.REFLECTION, "acceleration", "Newton's laws", rng)

        assert question in QUESTION_BANK[Q.REFLECTION]

    def test_celebration(self, rng):
        assert render_celebration(rng) in CELEBRATIONS

    def test_opening_adds_reassurance_under_heavy_scaffolding(self, profile, rng):
        config = build_adaptive_config(profile, SessionState())
        opening = render_opening_question(Q.CLARIFYING, "Newton's laws", "acceleration", config, rng)

        assert opening.endswith(REASSURANCE)
        assert "{" not in opening


class TestEffectiveness:
    """Tests for the dialogue effectiveness score."""

    def test_no_exchanges(self):
        result = calculate_effectiveness(DialogueState())

        assert result.score == 0.0

    def test_single_discovery_exchange(self):
        state = record_exchange(DialogueState(), exchange(TutorUnderstanding.CORRECT, discovery=True))
        result = calculate_effectiveness(state)

        assert result.self_discovery_rate == 1.0
        assert result.exchange_efficiency == pytest.approx(0.875)
        assert result.misconception_addressed is False
        assert result.score == pytest.approx(0.4 + 0.3 * 0.875 + 0.2)
        assert result.interpretation.startswith("Excellent")

    def test_addressed_needs_known_misconceptions(self):
        state = record_exchange(DialogueState(), exchange(TutorUnderstanding.CORRECT))

        assert calculate_effectiveness(state).misconception_addressed is False
        assert calculate_effectiveness(state, ("heavier falls faster",)).misconception_addressed is True

    def test_long_dialogue_has_no_efficiency(self):
        state = DialogueState()
        for _ in range(9):
            state = record_exchange(state, exchange())

        result = calculate_effectiveness(state)

        assert result.exchange_efficiency == 0.0
        assert result.score == 0.0
