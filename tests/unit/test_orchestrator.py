"""
Unit tests for the dialogue orchestrator state machine.
"""

import threading
from dataclasses import replace

import pytest

from src.tutoring.dialogue_path import CELEBRATIONS
from src.tutoring.errors import DialogueClosed, EmptyResponse, GenerationUnavailable
from src.tutoring.models import (
    DialogueKind,
    DialogueStatus,
    EngineConfig,
    ExtractionResult,
    InterventionType,
    QuestionType,
    TutorUnderstanding,
    UnderstandingLevel,
)
from src.tutoring.orchestrator import DialogueOrchestrator, tutor_understanding
from src.tutoring.extractor import ExtractionContext, extract_response
from src.tutoring.summary import DialogueSummary


class FailingGenerator:
    def __init__(self):
        self.calls = 0

    def generate(self, system_prompt, turn_prompt):
        self.calls += 1
        raise GenerationUnavailable("model offline")


class BlankGenerator:
    def generate(self, system_prompt, turn_prompt):
        return "   "


@pytest.fixture
def started(orchestrator):
    return orchestrator.start_dialogue(
        "newton-2", "Newton's second law", "acceleration",
        known_misconceptions=("heavier objects always fall faster",),
        learner_id="learner-1",
    )


@pytest.fixture
def broken_profile(profile):
    return replace(profile, engagement=replace(profile.engagement, persistence_score=7.0))


class TestStart:
    """Tests for opening a dialogue."""

    def test_new_dialogue_is_active(self, started):
        dialogue = started.dialogue

        assert dialogue.status == DialogueStatus.ACTIVE
        assert dialogue.exchange_count == 0
        assert dialogue.id.startswith("socratic-")
        assert dialogue.learner_id == "learner-1"
        assert dialogue.pending_question_type == QuestionType.CLARIFYING
        assert dialogue.last_tutor_message == started.opening_message

    def test_path_accounts_for_known_misconceptions(self, started):
        assert started.dialogue.state.dialogue_path[:3] == (
            QuestionType.CLARIFYING, QuestionType.PROBING, QuestionType.CHALLENGING,
        )

    def test_system_prompt_is_returned(self, started):
        assert "Target concept: acceleration" in started.system_prompt

    def test_stored_profile_is_used(self, orchestrator, repository, profile):
        repository.save("learner-1", profile)

        result = orchestrator.start_dialogue("s", "Skill", "concept", learner_id="learner-1")

        assert result.dialogue.profile == profile

    def test_injected_profile_is_clamped(self, orchestrator, broken_profile):
        result = orchestrator.start_dialogue("s", "Skill", "concept", profile=broken_profile)

        assert result.dialogue.profile.engagement.persistence_score == 1.0

    def test_dialogue_ids_are_unique(self, orchestrator):
        first = orchestrator.start_dialogue("s", "Skill", "concept")
        second = orchestrator.start_dialogue("s", "Skill", "concept")

        assert first.dialogue.id != second.dialogue.id


class TestProcessExchange:
    """Tests for folding learner responses into the dialogue."""

    def test_vague_answer_continues(self, orchestrator, generator, started, sample_responses):
        result = orchestrator.process_exchange(started.dialogue, sample_responses["vague"], 12000)

        assert result.is_complete is False
        assert result.dialogue.exchange_count == 1
        assert result.extraction.assessment.understanding_level == UnderstandingLevel.NONE
        assert result.next_message == generator.reply
        assert result.dialogue.last_tutor_message == generator.reply
        assert result.intervention.type == InterventionType.ENCOURAGE
        assert result.dialogue.session.consecutive_failures == 1
        assert len(generator.calls) == 1

    def test_exchange_records_question_that_was_answered(self, orchestrator, started, sample_responses):
        result = orchestrator.process_exchange(started.dialogue, sample_responses["vague"], 12000)

        recorded = result.dialogue.state.exchanges[0]
        assert recorded.tutor_message == started.opening_message
        assert recorded.question_type == QuestionType.CLARIFYING
        assert recorded.latency_ms == 12000

    def test_discovery_completes_with_celebration(self, orchestrator, generator, started, sample_responses):
        result = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000)

        assert result.is_complete is True
        assert result.dialogue.status == DialogueStatus.COMPLETED
        assert result.next_message in CELEBRATIONS
        assert result.question_type is None
        assert generator.calls == []

    def test_input_dialogue_is_not_changed(self, orchestrator, started, sample_responses):
        orchestrator.process_exchange(started.dialogue, sample_responses["vague"], 12000)

        assert started.dialogue.exchange_count == 0
        assert started.dialogue.status == DialogueStatus.ACTIVE

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_response_is_rejected(self, orchestrator, started, text):
        with pytest.raises(EmptyResponse):
            orchestrator.process_exchange(started.dialogue, text, 1000)

    def test_generation_failure_records_nothing(self, repository, mastery, rng, clock, sample_responses):
        failing = FailingGenerator()
        orch = DialogueOrchestrator(failing, repository, mastery, rng=rng, clock=clock)
        dialogue = orch.start_dialogue("s", "Skill", "acceleration").dialogue

        with pytest.raises(GenerationUnavailable):
            orch.process_exchange(dialogue, sample_responses["vague"], 12000)

        assert failing.calls == 1
        assert dialogue.exchange_count == 0
        assert dialogue.is_active

    def test_blank_generation_is_unavailable(self, repository, mastery, rng, clock, sample_responses):
        orch = DialogueOrchestrator(BlankGenerator(), repository, mastery, rng=rng, clock=clock)
        dialogue = orch.start_dialogue("s", "Skill", "acceleration").dialogue

        with pytest.raises(GenerationUnavailable):
            orch.process_exchange(dialogue, sample_responses["vague"], 12000)

    def test_exchange_cap_completes(self, generator, repository, mastery, rng, clock, sample_responses):
        orch = DialogueOrchestrator(
            generator, repository, mastery, rng=rng, clock=clock, engine_config=EngineConfig(max_exchanges=2),
        )
        dialogue = orch.start_dialogue("s", "Skill", "acceleration").dialogue

        first = orch.process_exchange(dialogue, sample_responses["vague"], 12000)
        second = orch.process_exchange(first.dialogue, sample_responses["vague"], 12000)

        assert first.is_complete is False
        assert second.is_complete is True
        assert second.dialogue.exchange_count == 2

    def test_profile_passed_per_exchange_is_clamped(self, orchestrator, started, broken_profile, sample_responses):
        result = orchestrator.process_exchange(
            started.dialogue, sample_responses["vague"], 12000, profile=broken_profile
        )

        assert result.dialogue.profile.engagement.persistence_score == 1.0

    def test_long_session_ends_with_break(self, generator, repository, mastery, rng, hourly_clock, sample_responses):
        orch = DialogueOrchestrator(generator, repository, mastery, rng=rng, clock=hourly_clock)
        dialogue = orch.start_dialogue("s", "Skill", "acceleration").dialogue

        result = orch.process_exchange(dialogue, sample_responses["partial"], 20000)

        assert result.intervention.type == InterventionType.TAKE_BREAK
        assert result.is_complete is True
        assert result.next_message == result.intervention.message

    def test_frustration_threshold_ends_dialogue(self, orchestrator, started, sample_responses):
        dialogue = started.dialogue
        results = []
        for _ in range(5):
            result = orchestrator.process_exchange(dialogue, sample_responses["partial"], 20000)
            results.append(result)
            dialogue = result.dialogue
            if result.is_complete:
                break

        assert results[-1].is_complete is True
        assert results[-1].intervention.ends_dialogue is True
        assert dialogue.exchange_count <= 5


class TestClosedDialogues:
    """Completed and abandoned are terminal."""

    def test_completed_dialogue_rejects_exchanges(self, orchestrator, started, sample_responses):
        done = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000).dialogue

        with pytest.raises(DialogueClosed) as exc_info:
            orchestrator.process_exchange(done, sample_responses["partial"], 20000)

        assert exc_info.value.status == "completed"

    def test_abandon_is_absorbing(self, orchestrator, started, sample_responses):
        abandoned = orchestrator.abandon_dialogue(started.dialogue)

        assert abandoned.status == DialogueStatus.ABANDONED
        assert orchestrator.abandon_dialogue(abandoned) is abandoned
        with pytest.raises(DialogueClosed):
            orchestrator.process_exchange(abandoned, sample_responses["partial"], 20000)
        with pytest.raises(DialogueClosed):
            orchestrator.complete_dialogue(abandoned)

    def test_completed_dialogue_cannot_be_abandoned(self, orchestrator, started, sample_responses):
        done = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000).dialogue

        with pytest.raises(DialogueClosed):
            orchestrator.abandon_dialogue(done)

    def test_completed_dialogue_id_rejects_exchanges(self, orchestrator, started, sample_responses):
        first = orchestrator.process_exchange(started.dialogue, sample_responses["partial"], 20000)
        orchestrator.complete_dialogue(first.dialogue)

        with pytest.raises(DialogueClosed):
            orchestrator.process_exchange(first.dialogue, sample_responses["partial"], 20000)

    def test_abandon_writes_nothing(self, orchestrator, repository, mastery, started):
        orchestrator.abandon_dialogue(started.dialogue)

        assert repository.saves == 0
        assert mastery.adjustments == []


class TestComplete:
    """Tests for completion and the profile write-back."""

    def test_completion_updates_profile_and_mastery(
        self, orchestrator, repository, mastery, started, sample_responses
    ):
        done = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000).dialogue

        completion = orchestrator.complete_dialogue(done)

        assert repository.profiles["learner-1"] == completion.profile
        assert completion.profile.dialogues_completed == 1
        assert completion.results.discovery_achieved is True
        assert mastery.adjustments == [("learner-1", "newton-2", completion.mastery_adjustment)]
        assert completion.mastery_adjustment > 0
        assert isinstance(completion.summary, DialogueSummary)
        assert completion.summary.discovery_made is True

    def test_active_dialogue_can_be_completed_early(self, orchestrator, started, sample_responses):
        first = orchestrator.process_exchange(started.dialogue, sample_responses["partial"], 20000)

        completion = orchestrator.complete_dialogue(first.dialogue)

        assert completion.dialogue.status == DialogueStatus.COMPLETED
        assert completion.results.total_exchanges == 1

    def test_recompleting_returns_recorded_completion(
        self, orchestrator, repository, mastery, started, sample_responses
    ):
        done = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000).dialogue

        first = orchestrator.complete_dialogue(done)
        second = orchestrator.complete_dialogue(done)

        assert second is first
        assert repository.saves == 1
        assert repository.profiles["learner-1"].dialogues_completed == 1
        assert len(mastery.adjustments) == 1

    def test_injected_profile_is_clamped_before_saving(
        self, orchestrator, repository, broken_profile, started, sample_responses
    ):
        done = orchestrator.process_exchange(started.dialogue, sample_responses["insight"], 20000).dialogue

        completion = orchestrator.complete_dialogue(done, profile=broken_profile)

        assert completion.profile.engagement.persistence_score <= 1.0
        assert repository.profiles["learner-1"].engagement.persistence_score <= 1.0

    def test_completed_duration_matches_results(self, orchestrator, started, sample_responses):
        first = orchestrator.process_exchange(started.dialogue, sample_responses["partial"], 20000)

        completion = orchestrator.complete_dialogue(first.dialogue)

        assert completion.dialogue.duration_ms == completion.results.duration_ms > 0

    def test_summary_of_running_dialogue(self, orchestrator, started, sample_responses):
        first = orchestrator.process_exchange(started.dialogue, sample_responses["partial"], 20000)

        summary = orchestrator.get_dialogue_summary(first.dialogue)

        assert summary.total_exchanges == 1
        assert summary.discovery_made is False
        assert summary.duration == "0m 30s"

    def test_summary_for_freeform(self, orchestrator):
        dialogue = orchestrator.start_dialogue("s", "Skill", "acceleration", kind=DialogueKind.FREEFORM).dialogue

        completion = orchestrator.complete_dialogue(dialogue)

        assert completion.summary.total_exchanges == 0
        assert completion.profile.dialogues_completed == 1

    def test_concurrent_completions_are_both_kept(self, orchestrator, repository, sample_responses):
        dialogues = [
            orchestrator.process_exchange(
                orchestrator.start_dialogue("s", "Skill", "acceleration", learner_id="shared").dialogue,
                sample_responses["insight"],
                20000,
            ).dialogue
            for _ in range(2)
        ]
        barrier = threading.Barrier(2)
        errors = []

        def complete(dialogue):
            try:
                barrier.wait()
                orchestrator.complete_dialogue(dialogue)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=complete, args=(d,)) for d in dialogues]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert repository.profiles["shared"].dialogues_completed == 2


class TestTutorUnderstanding:

    def _extract(self, text, known=()):
        return extract_response(text, 20000, ExtractionContext("acceleration", known_misconceptions=known))

    def test_surface_maps_to_partial(self, sample_responses):
        assert tutor_understanding(self._extract(sample_responses["partial"])) == TutorUnderstanding.PARTIAL

    def test_misconception_below_deep(self):
        known = ("heavier objects always fall faster",)
        extraction: ExtractionResult = self._extract(
            "Obviously heavier objects always fall faster, I'm sure of it, everyone knows that from experience.",
            known,
        )

        assert extraction.assessment.understanding_level not in (UnderstandingLevel.DEEP, UnderstandingLevel.TRANSFER)
        assert tutor_understanding(extraction) == TutorUnderstanding.MISCONCEPTION
