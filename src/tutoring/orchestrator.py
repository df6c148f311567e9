"""
Dialogue Orchestrator.

Runs one tutoring dialogue as a small state machine:

    active -> completed
    active -> abandoned

Completed and abandoned are terminal. Every operation takes the current
``Dialogue`` value and returns a new one; nothing is mutated in place, so a
failed step (for example an unavailable text generator) leaves the caller
holding the last good state and the same turn can simply be retried.

The only shared resource is the stored learner profile, written once per
dialogue at completion under a per-learner lock.
"""

from __future__ import annotations

import random
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from src.tutoring.adaptive import build_adaptive_config, check_for_interventions, select_question_type
from src.tutoring.collaborators import MasteryService, ProfileRepository, TextGenerator
from src.tutoring.dialogue_path import (
    Effectiveness,
    advance_path,
    calculate_effectiveness,
    next_question_type,
    plan_dialogue_path,
    record_exchange,
    render_celebration,
)
from src.tutoring.errors import DialogueClosed, EmptyResponse, GenerationUnavailable
from src.tutoring.extractor import ExtractionContext, aggregate_extractions, extract_response
from src.tutoring.models import (
    DialogueKind,
    DialogueStatus,
    EngineConfig,
    ExtractionResult,
    Intervention,
    QuestionType,
    SessionState,
    TutorUnderstanding,
    UnderstandingLevel,
)
from src.tutoring.personas import get_persona_strategy
from src.tutoring.profile import LearnerProfile, default_profile, normalize_profile
from src.tutoring.profile_updater import DialogueResults, calculate_mastery_adjustment, update_profile
from src.tutoring.state import Dialogue, DialogueExchange, DialogueState
from src.tutoring.summary import DialogueSummary, summarize_dialogue

CORRECT_LEVELS = (UnderstandingLevel.PARTIAL, UnderstandingLevel.DEEP, UnderstandingLevel.TRANSFER)

# Extraction level -> tutor-side understanding
UNDERSTANDING_MAP = {
    UnderstandingLevel.NONE: TutorUnderstanding.NONE,
    UnderstandingLevel.SURFACE: TutorUnderstanding.PARTIAL,
    UnderstandingLevel.PARTIAL: TutorUnderstanding.PARTIAL,
    UnderstandingLevel.DEEP: TutorUnderstanding.CORRECT,
    UnderstandingLevel.TRANSFER: TutorUnderstanding.ADVANCED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def tutor_understanding(extraction: ExtractionResult) -> TutorUnderstanding:
    """Map an extraction onto the tutor's view; a known misconception wins below deep."""
    level = extraction.assessment.understanding_level
    if extraction.misconceptions and level not in (UnderstandingLevel.DEEP, UnderstandingLevel.TRANSFER):
        return TutorUnderstanding.MISCONCEPTION
    return UNDERSTANDING_MAP[level]


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class StartResult:
    dialogue: Dialogue
    opening_message: str
    system_prompt: str


@dataclass(frozen=True)
class ExchangeResult:
    dialogue: Dialogue
    extraction: ExtractionResult
    next_message: str | None
    question_type: QuestionType | None
    response_type: str | None
    role: str
    intervention: Intervention
    is_complete: bool
    system_prompt: str
    turn_prompt: str | None


@dataclass(frozen=True)
class CompletionResult:
    dialogue: Dialogue
    results: DialogueResults
    profile: LearnerProfile
    mastery_adjustment: float
    effectiveness: Effectiveness
    summary: Any


# =============================================================================
# Locks
# =============================================================================


class ProfileLocks:
    """One lock per learner id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_learner(self, learner_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(learner_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[learner_id] = lock
            return lock


# =============================================================================
# Orchestrator
# =============================================================================


class DialogueOrchestrator:
    """
    Drives dialogues through start, exchanges and completion.

    All collaborators are injected and the orchestrator reads no settings.
    The only state it keeps is the completion recorded for each dialogue id.
    """

    def __init__(
        self,
        generator: TextGenerator,
        profiles: ProfileRepository,
        mastery: MasteryService,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
        engine_config: EngineConfig | None = None,
    ):
        self.generator = generator
        self.profiles = profiles
        self.mastery = mastery
        self.rng = rng or random.Random()
        self.clock = clock
        self.engine_config = engine_config or EngineConfig()
        self.locks = ProfileLocks()
        self._completed: dict[str, CompletionResult] = {}

    def _resolve_profile(self, learner_id: str, profile: LearnerProfile | None) -> LearnerProfile:
        if profile is None:
            profile = self.profiles.load(learner_id) or default_profile(learner_id)
        return normalize_profile(profile)

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    def start_dialogue(
        self,
        skill_id: str,
        skill_name: str,
        target_concept: str,
        known_misconceptions: tuple[str, ...] | list[str] = (),
        profile: LearnerProfile | None = None,
        learner_id: str = "default",
        kind: DialogueKind = DialogueKind.SOCRATIC,
        persona: str | None = None,
    ) -> StartResult:
        """
        Open a new dialogue.

        Args:
            skill_id: Skill being practiced
            skill_name: Human-readable skill name
            target_concept: Concept the dialogue aims at
            known_misconceptions: Misconceptions to watch for
            profile: Learner profile; loaded (or defaulted) when omitted
            learner_id: Learner the profile belongs to
            kind: Dialogue variant
            persona: Simulated learner persona for inverse dialogues

        Returns:
            StartResult with the new dialogue and its opening message
        """
        kind = DialogueKind(kind)
        strategy = get_persona_strategy(kind)
        learner_profile = self._resolve_profile(learner_id, profile)
        misconceptions = tuple(known_misconceptions)
        now = self.clock()

        state = DialogueState(
            dialogue_path=plan_dialogue_path(TutorUnderstanding.NONE, bool(misconceptions)),
        )
        session = SessionState()
        config = build_adaptive_config(learner_profile, session)
        opening_type = next_question_type(state) or QuestionType.CLARIFYING
        max_exchanges = (
            self.engine_config.inverse_max_exchanges
            if kind == DialogueKind.INVERSE
            else self.engine_config.max_exchanges
        )

        dialogue = Dialogue(
            id=f"{kind.value}-{uuid.uuid4().hex[:12]}",
            kind=kind,
            learner_id=learner_profile.learner_id or learner_id,
            skill_id=skill_id,
            skill_name=skill_name,
            target_concept=target_concept,
            known_misconceptions=misconceptions,
            profile=learner_profile,
            state=state,
            session=session,
            config=config,
            started_at=now,
            updated_at=now,
            persona_state=strategy.initial_state(learner_profile, persona),
            max_exchanges=max_exchanges,
        )
        opening = strategy.opening_message(dialogue, opening_type, self.rng)
        dialogue = replace(dialogue, last_tutor_message=opening, pending_question_type=opening_type)

        logger.info(f"Dialogue started: {dialogue.id} ({kind.value}) skill={skill_id} learner={dialogue.learner_id}")
        return StartResult(dialogue, opening, strategy.system_prompt(dialogue))

    # -------------------------------------------------------------------------
    # Exchange
    # -------------------------------------------------------------------------

    def process_exchange(
        self,
        dialogue: Dialogue,
        learner_response: str,
        latency_ms: int,
        profile: LearnerProfile | None = None,
    ) -> ExchangeResult:
        """
        Fold one learner response into the dialogue.

        Raises:
            DialogueClosed: The dialogue is completed or abandoned
            EmptyResponse: The response is blank (nothing recorded)
            GenerationUnavailable: The next message could not be generated
                (nothing recorded; retry with the same dialogue value)
        """
        if not dialogue.is_active:
            raise DialogueClosed(dialogue.id, dialogue.status.value, "process an exchange on")
        if dialogue.id in self._completed:
            raise DialogueClosed(dialogue.id, DialogueStatus.COMPLETED.value, "process an exchange on")
        if not learner_response or not learner_response.strip():
            raise EmptyResponse()

        strategy = get_persona_strategy(dialogue.kind)
        learner_profile = normalize_profile(profile) if profile is not None else dialogue.profile
        now = self.clock()
        latency_ms = max(0, int(latency_ms))

        context = ExtractionContext(
            target_concept=dialogue.target_concept,
            exchange_number=dialogue.exchange_count + 1,
            previous_exchanges=dialogue.state.exchanges,
            known_misconceptions=dialogue.known_misconceptions,
            tutor_question=dialogue.last_tutor_message,
        )
        extraction = extract_response(learner_response, latency_ms, context)
        level = extraction.assessment.understanding_level
        is_correct = level in CORRECT_LEVELS

        exchange = DialogueExchange(
            tutor_message=dialogue.last_tutor_message,
            question_type=dialogue.pending_question_type,
            learner_response=learner_response,
            latency_ms=latency_ms,
            understanding=tutor_understanding(extraction),
            is_discovery=extraction.assessment.is_discovery_moment,
            role=strategy.classify_role(dialogue, learner_response),
        )
        state = record_exchange(
            dialogue.state, exchange, extraction.insights[0] if extraction.insights else None
        )
        state = advance_path(state, exchange)

        previous = dialogue.session
        session = SessionState(
            exchange_count=previous.exchange_count + 1,
            consecutive_failures=0 if is_correct else previous.consecutive_failures + 1,
            consecutive_successes=previous.consecutive_successes + 1 if is_correct else 0,
            current_engagement=extraction.engagement.engagement_level,
            session_minutes=(now - dialogue.started_at).total_seconds() / 60,
            last_response_latency_ms=latency_ms,
            last_extraction=extraction,
        )
        config = build_adaptive_config(learner_profile, session)
        intervention = check_for_interventions(
            learner_profile, session, extraction, self.engine_config.long_session_minutes
        )

        updated = replace(
            dialogue,
            profile=learner_profile,
            state=state,
            session=session,
            config=config,
            extractions=dialogue.extractions + (extraction,),
            correctness=dialogue.correctness + (is_correct,),
            updated_at=now,
        )

        question_type = select_question_type(state, extraction)
        turn = strategy.respond(updated, learner_response, extraction, question_type, self.rng)
        updated = replace(updated, persona_state=turn.persona_state)
        is_complete = strategy.is_complete(updated, turn, intervention)

        if is_complete and not strategy.closes_with_reply:
            if state.discovery_made:
                closing = render_celebration(self.rng)
            else:
                closing = intervention.message or None
            updated = replace(
                updated,
                status=DialogueStatus.COMPLETED,
                completed_at=now,
                last_tutor_message=closing or "",
                pending_question_type=None,
            )
            logger.info(
                f"Dialogue {dialogue.id} reached completion after {session.exchange_count} exchanges "
                f"(discovery={state.discovery_made}, intervention={intervention.type.value})"
            )
            return ExchangeResult(
                dialogue=updated,
                extraction=extraction,
                next_message=closing,
                question_type=None,
                response_type=None,
                role=exchange.role,
                intervention=intervention,
                is_complete=True,
                system_prompt=turn.system_prompt,
                turn_prompt=None,
            )

        next_message = self.generator.generate(turn.system_prompt, turn.turn_prompt)
        if not next_message or not next_message.strip():
            raise GenerationUnavailable("Text generator returned an empty message")
        next_message = next_message.strip()

        if is_complete:
            # The persona's own reply is the last message of the dialogue
            question_type = None
            updated = replace(
                updated,
                status=DialogueStatus.COMPLETED,
                completed_at=now,
                last_tutor_message=next_message,
                pending_question_type=None,
            )
            logger.info(
                f"Dialogue {dialogue.id} reached completion after {session.exchange_count} exchanges "
                f"(response={turn.response_type})"
            )
        else:
            updated = replace(updated, last_tutor_message=next_message, pending_question_type=question_type)
            logger.debug(
                f"Dialogue {dialogue.id} exchange {session.exchange_count}: level={level.value} "
                f"next={question_type.value} response={turn.response_type}"
            )

        return ExchangeResult(
            dialogue=updated,
            extraction=extraction,
            next_message=next_message,
            question_type=question_type,
            response_type=turn.response_type,
            role=exchange.role,
            intervention=intervention,
            is_complete=is_complete,
            system_prompt=turn.system_prompt,
            turn_prompt=turn.turn_prompt,
        )

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def build_results(self, dialogue: Dialogue, completed_at: datetime) -> tuple[DialogueResults, Effectiveness]:
        effectiveness = calculate_effectiveness(dialogue.state, dialogue.known_misconceptions)
        extractions = dialogue.extractions
        final = extractions[-1].assessment.understanding_level if extractions else UnderstandingLevel.NONE

        results = DialogueResults(
            skill_id=dialogue.skill_id,
            skill_name=dialogue.skill_name,
            total_exchanges=dialogue.exchange_count,
            discovery_achieved=dialogue.state.discovery_made,
            final_understanding=final,
            effectiveness=effectiveness.score,
            extractions=extractions,
            correctness=dialogue.correctness,
            aggregated=aggregate_extractions(extractions, dialogue.correctness),
            key_insights=tuple(dict.fromkeys(i for e in extractions for i in e.insights)),
            misconceptions_identified=tuple(dict.fromkeys(m for e in extractions for m in e.misconceptions)),
            duration_ms=int((completed_at - dialogue.started_at).total_seconds() * 1000),
            timestamp=completed_at.isoformat(),
        )
        return results, effectiveness

    def complete_dialogue(self, dialogue: Dialogue, profile: LearnerProfile | None = None) -> CompletionResult:
        """
        Close the dialogue and fold it into the learner profile.

        The stored profile is loaded, updated and saved while holding the
        learner's lock. A dialogue is folded in once: repeating the call
        returns the recorded completion without touching the profile or
        the mastery ledger again.

        Raises:
            DialogueClosed: The dialogue was abandoned
        """
        if dialogue.status == DialogueStatus.ABANDONED:
            raise DialogueClosed(dialogue.id, dialogue.status.value, "complete")

        completed_at = dialogue.completed_at or self.clock()
        closed = replace(
            dialogue,
            status=DialogueStatus.COMPLETED,
            completed_at=completed_at,
            updated_at=completed_at,
        )
        results, effectiveness = self.build_results(closed, completed_at)

        with self.locks.for_learner(dialogue.learner_id):
            recorded = self._completed.get(dialogue.id)
            if recorded is not None:
                logger.debug(f"Dialogue {dialogue.id} already completed; returning recorded result")
                return recorded

            base = self._resolve_profile(dialogue.learner_id, profile)
            updated = update_profile(base, results, self.engine_config.ema_alpha)
            self.profiles.save(dialogue.learner_id, updated)

            adjustment = calculate_mastery_adjustment(results)
            self.mastery.record_adjustment(dialogue.learner_id, dialogue.skill_id, adjustment)

            completion = CompletionResult(
                dialogue=closed,
                results=results,
                profile=updated,
                mastery_adjustment=adjustment,
                effectiveness=effectiveness,
                summary=get_persona_strategy(dialogue.kind).summarize(closed),
            )
            self._completed[dialogue.id] = completion

        logger.info(
            f"Dialogue completed: {dialogue.id} effectiveness={effectiveness.score:.2f} "
            f"mastery_adjustment={adjustment:+.2f}"
        )
        return completion

    def abandon_dialogue(self, dialogue: Dialogue) -> Dialogue:
        """Stop a dialogue without writing anything back."""
        if dialogue.status == DialogueStatus.ABANDONED:
            return dialogue
        if dialogue.status == DialogueStatus.COMPLETED:
            raise DialogueClosed(dialogue.id, dialogue.status.value, "abandon")

        logger.info(f"Dialogue abandoned: {dialogue.id} after {dialogue.exchange_count} exchanges")
        return replace(dialogue, status=DialogueStatus.ABANDONED, updated_at=self.clock())

    def get_dialogue_summary(self, dialogue: Dialogue) -> DialogueSummary:
        return summarize_dialogue(dialogue)
