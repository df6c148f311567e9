"""Socratic persona: the tutor leads with questions, the learner answers."""

from __future__ import annotations

import random
from typing import Any

from src.tutoring.adaptive import render_follow_up_prompt, render_system_prompt
from src.tutoring.dialogue_path import render_opening_question
from src.tutoring.models import DialogueKind, ExtractionResult, Intervention, QuestionType, UnderstandingLevel
from src.tutoring.personas.base import PersonaTurn
from src.tutoring.profile import LearnerProfile
from src.tutoring.state import Dialogue
from src.tutoring.summary import DialogueSummary, summarize_dialogue


class SocraticStrategy:
    kind = DialogueKind.SOCRATIC
    closes_with_reply = False

    def initial_state(self, profile: LearnerProfile, persona: str | None) -> Any:
        return None

    def opening_message(self, dialogue: Dialogue, question_type: QuestionType, rng: random.Random) -> str:
        return render_opening_question(
            question_type, dialogue.skill_name, dialogue.target_concept, dialogue.config, rng
        )

    def system_prompt(self, dialogue: Dialogue) -> str:
        return render_system_prompt(
            dialogue.config, dialogue.skill_name, dialogue.target_concept, dialogue.known_misconceptions
        )

    def classify_role(self, dialogue: Dialogue, learner_response: str) -> str:
        return "answering"

    def respond(
        self,
        dialogue: Dialogue,
        learner_response: str,
        extraction: ExtractionResult,
        question_type: QuestionType,
        rng: random.Random,
    ) -> PersonaTurn:
        return PersonaTurn(
            response_type=question_type.value,
            persona_state=None,
            system_prompt=self.system_prompt(dialogue),
            turn_prompt=render_follow_up_prompt(extraction, question_type, dialogue.target_concept),
        )

    def is_complete(self, dialogue: Dialogue, turn: PersonaTurn, intervention: Intervention) -> bool:
        session = dialogue.session
        last = session.last_extraction
        transferred = (
            last is not None
            and last.assessment.understanding_level == UnderstandingLevel.TRANSFER
            and session.consecutive_successes >= 2
        )
        return (
            dialogue.state.discovery_made
            or intervention.ends_dialogue
            or session.exchange_count >= dialogue.max_exchanges
            or transferred
        )

    def summarize(self, dialogue: Dialogue) -> DialogueSummary:
        return summarize_dialogue(dialogue)
