"""Shared shape of the persona strategies."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Protocol

from src.tutoring.models import DialogueKind, ExtractionResult, Intervention, QuestionType
from src.tutoring.profile import LearnerProfile
from src.tutoring.state import Dialogue


@dataclass(frozen=True)
class PersonaTurn:
    """What a persona decided for the next tutor-side message."""
    response_type: str
    persona_state: Any
    system_prompt: str
    turn_prompt: str


class PersonaStrategy(Protocol):
    kind: DialogueKind
    # True when the persona's reply to the final exchange is the closing message
    closes_with_reply: bool

    def initial_state(self, profile: LearnerProfile, persona: str | None) -> Any:
        ...

    def opening_message(self, dialogue: Dialogue, question_type: QuestionType, rng: random.Random) -> str:
        ...

    def system_prompt(self, dialogue: Dialogue) -> str:
        ...

    def classify_role(self, dialogue: Dialogue, learner_response: str) -> str:
        ...

    def respond(
        self,
        dialogue: Dialogue,
        learner_response: str,
        extraction: ExtractionResult,
        question_type: QuestionType,
        rng: random.Random,
    ) -> PersonaTurn:
        ...

    def is_complete(self, dialogue: Dialogue, turn: PersonaTurn, intervention: Intervention) -> bool:
        ...

    def summarize(self, dialogue: Dialogue) -> Any:
        ...
