"""
Dialogue aggregate: exchange history, planned question path, and status.

A ``Dialogue`` is replaced wholesale after every step. Persona variants keep
their own frozen state in ``persona_state``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.tutoring.models import (
    AdaptiveConfig,
    DialogueKind,
    DialogueStatus,
    ExtractionResult,
    QuestionType,
    SessionState,
    TutorUnderstanding,
)

if TYPE_CHECKING:
    from src.tutoring.profile import LearnerProfile


@dataclass(frozen=True)
class DialogueExchange:
    """One tutor message and the learner's reply to it."""
    tutor_message: str
    question_type: QuestionType | None
    learner_response: str
    latency_ms: int
    understanding: TutorUnderstanding
    is_discovery: bool = False
    role: str = "answering"


@dataclass(frozen=True)
class DialogueState:
    exchanges: tuple[DialogueExchange, ...] = ()
    current_understanding: TutorUnderstanding = TutorUnderstanding.NONE
    discovery_made: bool = False
    discovery_description: str | None = None
    dialogue_path: tuple[QuestionType, ...] = ()
    current_path_index: int = 0


@dataclass(frozen=True)
class Dialogue:
    """Aggregate root for one tutoring conversation."""
    id: str
    kind: DialogueKind
    learner_id: str
    skill_id: str
    skill_name: str
    target_concept: str
    known_misconceptions: tuple[str, ...]
    profile: "LearnerProfile"
    state: DialogueState
    session: SessionState
    config: AdaptiveConfig
    started_at: datetime
    updated_at: datetime
    extractions: tuple[ExtractionResult, ...] = ()
    correctness: tuple[bool, ...] = ()
    status: DialogueStatus = DialogueStatus.ACTIVE
    completed_at: datetime | None = None
    last_tutor_message: str = ""
    pending_question_type: QuestionType | None = None
    persona_state: Any = None
    max_exchanges: int = 15

    @property
    def is_active(self) -> bool:
        return self.status == DialogueStatus.ACTIVE

    @property
    def exchange_count(self) -> int:
        return len(self.state.exchanges)

    @property
    def duration_ms(self) -> int:
        end = self.completed_at or self.updated_at
        return int((end - self.started_at).total_seconds() * 1000)

