"""
Adaptive tutoring dialogue engine.

Extracts psychometric signals from learner text, adapts each tutor turn to
the learner profile and live session, and folds completed dialogues back
into the profile.
"""

from src.tutoring.collaborators import (
    HttpTextGenerator,
    InMemoryMasteryLedger,
    TemplateTextGenerator,
)
from src.tutoring.errors import (
    DialogueClosed,
    EmptyResponse,
    GenerationUnavailable,
    InvalidProfileState,
    ProfileStoreError,
    TutoringError,
)
from src.tutoring.models import DialogueKind, DialogueStatus, EngineConfig
from src.tutoring.orchestrator import (
    CompletionResult,
    DialogueOrchestrator,
    ExchangeResult,
    StartResult,
)
from src.tutoring.profile import LearnerProfile, default_profile, normalize_profile
from src.tutoring.profile_store import JsonProfileStore, SqlProfileStore

__all__ = [
    "CompletionResult",
    "DialogueClosed",
    "DialogueKind",
    "DialogueOrchestrator",
    "DialogueStatus",
    "EmptyResponse",
    "EngineConfig",
    "ExchangeResult",
    "GenerationUnavailable",
    "HttpTextGenerator",
    "InMemoryMasteryLedger",
    "InvalidProfileState",
    "JsonProfileStore",
    "LearnerProfile",
    "ProfileStoreError",
    "SqlProfileStore",
    "StartResult",
    "TemplateTextGenerator",
    "TutoringError",
    "default_profile",
    "normalize_profile",
]
