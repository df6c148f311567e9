"""
Persona variants sharing one extraction and profile-update core.

A closed ``DialogueKind`` selects the strategy that decides who leads the
conversation, how the next turn is phrased and what the summary looks like.
"""

from src.tutoring.models import DialogueKind
from src.tutoring.personas.base import PersonaStrategy, PersonaTurn
from src.tutoring.personas.freeform import FreeformStrategy
from src.tutoring.personas.inverse import InverseStrategy, LearnerPersona
from src.tutoring.personas.socratic import SocraticStrategy

_STRATEGIES: dict[DialogueKind, PersonaStrategy] = {
    DialogueKind.SOCRATIC: SocraticStrategy(),
    DialogueKind.INVERSE: InverseStrategy(),
    DialogueKind.FREEFORM: FreeformStrategy(),
}


def get_persona_strategy(kind: DialogueKind) -> PersonaStrategy:
    return _STRATEGIES[DialogueKind(kind)]


__all__ = [
    "FreeformStrategy",
    "InverseStrategy",
    "LearnerPersona",
    "PersonaStrategy",
    "PersonaTurn",
    "SocraticStrategy",
    "get_persona_strategy",
]
