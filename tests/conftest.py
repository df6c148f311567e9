"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.tutoring.collaborators import InMemoryMasteryLedger  # noqa: E402
from src.tutoring.orchestrator import DialogueOrchestrator  # noqa: E402
from src.tutoring.profile import LearnerProfile, default_profile  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def rng():
    """Seeded RNG so template choices are reproducible."""
    return random.Random(42)


@pytest.fixture
def profile() -> LearnerProfile:
    """Neutral profile for a learner with no history."""
    return default_profile("learner-1")


class FakeClock:
    """Clock that advances a fixed step on every call."""

    def __init__(self, step_seconds: float = 30.0):
        self.now = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hourly_clock():
    """Clock where every step is an hour, for long-session checks."""
    return FakeClock(step_seconds=3600)


class MemoryProfileRepository:
    """Dict-backed profile repository that counts saves."""

    def __init__(self):
        self.profiles: dict[str, LearnerProfile] = {}
        self.saves = 0

    def load(self, learner_id):
        return self.profiles.get(learner_id)

    def save(self, learner_id, profile):
        self.profiles[learner_id] = profile
        self.saves += 1


class ScriptedGenerator:
    """Text generator that replays a fixed reply and records its prompts."""

    def __init__(self, reply: str = "What makes you say that?"):
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    def generate(self, system_prompt, turn_prompt):
        self.calls.append((system_prompt, turn_prompt))
        return self.reply


@pytest.fixture
def repository():
    return MemoryProfileRepository()


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def mastery():
    return InMemoryMasteryLedger()


@pytest.fixture
def orchestrator(generator, repository, mastery, rng, clock):
    return DialogueOrchestrator(generator, repository, mastery, rng=rng, clock=clock)


@pytest.fixture
def sample_responses():
    """Learner answers of increasing quality about acceleration."""
    return {
        "vague": "I don't know, maybe it's something about force?",
        "partial": (
            "I think acceleration is how quickly the speed changes, "
            "and a bigger push probably makes it change faster."
        ),
        "insight": (
            "Oh! I see, so that means acceleration depends on mass because F=ma, "
            "for example when pushing a heavy cart it's harder to speed up."
        ),
        "frustrated": "This is confusing and I give up, I don't get it at all honestly.",
    }
