"""
External collaborators of the orchestrator.

The orchestrator only sees the Protocols below; concrete objects are built
by the caller (CLI, tests) and injected explicitly:

- ``TextGenerator``: turns a system prompt and a turn prompt into text
- ``MasteryService``: receives the mastery adjustment at completion
- ``ProfileRepository``: loads and saves learner profiles
"""

from __future__ import annotations

import random
import re
import time
from collections.abc import Callable
from typing import Protocol

import httpx
from loguru import logger

from src.tutoring.dialogue_path import QUESTION_BANK, fill_template
from src.tutoring.errors import GenerationUnavailable
from src.tutoring.personas.inverse import LEARNER_RESPONSES
from src.tutoring.profile import LearnerProfile


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, turn_prompt: str) -> str:
        ...


class MasteryService(Protocol):
    def record_adjustment(self, learner_id: str, skill_id: str, adjustment: float) -> None:
        ...


class ProfileRepository(Protocol):
    def load(self, learner_id: str) -> LearnerProfile | None:
        ...

    def save(self, learner_id: str, profile: LearnerProfile) -> None:
        ...


# =============================================================================
# Offline Template Generator
# =============================================================================

RESPONSE_TYPE_LINE = re.compile(r"^RESPONSE TYPE:\s*(\S+)", re.MULTILINE)
TOPIC_LINE = re.compile(r"^TOPIC:\s*(.*)$", re.MULTILINE)
FOLLOW_LINE = re.compile(r"^FOLLOW WITH:\s*(.*)$", re.MULTILINE)

FREEFORM_TEMPLATES: dict[str, tuple[str, ...]] = {
    "scaffolded_explanation": (
        "Let's take {concept} one step at a time. What is the very first piece you're sure about?",
        "We can build {concept} up from the basics. What do you already know that might help?",
    ),
    "guided_answer": (
        "Good thing to wonder about. What do you think {concept} depends on here?",
        "Think about what would change if {concept} were missing. What would you expect?",
    ),
    "direct_answer": (
        "In short, {concept} is the idea we keep coming back to. Which part should we look at closer?",
    ),
    "example_based": (
        "Picture an everyday case where {concept} shows up. What happens in it?",
        "Let's try an example of {concept}. Can you walk through what happens step by step?",
    ),
    "connection_making": (
        "How might {concept} connect to something you've studied before?",
    ),
    "encouragement": (
        "You're on the right track with {concept}. What made it click for you?",
        "That's real progress on {concept}. Can you put it in your own words?",
    ),
    "clarifying_question": (
        "Which part of {concept} feels unclear right now?",
    ),
    "probing_question": (
        "Why do you think {concept} works that way?",
    ),
    "summary": (
        "So far we've looked at {concept} from a few angles. What would you say is the main takeaway?",
    ),
}

FALLBACK_TEMPLATES = ("Tell me more about how you're thinking about {concept}.",)


class TemplateTextGenerator:
    """
    Offline generator that phrases a template for the requested response type.

    Reads the ``RESPONSE TYPE:`` and ``TOPIC:`` lines of the turn prompt and
    appends any ``FOLLOW WITH:`` prompt. Template choice uses the injected RNG.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def generate(self, system_prompt: str, turn_prompt: str) -> str:
        type_match = RESPONSE_TYPE_LINE.search(turn_prompt)
        topic_match = TOPIC_LINE.search(turn_prompt)
        response_type = type_match.group(1) if type_match else ""
        topic = (topic_match.group(1).strip() if topic_match else "") or "this idea"

        if response_type in LEARNER_RESPONSES:
            text = self.rng.choice(LEARNER_RESPONSES[response_type])
        else:
            templates = FREEFORM_TEMPLATES.get(response_type)
            if templates is None:
                templates = next(
                    (bank for qt, bank in QUESTION_BANK.items() if qt.value == response_type),
                    FALLBACK_TEMPLATES,
                )
            text = fill_template(self.rng.choice(templates), topic, topic)

        follow = FOLLOW_LINE.search(turn_prompt)
        if follow:
            text = f"{text} {follow.group(1).strip()}"
        return text


# =============================================================================
# HTTP Generator
# =============================================================================


class HttpTextGenerator:
    """Text generation against an Ollama-compatible ``/api/generate`` endpoint."""

    def __init__(
        self,
        api_url: str,
        model: str,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the generator.

        Args:
            api_url: Base URL of the generation service
            model: Model name sent with each request
            timeout_ms: Request timeout in milliseconds
            retry_attempts: Number of attempts before giving up
            transport: Optional httpx transport (tests use MockTransport)
            sleep: Backoff sleep function
        """
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.retry_attempts = max(1, retry_attempts)
        self.sleep = sleep
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout_ms / 1000.0),
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "HttpTextGenerator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def generate(self, system_prompt: str, turn_prompt: str) -> str:
        """
        Generate text, retrying timeouts, transport errors and 5xx responses.

        Raises:
            GenerationUnavailable: On 4xx, blank output or exhausted retries
        """
        payload = {
            "model": self.model,
            "system": system_prompt,
            "prompt": turn_prompt,
            "stream": False,
        }
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = self.client.post(f"{self.api_url}/api/generate", json=payload)
                response.raise_for_status()
                text = str(response.json().get("response", "")).strip()
                if not text:
                    raise GenerationUnavailable("Generator returned empty text")
                return text

            except httpx.TimeoutException as e:
                last_error = e
                self._backoff(attempt, f"timeout on attempt {attempt + 1}/{self.retry_attempts}")

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    logger.error(f"Generation client error: {e.response.status_code}")
                    raise GenerationUnavailable(
                        f"Generation request rejected with {e.response.status_code}"
                    ) from e
                self._backoff(
                    attempt,
                    f"server error {e.response.status_code} on attempt {attempt + 1}/{self.retry_attempts}",
                )

            except httpx.RequestError as e:
                last_error = e
                self._backoff(attempt, f"request error on attempt {attempt + 1}/{self.retry_attempts}: {e}")

            except ValueError as e:
                # Body was not JSON
                last_error = e
                self._backoff(attempt, f"malformed response on attempt {attempt + 1}/{self.retry_attempts}")

        logger.error(f"Generation failed after {self.retry_attempts} attempts: {last_error}")
        raise GenerationUnavailable(
            f"Generation failed after {self.retry_attempts} attempts"
        ) from last_error

    def _backoff(self, attempt: int, reason: str) -> None:
        if attempt >= self.retry_attempts - 1:
            logger.warning(f"Generation {reason}. No retries left")
            return
        wait_time = 2 ** attempt
        logger.warning(f"Generation {reason}. Retrying in {wait_time}s...")
        self.sleep(wait_time)


# =============================================================================
# Mastery Ledger
# =============================================================================


class InMemoryMasteryLedger:
    """Per learner and skill mastery, kept in [0, 1]."""

    def __init__(self, initial: float = 0.0):
        self.initial = initial
        self.mastery: dict[tuple[str, str], float] = {}
        self.adjustments: list[tuple[str, str, float]] = []

    def record_adjustment(self, learner_id: str, skill_id: str, adjustment: float) -> None:
        key = (learner_id, skill_id)
        current = self.mastery.get(key, self.initial)
        self.mastery[key] = max(0.0, min(1.0, current + adjustment))
        self.adjustments.append((learner_id, skill_id, adjustment))
        logger.debug(f"Mastery {learner_id}/{skill_id}: {current:.2f} -> {self.mastery[key]:.2f}")

    def get(self, learner_id: str, skill_id: str) -> float:
        return self.mastery.get((learner_id, skill_id), self.initial)
