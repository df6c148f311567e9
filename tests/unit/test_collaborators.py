"""
Unit tests for the text generators and the mastery ledger.
"""

import json
import random

import httpx
import pytest

from src.tutoring.collaborators import HttpTextGenerator, InMemoryMasteryLedger, TemplateTextGenerator
from src.tutoring.errors import GenerationUnavailable
from src.tutoring.personas.inverse import LEARNER_RESPONSES


class TestTemplateTextGenerator:
    """Tests for the offline generator."""

    def test_fills_topic_into_question(self):
        generator = TemplateTextGenerator(random.Random(1))

        text = generator.generate("system", "RESPONSE TYPE: clarifying\nTOPIC: inertia")

        assert text
        assert "{" not in text

    def test_follow_up_prompt_is_appended(self):
        generator = TemplateTextGenerator(random.Random(1))

        text = generator.generate(
            "system",
            "RESPONSE TYPE: probing\nTOPIC: inertia\nFOLLOW WITH: How confident are you?",
        )

        assert text.endswith("How confident are you?")

    def test_learner_roles_use_learner_lines(self):
        generator = TemplateTextGenerator(random.Random(1))

        text = generator.generate("system", "RESPONSE TYPE: confirming\nTOPIC: inertia")

        assert text in LEARNER_RESPONSES["confirming"]

    def test_freeform_response_types(self):
        generator = TemplateTextGenerator(random.Random(1))

        text = generator.generate("system", "RESPONSE TYPE: summary\nTOPIC: inertia")

        assert "inertia" in text

    def test_unknown_type_falls_back(self):
        generator = TemplateTextGenerator(random.Random(1))

        assert generator.generate("system", "nothing useful") == (
            "Tell me more about how you're thinking about this idea."
        )


def make_generator(handler, sleeps, attempts=3):
    return HttpTextGenerator(
        "http://llm.local/",
        "test-model",
        retry_attempts=attempts,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


class TestHttpTextGenerator:
    """Tests for the HTTP generator's retry policy."""

    def test_success_sends_prompts(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"response": "  What is force?  "})

        sleeps = []
        generator = make_generator(handler, sleeps)

        assert generator.generate("be Socratic", "ask about force") == "What is force?"
        assert str(seen[0].url) == "http://llm.local/api/generate"
        body = json.loads(seen[0].content)
        assert body == {"model": "test-model", "system": "be Socratic", "prompt": "ask about force", "stream": False}
        assert sleeps == []

    def test_server_error_is_retried(self):
        responses = iter([httpx.Response(500), httpx.Response(200, json={"response": "ok"})])
        sleeps = []
        generator = make_generator(lambda request: next(responses), sleeps)

        assert generator.generate("s", "t") == "ok"
        assert sleeps == [1]

    def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        sleeps = []
        generator = make_generator(handler, sleeps)

        with pytest.raises(GenerationUnavailable):
            generator.generate("s", "t")
        assert len(calls) == 1
        assert sleeps == []

    def test_exhausted_retries_raise(self):
        sleeps = []
        generator = make_generator(lambda request: httpx.Response(503), sleeps)

        with pytest.raises(GenerationUnavailable):
            generator.generate("s", "t")
        assert sleeps == [1, 2]

    def test_timeout_is_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json={"response": "done"})

        sleeps = []
        generator = make_generator(handler, sleeps)

        assert generator.generate("s", "t") == "done"
        assert len(attempts) == 2

    def test_blank_output_is_unavailable(self):
        sleeps = []
        generator = make_generator(lambda request: httpx.Response(200, json={"response": "   "}), sleeps)

        with pytest.raises(GenerationUnavailable):
            generator.generate("s", "t")


class TestInMemoryMasteryLedger:

    def test_adjustments_are_clamped(self):
        ledger = InMemoryMasteryLedger(initial=0.9)

        ledger.record_adjustment("learner-1", "newton-2", 0.35)
        assert ledger.get("learner-1", "newton-2") == 1.0

        ledger.record_adjustment("learner-1", "other", -2.0)
        assert ledger.get("learner-1", "other") == 0.0
        assert len(ledger.adjustments) == 2
