"""
Unit tests for the learner profile model and its range checks.
"""

import math
from dataclasses import replace

import pytest

from src.tutoring.errors import InvalidProfileState
from src.tutoring.models import ExpertiseLevel, Trend, UnderstandingLevel
from src.tutoring.profile import (
    DialogueSnapshot,
    LearnerProfile,
    default_profile,
    normalize_profile,
)


class TestSerialization:
    """Tests for dictionary round trips."""

    def test_default_profile_round_trip(self, profile):
        assert LearnerProfile.from_dict(profile.to_dict()) == profile

    def test_round_trip_with_history(self, profile):
        learner = replace(
            profile,
            understanding=replace(profile.understanding, expertise_level=ExpertiseLevel.ADVANCED),
            confidence=replace(profile.confidence, confidence_trajectory=Trend.INCREASING),
            misconceptions=("heavier falls faster",),
            last_dialogue=DialogueSnapshot(
                skill_id="newton-2",
                skill_name="Newton's second law",
                total_exchanges=3,
                discovery_achieved=True,
                final_understanding=UnderstandingLevel.DEEP,
                effectiveness=0.72,
                understanding_progression=(0.0, 0.5, 0.75),
                completed_at="2024-01-01T09:05:00+00:00",
            ),
            dialogues_completed=4,
        )

        assert LearnerProfile.from_dict(learner.to_dict()) == learner

    def test_to_dict_is_json_safe(self, profile):
        data = profile.to_dict()

        assert data["understanding"]["expertise_level"] == "beginner"
        assert data["misconceptions"] == []

    def test_from_dict_clamps_out_of_range(self):
        data = default_profile("learner-1").to_dict()
        data["confidence"]["hedging_rate"] = 1.7
        data["engagement"]["frustration_threshold"] = 0

        loaded = LearnerProfile.from_dict(data)

        assert loaded.confidence.hedging_rate == 1.0
        assert loaded.engagement.frustration_threshold == 1.0

    def test_from_dict_ignores_unknown_enum_values(self):
        data = default_profile("learner-1").to_dict()
        data["understanding"]["expertise_level"] = "grandmaster"

        loaded = LearnerProfile.from_dict(data)

        assert loaded.understanding.expertise_level == ExpertiseLevel.BEGINNER

    def test_from_dict_fills_missing_sections(self):
        loaded = LearnerProfile.from_dict({"learner_id": "sparse"})

        assert loaded == default_profile("sparse")


class TestNormalize:
    """Tests for range invariants on stored profiles."""

    def test_valid_profile_is_returned_unchanged(self, profile):
        assert normalize_profile(profile) is profile

    def test_clamps_rates_and_confidence(self, profile):
        broken = replace(
            profile,
            metacognition=replace(profile.metacognition, boundary_awareness=-0.4),
            axis_confidence=replace(profile.axis_confidence, calibration=2.0),
        )

        fixed = normalize_profile(broken)

        assert fixed.metacognition.boundary_awareness == 0.0
        assert fixed.axis_confidence.calibration == 1.0

    def test_nan_falls_back_to_default(self, profile):
        broken = replace(profile, understanding=replace(profile.understanding, explanation_quality=math.nan))

        fixed = normalize_profile(broken)

        assert fixed.understanding.explanation_quality == 0.5

    def test_strict_mode_raises_with_field_names(self, profile):
        broken = replace(
            profile,
            confidence=replace(profile.confidence, hedging_rate=1.5),
            engagement=replace(profile.engagement, curiosity_score=-1.0),
        )

        with pytest.raises(InvalidProfileState) as exc_info:
            normalize_profile(broken, strict=True)

        assert "confidence.hedging_rate" in exc_info.value.fields
        assert "engagement.curiosity_score" in exc_info.value.fields
