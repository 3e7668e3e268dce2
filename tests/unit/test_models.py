"""Tests for intake and slot value objects."""
from datetime import datetime

import pytest
from pydantic import ValidationError

from dentmatch.errors import InvalidInputError
from dentmatch.models import (
    AppointmentSlot,
    IntakeAnswers,
    IssueDuration,
    SymptomFlag,
    UrgencyTier,
)


class TestIntakeAnswers:
    """Validation and coercion of questionnaire answers."""

    def test_accepts_enum_values_and_strings(self):
        intake = IntakeAnswers(
            pain_level=4,
            issue_duration=IssueDuration.WEEK,
            symptom_flags=["bleeding", SymptomFlag.SENSITIVITY],
            max_travel_distance_km=12.5,
        )
        assert intake.issue_duration == IssueDuration.WEEK
        assert intake.symptom_flags == frozenset({SymptomFlag.BLEEDING, SymptomFlag.SENSITIVITY})
        assert intake.max_travel_distance_km == 12.5

    def test_symptoms_default_to_empty(self):
        intake = IntakeAnswers(pain_level=2, issue_duration="days")
        assert intake.symptom_flags == frozenset()
        assert intake.travel_unbounded is True

    @pytest.mark.parametrize("raw,expected", [
        ("5km", 5.0),
        ("10km", 10.0),
        ("20 KM", 20.0),
        ("7.5", 7.5),
        (3, 3.0),
        ("any", None),
        ("unbounded", None),
        (None, None),
    ])
    def test_travel_answers(self, raw, expected):
        intake = IntakeAnswers(pain_level=2, issue_duration="days", max_travel_distance_km=raw)
        assert intake.max_travel_distance_km == expected

    def test_cosmetic_alias(self):
        intake = IntakeAnswers(pain_level=0, issue_duration="longer", symptom_flags=["cosmetic"])
        assert intake.symptom_flags == frozenset({SymptomFlag.COSMETIC_ONLY})

    @pytest.mark.parametrize("overrides,field", [
        ({"pain_level": 11}, "pain_level"),
        ({"pain_level": -1}, "pain_level"),
        ({"pain_level": 4.5}, "pain_level"),
        ({"pain_level": True}, "pain_level"),
        ({"issue_duration": "yesterday"}, "issue_duration"),
        ({"symptom_flags": ["toothache"]}, "symptom_flags"),
        ({"max_travel_distance_km": 0}, "max_travel_distance_km"),
        ({"max_travel_distance_km": "far"}, "max_travel_distance_km"),
    ])
    def test_invalid_answers_raise_invalid_input(self, overrides, field):
        data = {"pain_level": 5, "issue_duration": "today"}
        data.update(overrides)

        with pytest.raises(InvalidInputError) as exc_info:
            IntakeAnswers(**data)

        assert any(name.startswith(field) for name in exc_info.value.fields)

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            IntakeAnswers(pain_level=42, issue_duration="today")

    def test_model_validate_raises_invalid_input(self):
        with pytest.raises(InvalidInputError) as exc_info:
            IntakeAnswers.model_validate({"pain_level": 42, "issue_duration": "today"})
        assert exc_info.value.fields == ("pain_level",)

    def test_model_validate_json_raises_invalid_input(self):
        with pytest.raises(InvalidInputError):
            IntakeAnswers.model_validate_json('{"pain_level": 3, "issue_duration": "forever"}')
        with pytest.raises(InvalidInputError):
            IntakeAnswers.model_validate_json("{not json")

    def test_model_validate_json_accepts_raw_answers(self):
        intake = IntakeAnswers.model_validate_json(
            '{"pain_level": 6, "issue_duration": "days", "max_travel_distance_km": "20km"}'
        )
        assert intake.max_travel_distance_km == 20

    def test_answers_are_immutable(self):
        intake = IntakeAnswers(pain_level=5, issue_duration="today")
        with pytest.raises(ValidationError):
            intake.pain_level = 9

    @pytest.mark.parametrize("band,level", [
        ("severe", 9), ("moderate", 6), ("Mild", 3), ("none", 0),
    ])
    def test_from_pain_band(self, band, level):
        intake = IntakeAnswers.from_pain_band(band, issue_duration="today")
        assert intake.pain_level == level

    def test_from_unknown_pain_band(self):
        with pytest.raises(InvalidInputError):
            IntakeAnswers.from_pain_band("excruciating", issue_duration="today")


class TestAppointmentSlot:
    """Slot records from the booking API."""

    def test_camel_case_payload(self):
        slot = AppointmentSlot(**{
            "id": 42,
            "practiceId": 7,
            "dentistId": 3,
            "startDateTime": "2026-03-02T10:30:00",
            "duration": 45,
            "distanceKm": 2.3,
            "treatmentType": "Check-up",
        })
        assert slot.id == "42"
        assert slot.practice_id == "7"
        assert slot.start_datetime == datetime(2026, 3, 2, 10, 30)
        assert slot.end_datetime == datetime(2026, 3, 2, 11, 15)

    def test_extra_fields_ignored(self, make_slot):
        slot = make_slot("s-1", userId=None, createdAt="2026-01-01")
        assert slot.id == "s-1"

    @pytest.mark.parametrize("overrides", [
        {"distance_km": -1},
        {"duration_minutes": 0},
        {"id": ""},
        {"start_datetime": "not a date"},
    ])
    def test_invalid_slots_raise_invalid_input(self, make_slot, overrides):
        with pytest.raises(InvalidInputError):
            make_slot("s-1", **overrides)

    def test_model_validate_raises_invalid_input(self):
        with pytest.raises(InvalidInputError):
            AppointmentSlot.model_validate({"id": "s-1", "practiceId": 1})
        with pytest.raises(InvalidInputError):
            AppointmentSlot.model_validate_json('{"id": "s-1", "distanceKm": -3}')


class TestUrgencyTier:

    def test_rank_order(self):
        ordered = [UrgencyTier.ROUTINE, UrgencyTier.MODERATE, UrgencyTier.HIGH, UrgencyTier.EMERGENCY]
        assert [tier.rank for tier in ordered] == [0, 1, 2, 3]

    def test_urgent_tiers(self):
        assert UrgencyTier.EMERGENCY.is_urgent
        assert UrgencyTier.HIGH.is_urgent
        assert not UrgencyTier.MODERATE.is_urgent
        assert not UrgencyTier.ROUTINE.is_urgent
