"""Shared test fixtures."""
from datetime import datetime, timedelta

import pytest

from dentmatch.models import AppointmentSlot, IntakeAnswers
from dentmatch.session import new_session

T0 = datetime(2026, 3, 2, 9, 0)


@pytest.fixture(autouse=True)
def setup_env(monkeypatch):
    """Keep tests away from any real booking backend."""
    monkeypatch.setenv("DENTMATCH_API_BASE_URL", "http://booking.test")
    yield


@pytest.fixture
def make_slot():
    """Build a slot starting `hours` after T0, `distance` km away."""
    def _create(slot_id: str, distance: float = 5.0, hours: float = 1, **overrides):
        data = dict(
            id=slot_id,
            practice_id="p-1",
            dentist_id="d-1",
            start_datetime=T0 + timedelta(hours=hours),
            duration_minutes=30,
            distance_km=distance,
            treatment_type="Emergency consultation",
        )
        data.update(overrides)
        return AppointmentSlot(**data)
    return _create


@pytest.fixture
def emergency_answers() -> IntakeAnswers:
    """Pain 9, started today, swelling, any distance: score 27."""
    return IntakeAnswers(
        pain_level=9,
        issue_duration="today",
        symptom_flags={"swelling"},
        max_travel_distance_km="unbounded",
    )


@pytest.fixture
def routine_answers() -> IntakeAnswers:
    """No pain, longer than a week, cosmetic only: score 5."""
    return IntakeAnswers(
        pain_level=0,
        issue_duration="longer",
        symptom_flags={"cosmetic_only"},
        max_travel_distance_km=None,
    )


@pytest.fixture
def emergency_session(emergency_answers):
    return new_session(emergency_answers, session_id="sess-emergency")


@pytest.fixture
def routine_session(routine_answers):
    return new_session(routine_answers, session_id="sess-routine")


@pytest.fixture
def mixed_pool(make_slot):
    """Far-but-soon and near-but-later slots."""
    return [
        make_slot("a", distance=20, hours=1),
        make_slot("b", distance=2, hours=3),
        make_slot("c", distance=2, hours=5),
        make_slot("d", distance=9, hours=2),
    ]
