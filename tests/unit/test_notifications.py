"""Tests for session event fan-out."""
from structlog.testing import capture_logs

from dentmatch.notifications import NotificationHub, SessionEvent, SessionEventType


def booked_event():
    return SessionEvent(
        event_type=SessionEventType.BOOKED,
        session_id="sess-1",
        slot_id="slot-1",
        booking_id="BK-1",
    )


def test_emit_reaches_every_subscriber():
    hub = NotificationHub()
    seen_a, seen_b = [], []
    hub.subscribe(seen_a.append)
    hub.subscribe(seen_b.append)

    delivered = hub.emit(booked_event())

    assert delivered == 2
    assert seen_a[0].booking_id == "BK-1"
    assert seen_b[0].event_type == SessionEventType.BOOKED


def test_unsubscribe():
    hub = NotificationHub()
    seen = []
    unsubscribe = hub.subscribe(seen.append)

    unsubscribe()
    unsubscribe()

    assert hub.emit(booked_event()) == 0
    assert seen == []


def test_failing_subscriber_is_logged_and_skipped():
    hub = NotificationHub()
    seen = []

    def broken_email(event):
        raise ConnectionError("SMTP down")

    hub.subscribe(broken_email)
    hub.subscribe(seen.append)

    with capture_logs() as logs:
        delivered = hub.emit(booked_event())

    assert delivered == 1
    assert len(seen) == 1
    failures = [entry for entry in logs if entry["event"] == "notification_failed"]
    assert failures[0]["subscriber"] == "broken_email"
    assert failures[0]["log_level"] == "error"


def test_event_serializes_to_json():
    data = booked_event().model_dump(mode="json")
    assert data["event_type"] == "booked"
    assert data["detail"] is None
