"""Tests for candidate pools and slot providers."""
from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from dentmatch.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from dentmatch.errors import InvalidInputError
from dentmatch.http_client import ApiClient
from dentmatch.pool import (
    CandidatePool,
    FilterCriteria,
    HttpSlotProvider,
    StaticSlotProvider,
    parse_slot,
)


def api_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


def client_returning(response):
    session = Mock()
    session.request.return_value = response
    return ApiClient(base_url="http://booking.test", session=session), session


class TestCandidatePool:

    def test_snapshot_behaves_like_a_collection(self, mixed_pool):
        pool = CandidatePool(mixed_pool)

        assert len(pool) == 4
        assert "a" in pool
        assert "zz" not in pool
        assert pool.get("b").distance_km == 2
        assert pool.get("zz") is None
        assert [slot.id for slot in pool] == ["a", "b", "c", "d"]

    def test_duplicate_ids_rejected(self, make_slot):
        with pytest.raises(InvalidInputError):
            CandidatePool([make_slot("a"), make_slot("a", distance=1)])

    def test_mixed_timezones_rejected(self, make_slot):
        aware = make_slot("aware", start_datetime=datetime(2026, 3, 2, 9, tzinfo=timezone.utc))
        with pytest.raises(InvalidInputError):
            CandidatePool([make_slot("naive"), aware])

    def test_without_returns_new_pool(self, mixed_pool):
        pool = CandidatePool(mixed_pool)
        smaller = pool.without(["a", "c"])

        assert [slot.id for slot in smaller] == ["b", "d"]
        assert len(pool) == 4


class TestFilterCriteria:

    def test_matches(self, make_slot):
        criteria = FilterCriteria(practice_id="p-1", treatment_type="emergency CONSULTATION", max_distance_km=5)
        assert criteria.matches(make_slot("a", distance=4))
        assert not criteria.matches(make_slot("b", distance=6))
        assert not criteria.matches(make_slot("c", practice_id="p-2", distance=1))

    def test_date_from(self, make_slot):
        criteria = FilterCriteria(date_from=date(2026, 3, 3))
        assert not criteria.matches(make_slot("today", hours=1))
        assert criteria.matches(make_slot("tomorrow", hours=30))

    def test_query_params(self):
        criteria = FilterCriteria(practice_id="7", date_from=date(2026, 3, 2), max_distance_km=10)
        assert criteria.to_query_params() == {
            "practiceId": "7",
            "dateFrom": "2026-03-02",
            "maxDistanceKm": "10.0",
        }

    def test_empty_criteria_has_no_params(self):
        assert FilterCriteria().to_query_params() == {}


class TestStaticSlotProvider:

    def test_returns_all_without_criteria(self, mixed_pool):
        provider = StaticSlotProvider(mixed_pool)
        assert provider.fetch_open_slots() == mixed_pool

    def test_applies_criteria(self, mixed_pool):
        provider = StaticSlotProvider(mixed_pool)
        slots = provider.fetch_open_slots(FilterCriteria(max_distance_km=5))
        assert [slot.id for slot in slots] == ["b", "c"]

    def test_add_and_remove(self, make_slot):
        provider = StaticSlotProvider()
        provider.add(make_slot("a"))
        provider.add(make_slot("b"))
        provider.remove("a")
        assert [slot.id for slot in provider.fetch_open_slots()] == ["b"]


class TestParseSlot:

    def test_split_date_and_time(self):
        slot = parse_slot({
            "id": 101,
            "practiceId": 1,
            "dentistId": 11,
            "appointmentDate": "2026-10-20T00:00:00.000Z",
            "appointmentTime": "14:30",
            "duration": 45,
            "treatmentType": "Check-up",
            "distanceKm": 2.3,
        })
        assert slot.id == "101"
        assert slot.start_datetime == datetime(2026, 10, 20, 14, 30)
        assert slot.duration_minutes == 45

    def test_missing_start_time(self):
        with pytest.raises(InvalidInputError):
            parse_slot({"id": 1, "practiceId": 1, "dentistId": 1, "duration": 30,
                        "treatmentType": "x", "distanceKm": 1})

    def test_unreadable_time(self):
        with pytest.raises(InvalidInputError):
            parse_slot({"id": 1, "practiceId": 1, "dentistId": 1, "duration": 30,
                        "treatmentType": "x", "distanceKm": 1,
                        "appointmentDate": "2026-10-20", "appointmentTime": "half past"})


class TestHttpSlotProvider:

    def test_fetches_and_parses_slots(self):
        client, session = client_returning(api_response({"slots": [
            {"id": 1, "practiceId": 1, "dentistId": 2, "startDateTime": "2026-03-02T10:00:00",
             "duration": 30, "treatmentType": "Check-up", "distanceKm": 1.5, "status": "available"},
            {"id": 2, "practiceId": 1, "dentistId": 2, "startDateTime": "2026-03-02T11:00:00",
             "duration": 30, "treatmentType": "Check-up", "distanceKm": 1.5, "status": "booked"},
        ]}))

        slots = HttpSlotProvider(client).fetch_open_slots(FilterCriteria(practice_id="1"))

        assert [slot.id for slot in slots] == ["1"]
        session.request.assert_called_once_with(
            "GET",
            "http://booking.test/api/appointments/open",
            params={"practiceId": "1"},
        )

    def test_accepts_bare_list(self):
        client, _ = client_returning(api_response([
            {"id": "s1", "practiceId": 1, "dentistId": 2, "startDateTime": "2026-03-02T10:00:00",
             "duration": 30, "treatmentType": "Check-up", "distanceKm": 0},
        ]))
        assert len(HttpSlotProvider(client).fetch_open_slots()) == 1

    def test_client_error_propagates(self):
        client, _ = client_returning(api_response({}, status_code=400))
        with pytest.raises(requests.exceptions.HTTPError):
            HttpSlotProvider(client).fetch_open_slots()

    def test_open_circuit_propagates(self):
        breaker = CircuitBreaker(failure_threshold=1, timeout=60)
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError("down")
        client = ApiClient(base_url="http://booking.test", session=session, breaker=breaker)
        provider = HttpSlotProvider(client)

        with pytest.raises(requests.exceptions.ConnectionError):
            provider.fetch_open_slots()
        with pytest.raises(CircuitBreakerOpen):
            provider.fetch_open_slots()
