"""Candidate pool: the open slots a search may choose from.

The pool is a snapshot. Other patients book slots concurrently, so a slot in
the pool may already be gone by the time it is committed; the booking
committer is the only authority on slot ownership.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

from pydantic import BaseModel, Field

from dentmatch.errors import InvalidInputError
from dentmatch.http_client import ApiClient
from dentmatch.logging_config import get_logger
from dentmatch.models import AppointmentSlot

logger = get_logger(__name__)

OPEN_SLOTS_PATH = "/api/appointments/open"


class FilterCriteria(BaseModel):
    """Server-side narrowing of the candidate pool. All fields optional."""
    practice_id: Optional[str] = None
    treatment_type: Optional[str] = None
    date_from: Optional[date] = None
    max_distance_km: Optional[float] = Field(None, gt=0)

    def to_query_params(self) -> Dict[str, str]:
        params = {}
        if self.practice_id:
            params["practiceId"] = self.practice_id
        if self.treatment_type:
            params["treatmentType"] = self.treatment_type
        if self.date_from:
            params["dateFrom"] = self.date_from.isoformat()
        if self.max_distance_km is not None:
            params["maxDistanceKm"] = str(self.max_distance_km)
        return params

    def matches(self, slot: AppointmentSlot) -> bool:
        if self.practice_id and slot.practice_id != self.practice_id:
            return False
        if self.treatment_type and slot.treatment_type.lower() != self.treatment_type.lower():
            return False
        if self.date_from and slot.start_datetime.date() < self.date_from:
            return False
        if self.max_distance_km is not None and slot.distance_km > self.max_distance_km:
            return False
        return True


class CandidatePool:
    """Immutable snapshot of open slots with unique ids."""

    def __init__(self, slots: Iterable[AppointmentSlot] = ()):
        slots = tuple(slots)
        seen = set()
        for slot in slots:
            if slot.id in seen:
                raise InvalidInputError(f"Duplicate slot id in pool: {slot.id}", fields=["id"])
            seen.add(slot.id)

        # Sorting mixes these, and naive/aware datetimes do not compare
        if len({slot.start_datetime.tzinfo is None for slot in slots}) > 1:
            raise InvalidInputError(
                "Pool mixes timezone-aware and naive start times",
                fields=["start_datetime"],
            )
        self._slots = slots

    @property
    def slots(self) -> tuple:
        return self._slots

    def __iter__(self) -> Iterator[AppointmentSlot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, slot_id) -> bool:
        return any(slot.id == slot_id for slot in self._slots)

    def get(self, slot_id: str) -> Optional[AppointmentSlot]:
        return next((slot for slot in self._slots if slot.id == slot_id), None)

    def without(self, slot_ids: Iterable[str]) -> "CandidatePool":
        """New pool minus the given slot ids."""
        excluded = set(slot_ids)
        return CandidatePool(slot for slot in self._slots if slot.id not in excluded)


class SlotProvider(Protocol):
    """Supplies currently open slots with distance_km already computed."""

    def fetch_open_slots(self, criteria: Optional[FilterCriteria] = None) -> List[AppointmentSlot]:
        ...


class StaticSlotProvider:
    """In-memory provider; filters are applied client-side."""

    def __init__(self, slots: Iterable[AppointmentSlot] = ()):
        self._slots = list(slots)

    def add(self, slot: AppointmentSlot):
        self._slots.append(slot)

    def remove(self, slot_id: str):
        self._slots = [slot for slot in self._slots if slot.id != slot_id]

    def fetch_open_slots(self, criteria: Optional[FilterCriteria] = None) -> List[AppointmentSlot]:
        if criteria is None:
            return list(self._slots)
        return [slot for slot in self._slots if criteria.matches(slot)]


def parse_slot(raw: Dict[str, Any]) -> AppointmentSlot:
    """
    Build a slot from an API record.

    Accepts either a single startDateTime or the booking API's split
    appointmentDate (ISO date or timestamp) + appointmentTime ("HH:MM").

    Raises:
        InvalidInputError: If the record is malformed
    """
    data = dict(raw)
    if "start_datetime" not in data and "startDateTime" not in data:
        day = data.pop("appointmentDate", None)
        time_of_day = data.pop("appointmentTime", None)
        if day is None or time_of_day is None:
            raise InvalidInputError(
                f"Slot {raw.get('id')!r} has no start time",
                fields=["start_datetime"],
            )
        try:
            day_part = datetime.fromisoformat(str(day).replace("Z", "+00:00")).date()
            hour, minute = (int(part) for part in str(time_of_day).split(":")[:2])
        except ValueError as exc:
            raise InvalidInputError(
                f"Slot {raw.get('id')!r} has an unreadable start time: {exc}",
                fields=["start_datetime"],
            ) from exc
        data["start_datetime"] = datetime(day_part.year, day_part.month, day_part.day, hour, minute)
    return AppointmentSlot(**data)


class HttpSlotProvider:
    """
    Fetches open slots from the booking API.

    Expected response: {"slots": [...]} or a bare list of slot records.
    Records with a status other than "available" are skipped.
    """

    def __init__(self, client: ApiClient = None):
        self.client = client or ApiClient()

    def fetch_open_slots(self, criteria: Optional[FilterCriteria] = None) -> List[AppointmentSlot]:
        """
        Raises:
            CircuitBreakerOpen: If the booking API circuit is open
            requests.exceptions.RequestException: On transport failure or 4xx
            InvalidInputError: If a slot record is malformed
        """
        params = criteria.to_query_params() if criteria else {}
        response = self.client.call("GET", OPEN_SLOTS_PATH, params=params)
        response.raise_for_status()
        payload = response.json()
        records = payload.get("slots", []) if isinstance(payload, dict) else payload

        slots = []
        for record in records:
            if record.get("status", "available") != "available":
                continue
            slot_data = {key: value for key, value in record.items() if key != "status"}
            slots.append(parse_slot(slot_data))

        logger.info("open_slots_fetched", count=len(slots), filters=params)
        return slots
