#!/usr/bin/env python3
"""
Interactive CLI for trying the open-search matcher.

Asks the intake questions, then proposes slots from a JSON pool file one at
a time until you accept one or the pool runs out.

Usage: python search_cli.py [path/to/slots.json]
"""
import json
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from dentmatch import config
from dentmatch.committer import CommitFailure, InMemoryBookingCommitter
from dentmatch.errors import InvalidInputError
from dentmatch.logging_config import setup_structured_logging
from dentmatch.matcher import NoMatchFound
from dentmatch.models import AppointmentSlot, IntakeAnswers
from dentmatch.pool import StaticSlotProvider, parse_slot
from dentmatch.search import OpenSearchService

load_dotenv()

DEFAULT_POOL = Path(__file__).parent / "data" / "sample_slots.json"

QUESTIONS = [
    ("pain", "Pain level (severe / moderate / mild / none, or 0-10)"),
    ("duration", "How long has it been going on? (today / days / week / longer)"),
    ("symptoms", "Symptoms, comma separated (swelling, bleeding, sensitivity, cosmetic) or blank"),
    ("travel", "How far will you travel? (5km / 10km / 20km / any)"),
]


def load_slots(path: Path) -> List[AppointmentSlot]:
    """Read a JSON list of slot records (same shape as the booking API)."""
    with open(path, "r", encoding="utf-8") as f:
        records = json.load(f)
    return [parse_slot(record) for record in records]


def build_answers(raw: dict) -> IntakeAnswers:
    """Turn the raw CLI answers into IntakeAnswers."""
    symptoms = [s for s in (part.strip() for part in raw["symptoms"].split(",")) if s]
    fields = dict(
        issue_duration=raw["duration"].strip().lower(),
        symptom_flags=symptoms,
        max_travel_distance_km=raw["travel"],
    )
    pain = raw["pain"].strip()
    if pain.isdigit():
        return IntakeAnswers(pain_level=int(pain), **fields)
    return IntakeAnswers.from_pain_band(pain, **fields)


def describe(slot: AppointmentSlot) -> str:
    return (
        f"{slot.start_datetime:%A %d %B, %H:%M} ({slot.duration_minutes} min) - "
        f"{slot.treatment_type} at practice {slot.practice_id}, {slot.distance_km:g} km away"
    )


def main():
    setup_structured_logging(log_level=config.LOG_LEVEL, json_logs=False)
    pool_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_POOL

    try:
        slots = load_slots(pool_path)
    except (OSError, ValueError) as e:
        print(f"Could not load slots from {pool_path}: {e}")
        sys.exit(1)

    print("\n" + "=" * 70)
    print("OPEN SEARCH - find the best available appointment")
    print("=" * 70 + "\n")

    raw = {key: input(f"{question}: ") for key, question in QUESTIONS}
    try:
        answers = build_answers(raw)
    except InvalidInputError as e:
        print(f"\n{e}")
        sys.exit(1)

    service = OpenSearchService(StaticSlotProvider(slots), InMemoryBookingCommitter())
    session = service.start(answers)
    print(
        f"\nUrgency: {session.assessment.tier.value} "
        f"(score {session.assessment.score})\n"
    )

    while True:
        proposal = service.propose(session.session_id)
        if isinstance(proposal, NoMatchFound):
            print("No appointments available that match your answers.")
            return

        print(f"Best match: {describe(proposal)}")
        choice = input("Book this appointment? [y]es / [a]lternative / [q]uit: ").strip().lower()

        if choice.startswith("y"):
            result = service.accept(session.session_id)
            if isinstance(result, CommitFailure):
                print(f"That slot was just taken ({result.reason}). Looking again...\n")
                continue
            print(f"\nBooked! Reference: {result.booking_id}")
            return
        if choice.startswith("a"):
            service.reject(session.session_id)
            print()
            continue

        service.cancel(session.session_id)
        print("Search cancelled.")
        return


if __name__ == "__main__":
    main()
