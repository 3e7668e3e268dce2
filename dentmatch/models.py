"""Value objects for the open-search flow.

Best Practices:
- Immutable (frozen) pydantic models for everything derived from input
- Enums for discrete answers
- Validation errors surface as InvalidInputError, never as raw pydantic errors
"""
import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from dentmatch import config
from dentmatch.errors import InvalidInputError


class IssueDuration(str, Enum):
    """How long the patient has had the problem."""
    TODAY = "today"
    DAYS = "days"
    WEEK = "week"
    LONGER = "longer"


class SymptomFlag(str, Enum):
    """Checkbox symptoms from the intake questionnaire."""
    SWELLING = "swelling"
    BLEEDING = "bleeding"
    SENSITIVITY = "sensitivity"
    COSMETIC_ONLY = "cosmetic_only"


class UrgencyTier(str, Enum):
    """Discrete urgency buckets, least to most urgent."""
    ROUTINE = "routine"
    MODERATE = "moderate"
    HIGH = "high"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @property
    def is_urgent(self) -> bool:
        """Urgent tiers are matched on earliest start, not on distance."""
        return self in (UrgencyTier.HIGH, UrgencyTier.EMERGENCY)


_TIER_RANK = {
    UrgencyTier.ROUTINE: 0,
    UrgencyTier.MODERATE: 1,
    UrgencyTier.HIGH: 2,
    UrgencyTier.EMERGENCY: 3,
}

_SYMPTOM_ALIASES = {"cosmetic": SymptomFlag.COSMETIC_ONLY.value}
_DISTANCE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:km)?\s*$", re.IGNORECASE)


def _raise_invalid(exc: ValidationError, model_name: str):
    fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or model_name}: {err['msg']}"
        for err in exc.errors()
    )
    raise InvalidInputError(f"Invalid {model_name}: {details}", fields=fields) from exc


class _InputModel(BaseModel):
    """Base for models built from outside data: validation fails with InvalidInputError."""

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            _raise_invalid(exc, type(self).__name__)

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any):
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as exc:
            _raise_invalid(exc, cls.__name__)

    @classmethod
    def model_validate_json(cls, json_data, **kwargs: Any):
        try:
            return super().model_validate_json(json_data, **kwargs)
        except ValidationError as exc:
            _raise_invalid(exc, cls.__name__)


class IntakeAnswers(_InputModel):
    """
    Patient answers for one search attempt.

    max_travel_distance_km of None means the patient will travel any distance.
    Accepts the questionnaire's raw answers ("10km", "any", "cosmetic").
    """
    model_config = ConfigDict(frozen=True)

    pain_level: int = Field(..., ge=0, le=10, description="Self-reported pain, 0-10")
    issue_duration: IssueDuration
    symptom_flags: FrozenSet[SymptomFlag] = Field(default_factory=frozenset)
    max_travel_distance_km: Optional[float] = Field(
        None,
        gt=0,
        description="Travel limit in km; None means unbounded",
        examples=[5, 10, 20, None],
    )

    @field_validator("pain_level", mode="before")
    @classmethod
    def reject_non_integer_pain(cls, v):
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("pain_level must be a whole number")
        return v

    @field_validator("symptom_flags", mode="before")
    @classmethod
    def normalize_symptoms(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, (str, SymptomFlag)):
            v = [v]
        normalized = []
        for flag in v:
            if isinstance(flag, str) and not isinstance(flag, SymptomFlag):
                flag = _SYMPTOM_ALIASES.get(flag.strip().lower(), flag.strip().lower())
            normalized.append(flag)
        return frozenset(normalized)

    @field_validator("max_travel_distance_km", mode="before")
    @classmethod
    def parse_travel_answer(cls, v):
        if v is None or isinstance(v, (int, float)):
            return v
        if isinstance(v, str):
            text = v.strip().lower()
            if text in config.UNBOUNDED_TRAVEL_VALUES:
                return None
            match = _DISTANCE_PATTERN.match(text)
            if match:
                return float(match.group(1))
        raise ValueError(f"Unrecognized travel distance: {v!r}")

    @property
    def travel_unbounded(self) -> bool:
        return self.max_travel_distance_km is None

    @classmethod
    def from_pain_band(cls, band: str, **data: Any) -> "IntakeAnswers":
        """
        Build answers from the categorical pain question (severe/moderate/mild/none).

        Example:
            >>> IntakeAnswers.from_pain_band("severe", issue_duration="today").pain_level
            9
        """
        key = band.strip().lower() if isinstance(band, str) else band
        if key not in config.PAIN_BAND_LEVELS:
            raise InvalidInputError(f"Unknown pain band: {band!r}", fields=["pain_level"])
        return cls(pain_level=config.PAIN_BAND_LEVELS[key], **data)


class UrgencyAssessment(BaseModel):
    """Score and tier derived from one IntakeAnswers."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0)
    tier: UrgencyTier
    contributions: Dict[str, int] = Field(
        default_factory=dict,
        description="Points per axis: pain, duration, symptom",
    )


class AppointmentSlot(_InputModel):
    """
    One bookable opening, read-only to the matcher.

    distance_km is supplied by the caller relative to the patient.
    Accepts camelCase keys as sent by the booking API.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    practice_id: str = Field(..., validation_alias=AliasChoices("practice_id", "practiceId"))
    dentist_id: str = Field(..., validation_alias=AliasChoices("dentist_id", "dentistId"))
    start_datetime: datetime = Field(
        ...,
        validation_alias=AliasChoices("start_datetime", "startDateTime"),
        description="Practice-local start time",
    )
    duration_minutes: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("duration_minutes", "durationMinutes", "duration"),
    )
    distance_km: float = Field(..., ge=0, validation_alias=AliasChoices("distance_km", "distanceKm"))
    treatment_type: str = Field(
        ...,
        validation_alias=AliasChoices("treatment_type", "treatmentType"),
    )

    @field_validator("id", "practice_id", "dentist_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        # Database ids arrive as integers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def end_datetime(self) -> datetime:
        return self.start_datetime + timedelta(minutes=self.duration_minutes)
