"""Urgency scoring for intake answers.

Each axis (pain, duration, symptom) is capped on its own, then the three are
summed. Symptom flags are not added together: only the most severe flag
counts, so ticking every box cannot push a patient into a higher tier.

Score range is 5-27 for a patient with at least one symptom flag and 3-18
without one.
"""
from typing import Any

from dentmatch import config
from dentmatch.errors import InvalidInputError
from dentmatch.logging_config import get_logger
from dentmatch.models import IntakeAnswers, UrgencyAssessment, UrgencyTier

logger = get_logger(__name__)


def pain_contribution(pain_level: int) -> int:
    """Points for the pain axis."""
    for lowest, points in config.PAIN_BANDS:
        if pain_level >= lowest:
            return points
    return config.PAIN_FLOOR


def duration_contribution(issue_duration) -> int:
    """Points for the duration axis."""
    key = getattr(issue_duration, "value", issue_duration)
    try:
        return config.DURATION_WEIGHTS[key]
    except KeyError:
        raise InvalidInputError(
            f"Unknown issue_duration: {key!r}", fields=["issue_duration"]
        ) from None


def symptom_contribution(symptom_flags) -> int:
    """Points for the single most severe symptom flag (0 when none)."""
    weights = []
    for flag in symptom_flags:
        key = getattr(flag, "value", flag)
        if key not in config.SYMPTOM_WEIGHTS:
            raise InvalidInputError(f"Unknown symptom flag: {key!r}", fields=["symptom_flags"])
        weights.append(config.SYMPTOM_WEIGHTS[key])
    return max(weights, default=0)


def tier_for_score(score: int) -> UrgencyTier:
    """
    Bucket a score into a tier. Lower bounds are inclusive.

    Example:
        >>> tier_for_score(14)
        <UrgencyTier.HIGH: 'high'>
        >>> tier_for_score(13)
        <UrgencyTier.MODERATE: 'moderate'>
    """
    for tier, cutoff in config.TIER_CUTOFFS:
        if score >= cutoff:
            return UrgencyTier(tier)
    return UrgencyTier(config.DEFAULT_TIER)


def score(answers: Any) -> UrgencyAssessment:
    """
    Compute the urgency assessment for one set of intake answers.

    Args:
        answers: Validated IntakeAnswers

    Returns:
        UrgencyAssessment with score, tier and per-axis contributions

    Raises:
        InvalidInputError: If answers is not an IntakeAnswers or holds an
            out-of-range pain level
    """
    if not isinstance(answers, IntakeAnswers):
        raise InvalidInputError(
            f"Expected IntakeAnswers, got {type(answers).__name__}"
        )
    # model_construct/model_copy skip validation, so re-check the range here
    if not 0 <= answers.pain_level <= 10:
        raise InvalidInputError(
            f"pain_level must be between 0 and 10, got {answers.pain_level}",
            fields=["pain_level"],
        )

    contributions = {
        "pain": pain_contribution(answers.pain_level),
        "duration": duration_contribution(answers.issue_duration),
        "symptom": symptom_contribution(answers.symptom_flags),
    }
    total = sum(contributions.values())
    tier = tier_for_score(total)

    logger.debug(
        "urgency_scored",
        score=total,
        tier=tier.value,
        **contributions,
    )
    return UrgencyAssessment(score=total, tier=tier, contributions=contributions)
