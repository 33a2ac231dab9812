from __future__ import annotations

from datetime import date, datetime

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_MATCH_BOOST = 0.25
DEFAULT_MISMATCH_PENALTY = 0.15


def parse_dob(value: object) -> date | None:
    """Coerce a stored date of birth; anything unusable becomes None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            logger.debug("dob_unparsable", value_length=len(text))
            return None
    return None


def adjust(
    base_score: float,
    query_dob: date | None,
    candidate_dob: object,
    *,
    boost: float = DEFAULT_MATCH_BOOST,
    penalty: float = DEFAULT_MISMATCH_PENALTY,
) -> float:
    """Corroborate a name score with date of birth.

    No query DOB, or no usable candidate DOB: unchanged. Same day: boosted,
    capped at 1.0. Different day: reduced by `penalty` but never below 0,
    since a mistyped DOB is still possible.
    """
    if query_dob is None:
        return base_score
    stored = parse_dob(candidate_dob)
    if stored is None:
        return base_score
    if stored == query_dob:
        return min(1.0, base_score + boost)
    return max(0.0, base_score - penalty)
