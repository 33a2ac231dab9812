"""Fuzzy duplicate detection and live search for an outreach client roster."""

from client_match.errors import InvalidInputError, MatchBackendUnavailable, MatchError
from client_match.models import (
    DuplicateCheckResult,
    DuplicateGroup,
    MatchCandidate,
    MatchedField,
    MatchQuery,
    PersonRecord,
    SearchQuery,
)
from client_match.scoring.ranking import fuzzy_search_persons
from client_match.settings import MatchSettings

__all__ = [
    "InvalidInputError",
    "MatchBackendUnavailable",
    "MatchError",
    "DuplicateCheckResult",
    "DuplicateGroup",
    "MatchCandidate",
    "MatchedField",
    "MatchQuery",
    "PersonRecord",
    "SearchQuery",
    "fuzzy_search_persons",
    "MatchSettings",
]
