from __future__ import annotations

from datetime import date, datetime

import structlog

from client_match.errors import InvalidInputError
from client_match.models import DuplicateCheckResult, MatchQuery
from client_match.scoring.normalize import join_name, normalize
from client_match.services.base import BaseService

logger = structlog.get_logger(__name__)


class DuplicateCheckService(BaseService):
    """Answers "is this person already on the roster?" at intake time."""

    def check_for_duplicates(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date | str | None = None,
    ) -> DuplicateCheckResult:
        """Rank stored clients that may be the person being entered.

        Blank names raise InvalidInputError before the roster is read. A
        MatchBackendUnavailable from here means the check could not run and
        must not be read as "no duplicates".
        """
        query = build_match_query(first_name, last_name, date_of_birth)
        first = normalize(query.first_name)
        full = normalize(join_name(first, query.last_name))

        candidates = self._fetch_candidates(
            [full, first],
            operation="check_for_duplicates",
            date_of_birth=query.date_of_birth,
        )
        ranked = self._ranker.rank_duplicates(query, candidates)

        logger.info(
            "duplicate_check_completed",
            candidates=len(candidates),
            matches=len(ranked),
            with_dob=query.date_of_birth is not None,
        )
        return DuplicateCheckResult(similar_persons=ranked)


def build_match_query(
    first_name: str | None,
    last_name: str | None,
    date_of_birth: date | str | None = None,
) -> MatchQuery:
    """Validate raw intake fields into a MatchQuery."""
    for field_name, value in (("first_name", first_name), ("last_name", last_name)):
        if value is None or not str(value).strip():
            raise InvalidInputError(f"{field_name} is required", details={"field": field_name})
    # Names made only of punctuation are as blank as empty ones.
    normalize(first_name)
    normalize(last_name)
    return MatchQuery(
        first_name=str(first_name),
        last_name=str(last_name),
        date_of_birth=_parse_query_dob(date_of_birth),
    )


def _parse_query_dob(value: date | str | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidInputError(
            "date_of_birth must be an ISO date (YYYY-MM-DD)",
            details={"field": "date_of_birth"},
        ) from exc
