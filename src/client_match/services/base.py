"""
BaseService: candidate fetching shared by the duplicate-check and search services.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar

import structlog

from client_match.errors import InvalidInputError, MatchBackendUnavailable
from client_match.interfaces import CandidateSource, Ranker
from client_match.models import PersonRecord
from client_match.scoring.ranking import MatchRanker
from client_match.settings import MatchSettings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BaseService:
    def __init__(
        self,
        source: CandidateSource,
        settings: MatchSettings | None = None,
        ranker: Ranker | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or MatchSettings()
        self._ranker = ranker or MatchRanker(self._settings)

    @property
    def settings(self) -> MatchSettings:
        return self._settings

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._settings.search_result_limit
        if limit <= 0:
            raise InvalidInputError("limit must be positive", details={"limit": limit})
        return limit

    def _fetch_candidates(
        self,
        terms: Sequence[str],
        operation: str,
        date_of_birth: date | None = None,
    ) -> list[PersonRecord]:
        return self._call_source(
            operation,
            lambda: self._source.fetch_candidates(terms, date_of_birth=date_of_birth),
        )

    def _call_source(self, operation: str, call: Callable[[], T]) -> T:
        """Run one source call, retrying `backend_retries` times on failure."""
        attempts = self._settings.backend_retries + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                return call()
            except (MatchBackendUnavailable, TimeoutError) as exc:
                logger.warning(
                    "backend_fetch_failed",
                    operation=operation,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    continue
                if isinstance(exc, MatchBackendUnavailable):
                    raise
                raise MatchBackendUnavailable(
                    "candidate source timed out",
                    details={"operation": operation},
                ) from exc
