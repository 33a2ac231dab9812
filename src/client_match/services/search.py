from __future__ import annotations

import structlog

from client_match.models import MatchCandidate, PersonRecord, SearchQuery
from client_match.scoring.normalize import normalize
from client_match.services.base import BaseService

logger = structlog.get_logger(__name__)


class LiveSearchService(BaseService):
    """Free-text search over the roster by name, nickname or client id."""

    def search(self, term: str, limit: int | None = None) -> list[MatchCandidate]:
        """Best `limit` matches for `term` (default: search_result_limit).

        No score threshold is applied. An empty term raises InvalidInputError
        without reading the roster.
        """
        normalized = normalize(term)
        limit = self._resolve_limit(limit)

        candidates = self._fetch_candidates([normalized], operation="search")
        ranked = self._ranker.rank_search(SearchQuery(term=term), candidates)

        logger.debug("search_completed", candidates=len(candidates), returned=min(limit, len(ranked)))
        return ranked[:limit]

    def default_listing(self, limit: int | None = None) -> list[PersonRecord]:
        """Newest clients, shown while the search box is empty."""
        limit = self._resolve_limit(limit)
        return self._call_source("default_listing", lambda: self._source.recent(limit))
