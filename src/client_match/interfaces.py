from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from client_match.models import MatchCandidate, MatchQuery, PersonRecord, SearchQuery


class CandidateSource(Protocol):
    """Persistence collaborator: read-only snapshots of stored clients.

    Implementations raise MatchBackendUnavailable when they fail or time out.
    """

    def fetch_candidates(
        self,
        terms: Sequence[str],
        date_of_birth: date | None = None,
    ) -> list[PersonRecord]:
        """Records worth scoring against the normalized query `terms`.

        A full roster is always a valid answer; an indexed store may return a
        pre-filtered subset, but must include every record sharing a trigram
        with a term and every record born on `date_of_birth`.
        """
        ...

    def recent(self, limit: int) -> list[PersonRecord]:
        """Newest records first, for the roster view with an empty search box."""
        ...


class Ranker(Protocol):
    """Turns a query and a candidate snapshot into ordered MatchCandidates."""

    def rank_duplicates(self, query: MatchQuery, candidates: Sequence[PersonRecord]) -> list[MatchCandidate]:
        ...

    def rank_search(self, query: SearchQuery, candidates: Sequence[PersonRecord]) -> list[MatchCandidate]:
        ...
