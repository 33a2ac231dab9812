from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from client_match.models import PersonRecord


class InMemoryCandidateSource:
    """Full roster held in memory; every query scores every record.

    Records are kept in the order given, newest first.
    """

    def __init__(self, records: Sequence[PersonRecord]) -> None:
        self._records = tuple(records)

    def __len__(self) -> int:
        return len(self._records)

    def fetch_candidates(self, terms: Sequence[str], date_of_birth: date | None = None) -> list[PersonRecord]:
        return list(self._records)

    def recent(self, limit: int) -> list[PersonRecord]:
        return list(self._records[:limit])
