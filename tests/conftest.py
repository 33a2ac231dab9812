from datetime import date

import pytest

from client_match.models import PersonRecord


@pytest.fixture
def smith_garcia_roster() -> list[PersonRecord]:
    return [
        PersonRecord(
            id="p1",
            client_id="CL-00001",
            first_name="Jonathan",
            last_name="Smith",
            date_of_birth=date(1990, 1, 1),
        ),
        PersonRecord(
            id="p2",
            client_id="CL-00002",
            first_name="Maria",
            last_name="Garcia",
            date_of_birth=date(1985, 5, 5),
        ),
    ]


@pytest.fixture
def michael_jones() -> PersonRecord:
    return PersonRecord(
        id="p3",
        client_id="CL-00003",
        first_name="Michael",
        last_name="Jones",
        nickname="Mike",
        date_of_birth=date(1992, 3, 4),
    )


class RecordingSource:
    """Candidate source that records every call and can fail on demand."""

    def __init__(self, records, failures=0, error=None, recent_failures=0):
        self.records = list(records)
        self.calls: list[list[str]] = []
        self.dobs: list = []
        self.recent_calls: list[int] = []
        self._failures = failures
        self._recent_failures = recent_failures
        self._error = error

    def fetch_candidates(self, terms, date_of_birth=None):
        self.calls.append(list(terms))
        self.dobs.append(date_of_birth)
        if self._failures > 0:
            self._failures -= 1
            raise self._error
        return list(self.records)

    def recent(self, limit):
        self.recent_calls.append(limit)
        if self._recent_failures > 0:
            self._recent_failures -= 1
            raise self._error
        return self.records[:limit]


@pytest.fixture
def recording_source():
    return RecordingSource
