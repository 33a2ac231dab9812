from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum


class MatchedField(StrEnum):
    LEGAL_NAME = "legal_name"
    NICKNAME = "nickname"
    CLIENT_ID = "client_id"


@dataclass(frozen=True, slots=True)
class PersonRecord:
    """A stored client as supplied by the persistence layer."""

    id: str
    client_id: str
    first_name: str
    last_name: str
    nickname: str | None = None
    date_of_birth: date | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class MatchQuery:
    """Names (and optionally a DOB) typed in at intake."""

    first_name: str
    last_name: str
    date_of_birth: date | None = None


@dataclass(frozen=True, slots=True)
class SearchQuery:
    term: str


@dataclass(slots=True)
class MatchCandidate:
    """A stored client scored against a query."""

    person: PersonRecord
    similarity_score: float
    matched_on: MatchedField


@dataclass(slots=True)
class DuplicateCheckResult:
    similar_persons: list[MatchCandidate] = field(default_factory=list)

    @property
    def has_potential_duplicates(self) -> bool:
        return bool(self.similar_persons)


@dataclass(slots=True)
class DuplicateGroup:
    """A set of roster records that likely belong to the same person."""

    group_id: str
    person_ids: list[str]
    confidence: float
