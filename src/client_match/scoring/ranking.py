from __future__ import annotations

from collections.abc import Sequence

from client_match.models import MatchCandidate, MatchedField, MatchQuery, PersonRecord, SearchQuery
from client_match.scoring import dob
from client_match.scoring.alias import best_name_similarity
from client_match.scoring.normalize import join_name, normalize, normalize_or_empty
from client_match.scoring.trigram import similarity
from client_match.settings import MatchSettings


class MatchRanker:
    """Scores, filters and orders candidate records for one query.

    Both modes validate the query before touching the corpus and are pure
    functions of (query, candidates, settings).
    """

    def __init__(self, settings: MatchSettings | None = None) -> None:
        self._settings = settings or MatchSettings()

    def rank_duplicates(self, query: MatchQuery, candidates: Sequence[PersonRecord]) -> list[MatchCandidate]:
        first = normalize(query.first_name)
        last = normalize(query.last_name)

        ranked: list[MatchCandidate] = []
        for person in candidates:
            name_score, matched_on = best_name_similarity(first, last, person)
            score = dob.adjust(
                name_score,
                query.date_of_birth,
                person.date_of_birth,
                boost=self._settings.dob_match_boost,
                penalty=self._settings.dob_mismatch_penalty,
            )
            if score >= self._settings.duplicate_threshold:
                ranked.append(MatchCandidate(person=person, similarity_score=score, matched_on=matched_on))
        return sort_candidates(ranked)

    def rank_search(self, query: SearchQuery, candidates: Sequence[PersonRecord]) -> list[MatchCandidate]:
        term = normalize(query.term)
        ranked = []
        for person in candidates:
            score, matched_on = search_similarity(term, person)
            ranked.append(MatchCandidate(person=person, similarity_score=score, matched_on=matched_on))
        return sort_candidates(ranked)


def search_similarity(term: str, person: PersonRecord) -> tuple[float, MatchedField]:
    """Best score of a normalized search term across a record's searchable fields."""
    legal = max(
        similarity(term, normalize_or_empty(join_name(person.first_name, person.last_name))),
        similarity(term, normalize_or_empty(person.first_name)),
        similarity(term, normalize_or_empty(person.last_name)),
    )
    nickname = similarity(term, normalize_or_empty(person.nickname))
    client_id = client_id_similarity(term, normalize_or_empty(person.client_id))

    # Ordered by preference on ties.
    scored = [
        (legal, MatchedField.LEGAL_NAME),
        (nickname, MatchedField.NICKNAME),
        (client_id, MatchedField.CLIENT_ID),
    ]
    best_score, best_field = scored[0]
    for score, field in scored[1:]:
        if score > best_score:
            best_score, best_field = score, field
    return best_score, best_field


def client_id_similarity(term: str, client_id: str) -> float:
    if client_id and client_id.startswith(term):
        return 1.0
    return similarity(term, client_id)


def sort_candidates(candidates: list[MatchCandidate]) -> list[MatchCandidate]:
    return sorted(
        candidates,
        key=lambda candidate: (-candidate.similarity_score, candidate.person.client_id, candidate.person.id),
    )


def fuzzy_search_persons(
    term: str,
    corpus: Sequence[PersonRecord],
    settings: MatchSettings | None = None,
) -> list[MatchCandidate]:
    """Rank a plain roster snapshot for `term`; the caller truncates for display."""
    return MatchRanker(settings).rank_search(SearchQuery(term=term), corpus)
