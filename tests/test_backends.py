import sqlite3
from datetime import date

import pytest

from client_match.backends import InMemoryCandidateSource, SqliteRosterStore
from client_match.datasets import ReferenceRosterGenerator
from client_match.errors import InvalidInputError, MatchBackendUnavailable
from client_match.models import PersonRecord
from client_match.scoring import fuzzy_search_persons
from client_match.services import DuplicateCheckService
from client_match.settings import MatchSettings

SEARCH_TERMS = ["smi", "mike", "garcia", "cl-0001", "obrien", "jon", "st james", "red"]
INTAKE_QUERIES = [
    ("Jon", "Smith", None),
    ("Mike", "Jones", None),
    ("Maria", "Garcia-Lopez", None),
    ("Liz", "OBrien", None),
    ("Tony", "Nguyen", "1970-06-15"),
]
SETTINGS = [MatchSettings(), MatchSettings(duplicate_threshold=0.2)]


@pytest.fixture(scope="module")
def roster() -> list[PersonRecord]:
    return ReferenceRosterGenerator(seed=3).generate(size=200, duplicate_rate=0.2)


@pytest.fixture
def store(roster):
    with SqliteRosterStore() as loaded:
        loaded.add(list(reversed(roster)))
        yield loaded


@pytest.mark.parametrize("term", SEARCH_TERMS)
def test_sqlite_search_matches_in_memory_ranking(store, roster, term: str) -> None:
    expected = [candidate for candidate in fuzzy_search_persons(term, roster) if candidate.similarity_score > 0]
    actual = store.search_ranked(term)

    assert [c.person.id for c in actual] == [c.person.id for c in expected]
    assert [c.matched_on for c in actual] == [c.matched_on for c in expected]
    assert [c.similarity_score for c in actual] == pytest.approx([c.similarity_score for c in expected])


def test_sqlite_search_honours_limit(store) -> None:
    assert len(store.search_ranked("smi", limit=3)) == 3


@pytest.mark.parametrize("settings", SETTINGS, ids=["default", "low-threshold"])
@pytest.mark.parametrize(("first", "last", "dob"), INTAKE_QUERIES)
def test_sqlite_prefilter_keeps_every_duplicate(store, roster, settings, first, last, dob) -> None:
    expected = DuplicateCheckService(InMemoryCandidateSource(roster), settings).check_for_duplicates(first, last, dob)
    actual = DuplicateCheckService(store, settings).check_for_duplicates(first, last, dob)
    assert actual == expected


@pytest.mark.parametrize("settings", SETTINGS, ids=["default", "low-threshold"])
def test_sqlite_prefilter_keeps_same_birthday_records(store, roster, settings) -> None:
    born = next(person.date_of_birth for person in roster if person.date_of_birth is not None)
    expected = DuplicateCheckService(InMemoryCandidateSource(roster), settings).check_for_duplicates("Xu", "Qy", born)
    actual = DuplicateCheckService(store, settings).check_for_duplicates("Xu", "Qy", born)
    assert actual == expected


def test_birthday_alone_can_flag_a_record_at_low_threshold(smith_garcia_roster) -> None:
    settings = MatchSettings(duplicate_threshold=0.2)
    with SqliteRosterStore() as store:
        store.add(smith_garcia_roster)
        result = DuplicateCheckService(store, settings).check_for_duplicates("Xu", "Qy", "1985-05-05")

    assert [(c.person.id, c.similarity_score) for c in result.similar_persons] == [("p2", 0.25)]


def test_fetch_candidates_includes_same_birthday_records() -> None:
    person = PersonRecord(id="p1", client_id="CL-1", first_name="Ann", last_name="Lee", date_of_birth=date(1990, 1, 1))
    with SqliteRosterStore() as store:
        store.add([person])
        assert store.fetch_candidates(["zzz"]) == []
        assert store.fetch_candidates(["zzz"], date_of_birth=date(1990, 1, 1)) == [person]
        assert store.fetch_candidates([], date_of_birth=date(1990, 1, 1)) == [person]


def test_store_round_trips_records(store, roster) -> None:
    assert len(store) == len(roster)
    by_id = {person.id: person for person in store.recent(len(roster))}
    assert by_id == {person.id: person for person in roster}


def test_recent_returns_newest_first() -> None:
    people = [PersonRecord(id=f"p{i}", client_id=f"CL-{i}", first_name="Ann", last_name="Lee") for i in range(3)]
    with SqliteRosterStore() as store:
        store.add(people)
        assert [person.id for person in store.recent(2)] == ["p2", "p1"]


def test_readding_a_record_replaces_it() -> None:
    original = PersonRecord(id="p1", client_id="CL-1", first_name="Ann", last_name="Lee")
    with SqliteRosterStore() as store:
        store.add([original])
        store.add([PersonRecord(id="p1", client_id="CL-1", first_name="Anne", last_name="Lee")])
        assert len(store) == 1
        assert store.recent(1)[0].first_name == "Anne"
        assert store.fetch_candidates(["anne lee"])[0].first_name == "Anne"


def test_fetch_candidates_prefilters_by_trigram() -> None:
    people = [
        PersonRecord(id="p1", client_id="CL-1", first_name="Ann", last_name="Lee"),
        PersonRecord(id="p2", client_id="CL-2", first_name="Bob", last_name="Quay"),
    ]
    with SqliteRosterStore() as store:
        store.add(people)
        assert [person.id for person in store.fetch_candidates(["ann"])] == ["p1"]
        assert store.fetch_candidates([]) == []


def test_fetch_candidates_matches_client_id_prefix() -> None:
    person = PersonRecord(id="p1", client_id="ZZ-99", first_name="Ann", last_name="Lee")
    with SqliteRosterStore() as store:
        store.add([person])
        assert store.fetch_candidates(["zz"]) == [person]


def test_malformed_stored_dob_is_read_as_missing(tmp_path) -> None:
    path = tmp_path / "roster.db"
    with SqliteRosterStore(path) as store:
        store.add(
            [PersonRecord(id="p1", client_id="CL-1", first_name="Ann", last_name="Lee", date_of_birth=date(1990, 1, 1))]
        )
        with sqlite3.connect(path) as raw:
            raw.execute("UPDATE persons SET date_of_birth = 'sometime in May'")

        result = DuplicateCheckService(store).check_for_duplicates("Ann", "Lee", "1990-01-01")
        assert result.similar_persons[0].person.date_of_birth is None
        assert result.similar_persons[0].similarity_score == 1.0


def test_closed_store_is_unavailable() -> None:
    store = SqliteRosterStore()
    store.close()
    with pytest.raises(MatchBackendUnavailable):
        store.fetch_candidates(["ann"])


def test_unopenable_store_is_unavailable(tmp_path) -> None:
    with pytest.raises(MatchBackendUnavailable):
        SqliteRosterStore(tmp_path / "missing" / "roster.db")


def test_blank_search_term_is_invalid() -> None:
    with SqliteRosterStore() as store:
        with pytest.raises(InvalidInputError):
            store.search_ranked(" ")


@pytest.mark.parametrize("limit", [0, -1])
def test_search_ranked_rejects_non_positive_limit(store, limit: int) -> None:
    with pytest.raises(InvalidInputError):
        store.search_ranked("smi", limit=limit)


def test_in_memory_source_keeps_given_order() -> None:
    people = [PersonRecord(id=f"p{i}", client_id=f"CL-{i}", first_name="Ann", last_name="Lee") for i in range(3)]
    source = InMemoryCandidateSource(people)
    assert len(source) == 3
    assert source.fetch_candidates(["anything"]) == people
    assert source.recent(2) == people[:2]
