import asyncio
import threading
import time

import pytest

from client_match.backends import InMemoryCandidateSource
from client_match.errors import InvalidInputError, MatchBackendUnavailable
from client_match.models import PersonRecord
from client_match.services import (
    DuplicateCheckService,
    GenerationGate,
    IntakeDuplicateWatcher,
    LiveSearchService,
    SearchSession,
)
from client_match.services.session import query_budget_s
from client_match.settings import MatchSettings


def _roster(size: int) -> list[PersonRecord]:
    return [
        PersonRecord(id=f"p{i}", client_id=f"CL-{i:05d}", first_name="Ann", last_name=f"Smith{i}")
        for i in range(size)
    ]


class _BlockingSource(InMemoryCandidateSource):
    """Blocks queries for one term until released."""

    def __init__(self, records, slow_term: str) -> None:
        super().__init__(records)
        self.slow_term = slow_term
        self.release = threading.Event()
        self.calls: list[list[str]] = []

    def fetch_candidates(self, terms, date_of_birth=None):
        self.calls.append(list(terms))
        if self.slow_term in terms:
            self.release.wait(timeout=5)
        return super().fetch_candidates(terms)


class _SlowFirstAttemptSource(InMemoryCandidateSource):
    """First fetch stalls and then fails; later fetches answer at once."""

    def __init__(self, records, stall_s: float) -> None:
        super().__init__(records)
        self.stall_s = stall_s
        self.attempts = 0

    def fetch_candidates(self, terms, date_of_birth=None):
        self.attempts += 1
        if self.attempts == 1:
            time.sleep(self.stall_s)
            raise MatchBackendUnavailable("stalled")
        return super().fetch_candidates(terms)


class _SleepySource(InMemoryCandidateSource):
    def fetch_candidates(self, terms, date_of_birth=None):
        time.sleep(0.5)
        return super().fetch_candidates(terms)


def test_search_truncates_to_default_limit() -> None:
    service = LiveSearchService(InMemoryCandidateSource(_roster(30)))
    assert len(service.search("smith")) == 20
    assert len(service.search("smith", limit=5)) == 5


def test_blank_term_raises_without_reading(recording_source) -> None:
    source = recording_source(_roster(3))
    with pytest.raises(InvalidInputError):
        LiveSearchService(source).search("   ")
    assert source.calls == []


def test_default_listing_uses_newest_records(recording_source) -> None:
    source = recording_source(_roster(30))
    listing = LiveSearchService(source, MatchSettings(search_result_limit=4)).default_listing()
    assert [person.id for person in listing] == ["p0", "p1", "p2", "p3"]
    assert source.recent_calls == [4]


@pytest.mark.parametrize("arrival", [(1, 2), (2, 1)])
def test_only_the_newest_generation_is_applied(arrival) -> None:
    gate = GenerationGate()
    assert gate.issue() == 1
    assert gate.issue() == 2

    accepted = {generation: gate.accept(generation) for generation in arrival}

    assert accepted == {1: False, 2: True}
    assert gate.applied == 2


def test_generation_is_applied_only_once() -> None:
    gate = GenerationGate()
    generation = gate.issue()
    assert gate.accept(generation)
    assert not gate.accept(generation)


@pytest.mark.asyncio
async def test_slow_stale_result_never_overwrites_newer_one() -> None:
    source = _BlockingSource(_roster(5), slow_term="smi")
    views = []
    session = SearchSession(LiveSearchService(source), on_view=views.append, debounce_s=0)

    stale = asyncio.create_task(session.run_query("smi"))
    await asyncio.sleep(0)
    assert await session.run_query("smith1")

    source.release.set()
    assert await stale is False

    assert [view.term for view in views] == ["smith1"]
    assert session.view.term == "smith1"
    assert session.view.generation == 2


@pytest.mark.asyncio
async def test_keystrokes_inside_debounce_window_run_one_query() -> None:
    source = _BlockingSource(_roster(5), slow_term="never")
    session = SearchSession(LiveSearchService(source), debounce_s=0.05)

    for term in ["s", "sm", "smi", "smit"]:
        session.update(term)
    await session.wait_idle()

    assert source.calls == [["smit"]]
    assert session.gate.latest == 1
    assert session.view.term == "smit"
    assert session.view.results


@pytest.mark.asyncio
async def test_blank_term_shows_default_listing() -> None:
    session = SearchSession(LiveSearchService(InMemoryCandidateSource(_roster(30))), debounce_s=0, limit=3)
    assert await session.run_query("")
    assert [person.id for person in session.view.listing] == ["p0", "p1", "p2"]
    assert session.view.results == []


@pytest.mark.asyncio
async def test_backend_failure_becomes_error_view(recording_source) -> None:
    source = recording_source(_roster(3), failures=5, error=MatchBackendUnavailable("down"))
    session = SearchSession(LiveSearchService(source), debounce_s=0)

    assert await session.run_query("smith")
    assert isinstance(session.view.error, MatchBackendUnavailable)
    assert session.view.results == []


@pytest.mark.asyncio
async def test_slow_backend_times_out() -> None:
    settings = MatchSettings(backend_timeout_s=0.05)
    session = SearchSession(LiveSearchService(_SleepySource(_roster(3)), settings), debounce_s=0)

    await session.run_query("smith")
    assert isinstance(session.view.error, MatchBackendUnavailable)


@pytest.mark.asyncio
async def test_intake_watcher_waits_for_names(recording_source, smith_garcia_roster) -> None:
    source = recording_source(smith_garcia_roster)
    watcher = IntakeDuplicateWatcher(DuplicateCheckService(source), debounce_s=0)

    await watcher.run_check("Jo", "Smith")
    assert source.calls == []
    assert not watcher.view.result.has_potential_duplicates
    assert not watcher.view.inconclusive

    await watcher.run_check("Jon", "Smith")
    assert watcher.view.result.has_potential_duplicates


@pytest.mark.asyncio
async def test_intake_watcher_debounces_and_reports_inconclusive(recording_source, smith_garcia_roster) -> None:
    source = recording_source(smith_garcia_roster, failures=5, error=MatchBackendUnavailable("down"))
    watcher = IntakeDuplicateWatcher(DuplicateCheckService(source), debounce_s=0.05)

    watcher.update("Jon", "Smi")
    watcher.update("Jon", "Smit")
    watcher.update("Jon", "Smith", "1990-01-01")
    await watcher.wait_idle()

    assert source.calls == [["jon smith", "jon"], ["jon smith", "jon"]]
    assert watcher.view.inconclusive
    await watcher.aclose()


@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limit_is_rejected(recording_source, limit: int) -> None:
    source = recording_source(_roster(5))
    service = LiveSearchService(source)

    with pytest.raises(InvalidInputError):
        service.search("smith", limit=limit)
    with pytest.raises(InvalidInputError):
        service.default_listing(limit=limit)
    assert source.calls == []
    assert source.recent_calls == []


def test_default_listing_retries_transient_failure(recording_source) -> None:
    source = recording_source(_roster(10), error=MatchBackendUnavailable("blip"), recent_failures=1)
    listing = LiveSearchService(source).default_listing(limit=3)

    assert [person.id for person in listing] == ["p0", "p1", "p2"]
    assert source.recent_calls == [3, 3]


def test_default_listing_persistent_failure_is_unavailable(recording_source) -> None:
    source = recording_source(_roster(10), error=TimeoutError(), recent_failures=5)
    with pytest.raises(MatchBackendUnavailable):
        LiveSearchService(source).default_listing()
    assert len(source.recent_calls) == 2


def test_query_budget_covers_every_attempt() -> None:
    assert query_budget_s(MatchSettings(backend_timeout_s=2.0, backend_retries=2)) == 6.0
    assert query_budget_s(MatchSettings(backend_timeout_s=2.0, backend_retries=0)) == 2.0


@pytest.mark.asyncio
async def test_session_query_survives_a_slow_first_attempt() -> None:
    settings = MatchSettings(backend_timeout_s=0.2, backend_retries=1)
    source = _SlowFirstAttemptSource(_roster(3), stall_s=0.25)
    session = SearchSession(LiveSearchService(source, settings), debounce_s=0)

    assert await session.run_query("smith")
    assert session.view.error is None
    assert session.view.results
    assert source.attempts == 2
