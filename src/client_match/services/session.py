"""
Interactive sessions on top of the search and duplicate-check services.

Typing produces a stream of queries. Each query waits out a debounce window,
then runs in a worker thread. Every issued query takes the next generation
number, and only a result whose generation is still the newest issued may
replace what is on screen. A slow answer to an old keystroke is dropped when
it finally arrives, never merged. In-flight work is not interrupted; only
pending debounce timers are cancelled.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Generic, TypeVar

import structlog

from client_match.errors import MatchBackendUnavailable, MatchError
from client_match.models import DuplicateCheckResult, MatchCandidate, PersonRecord
from client_match.services.duplicates import DuplicateCheckService
from client_match.services.search import LiveSearchService
from client_match.settings import MatchSettings

logger = structlog.get_logger(__name__)

ViewT = TypeVar("ViewT")


def query_budget_s(settings: MatchSettings) -> float:
    """Time one session query may take: every retry attempt gets a full backend timeout."""
    return settings.backend_timeout_s * (settings.backend_retries + 1)


class GenerationGate:
    """Monotonic request tokens; only the newest issued token may publish."""

    def __init__(self) -> None:
        self._issued = 0
        self._applied = 0

    @property
    def latest(self) -> int:
        return self._issued

    @property
    def applied(self) -> int:
        return self._applied

    def issue(self) -> int:
        self._issued += 1
        return self._issued

    def accept(self, generation: int) -> bool:
        if generation != self._issued or generation <= self._applied:
            return False
        self._applied = generation
        return True


@dataclass(slots=True)
class SearchView:
    """What the roster screen shows for one generation."""

    generation: int
    term: str
    results: list[MatchCandidate] = field(default_factory=list)
    listing: list[PersonRecord] = field(default_factory=list)
    error: MatchError | None = None


@dataclass(slots=True)
class IntakeCheckView:
    generation: int
    result: DuplicateCheckResult = field(default_factory=DuplicateCheckResult)
    error: MatchError | None = None

    @property
    def inconclusive(self) -> bool:
        return self.error is not None


class _DebouncedSession(Generic[ViewT]):
    def __init__(
        self,
        debounce_s: float,
        timeout_s: float,
        on_view: Callable[[ViewT], None] | None,
    ) -> None:
        self._debounce_s = debounce_s
        self._timeout_s = timeout_s
        self._on_view = on_view
        self._gate = GenerationGate()
        self._pending: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self.view: ViewT | None = None

    @property
    def gate(self) -> GenerationGate:
        return self._gate

    def _schedule(self, run: Callable[[], Awaitable[bool]]) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        task = asyncio.get_running_loop().create_task(self._after_debounce(run))
        self._pending = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _after_debounce(self, run: Callable[[], Awaitable[bool]]) -> None:
        await asyncio.sleep(self._debounce_s)
        # Past the window, newer input must not cancel this query.
        self._pending = None
        await run()

    async def _run_in_thread(self, func, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._timeout_s)
        except TimeoutError as exc:
            raise MatchBackendUnavailable("query timed out", details={"timeout_s": self._timeout_s}) from exc

    def deliver(self, generation: int, view: ViewT) -> bool:
        """Publish `view` if `generation` is still the newest issued; report whether it was."""
        if not self._gate.accept(generation):
            logger.debug("stale_result_discarded", generation=generation, latest=self._gate.latest)
            return False
        self.view = view
        if self._on_view is not None:
            self._on_view(view)
        return True

    async def wait_idle(self) -> None:
        """Wait for pending and in-flight queries (tests and shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        await self.wait_idle()


class SearchSession(_DebouncedSession[SearchView]):
    """Debounced, generation-gated live search for the roster screen."""

    def __init__(
        self,
        service: LiveSearchService,
        on_view: Callable[[SearchView], None] | None = None,
        *,
        debounce_s: float | None = None,
        limit: int | None = None,
    ) -> None:
        settings = service.settings
        super().__init__(
            debounce_s=settings.search_debounce_s if debounce_s is None else debounce_s,
            timeout_s=query_budget_s(settings),
            on_view=on_view,
        )
        self._service = service
        self._limit = settings.search_result_limit if limit is None else limit

    def update(self, term: str) -> None:
        """Record a keystroke. Must be called from a running event loop."""
        self._schedule(lambda: self.run_query(term))

    async def run_query(self, term: str) -> bool:
        """Issue one query immediately, bypassing the debounce window."""
        generation = self._gate.issue()
        try:
            if term.strip():
                results = await self._run_in_thread(self._service.search, term, self._limit)
                view = SearchView(generation=generation, term=term, results=results)
            else:
                listing = await self._run_in_thread(self._service.default_listing, self._limit)
                view = SearchView(generation=generation, term=term, listing=listing)
        except MatchError as exc:
            logger.warning("search_failed", generation=generation, error_code=exc.error_code)
            view = SearchView(generation=generation, term=term, error=exc)
        return self.deliver(generation, view)


class IntakeDuplicateWatcher(_DebouncedSession[IntakeCheckView]):
    """Re-runs the duplicate check while an intake form is being filled in.

    The check only runs once both names reach `min_intake_name_length`
    characters; shorter names clear any earlier warning.
    """

    def __init__(
        self,
        service: DuplicateCheckService,
        on_view: Callable[[IntakeCheckView], None] | None = None,
        *,
        debounce_s: float | None = None,
    ) -> None:
        settings = service.settings
        super().__init__(
            debounce_s=settings.search_debounce_s if debounce_s is None else debounce_s,
            timeout_s=query_budget_s(settings),
            on_view=on_view,
        )
        self._service = service
        self._min_length = settings.min_intake_name_length

    def update(self, first_name: str, last_name: str, date_of_birth: date | str | None = None) -> None:
        self._schedule(lambda: self.run_check(first_name, last_name, date_of_birth))

    async def run_check(self, first_name: str, last_name: str, date_of_birth: date | str | None = None) -> bool:
        generation = self._gate.issue()
        if len(first_name.strip()) < self._min_length or len(last_name.strip()) < self._min_length:
            return self.deliver(generation, IntakeCheckView(generation=generation))
        try:
            result = await self._run_in_thread(
                self._service.check_for_duplicates, first_name, last_name, date_of_birth
            )
            view = IntakeCheckView(generation=generation, result=result)
        except MatchError as exc:
            logger.warning("intake_check_failed", generation=generation, error_code=exc.error_code)
            view = IntakeCheckView(generation=generation, error=exc)
        return self.deliver(generation, view)
