from client_match.services.duplicates import DuplicateCheckService, build_match_query
from client_match.services.search import LiveSearchService
from client_match.services.session import (
    GenerationGate,
    IntakeCheckView,
    IntakeDuplicateWatcher,
    SearchSession,
    SearchView,
)

__all__ = [
    "DuplicateCheckService",
    "build_match_query",
    "LiveSearchService",
    "GenerationGate",
    "IntakeCheckView",
    "IntakeDuplicateWatcher",
    "SearchSession",
    "SearchView",
]
