from client_match.backends.memory import InMemoryCandidateSource
from client_match.backends.sqlite import SqliteRosterStore

__all__ = ["InMemoryCandidateSource", "SqliteRosterStore"]
