from client_match.datasets.profiles import ROSTER_COLUMNS, ROSTER_SCHEMA
from client_match.datasets.reference import ReferenceRosterGenerator

__all__ = ["ROSTER_COLUMNS", "ROSTER_SCHEMA", "ReferenceRosterGenerator"]
