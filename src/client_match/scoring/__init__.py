from client_match.scoring.alias import best_name_similarity
from client_match.scoring.dob import adjust, parse_dob
from client_match.scoring.grouping import find_duplicate_groups
from client_match.scoring.normalize import normalize, normalize_or_empty
from client_match.scoring.ranking import MatchRanker, fuzzy_search_persons
from client_match.scoring.trigram import similarity, trigrams

__all__ = [
    "best_name_similarity",
    "adjust",
    "parse_dob",
    "find_duplicate_groups",
    "normalize",
    "normalize_or_empty",
    "MatchRanker",
    "fuzzy_search_persons",
    "similarity",
    "trigrams",
]
