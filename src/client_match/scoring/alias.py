from __future__ import annotations

from client_match.models import MatchedField, PersonRecord
from client_match.scoring.normalize import join_name, normalize, normalize_or_empty
from client_match.scoring.trigram import similarity


def best_name_similarity(
    query_first: str,
    query_last: str,
    candidate: PersonRecord,
) -> tuple[float, MatchedField]:
    """Best similarity of the queried name against a candidate's legal name or nickname.

    People are often entered under a street name on one visit and their legal
    name on the next, so a stored nickname counts as an equally valid
    identity. The nickname is tried as a given name alongside the candidate's
    last name, and on its own against the queried first name ("Mike" for
    "Michael"). Ties go to the legal name.
    """
    first = normalize(query_first)
    full = normalize(join_name(first, query_last))

    best = similarity(full, normalize_or_empty(join_name(candidate.first_name, candidate.last_name)))
    matched_on = MatchedField.LEGAL_NAME

    nickname = normalize_or_empty(candidate.nickname)
    if nickname:
        alias_full = normalize_or_empty(join_name(nickname, candidate.last_name))
        alias_score = max(similarity(full, alias_full), similarity(first, nickname))
        if alias_score > best:
            best = alias_score
            matched_on = MatchedField.NICKNAME

    return best, matched_on
