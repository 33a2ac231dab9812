from __future__ import annotations

import math
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

import structlog

from client_match.models import DuplicateGroup, PersonRecord
from client_match.scoring import dob
from client_match.scoring.alias import best_name_similarity
from client_match.scoring.normalize import join_name, normalize_or_empty
from client_match.scoring.trigram import trigrams
from client_match.settings import MatchSettings

logger = structlog.get_logger(__name__)

# Absorbs float error in threshold * size near whole numbers.
_EPSILON = 1e-9


def find_duplicate_groups(
    records: Sequence[PersonRecord],
    settings: MatchSettings | None = None,
    *,
    blocking: bool = True,
) -> list[DuplicateGroup]:
    """Scan a whole roster for records that probably describe the same person.

    Every candidate pair is scored in both directions (each record standing
    in as the intake query for the other) with DOB corroboration; pairs at or
    above the duplicate threshold are chained into groups. Advisory only,
    nothing is merged.

    With `blocking` (the default) only pairs that can reach the threshold are
    scored: pairs born on the same day, and pairs whose compared names share
    a trigram inside their prefix-filter window. The groups are the same as
    with `blocking=False`, which scores every pair.
    """
    settings = settings or MatchSettings()
    comparable = [
        record
        for record in records
        if normalize_or_empty(record.first_name) and normalize_or_empty(record.last_name)
    ]
    skipped = len(records) - len(comparable)
    if skipped:
        logger.info("duplicate_scan_skipped_blank_names", skipped=skipped)

    if blocking and settings.duplicate_threshold > 0:
        pairs = _candidate_pairs(comparable, settings.duplicate_threshold)
    else:
        pairs = _all_pairs(len(comparable))

    uf = _UnionFind()
    pair_scores: list[tuple[str, str, float]] = []
    compared = 0

    for i, j in pairs:
        left, right = comparable[i], comparable[j]
        compared += 1
        score = _pair_score(left, right, settings)
        if score >= settings.duplicate_threshold:
            uf.union(left.id, right.id)
            pair_scores.append((left.id, right.id, score))

    score_map: dict[str, list[float]] = defaultdict(list)
    for left_id, _, score in pair_scores:
        score_map[uf.find(left_id)].append(score)

    groups: list[DuplicateGroup] = []
    for root, members in uf.groups().items():
        if len(members) < 2:
            continue
        scores = score_map.get(root, [0.0])
        ordered = sorted(members)
        groups.append(
            DuplicateGroup(
                group_id=f"group_{ordered[0]}",
                person_ids=ordered,
                confidence=sum(scores) / len(scores),
            )
        )

    logger.info(
        "duplicate_scan_completed",
        records=len(records),
        compared_pairs=compared,
        pairs=len(pair_scores),
        groups=len(groups),
    )
    return sorted(groups, key=lambda group: (-group.confidence, group.group_id))


def _all_pairs(count: int) -> Iterable[tuple[int, int]]:
    for i in range(count):
        for j in range(i + 1, count):
            yield i, j


def _candidate_pairs(records: Sequence[PersonRecord], threshold: float) -> list[tuple[int, int]]:
    """Index pairs (i < j) that may score at or above `threshold`, in scan order.

    Without a same-day DOB the final score never exceeds the name score, so
    some compared pair of names must have Jaccard >= threshold. Two trigram
    sets with Jaccard >= t share at least ceil(t * |A|) grams, and then
    share a gram within the first |A| - ceil(t * |A|) + 1 grams of each set
    under any fixed global order. Rare grams go first to keep windows small.
    """
    name_grams = [[trigrams(name) for name in _compared_names(record)] for record in records]

    frequency: Counter[str] = Counter()
    for grams_per_name in name_grams:
        for grams in grams_per_name:
            frequency.update(grams)

    postings: dict[str, list[int]] = defaultdict(list)
    windows: list[set[str]] = []
    for idx, grams_per_name in enumerate(name_grams):
        window: set[str] = set()
        for grams in grams_per_name:
            ordered = sorted(grams, key=lambda gram: (frequency[gram], gram))
            required = math.ceil(threshold * len(ordered) - _EPSILON)
            window.update(ordered[: len(ordered) - required + 1])
        windows.append(window)
        for gram in window:
            postings[gram].append(idx)

    pairs: set[tuple[int, int]] = set()
    for idx, window in enumerate(windows):
        for gram in window:
            pairs.update((idx, other) for other in postings[gram] if other > idx)

    by_birthday: dict[date, list[int]] = defaultdict(list)
    for idx, record in enumerate(records):
        born = dob.parse_dob(record.date_of_birth)
        if born is not None:
            by_birthday[born].append(idx)
    for members in by_birthday.values():
        pairs.update(_all_pairs_of(members))

    return sorted(pairs)


def _all_pairs_of(members: Sequence[int]) -> Iterable[tuple[int, int]]:
    for pos, i in enumerate(members):
        for j in members[pos + 1 :]:
            yield i, j


def _compared_names(record: PersonRecord) -> list[str]:
    """Every normalized string best_name_similarity compares for this record, either side."""
    first = normalize_or_empty(record.first_name)
    nickname = normalize_or_empty(record.nickname)
    names = {
        first,
        normalize_or_empty(join_name(first, record.last_name)),
        normalize_or_empty(join_name(record.first_name, record.last_name)),
        nickname,
        normalize_or_empty(join_name(nickname, record.last_name)) if nickname else "",
    }
    return sorted(name for name in names if name)


def _pair_score(left: PersonRecord, right: PersonRecord, settings: MatchSettings) -> float:
    forward, _ = best_name_similarity(left.first_name, left.last_name, right)
    backward, _ = best_name_similarity(right.first_name, right.last_name, left)
    return dob.adjust(
        max(forward, backward),
        left.date_of_birth,
        right.date_of_birth,
        boost=settings.dob_match_boost,
        penalty=settings.dob_mismatch_penalty,
    )


class _UnionFind:
    def __init__(self) -> None:
        self._parent: dict[str, str] = {}

    def find(self, item: str) -> str:
        if item not in self._parent:
            self._parent[item] = item
            return item
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, left: str, right: str) -> None:
        root_left = self.find(left)
        root_right = self.find(right)
        if root_left != root_right:
            self._parent[root_right] = root_left

    def groups(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = defaultdict(list)
        for item in list(self._parent):
            grouped[self.find(item)].append(item)
        return grouped
