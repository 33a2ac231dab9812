from __future__ import annotations

from functools import lru_cache

# normalize() strips "$", so the marker never collides with real input.
BOUNDARY = "$"


@lru_cache(maxsize=65536)
def trigrams(text: str) -> frozenset[str]:
    """Set of 3-character substrings of `text` padded with one boundary marker per side.

    "" has no trigrams; "a" has exactly one ("$a$").
    """
    if not text:
        return frozenset()
    padded = f"{BOUNDARY}{text}{BOUNDARY}"
    return frozenset(padded[i : i + 3] for i in range(len(padded) - 2))


def similarity(left: str, right: str) -> float:
    """Jaccard coefficient of the two trigram sets, in [0, 1].

    Two blank strings score 0.0 so that empty fields never look like matches.
    """
    left_grams = trigrams(left)
    right_grams = trigrams(right)
    union = len(left_grams | right_grams)
    if union == 0:
        return 0.0
    return len(left_grams & right_grams) / union
