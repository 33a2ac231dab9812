from __future__ import annotations

import random
from dataclasses import replace
from datetime import date, timedelta

from client_match.models import PersonRecord

# Legal given name -> street names commonly recorded as nicknames.
_FIRST_NAMES = {
    "Michael": ["Mike", "Mikey"],
    "Jonathan": ["Jon", "Johnny"],
    "Robert": ["Bob", "Rob"],
    "William": ["Bill", "Will"],
    "Elizabeth": ["Liz", "Beth"],
    "Patricia": ["Pat", "Trish"],
    "Anthony": ["Tony"],
    "Katherine": ["Kate", "Kat"],
    "Daniel": ["Danny"],
    "Maria": [],
    "Luis": [],
    "Deshawn": ["Shawn"],
    "Tamika": ["Mika"],
    "Raymond": ["Ray"],
}
_LAST_NAMES = [
    "Smith",
    "Johnson",
    "Garcia",
    "O'Brien",
    "Washington",
    "Nguyen",
    "Martinez",
    "Jones",
    "Garcia-Lopez",
    "Thompson",
    "St. James",
    "Williams",
]
_STREET_ONLY_NICKNAMES = ["Red", "Doc", "Smokey", "Big Mike", "Tex", "Shorty"]


class ReferenceRosterGenerator:
    """Generate a synthetic client roster (with intentional re-intakes) for tests and benchmarks.

    After generate(), `duplicate_of` maps every re-intake record id to the id
    of the original record it was derived from.
    """

    def __init__(self, seed: int = 7) -> None:
        self._rng = random.Random(seed)
        self.duplicate_of: dict[str, str] = {}

    def generate(self, size: int, duplicate_rate: float = 0.15) -> list[PersonRecord]:
        self.duplicate_of = {}
        if size <= 0:
            return []

        unique_count = int(size * (1.0 - duplicate_rate))
        unique_count = max(1, min(unique_count, size))

        records = [self._profile(i) for i in range(unique_count)]

        while len(records) < size:
            source = self._rng.choice(records[:unique_count])
            idx = len(records)
            duplicate = self._perturb(source, idx)
            self.duplicate_of[duplicate.id] = source.id
            records.append(duplicate)

        self._rng.shuffle(records)
        return records

    def _profile(self, idx: int) -> PersonRecord:
        first_name = self._rng.choice(sorted(_FIRST_NAMES))
        last_name = self._rng.choice(_LAST_NAMES)
        nicknames = _FIRST_NAMES[first_name]

        nickname = None
        roll = self._rng.random()
        if nicknames and roll < 0.5:
            nickname = self._rng.choice(nicknames)
        elif roll < 0.6:
            nickname = self._rng.choice(_STREET_ONLY_NICKNAMES)

        dob = date(1950, 1, 1) + timedelta(days=self._rng.randrange(0, 365 * 55))
        return PersonRecord(
            id=f"person_{idx:07d}",
            client_id=_client_id(idx),
            first_name=first_name,
            last_name=last_name,
            nickname=nickname,
            date_of_birth=dob,
        )

    def _perturb(self, source: PersonRecord, idx: int) -> PersonRecord:
        duplicate = replace(source, id=f"person_{idx:07d}", client_id=_client_id(idx))
        mutation = self._rng.choice(["nickname", "typo", "punctuation", "dob", "mixed"])

        if mutation in {"nickname", "mixed"} and source.nickname:
            # Entered under the street name; the alias field is left blank.
            duplicate = replace(duplicate, first_name=source.nickname.split()[0], nickname=None)

        if mutation in {"typo", "mixed"}:
            duplicate = replace(duplicate, last_name=self._typo(duplicate.last_name))

        if mutation == "punctuation":
            duplicate = replace(
                duplicate,
                first_name=duplicate.first_name.upper(),
                last_name=duplicate.last_name.replace("'", "").replace(".", ""),
            )

        if mutation == "dob" and duplicate.date_of_birth is not None:
            if self._rng.random() < 0.5:
                duplicate = replace(duplicate, date_of_birth=None)
            else:
                duplicate = replace(duplicate, date_of_birth=duplicate.date_of_birth + timedelta(days=1))

        return duplicate

    def _typo(self, value: str) -> str:
        if len(value) <= 3:
            return value
        pos = self._rng.randrange(1, len(value) - 1)
        variant = self._rng.choice(["drop", "swap", "double"])
        if variant == "drop":
            return value[:pos] + value[pos + 1 :]
        if variant == "swap":
            return value[: pos - 1] + value[pos] + value[pos - 1] + value[pos + 1 :]
        return value[:pos] + value[pos] + value[pos:]


def _client_id(idx: int) -> str:
    return f"CL-{idx + 1:05d}"
