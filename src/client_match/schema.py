from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Mapping, Sequence

import structlog

from client_match.models import PersonRecord
from client_match.scoring.dob import parse_dob

logger = structlog.get_logger(__name__)


class FieldTag(StrEnum):
    PERSON_ID = "PERSON_ID"
    CLIENT_ID = "CLIENT_ID"
    FIRST_NAME = "FIRST_NAME"
    LAST_NAME = "LAST_NAME"
    NICKNAME = "NICKNAME"
    DOB = "DOB"


@dataclass(frozen=True)
class RecordSchema:
    """Maps roster export columns to stable semantic tags."""

    tag_to_columns: Mapping[FieldTag, tuple[str, ...]]

    @classmethod
    def from_mapping(cls, mapping: Mapping[FieldTag, Sequence[str]]) -> "RecordSchema":
        frozen = {tag: tuple(columns) for tag, columns in mapping.items()}
        return cls(tag_to_columns=frozen)

    def columns_for(self, tag: FieldTag) -> tuple[str, ...]:
        return self.tag_to_columns.get(tag, ())

    def values_for(self, attributes: Mapping[str, object], tag: FieldTag) -> list[str]:
        values: list[str] = []
        for column in self.columns_for(tag):
            value = attributes.get(column)
            if value is None:
                continue
            text = str(value).strip()
            if text:
                values.append(text)
        return values

    def first_value(self, attributes: Mapping[str, object], tag: FieldTag) -> str | None:
        values = self.values_for(attributes, tag)
        return values[0] if values else None

    def to_person(self, attributes: Mapping[str, object]) -> PersonRecord | None:
        """Build a PersonRecord from one exported row.

        Rows without an id are skipped (None). An unreadable DOB is kept as
        missing rather than rejecting the row.
        """
        person_id = self.first_value(attributes, FieldTag.PERSON_ID)
        if not person_id:
            return None

        raw_dob = self.first_value(attributes, FieldTag.DOB)
        date_of_birth = parse_dob(raw_dob)
        if raw_dob and date_of_birth is None:
            logger.warning("candidate_dob_unparsable", person_id=person_id)

        return PersonRecord(
            id=person_id,
            client_id=self.first_value(attributes, FieldTag.CLIENT_ID) or person_id,
            first_name=self.first_value(attributes, FieldTag.FIRST_NAME) or "",
            last_name=self.first_value(attributes, FieldTag.LAST_NAME) or "",
            nickname=self.first_value(attributes, FieldTag.NICKNAME),
            date_of_birth=date_of_birth,
        )

    def to_row(self, person: PersonRecord) -> dict[str, str]:
        """Inverse of to_person, writing each tag to its first column."""
        values = {
            FieldTag.PERSON_ID: person.id,
            FieldTag.CLIENT_ID: person.client_id,
            FieldTag.FIRST_NAME: person.first_name,
            FieldTag.LAST_NAME: person.last_name,
            FieldTag.NICKNAME: person.nickname or "",
            FieldTag.DOB: person.date_of_birth.isoformat() if person.date_of_birth else "",
        }
        row: dict[str, str] = {}
        for tag, value in values.items():
            columns = self.columns_for(tag)
            if columns:
                row[columns[0]] = value
        return row
