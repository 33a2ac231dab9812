from __future__ import annotations

from client_match.schema import FieldTag, RecordSchema

# Columns of the persons table as exported from the case-management database.
ROSTER_COLUMNS = [
    "id",
    "client_id",
    "first_name",
    "last_name",
    "nickname",
    "date_of_birth",
]


ROSTER_SCHEMA = RecordSchema.from_mapping(
    {
        FieldTag.PERSON_ID: ["id"],
        FieldTag.CLIENT_ID: ["client_id"],
        FieldTag.FIRST_NAME: ["first_name"],
        FieldTag.LAST_NAME: ["last_name"],
        FieldTag.NICKNAME: ["nickname"],
        FieldTag.DOB: ["date_of_birth"],
    }
)
