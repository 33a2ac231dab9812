from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path

import structlog

from client_match.errors import InvalidInputError, MatchBackendUnavailable
from client_match.models import MatchCandidate, MatchedField, PersonRecord
from client_match.scoring.dob import parse_dob
from client_match.scoring.normalize import join_name, normalize, normalize_or_empty
from client_match.scoring.ranking import sort_candidates
from client_match.scoring.trigram import similarity, trigrams

logger = structlog.get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS persons (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    client_id TEXT NOT NULL,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    nickname TEXT,
    date_of_birth TEXT,
    full_norm TEXT NOT NULL,
    first_norm TEXT NOT NULL,
    last_norm TEXT NOT NULL,
    nickname_norm TEXT NOT NULL,
    alias_norm TEXT NOT NULL,
    client_id_norm TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS person_trigrams (
    trigram TEXT NOT NULL,
    person_seq INTEGER NOT NULL,
    PRIMARY KEY (trigram, person_seq)
) WITHOUT ROWID;
CREATE INDEX IF NOT EXISTS idx_person_trigrams_seq ON person_trigrams(person_seq);
CREATE INDEX IF NOT EXISTS idx_persons_dob ON persons(date_of_birth);
"""

_PERSON_COLUMNS = "p.seq, p.id, p.client_id, p.first_name, p.last_name, p.nickname, p.date_of_birth"

# Prefix match on the normalized client id, written without LIKE so "_" and
# "%" in ids need no escaping.
_CLIENT_ID_PREFIX = "(p.client_id_norm <> '' AND substr(p.client_id_norm, 1, length(:term)) = :term)"


class SqliteRosterStore:
    """Client roster in SQLite with a trigram inverted index.

    fetch_candidates() only returns records sharing at least one trigram with
    the query, plus records born on the queried date of birth (those can
    reach a low duplicate threshold on the DOB boost alone).
    search_ranked() scores in SQL through a registered trigram_similarity()
    function and orders exactly like MatchRanker.rank_search.

    One connection, guarded by a lock, so the store can be shared with worker
    threads.
    """

    def __init__(self, path: str | Path = ":memory:", timeout_s: float = 5.0) -> None:
        self._path = str(path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._path, timeout=timeout_s, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute(f"PRAGMA busy_timeout = {int(timeout_s * 1000)}")
            self._conn.create_function("trigram_similarity", 2, _sql_similarity, deterministic=True)
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise MatchBackendUnavailable("could not open roster store", details={"path": self._path}) from exc

    def __enter__(self) -> "SqliteRosterStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def add(self, records: Sequence[PersonRecord]) -> None:
        """Insert or replace records. Later records count as newer."""
        with self._connection("add") as conn, conn:
            for record in records:
                existing = conn.execute("SELECT seq FROM persons WHERE id = ?", (record.id,)).fetchone()
                if existing is not None:
                    conn.execute("DELETE FROM person_trigrams WHERE person_seq = ?", (existing["seq"],))
                    conn.execute("DELETE FROM persons WHERE seq = ?", (existing["seq"],))

                norms = _normalized_fields(record)
                cursor = conn.execute(
                    """
                    INSERT INTO persons (
                        id, client_id, first_name, last_name, nickname, date_of_birth,
                        full_norm, first_norm, last_norm, nickname_norm, alias_norm, client_id_norm
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.client_id,
                        record.first_name,
                        record.last_name,
                        record.nickname,
                        record.date_of_birth.isoformat() if record.date_of_birth else None,
                        *norms,
                    ),
                )
                grams = set().union(*(trigrams(value) for value in norms))
                conn.executemany(
                    "INSERT INTO person_trigrams (trigram, person_seq) VALUES (?, ?)",
                    [(gram, cursor.lastrowid) for gram in sorted(grams)],
                )
        logger.info("roster_store_loaded", records=len(records))

    def __len__(self) -> int:
        with self._connection("count") as conn:
            return conn.execute("SELECT count(*) FROM persons").fetchone()[0]

    def fetch_candidates(self, terms: Sequence[str], date_of_birth: date | None = None) -> list[PersonRecord]:
        grams = sorted(set().union(*(trigrams(term) for term in terms)))
        params: dict[str, object] = {f"t{i}": gram for i, gram in enumerate(grams)}
        clauses = []
        if grams:
            placeholders = ", ".join(f":t{i}" for i in range(len(grams)))
            clauses.append(f"p.seq IN (SELECT person_seq FROM person_trigrams WHERE trigram IN ({placeholders}))")
            for i, term in enumerate(terms):
                params[f"term{i}"] = term
                clauses.append(_CLIENT_ID_PREFIX.replace(":term", f":term{i}"))
        if date_of_birth is not None:
            params["dob"] = date_of_birth.isoformat()
            clauses.append("p.date_of_birth = :dob")
        if not clauses:
            return []
        where = "\n               OR ".join(clauses)
        sql = f"""
            SELECT {_PERSON_COLUMNS} FROM persons p
            WHERE {where}
            ORDER BY p.seq DESC
        """
        with self._connection("fetch_candidates") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_person(row) for row in rows]

    def recent(self, limit: int) -> list[PersonRecord]:
        with self._connection("recent") as conn:
            rows = conn.execute(
                f"SELECT {_PERSON_COLUMNS} FROM persons p ORDER BY p.seq DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_person(row) for row in rows]

    def search_ranked(self, term: str, limit: int | None = None) -> list[MatchCandidate]:
        """Database-side live search: only records with a non-zero score, best first."""
        normalized = normalize(term)
        if limit is not None and limit <= 0:
            raise InvalidInputError("limit must be positive", details={"limit": limit})
        grams = sorted(trigrams(normalized))
        params: dict[str, object] = {"term": normalized, "limit": -1 if limit is None else limit}
        params.update({f"t{i}": gram for i, gram in enumerate(grams)})
        placeholders = ", ".join(f":t{i}" for i in range(len(grams)))
        sql = f"""
            SELECT * FROM (
                SELECT scored.*, max(legal_score, nickname_score, client_id_score) AS score FROM (
                    SELECT {_PERSON_COLUMNS},
                        max(
                            trigram_similarity(:term, p.full_norm),
                            trigram_similarity(:term, p.first_norm),
                            trigram_similarity(:term, p.last_norm)
                        ) AS legal_score,
                        trigram_similarity(:term, p.nickname_norm) AS nickname_score,
                        CASE WHEN {_CLIENT_ID_PREFIX} THEN 1.0
                             ELSE trigram_similarity(:term, p.client_id_norm) END AS client_id_score
                    FROM persons p
                    WHERE p.seq IN (SELECT person_seq FROM person_trigrams WHERE trigram IN ({placeholders}))
                       OR {_CLIENT_ID_PREFIX}
                ) AS scored
            )
            WHERE score > 0
            ORDER BY score DESC, client_id ASC, id ASC
            LIMIT :limit
        """
        with self._connection("search_ranked") as conn:
            rows = conn.execute(sql, params).fetchall()

        results = []
        for row in rows:
            matched_on = MatchedField.LEGAL_NAME
            best = row["legal_score"]
            if row["nickname_score"] > best:
                matched_on, best = MatchedField.NICKNAME, row["nickname_score"]
            if row["client_id_score"] > best:
                matched_on = MatchedField.CLIENT_ID
            results.append(MatchCandidate(person=_row_to_person(row), similarity_score=row["score"], matched_on=matched_on))
        return sort_candidates(results)

    @contextmanager
    def _connection(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                logger.error("roster_store_error", operation=operation, error=str(exc))
                raise MatchBackendUnavailable(
                    f"roster store failed during {operation}",
                    details={"operation": operation},
                ) from exc


def _normalized_fields(record: PersonRecord) -> tuple[str, str, str, str, str, str]:
    nickname = normalize_or_empty(record.nickname)
    return (
        normalize_or_empty(join_name(record.first_name, record.last_name)),
        normalize_or_empty(record.first_name),
        normalize_or_empty(record.last_name),
        nickname,
        normalize_or_empty(join_name(nickname, record.last_name)) if nickname else "",
        normalize_or_empty(record.client_id),
    )


def _row_to_person(row: sqlite3.Row) -> PersonRecord:
    raw_dob = row["date_of_birth"]
    date_of_birth = parse_dob(raw_dob)
    if raw_dob and date_of_birth is None:
        logger.warning("candidate_dob_unparsable", person_id=row["id"])
    return PersonRecord(
        id=row["id"],
        client_id=row["client_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        nickname=row["nickname"],
        date_of_birth=date_of_birth,
    )


def _sql_similarity(left: str | None, right: str | None) -> float:
    return similarity(left or "", right or "")
