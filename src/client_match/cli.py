from __future__ import annotations

import argparse
import csv
import json
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import structlog

from client_match import logging_config
from client_match.backends import InMemoryCandidateSource, SqliteRosterStore
from client_match.datasets import ROSTER_COLUMNS, ROSTER_SCHEMA, ReferenceRosterGenerator
from client_match.errors import MatchError
from client_match.interfaces import CandidateSource
from client_match.models import DuplicateGroup, MatchCandidate, PersonRecord
from client_match.scoring import find_duplicate_groups
from client_match.services import DuplicateCheckService, LiveSearchService
from client_match.settings import MatchSettings

logger = structlog.get_logger(__name__)

_PREVIEW_FIELDS = ["client_id", "first_name", "last_name", "nickname", "date_of_birth"]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging_config.configure(args.log_level)
    settings = MatchSettings.from_env()
    if getattr(args, "threshold", None) is not None:
        settings = replace(settings, duplicate_threshold=args.threshold)

    try:
        if args.command == "generate-roster":
            generate_roster(size=args.size, duplicate_rate=args.duplicate_rate, seed=args.seed, output=args.output)
        elif args.command == "check-duplicates":
            check_duplicates(
                roster=args.roster,
                backend=args.backend,
                first_name=args.first_name,
                last_name=args.last_name,
                date_of_birth=args.dob,
                settings=settings,
            )
        elif args.command == "search":
            search(roster=args.roster, backend=args.backend, term=args.term, limit=args.limit, settings=settings)
        elif args.command == "scan-duplicates":
            scan_duplicates(
                roster=args.roster,
                output_dir=args.output_dir,
                show_groups=args.show_groups,
                settings=settings,
            )
    except MatchError as exc:
        logger.error("command_failed", command=args.command, error_code=exc.error_code)
        print(f"error: {exc.message}", file=sys.stderr)
        return 2
    return 0


def generate_roster(*, size: int, duplicate_rate: float, seed: int, output: Path) -> None:
    generator = ReferenceRosterGenerator(seed=seed)
    records = generator.generate(size=size, duplicate_rate=duplicate_rate)
    output.parent.mkdir(parents=True, exist_ok=True)
    _write_roster_csv(output, records)
    print(f"Roster: {output}")
    print(f"records={len(records)}")
    print(f"reintakes={len(generator.duplicate_of)}")


def check_duplicates(
    *,
    roster: Path,
    backend: str,
    first_name: str,
    last_name: str,
    date_of_birth: str | None,
    settings: MatchSettings,
) -> None:
    records = _read_roster_csv(roster)
    source = _open_source(backend, records, settings)
    try:
        result = DuplicateCheckService(source, settings).check_for_duplicates(first_name, last_name, date_of_birth)
    finally:
        _close_source(source)

    payload = {
        "has_potential_duplicates": result.has_potential_duplicates,
        "similar_persons": [_candidate_payload(candidate) for candidate in result.similar_persons],
    }
    print(json.dumps(payload, indent=2))


def search(*, roster: Path, backend: str, term: str, limit: int | None, settings: MatchSettings) -> None:
    records = _read_roster_csv(roster)
    source = _open_source(backend, records, settings)
    try:
        results = LiveSearchService(source, settings).search(term, limit)
    finally:
        _close_source(source)
    print(json.dumps([_candidate_payload(candidate) for candidate in results], indent=2))


def scan_duplicates(*, roster: Path, output_dir: Path, show_groups: int, settings: MatchSettings) -> None:
    records = _read_roster_csv(roster)
    groups = find_duplicate_groups(records, settings)

    output_dir.mkdir(parents=True, exist_ok=True)
    groups_path = output_dir / "groups.json"
    summary_path = output_dir / "summary.json"

    _write_json(groups_path, [asdict(group) for group in groups])
    summary = _build_summary(record_count=len(records), groups=groups, roster=roster, groups_path=groups_path)
    _write_json(summary_path, summary)

    print(f"Roster: {roster}")
    print(f"Groups: {groups_path}")
    print(f"Summary: {summary_path}")
    print("---")
    print(f"records={summary['record_count']}")
    print(f"groups={summary['group_count']}")
    print(f"grouped_records={summary['grouped_record_count']}")
    print(f"avg_group_size={summary['avg_group_size']}")
    if show_groups > 0:
        print("---")
        print("sample_groups=")
        print(json.dumps(_group_sample_payload(groups, records, limit=show_groups), indent=2))


def _build_summary(
    *,
    record_count: int,
    groups: list[DuplicateGroup],
    roster: Path,
    groups_path: Path,
) -> dict[str, object]:
    group_sizes = [len(group.person_ids) for group in groups]
    grouped_record_count = len({person_id for group in groups for person_id in group.person_ids})

    return {
        "record_count": record_count,
        "group_count": len(groups),
        "grouped_record_count": grouped_record_count,
        "avg_group_size": round(sum(group_sizes) / len(group_sizes), 3) if group_sizes else 0.0,
        "max_group_size": max(group_sizes) if group_sizes else 0,
        "roster_path": str(roster),
        "groups_path": str(groups_path),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="client-match", description="Client duplicate detection and search")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command")

    generate_parser = subparsers.add_parser("generate-roster", help="Write a synthetic roster with re-intakes")
    generate_parser.add_argument("--size", type=int, default=500)
    generate_parser.add_argument("--duplicate-rate", type=float, default=0.15)
    generate_parser.add_argument("--seed", type=int, default=42)
    generate_parser.add_argument("--output", type=Path, default=Path("data/reference_roster.csv"))

    check_parser = subparsers.add_parser("check-duplicates", help="Check an intake name against the roster")
    check_parser.add_argument("--roster", type=Path, required=True)
    check_parser.add_argument("--first-name", required=True)
    check_parser.add_argument("--last-name", required=True)
    check_parser.add_argument("--dob", default=None, help="YYYY-MM-DD")
    check_parser.add_argument("--threshold", type=float, default=None)
    check_parser.add_argument("--backend", choices=["memory", "sqlite"], default="memory")

    search_parser = subparsers.add_parser("search", help="Fuzzy search by name, nickname or client id")
    search_parser.add_argument("--roster", type=Path, required=True)
    search_parser.add_argument("--term", required=True)
    search_parser.add_argument("--limit", type=int, default=None)
    search_parser.add_argument("--backend", choices=["memory", "sqlite"], default="memory")

    scan_parser = subparsers.add_parser("scan-duplicates", help="Group likely duplicates across the roster")
    scan_parser.add_argument("--roster", type=Path, required=True)
    scan_parser.add_argument("--threshold", type=float, default=None)
    scan_parser.add_argument("--output-dir", type=Path, default=Path("data/cli_output"))
    scan_parser.add_argument("--show-groups", type=int, default=10)

    return parser


def _open_source(backend: str, records: list[PersonRecord], settings: MatchSettings) -> CandidateSource:
    if backend == "sqlite":
        store = SqliteRosterStore(timeout_s=settings.backend_timeout_s)
        # Roster rows are newest first; the store treats later inserts as newer.
        store.add(list(reversed(records)))
        return store
    return InMemoryCandidateSource(records)


def _close_source(source: CandidateSource) -> None:
    if isinstance(source, SqliteRosterStore):
        source.close()


def _write_json(path: Path, payload: object) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


def _write_roster_csv(path: Path, records: list[PersonRecord]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=ROSTER_COLUMNS)
        writer.writeheader()
        for record in records:
            writer.writerow(ROSTER_SCHEMA.to_row(record))


def _read_roster_csv(path: Path) -> list[PersonRecord]:
    records: list[PersonRecord] = []
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            record = ROSTER_SCHEMA.to_person(row)
            if record is None:
                continue
            records.append(record)
    logger.info("roster_loaded", path=str(path), records=len(records))
    return records


def _candidate_payload(candidate: MatchCandidate) -> dict[str, Any]:
    return {
        "person_id": candidate.person.id,
        **_person_fields(candidate.person),
        "similarity_score": round(candidate.similarity_score, 4),
        "matched_on": candidate.matched_on.value,
    }


def _person_fields(person: PersonRecord) -> dict[str, str]:
    return {
        "client_id": person.client_id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "nickname": person.nickname or "",
        "date_of_birth": person.date_of_birth.isoformat() if person.date_of_birth else "",
    }


def _group_sample_payload(
    groups: list[DuplicateGroup],
    records: list[PersonRecord],
    limit: int = 10,
) -> list[dict[str, Any]]:
    by_id = {record.id: record for record in records}
    payload: list[dict[str, Any]] = []

    for group in groups[:limit]:
        group_records = [by_id[person_id] for person_id in group.person_ids if person_id in by_id]
        differing = _differing_fields(group_records)
        payload.append(
            {
                "group_id": group.group_id,
                "size": len(group.person_ids),
                "confidence": round(group.confidence, 4),
                "differing_fields": differing,
                "records": [
                    {
                        "person_id": record.id,
                        "values": [_person_fields(record)[name] for name in differing],
                    }
                    for record in group_records
                ],
            }
        )
    return payload


def _differing_fields(records: list[PersonRecord]) -> list[str]:
    if len(records) <= 1:
        return []
    rows = [_person_fields(record) for record in records]
    return [name for name in _PREVIEW_FIELDS if len({row[name].strip() for row in rows}) > 1]


if __name__ == "__main__":
    raise SystemExit(main())
