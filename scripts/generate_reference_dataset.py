from __future__ import annotations

import argparse
import csv
from pathlib import Path

from client_match.datasets import ROSTER_COLUMNS, ROSTER_SCHEMA, ReferenceRosterGenerator


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a synthetic client roster with re-intakes")
    parser.add_argument("--size", type=int, default=10000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--duplicate-rate", type=float, default=0.15)
    parser.add_argument("--output", type=Path, default=Path("data/reference_roster.csv"))
    parser.add_argument("--truth-output", type=Path, default=None)
    args = parser.parse_args()

    generator = ReferenceRosterGenerator(seed=args.seed)
    records = generator.generate(size=args.size, duplicate_rate=args.duplicate_rate)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with args.output.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=ROSTER_COLUMNS)
        writer.writeheader()
        for record in records:
            writer.writerow(ROSTER_SCHEMA.to_row(record))

    if args.truth_output is not None:
        args.truth_output.parent.mkdir(parents=True, exist_ok=True)
        with args.truth_output.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(["id", "duplicate_of"])
            for record_id, original_id in sorted(generator.duplicate_of.items()):
                writer.writerow([record_id, original_id])


if __name__ == "__main__":
    main()
