"""Score report: evaluate a JSON dump of score records and print the results.

Reads a list of persisted score records (camelCase, as stored), rebuilds
each student's component scores, and prints the result table followed by
the class summary and any configuration gaps hit along the way.

Usage:
    cd <project root>
    python scripts/score_report.py records.json --course-type UG-Integrated
    python scripts/score_report.py records.json --course-type UG --json
"""

from __future__ import annotations

import argparse
import json
import logging

# Ensure project root is importable
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pydantic import ValidationError

from adapters.score_adapter import record_to_component_set
from config.scale_registry import get_scale_registry
from config.settings import get_settings
from errors.exceptions import ScoringError
from tools.report_tools import build_result_table
from tools.stats_tools import summarize_course

logger = logging.getLogger("score_report")


def _print_table(table: dict) -> None:
    headers = table["headers"]
    rows = [[str(c) for c in row["cells"]] for row in table["rows"]]
    widths = [
        max([len(h)] + [len(r[i]) for r in rows]) for i, h in enumerate(headers)
    ]
    print("  ".join(h.ljust(w) for h, w in zip(headers, widths)))
    print("  ".join("-" * w for w in widths))
    for row in rows:
        print("  ".join(c.ljust(w) for c, w in zip(row, widths)))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("records", type=Path, help="JSON file with a list of score records")
    parser.add_argument("--course-type", required=True, help="e.g. UG, PG-Integrated")
    parser.add_argument("--json", action="store_true", help="print machine-readable output")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    registry = get_scale_registry()
    try:
        raw_records = json.loads(args.records.read_text(encoding="utf-8"))
        component_sets = [
            record_to_component_set(raw, args.course_type, registry) for raw in raw_records
        ]
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Could not read %s: %s", args.records, exc)
        return 1
    except ScoringError as exc:
        logger.error("%s", exc.user_message)
        return 1

    table = build_result_table(component_sets, registry, course_type=args.course_type)
    summary = summarize_course(component_sets, registry)
    gaps = registry.gaps.snapshot()

    if args.json:
        print(json.dumps({"table": table, "summary": summary, "configGaps": gaps}, indent=2))
        return 0

    _print_table(table)
    overall = summary["overallStats"]
    print()
    print(
        f"Students: {summary['totalStudents']}  Pass: {summary['passCount']}  "
        f"Fail: {summary['failCount']}"
    )
    print(
        f"Total: highest {overall['highest']:g}, lowest {overall['lowest']:g}, "
        f"average {overall['average']:g}"
    )
    distribution = summary["totalStats"].get("distribution")
    if distribution:
        bands = ", ".join(
            f"{label}: {count}"
            for label, count in zip(distribution["labels"], distribution["counts"])
            if count
        )
        print(f"Distribution: {bands} (below pass: {distribution['belowPass']})")
    for kind, entries in gaps.items():
        for entry in entries:
            logger.warning("Configuration gap %s: %s (x%d)", kind, entry["subject"], entry["count"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
