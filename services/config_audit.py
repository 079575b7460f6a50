"""Configuration gap collector.

Every time the engine falls back to a guessed value (unknown course type,
component missing from a course's scale table, CA scale without a conversion
factor) it records a gap here so the configuration can be reviewed instead
of the fallback silently becoming business logic.
"""

from __future__ import annotations

import threading
from collections import defaultdict

GAP_UNKNOWN_COURSE_TYPE = "unknown_course_type"
GAP_UNKNOWN_COMPONENT = "unknown_component"
GAP_MISSING_CONVERSION_FACTOR = "missing_conversion_factor"


class ConfigGapCollector:
    """Thread-safe in-memory record of configuration fallbacks."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._details: dict[tuple[str, str], str] = {}

    def record_gap(
        self,
        *,
        kind: str,
        course_type: str = "",
        component_name: str = "",
        detail: str = "",
    ) -> None:
        subject = f"{course_type}/{component_name}" if component_name else course_type
        with self._lock:
            self._counts[kind][subject] += 1
            if detail:
                self._details[(kind, subject)] = detail

    def count(self, kind: str) -> int:
        with self._lock:
            return sum(self._counts.get(kind, {}).values())

    def snapshot(self) -> dict:
        with self._lock:
            return {
                kind: [
                    {
                        "subject": subject,
                        "count": count,
                        "detail": self._details.get((kind, subject), ""),
                    }
                    for subject, count in sorted(subjects.items())
                ]
                for kind, subjects in self._counts.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._details.clear()


_gap_collector = ConfigGapCollector()


def get_config_gap_collector() -> ConfigGapCollector:
    return _gap_collector
