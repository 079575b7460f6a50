"""Lab score calculator and session list operations.

A student's lab mark is the mean of their session marks (each out of 10),
scaled to 100 for lab-only courses or to the LAB component's max marks
otherwise.

Sessions are identified by ``index``, not by position in the list.  The
session operations below keep indices contiguous (0..n-1): inserting shifts
later sessions up by one, removing shifts them down by one, and every
untouched session keeps its own date and marks.
"""

from __future__ import annotations

import logging
from datetime import date as _date

from config.scale_registry import ScaleRegistry
from config.settings import Settings, get_settings
from errors.exceptions import LabSessionLimitError
from models.course import LAB, CourseType
from models.scores import LabScore, LabSession
from services.numeric import clamp, round_half_up, to_number

logger = logging.getLogger(__name__)


def today_iso() -> str:
    return _date.today().isoformat()


def ordered(sessions: list[LabSession]) -> list[LabSession]:
    return sorted(sessions, key=lambda s: s.index)


# ── Scoring ─────────────────────────────────────────────────


def lab_average(sessions: list[LabSession], settings: Settings | None = None) -> float:
    """Mean session mark; sessions without marks count as 0, not skipped."""
    if not sessions:
        return 0.0
    settings = settings or get_settings()
    marks = [
        clamp(s.obtained_marks, 0.0, settings.lab_session_max_marks) for s in sessions
    ]
    return sum(marks) / len(marks)


def scale_lab_score(
    average: float,
    course_type: CourseType | str,
    registry: ScaleRegistry,
    settings: Settings | None = None,
) -> int:
    """Scale a /10 average to the course's LAB scale."""
    settings = settings or get_settings()
    fraction = to_number(average) / settings.lab_session_max_marks
    resolved = CourseType.parse(course_type)
    if resolved is not None and resolved.is_lab_only:
        scale_max = settings.lab_only_scale
    else:
        scale_max = registry.get_component_scale(course_type, LAB).max_marks
    return round_half_up(fraction * scale_max)


def compute_lab_score(
    sessions: list[LabSession],
    course_type: CourseType | str,
    registry: ScaleRegistry,
    settings: Settings | None = None,
) -> LabScore:
    settings = settings or get_settings()
    resolved = CourseType.parse(course_type)
    if resolved is not None and resolved.is_lab_only:
        max_marks = settings.lab_only_scale
    else:
        max_marks = registry.get_component_scale(course_type, LAB).max_marks
    sessions = ordered(sessions)
    return LabScore(
        sessions=sessions,
        max_marks=max_marks,
        total_obtained=scale_lab_score(
            lab_average(sessions, settings), course_type, registry, settings
        ),
    )


# ── Session list operations (pure) ──────────────────────────


def add_session(
    sessions: list[LabSession],
    session_date: str | None = None,
    settings: Settings | None = None,
) -> list[LabSession]:
    """Append an empty session after the last one."""
    settings = settings or get_settings()
    next_index = max((s.index for s in sessions), default=-1) + 1
    return ordered(sessions) + [
        LabSession(
            date=session_date or today_iso(),
            max_marks=settings.lab_session_max_marks,
            obtained_marks=0,
            index=next_index,
        )
    ]


def insert_session(
    sessions: list[LabSession],
    at_index: int,
    session_date: str | None = None,
    settings: Settings | None = None,
) -> list[LabSession]:
    """Insert an empty session at *at_index*, shifting later sessions up by one."""
    settings = settings or get_settings()
    count = len(sessions)
    at_index = int(clamp(at_index, 0, count))
    shifted = [
        s.model_copy(update={"index": s.index + 1}) if s.index >= at_index else s
        for s in sessions
    ]
    shifted.append(
        LabSession(
            date=session_date or today_iso(),
            max_marks=settings.lab_session_max_marks,
            obtained_marks=0,
            index=at_index,
        )
    )
    return ordered(shifted)


def remove_session(
    sessions: list[LabSession],
    index: int,
    settings: Settings | None = None,
) -> list[LabSession]:
    """Remove the session with *index*, shifting later sessions down by one.

    Raises:
        LabSessionLimitError: removal would leave fewer than the minimum;
            the caller's list is untouched.
    """
    settings = settings or get_settings()
    if len(sessions) <= settings.lab_min_sessions:
        raise LabSessionLimitError(settings.lab_min_sessions)
    if not any(s.index == index for s in sessions):
        logger.debug("No lab session with index %d to remove", index)
        return ordered(sessions)
    return ordered([
        s.model_copy(update={"index": s.index - 1}) if s.index > index else s
        for s in sessions
        if s.index != index
    ])


def set_session_marks(
    sessions: list[LabSession],
    index: int,
    value: object,
    session_date: str | None = None,
    settings: Settings | None = None,
) -> list[LabSession]:
    """Record marks for the session with *index*, clamped to [0, 10].

    A session missing at that index is created (dated *session_date*).
    """
    settings = settings or get_settings()
    marks = clamp(value, 0.0, settings.lab_session_max_marks)
    if any(s.index == index for s in sessions):
        return ordered([
            s.model_copy(update={"obtained_marks": marks}) if s.index == index else s
            for s in sessions
        ])
    return ordered(sessions + [
        LabSession(
            date=session_date or today_iso(),
            max_marks=settings.lab_session_max_marks,
            obtained_marks=marks,
            index=index,
        )
    ])


def set_session_date(
    sessions: list[LabSession], index: int, session_date: str
) -> list[LabSession]:
    return ordered([
        s.model_copy(update={"date": session_date}) if s.index == index else s
        for s in sessions
    ])


def ensure_sessions(
    sessions: list[LabSession],
    dates: list[str],
    settings: Settings | None = None,
) -> list[LabSession]:
    """Give a student one session per shared date column, keyed by index.

    Existing sessions keep their marks; missing ones are created empty.
    Sessions beyond the last column are dropped.
    """
    settings = settings or get_settings()
    by_index = {s.index: s for s in sessions}
    result = []
    for idx, session_date in enumerate(dates):
        existing = by_index.get(idx)
        if existing is not None:
            result.append(existing.model_copy(update={"date": session_date}))
        else:
            result.append(
                LabSession(
                    date=session_date,
                    max_marks=settings.lab_session_max_marks,
                    obtained_marks=0,
                    index=idx,
                )
            )
    return result
