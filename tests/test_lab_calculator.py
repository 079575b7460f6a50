"""Tests for lab scoring and lab session list operations."""

from __future__ import annotations

import pytest

from errors.exceptions import LabSessionLimitError
from models.course import CourseType
from models.scores import LabSession
from services.lab_calculator import (
    add_session,
    compute_lab_score,
    ensure_sessions,
    insert_session,
    lab_average,
    remove_session,
    scale_lab_score,
    set_session_date,
    set_session_marks,
)


def _sessions(*marks, start_day: int = 1) -> list[LabSession]:
    return [
        LabSession(date=f"2024-03-{start_day + i:02d}", obtained_marks=m, index=i)
        for i, m in enumerate(marks)
    ]


class TestLabScoring:
    def test_integrated_scenario(self, registry, settings):
        """Marks 8, 6, 10 average 8: 80 on a lab-only course, 24 of 30 when integrated."""
        sessions = _sessions(8, 6, 10)
        assert lab_average(sessions, settings) == 8
        lab_only = compute_lab_score(sessions, "UG-Lab-Only", registry, settings)
        assert lab_only.total_obtained == 80
        assert lab_only.max_marks == 100
        integrated = compute_lab_score(sessions, "UG-Integrated", registry, settings)
        assert integrated.total_obtained == 24
        assert integrated.max_marks == 30

    def test_lab_only_half_mark_rounds_up(self, registry, settings):
        assert scale_lab_score(7.5, CourseType.PG_LAB_ONLY, registry, settings) == 75
        # 7.25 / 10 * 30 = 21.75 → 22
        assert scale_lab_score(7.25, CourseType.PG_INTEGRATED, registry, settings) == 22

    def test_missing_marks_count_as_zero(self, settings):
        sessions = _sessions(10, None)
        assert lab_average(sessions, settings) == 5

    def test_marks_clamped_to_session_max(self, settings):
        sessions = _sessions(14, -2)
        assert lab_average(sessions, settings) == 5

    def test_no_sessions(self, registry, settings):
        lab = compute_lab_score([], "UG-Integrated", registry, settings)
        assert lab.total_obtained == 0
        assert lab.sessions == []

    def test_sessions_ordered_by_index(self, registry, settings):
        sessions = list(reversed(_sessions(1, 2, 3)))
        lab = compute_lab_score(sessions, "UG-Integrated", registry, settings)
        assert [s.index for s in lab.sessions] == [0, 1, 2]


class TestSessionOperations:
    def test_add_appends_after_last(self, settings):
        sessions = add_session(_sessions(5, 6), "2024-04-01", settings)
        assert [s.index for s in sessions] == [0, 1, 2]
        assert sessions[-1].date == "2024-04-01"
        assert sessions[-1].obtained_marks == 0

    def test_insert_shifts_later_sessions_up(self, settings):
        original = _sessions(5, 6, 7)
        sessions = insert_session(original, 1, "2024-04-01", settings)
        assert [(s.index, s.obtained_marks) for s in sessions] == [
            (0, 5), (1, 0), (2, 6), (3, 7)
        ]
        # Untouched sessions keep their dates
        assert sessions[2].date == original[1].date
        assert [s.index for s in original] == [0, 1, 2]

    def test_insert_index_clamped(self, settings):
        sessions = insert_session(_sessions(5, 6), 99, "2024-04-01", settings)
        assert sessions[-1].index == 2
        assert sessions[-1].date == "2024-04-01"

    def test_remove_shifts_later_sessions_down(self, settings):
        original = _sessions(5, 6, 7)
        sessions = remove_session(original, 1, settings)
        assert [(s.index, s.obtained_marks) for s in sessions] == [(0, 5), (1, 7)]
        assert sessions[1].date == original[2].date

    def test_remove_refused_at_minimum(self, settings):
        original = _sessions(5, 6)
        with pytest.raises(LabSessionLimitError) as exc_info:
            remove_session(original, 0, settings)
        assert exc_info.value.user_message == "You must have at least two lab sessions"
        assert len(original) == 2

    def test_remove_unknown_index_is_noop(self, settings):
        sessions = remove_session(_sessions(5, 6, 7), 9, settings)
        assert len(sessions) == 3

    def test_set_marks_clamps(self, settings):
        sessions = set_session_marks(_sessions(5, 6), 1, 12, settings=settings)
        assert sessions[1].obtained_marks == 10

    def test_set_marks_creates_missing_session(self, settings):
        sessions = set_session_marks(_sessions(5, 6), 2, 4, "2024-05-05", settings)
        assert sessions[2].index == 2
        assert sessions[2].date == "2024-05-05"

    def test_set_date(self):
        sessions = set_session_date(_sessions(5, 6), 0, "2024-01-31")
        assert sessions[0].date == "2024-01-31"
        assert sessions[1].date == "2024-03-02"

    def test_ensure_sessions_matches_columns(self, settings):
        sessions = ensure_sessions(_sessions(9), ["2024-01-01", "2024-01-08"], settings)
        assert [(s.index, s.date, s.obtained_marks) for s in sessions] == [
            (0, "2024-01-01", 9), (1, "2024-01-08", 0)
        ]
