"""Structured score models: the canonical in-memory form of a student's marks.

The flat ``scores[]`` representation stored alongside these is never edited
directly; it is derived from these models on serialisation (see
``adapters/score_adapter.py``).
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from models.base import CamelModel
from models.course import ASSIGNMENT, LAB, QUESTION_KEYS, CourseType


class PassStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


# ── CA ──────────────────────────────────────────────────────


class QuestionPartScore(CamelModel):
    """Marks for one question's four parts."""
    a: float = 0
    b: float = 0
    c: float = 0
    d: float = 0
    total: float = 0

    def part(self, name: str) -> float:
        return getattr(self, name)


def _empty_questions() -> dict[str, QuestionPartScore]:
    return {key: QuestionPartScore() for key in QUESTION_KEYS}


class StudentCAScore(CamelModel):
    """One student's sitting of a CA component."""
    questions: dict[str, QuestionPartScore] = Field(default_factory=_empty_questions)
    out_of_50: float = Field(default=0, alias="outOf50")
    # Scaled score; "20" is historical, the real scale is the component's maxMarks
    out_of_20: int = Field(default=0, alias="outOf20")
    test_date: str | None = None

    @property
    def has_detail(self) -> bool:
        """Whether any part mark is recorded (as opposed to a bare raw total)."""
        return any(q.total > 0 for q in self.questions.values())


# ── LAB ─────────────────────────────────────────────────────


class LabSession(CamelModel):
    """A dated lab session, identified by ``index`` rather than list position."""
    date: str
    max_marks: float = 10
    obtained_marks: float | None = 0
    index: int


class LabScore(CamelModel):
    component_name: str = LAB
    sessions: list[LabSession] = Field(default_factory=list)
    max_marks: float = 0
    total_obtained: int = 0


# ── ASSIGNMENT ──────────────────────────────────────────────


class AssignmentScore(CamelModel):
    component_name: str = ASSIGNMENT
    max_marks: float = 0
    obtained_marks: float = 0


# ── Per-student aggregate ───────────────────────────────────


class StudentComponentSet(CamelModel):
    """Every supported component score of one student for one academic year."""
    student_id: str
    academic_year: str = ""
    course_type: CourseType
    ca: dict[str, StudentCAScore] = Field(default_factory=dict)
    lab: LabScore | None = None
    assignment: AssignmentScore | None = None

    def scaled_scores(self) -> dict[str, float]:
        """Converted score per component present in this set."""
        scaled: dict[str, float] = {
            name: score.out_of_20 for name, score in self.ca.items()
        }
        if self.lab is not None:
            scaled[LAB] = self.lab.total_obtained
        if self.assignment is not None:
            scaled[ASSIGNMENT] = self.assignment.obtained_marks
        return scaled


class TotalResult(CamelModel):
    """Derived total and verdict; recomputed on demand, never stored."""
    per_component_scaled: dict[str, float] = Field(default_factory=dict)
    total: float = 0
    status: PassStatus = PassStatus.FAIL
    passing_threshold: float = 0
    lab_requirement_met: bool | None = None  # None: course has no lab rule
    component_passed: dict[str, bool] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status is PassStatus.PASS
