"""Persisted score record models: the flat shape the persistence layer stores.

One ``ScoreRecord`` per (student, course, academic year).  CA detail lives in
``questions`` (numbered 1-15 across CA1-CA3), lab sessions in
``lab_sessions`` (snake_case on the wire, unlike the rest), and every
component's headline number in ``scores``.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from models.base import CamelModel


def _zero_if_missing(value: Any) -> Any:
    if value is None or value == "":
        return 0
    return value


class ScoreEntry(CamelModel):
    """Headline score of one component."""
    component_name: str
    max_marks: float = 0
    obtained_marks: float = 0
    test_date: str | None = None

    @field_validator("max_marks", "obtained_marks", mode="before")
    @classmethod
    def _coerce_marks(cls, v: Any) -> Any:
        return _zero_if_missing(v)


class QuestionMeta(CamelModel):
    component: str | None = None
    type: str | None = None  # "lab_session" on legacy lab rows
    date: str | None = None


class QuestionPartRecord(CamelModel):
    part_name: str
    max_marks: float = 0
    obtained_marks: float = 0

    @field_validator("max_marks", "obtained_marks", mode="before")
    @classmethod
    def _coerce_marks(cls, v: Any) -> Any:
        return _zero_if_missing(v)


class QuestionRecord(CamelModel):
    question_number: int
    parts: list[QuestionPartRecord] = Field(default_factory=list)
    meta: QuestionMeta | None = None

    @field_validator("question_number", mode="before")
    @classmethod
    def _coerce_number(cls, v: Any) -> Any:
        return _zero_if_missing(v)


class LabSessionRecord(CamelModel):
    date: str = ""
    max_marks: float = 10
    obtained_marks: float = 0
    index: int | None = None

    @field_validator("max_marks", mode="before")
    @classmethod
    def _default_session_max(cls, v: Any) -> Any:
        return 10 if v in (None, "", 0) else v

    @field_validator("obtained_marks", mode="before")
    @classmethod
    def _coerce_marks(cls, v: Any) -> Any:
        return _zero_if_missing(v)


class ScoreRecord(CamelModel):
    """Everything stored for one student in one course for one academic year."""
    student_id: str
    academic_year: str = ""
    scores: list[ScoreEntry] = Field(default_factory=list)
    questions: list[QuestionRecord] = Field(default_factory=list)
    lab_sessions: list[LabSessionRecord] = Field(
        default_factory=list, alias="lab_sessions"
    )

    @field_validator("student_id", "academic_year", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @property
    def key(self) -> tuple[str, str]:
        return (self.student_id, self.academic_year)

    def score_for(self, component_name: str) -> ScoreEntry | None:
        for entry in self.scores:
            if entry.component_name.upper() == component_name.upper():
                return entry
        return None
