"""Score record store: where flushed score snapshots land.

Provides an abstract interface with an in-memory implementation.  Writes
are component-scoped snapshots: applying the same snapshot twice, or an
older copy of it after a newer one has been applied, leaves the store
exactly as the last application describes, so at-least-once delivery of
flushes is safe.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from adapters.score_adapter import (
    LAB_SESSION_QUESTION_TYPE,
    MAX_QUESTION_NUMBER,
    component_for_number,
)
from config.settings import Settings, get_settings
from errors.exceptions import ScoreEntryDisabledError
from models.course import LAB, is_ca_component
from models.records import QuestionRecord, ScoreRecord

logger = logging.getLogger(__name__)


def _question_component(question: QuestionRecord) -> str | None:
    """CA component a stored question row belongs to, numbered rows included."""
    meta = question.meta
    if meta is not None and meta.type == LAB_SESSION_QUESTION_TYPE:
        return None
    if meta is not None and meta.component:
        return meta.component.upper()
    if 1 <= question.question_number <= MAX_QUESTION_NUMBER:
        return component_for_number(question.question_number)
    return None


def _replace_component_slice(
    existing: ScoreRecord, incoming: ScoreRecord, component_name: str
) -> ScoreRecord:
    """*existing* with *component_name*'s entries replaced by *incoming*'s."""
    name = component_name.upper()

    scores = [s for s in existing.scores if s.component_name.upper() != name]
    scores.extend(s for s in incoming.scores if s.component_name.upper() == name)

    questions = existing.questions
    if is_ca_component(name):
        questions = [
            q for q in existing.questions
            if _question_component(q) != name
        ]
        questions.extend(
            q for q in incoming.questions
            if _question_component(q) == name
        )
        questions.sort(key=lambda q: q.question_number)

    lab_sessions = existing.lab_sessions
    if name == LAB:
        lab_sessions = list(incoming.lab_sessions)

    return existing.model_copy(
        update={"scores": scores, "questions": questions, "lab_sessions": lab_sessions},
        deep=True,
    )


# ── Abstract Interface ───────────────────────────────────────


class ScoreStore(ABC):
    """Abstract score store; implement per backend."""

    @abstractmethod
    async def get_records(self, course_id: str, academic_year: str | None = None) -> list[ScoreRecord]:
        """All records of a course, optionally for one academic year."""
        ...

    @abstractmethod
    async def apply_component_snapshot(
        self, course_id: str, component_name: str, records: list[ScoreRecord]
    ) -> int:
        """Upsert one component's slice for each record.  Returns count written."""
        ...

    @abstractmethod
    async def reset_component(self, course_id: str, component_name: str) -> int:
        """Zero every stored mark of a component in a course.  Returns count touched."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemoryScoreStore(ScoreStore):
    """Single-process store keyed by course, student and academic year."""

    def __init__(
        self,
        score_entry_enabled: bool | None = None,
        settings: Settings | None = None,
    ) -> None:
        if score_entry_enabled is None:
            score_entry_enabled = (settings or get_settings()).score_entry_enabled
        self._records: dict[str, dict[tuple[str, str], ScoreRecord]] = {}
        self._score_entry_enabled = score_entry_enabled
        self.write_count = 0

    @property
    def score_entry_enabled(self) -> bool:
        return self._score_entry_enabled

    def set_score_entry_enabled(self, enabled: bool) -> None:
        self._score_entry_enabled = enabled
        logger.info("Score entry %s", "enabled" if enabled else "disabled")

    def _check_enabled(self) -> None:
        if not self._score_entry_enabled:
            raise ScoreEntryDisabledError()

    async def get_records(self, course_id: str, academic_year: str | None = None) -> list[ScoreRecord]:
        course = self._records.get(course_id, {})
        return [
            record.model_copy(deep=True)
            for key, record in sorted(course.items())
            if academic_year is None or key[1] == academic_year
        ]

    async def put_records(self, course_id: str, records: list[ScoreRecord]) -> None:
        """Seed whole records (initial import); bypasses component slicing."""
        course = self._records.setdefault(course_id, {})
        for record in records:
            course[record.key] = record.model_copy(deep=True)

    async def apply_component_snapshot(
        self, course_id: str, component_name: str, records: list[ScoreRecord]
    ) -> int:
        self._check_enabled()
        course = self._records.setdefault(course_id, {})
        for record in records:
            existing = course.get(record.key)
            if existing is None:
                existing = ScoreRecord(
                    student_id=record.student_id, academic_year=record.academic_year
                )
            course[record.key] = _replace_component_slice(existing, record, component_name)
        self.write_count += 1
        logger.debug(
            "Applied %s snapshot for course %s (%d records)",
            component_name, course_id, len(records),
        )
        return len(records)

    async def reset_component(self, course_id: str, component_name: str) -> int:
        name = component_name.upper()
        touched = 0
        for key, record in self._records.get(course_id, {}).items():
            scores = [
                s.model_copy(update={"obtained_marks": 0})
                if s.component_name.upper() == name else s
                for s in record.scores
            ]
            questions = [
                q.model_copy(update={
                    "parts": [p.model_copy(update={"obtained_marks": 0}) for p in q.parts]
                })
                if _question_component(q) == name else q
                for q in record.questions
            ]
            self._records[course_id][key] = record.model_copy(
                update={"scores": scores, "questions": questions}
            )
            touched += 1
        logger.info("Reset %s scores for course %s (%d records)", name, course_id, touched)
        return touched

    @property
    def size(self) -> int:
        """Number of records stored across all courses."""
        return sum(len(c) for c in self._records.values())

