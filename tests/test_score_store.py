"""Tests for the score store and the debounced score writer."""

from __future__ import annotations

import asyncio

import pytest

from adapters.score_adapter import record_to_component_set
from config.settings import Settings
from errors.exceptions import ScoreEntryDisabledError
from models.records import (
    LabSessionRecord,
    QuestionMeta,
    QuestionPartRecord,
    QuestionRecord,
    ScoreEntry,
    ScoreRecord,
)
from services.score_store import InMemoryScoreStore
from services.score_writer import DebouncedScoreWriter


def _record(student_id: str, **components: float) -> ScoreRecord:
    return ScoreRecord(
        student_id=student_id,
        academic_year="2024",
        scores=[
            ScoreEntry(component_name=name, max_marks=50, obtained_marks=value)
            for name, value in components.items()
        ],
    )


def _ca1_question(marks: float) -> QuestionRecord:
    return QuestionRecord(
        question_number=1,
        meta=QuestionMeta(component="CA1"),
        parts=[QuestionPartRecord(part_name="a", max_marks=2.5, obtained_marks=marks)],
    )


def _numbered_question(number: int, marks: float) -> QuestionRecord:
    return QuestionRecord(
        question_number=number,
        parts=[
            QuestionPartRecord(part_name=p, max_marks=2.5, obtained_marks=marks)
            for p in "abcd"
        ],
    )


class FailingStore(InMemoryScoreStore):
    """Store whose writes fail until ``failures`` runs out."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    async def apply_component_snapshot(self, course_id, component_name, records):
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("store unavailable")
        return await super().apply_component_snapshot(course_id, component_name, records)


# ── InMemoryScoreStore ───────────────────────────────────────


class TestInMemoryScoreStore:
    @pytest.mark.asyncio
    async def test_snapshot_replaces_only_its_component(self, score_store):
        await score_store.put_records("c1", [_record("s1", CA1=30, ASSIGNMENT=12)])
        await score_store.apply_component_snapshot("c1", "CA1", [_record("s1", CA1=40)])

        (stored,) = await score_store.get_records("c1")
        assert stored.score_for("CA1").obtained_marks == 40
        assert stored.score_for("ASSIGNMENT").obtained_marks == 12

    @pytest.mark.asyncio
    async def test_snapshot_is_idempotent(self, score_store):
        snapshot = [_record("s1", CA2=10), _record("s2", CA2=20)]
        await score_store.apply_component_snapshot("c1", "CA2", snapshot)
        first = await score_store.get_records("c1")
        await score_store.apply_component_snapshot("c1", "CA2", snapshot)
        assert await score_store.get_records("c1") == first
        assert score_store.size == 2

    @pytest.mark.asyncio
    async def test_ca_questions_replaced_per_component(self, score_store):
        existing = _record("s1", CA1=2)
        existing.questions.append(_ca1_question(2))
        existing.questions.append(
            QuestionRecord(question_number=6, meta=QuestionMeta(component="CA2"))
        )
        await score_store.put_records("c1", [existing])

        incoming = _record("s1", CA1=1)
        incoming.questions.append(_ca1_question(1))
        await score_store.apply_component_snapshot("c1", "CA1", [incoming])

        (stored,) = await score_store.get_records("c1")
        assert [q.question_number for q in stored.questions] == [1, 6]
        assert stored.questions[0].parts[0].obtained_marks == 1

    @pytest.mark.asyncio
    async def test_lab_sessions_replaced_only_by_lab(self, score_store):
        existing = _record("s1")
        existing.lab_sessions.append(LabSessionRecord(date="2024-01-01", obtained_marks=5, index=0))
        await score_store.put_records("c1", [existing])

        await score_store.apply_component_snapshot("c1", "CA1", [_record("s1", CA1=3)])
        (stored,) = await score_store.get_records("c1")
        assert len(stored.lab_sessions) == 1

        await score_store.apply_component_snapshot("c1", "LAB", [_record("s1", LAB=0)])
        (stored,) = await score_store.get_records("c1")
        assert stored.lab_sessions == []

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, score_store):
        await score_store.put_records("c1", [_record("s1", CA1=30)])
        (stored,) = await score_store.get_records("c1")
        stored.scores.clear()
        (again,) = await score_store.get_records("c1")
        assert again.score_for("CA1") is not None

    @pytest.mark.asyncio
    async def test_academic_year_filter(self, score_store):
        other = _record("s1", CA1=1).model_copy(update={"academic_year": "2023"})
        await score_store.put_records("c1", [_record("s1", CA1=1), other])
        assert len(await score_store.get_records("c1")) == 2
        assert len(await score_store.get_records("c1", "2023")) == 1

    @pytest.mark.asyncio
    async def test_disabled_store_rejects_writes(self, score_store):
        score_store.set_score_entry_enabled(False)
        with pytest.raises(ScoreEntryDisabledError) as exc_info:
            await score_store.apply_component_snapshot("c1", "CA1", [_record("s1", CA1=1)])
        assert exc_info.value.user_message == "Score entry has been disabled by administrator"
        assert score_store.size == 0

    @pytest.mark.asyncio
    async def test_reset_component(self, score_store):
        record = _record("s1", CA1=20, CA2=15)
        record.questions.append(_ca1_question(2))
        await score_store.put_records("c1", [record])

        assert await score_store.reset_component("c1", "CA1") == 1
        (stored,) = await score_store.get_records("c1")
        assert stored.score_for("CA1").obtained_marks == 0
        assert stored.score_for("CA2").obtained_marks == 15
        assert stored.questions[0].parts[0].obtained_marks == 0

    @pytest.mark.asyncio
    async def test_reset_component_covers_numbered_rows(self, score_store, registry, settings):
        record = _record("s1", CA2=10)
        record.questions.append(_numbered_question(6, 2.5))
        record.questions.append(_numbered_question(1, 2.5))
        await score_store.put_records("c1", [record])

        await score_store.reset_component("c1", "CA2")
        (stored,) = await score_store.get_records("c1")
        component_set = record_to_component_set(stored, "UG", registry, settings=settings)
        assert component_set.ca["CA2"].out_of_50 == 0
        assert component_set.ca["CA1"].out_of_50 == 10

    @pytest.mark.asyncio
    async def test_snapshot_replaces_numbered_rows(self, score_store):
        existing = _record("s1", CA2=10)
        existing.questions.append(_numbered_question(6, 2.5))
        existing.questions.append(
            QuestionRecord(question_number=7, meta=QuestionMeta(type="lab_session"))
        )
        await score_store.put_records("c1", [existing])

        await score_store.apply_component_snapshot("c1", "CA2", [_record("s1", CA2=0)])
        (stored,) = await score_store.get_records("c1")
        assert [q.question_number for q in stored.questions] == [7]

    def test_switch_defaults_from_settings(self):
        disabled = Settings(_env_file=None, score_entry_enabled=False)
        assert InMemoryScoreStore(settings=disabled).score_entry_enabled is False
        assert InMemoryScoreStore(True, settings=disabled).score_entry_enabled is True


# ── DebouncedScoreWriter ─────────────────────────────────────


class TestDebouncedScoreWriter:
    @pytest.mark.asyncio
    async def test_latest_snapshot_wins(self, score_store, settings):
        writer = DebouncedScoreWriter(score_store, delay_seconds=60, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=10)])
        writer.schedule("c1", "CA1", [_record("s1", CA1=20)])
        writer.schedule("c1", "ca1", [_record("s1", CA1=30)])
        assert writer.pending_count == 1

        assert await writer.flush() == 1
        assert score_store.write_count == 1
        (stored,) = await score_store.get_records("c1")
        assert stored.score_for("CA1").obtained_marks == 30
        assert not writer.has_pending("c1", "CA1")

    @pytest.mark.asyncio
    async def test_timer_flushes_after_quiet_period(self, score_store, settings):
        writer = DebouncedScoreWriter(score_store, delay_seconds=0.01, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])
        writer.schedule("c1", "CA1", [_record("s1", CA1=6)])
        await asyncio.sleep(0.1)
        assert score_store.write_count == 1
        assert writer.pending_count == 0

    @pytest.mark.asyncio
    async def test_scopes_are_independent(self, score_store, settings):
        writer = DebouncedScoreWriter(score_store, delay_seconds=60, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])
        writer.schedule("c1", "ASSIGNMENT", [_record("s1", ASSIGNMENT=9)])
        assert await writer.flush("c1", "CA1") == 1
        assert writer.has_pending("c1", "ASSIGNMENT")
        await writer.close()

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_pending(self, settings):
        store = FailingStore(failures=1)
        writer = DebouncedScoreWriter(store, delay_seconds=60, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])

        with pytest.raises(ConnectionError):
            await writer.flush()
        assert writer.has_pending("c1", "CA1")
        assert isinstance(writer.last_error, ConnectionError)

        assert await writer.flush() == 1
        assert writer.last_error is None
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_disabled_store_keeps_pending(self, score_store, settings):
        score_store.set_score_entry_enabled(False)
        writer = DebouncedScoreWriter(score_store, delay_seconds=60, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])

        with pytest.raises(ScoreEntryDisabledError):
            await writer.flush("c1", "CA1")
        assert writer.pending_records("c1", "CA1")[0].score_for("CA1").obtained_marks == 5

        score_store.set_score_entry_enabled(True)
        await writer.flush("c1", "CA1")
        assert score_store.size == 1

    @pytest.mark.asyncio
    async def test_timer_failure_is_logged(self, settings, caplog):
        writer = DebouncedScoreWriter(FailingStore(failures=1), delay_seconds=0.01, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])
        await asyncio.sleep(0.1)
        assert "Auto-save failed for c1/CA1" in caplog.text
        assert writer.has_pending("c1", "CA1")

    def test_schedule_without_running_loop_only_queues(self, score_store, settings):
        writer = DebouncedScoreWriter(score_store, delay_seconds=0.01, settings=settings)
        writer.schedule("c1", "CA1", [_record("s1", CA1=5)])
        assert writer.has_pending("c1", "CA1")
        assert score_store.write_count == 0

    @pytest.mark.asyncio
    async def test_snapshot_copied_on_schedule(self, score_store, settings):
        writer = DebouncedScoreWriter(score_store, delay_seconds=60, settings=settings)
        records = [_record("s1", CA1=5)]
        writer.schedule("c1", "CA1", records)
        records[0].scores.clear()
        await writer.flush()
        (stored,) = await score_store.get_records("c1")
        assert stored.score_for("CA1").obtained_marks == 5
