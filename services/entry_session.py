"""Score entry sessions.

A ``ComponentEntrySession`` holds the in-memory scores of one course
component for one academic year while faculty edit them.  Every edit goes
through the calculators (so marks are clamped and totals recomputed at
once) and hands a fresh snapshot to the debounced writer.

Lab date columns are shared by the whole class: adding, inserting or
removing a session applies to every student at the same index.

``CourseScoreWorkspace`` switches between components of a course, flushing
the outgoing component before the next one is loaded.
"""

from __future__ import annotations

import logging
from datetime import date as _date, timedelta

from adapters.score_adapter import component_set_to_record, record_to_component_set
from config.scale_registry import ScaleRegistry, get_scale_registry
from config.settings import Settings, get_settings
from errors.exceptions import (
    ConfigurationError,
    LabSessionLimitError,
    PersistenceError,
    ScoringError,
)
from models.course import ASSIGNMENT, LAB, CourseType, PartWeights, is_ca_component
from models.records import ScoreRecord
from models.scores import StudentComponentSet, TotalResult
from services import lab_calculator
from services.assignment_calculator import compute_assignment_score
from services.ca_calculator import (
    apply_part_update,
    empty_ca_score,
    resolve_conversion_factor,
    set_test_date,
)
from services.evaluator import evaluate_component_set
from services.part_weights import PartWeightConfigService
from services.score_store import ScoreStore
from services.score_writer import DebouncedScoreWriter

logger = logging.getLogger(__name__)


def default_lab_dates() -> list[str]:
    """Two initial session columns: yesterday and today."""
    today = _date.today()
    return [(today - timedelta(days=1)).isoformat(), today.isoformat()]


class ComponentEntrySession:
    """Editable scores of one (course, component, academic year)."""

    def __init__(
        self,
        course_id: str,
        course_type: CourseType | str,
        component_name: str,
        config_service: PartWeightConfigService,
        writer: DebouncedScoreWriter,
        registry: ScaleRegistry | None = None,
        academic_year: str = "",
        settings: Settings | None = None,
    ) -> None:
        resolved = CourseType.parse(course_type)
        if resolved is None:
            raise ConfigurationError(f"Unknown course type: {course_type}")
        self.course_id = course_id
        self.course_type = resolved
        self.component_name = component_name.upper()
        self.academic_year = academic_year
        self._config = config_service
        self._writer = writer
        self._registry = registry or get_scale_registry()
        self._settings = settings or get_settings()

        if not self._registry.is_component_supported(self.course_type, self.component_name):
            raise ConfigurationError(
                f"{self.component_name} is not part of the {self.course_type.value} scheme",
                course_type=self.course_type.value,
                component_name=self.component_name,
            )

        self._sets: dict[str, StudentComponentSet] = {}
        self._weights: PartWeights | None = None
        self._factor: float | None = None
        self._lab_dates: list[str] = []
        self._loaded = False

    # ── Properties ──────────────────────────────────────────

    @property
    def is_ca(self) -> bool:
        return is_ca_component(self.component_name)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def student_ids(self) -> list[str]:
        return sorted(self._sets)

    @property
    def lab_dates(self) -> list[str]:
        return list(self._lab_dates)

    @property
    def part_weights(self) -> PartWeights | None:
        return self._weights

    def component_set(self, student_id: str) -> StudentComponentSet:
        return self._sets[student_id]

    # ── Loading ─────────────────────────────────────────────

    def load(self, records: list[ScoreRecord | dict]) -> None:
        """Replace the session state with *records*.

        Raises:
            ConfigurationRequiredError: CA component without saved part weights.
        """
        weights = None
        factor = None
        if self.is_ca:
            weights = self._config.require_part_weights(self.course_id, self.component_name)
            factor = resolve_conversion_factor(
                self._registry.get_component_scale(self.course_type, self.component_name),
                self._registry, self.course_type, self._settings,
            )

        part_weights = {self.component_name: weights} if weights is not None else None
        sets: dict[str, StudentComponentSet] = {}
        for raw in records:
            component_set = record_to_component_set(
                raw, self.course_type, self._registry, part_weights, self._settings
            )
            if self.academic_year and component_set.academic_year != self.academic_year:
                continue
            sets[component_set.student_id] = component_set.model_copy(deep=True)

        self._weights = weights
        self._factor = factor
        self._sets = sets
        if self.component_name == LAB:
            self._lab_dates = self._shared_lab_dates()
            self._apply_lab_columns()
        self._loaded = True
        logger.info(
            "Loaded %s for course %s: %d students",
            self.component_name, self.course_id, len(self._sets),
        )

    def _shared_lab_dates(self) -> list[str]:
        longest: list[str] = []
        for component_set in self._sets.values():
            if component_set.lab is not None and len(component_set.lab.sessions) > len(longest):
                longest = [s.date for s in lab_calculator.ordered(component_set.lab.sessions)]
        defaults = default_lab_dates()
        while len(longest) < self._settings.lab_min_sessions:
            longest.append(defaults[min(len(longest), len(defaults) - 1)])
        return longest

    def _apply_lab_columns(self) -> None:
        for student_id, component_set in self._sets.items():
            sessions = component_set.lab.sessions if component_set.lab is not None else []
            self._sets[student_id] = self._with_lab_sessions(
                component_set, lab_calculator.ensure_sessions(sessions, self._lab_dates, self._settings)
            )

    def _with_lab_sessions(self, component_set: StudentComponentSet, sessions) -> StudentComponentSet:
        lab = lab_calculator.compute_lab_score(
            sessions, self.course_type, self._registry, self._settings
        )
        return component_set.model_copy(update={"lab": lab})

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise ScoringError("Scores are still loading; try again in a moment")

    def _student(self, student_id: str) -> StudentComponentSet:
        """The student's scores, created empty on first appearance."""
        component_set = self._sets.get(student_id)
        if component_set is None:
            part_weights = {self.component_name: self._weights} if self._weights is not None else None
            component_set = record_to_component_set(
                ScoreRecord(student_id=student_id, academic_year=self.academic_year),
                self.course_type, self._registry, part_weights, self._settings,
            )
            if self.component_name == LAB:
                component_set = self._with_lab_sessions(
                    component_set,
                    lab_calculator.ensure_sessions([], self._lab_dates, self._settings),
                )
            self._sets[student_id] = component_set
        return component_set

    def _touch(self) -> None:
        self._writer.schedule(self.course_id, self.component_name, self.snapshot_records())

    # ── CA edits ────────────────────────────────────────────

    def update_ca_part(self, student_id: str, question: str, part: str, value: object) -> None:
        """Set one part mark.  Edits to disabled (zero-weight) parts are ignored."""
        self._require_loaded()
        if not self.is_ca:
            raise ConfigurationError(f"{self.component_name} has no question parts")
        component_set = self._student(student_id)
        current = component_set.ca.get(self.component_name) or empty_ca_score()
        updated = apply_part_update(
            current, question, part, value, self._weights, self._factor, self._settings
        )
        if updated is current:
            return
        ca = dict(component_set.ca)
        ca[self.component_name] = updated
        self._sets[student_id] = component_set.model_copy(update={"ca": ca})
        self._touch()

    def set_test_date(self, test_date: str | None) -> None:
        self._require_loaded()
        if not self.is_ca:
            raise ConfigurationError(f"{self.component_name} has no test date")
        current = {
            sid: cs.ca.get(self.component_name) or empty_ca_score()
            for sid, cs in self._sets.items()
        }
        for sid, score in set_test_date(current, test_date).items():
            ca = dict(self._sets[sid].ca)
            ca[self.component_name] = score
            self._sets[sid] = self._sets[sid].model_copy(update={"ca": ca})
        self._touch()

    # ── LAB edits ───────────────────────────────────────────

    def _require_lab(self) -> None:
        self._require_loaded()
        if self.component_name != LAB:
            raise ConfigurationError(f"{self.component_name} has no lab sessions")

    def _replace_all_sessions(self, transform) -> None:
        # Build every student's new list first so a failure leaves state unchanged
        updated = {
            sid: transform(cs.lab.sessions if cs.lab is not None else [])
            for sid, cs in self._sets.items()
        }
        for sid, sessions in updated.items():
            self._sets[sid] = self._with_lab_sessions(self._sets[sid], sessions)

    def add_lab_session(self, session_date: str | None = None) -> None:
        self._require_lab()
        session_date = session_date or lab_calculator.today_iso()
        self._replace_all_sessions(
            lambda sessions: lab_calculator.add_session(sessions, session_date, self._settings)
        )
        self._lab_dates.append(session_date)
        self._touch()

    def insert_lab_session(self, at_index: int, session_date: str | None = None) -> None:
        self._require_lab()
        session_date = session_date or lab_calculator.today_iso()
        at_index = max(0, min(at_index, len(self._lab_dates)))
        self._replace_all_sessions(
            lambda sessions: lab_calculator.insert_session(
                sessions, at_index, session_date, self._settings
            )
        )
        self._lab_dates.insert(at_index, session_date)
        self._touch()

    def remove_lab_session(self, index: int) -> None:
        """Remove a session column from every student.

        Raises:
            LabSessionLimitError: only the minimum number of sessions is left.
        """
        self._require_lab()
        if len(self._lab_dates) <= self._settings.lab_min_sessions:
            raise LabSessionLimitError(self._settings.lab_min_sessions)
        if not 0 <= index < len(self._lab_dates):
            logger.debug("No lab session column %d to remove", index)
            return
        self._replace_all_sessions(
            lambda sessions: lab_calculator.remove_session(sessions, index, self._settings)
        )
        del self._lab_dates[index]
        self._touch()

    def set_lab_date(self, index: int, session_date: str) -> None:
        self._require_lab()
        if not 0 <= index < len(self._lab_dates):
            logger.debug("No lab session column %d to date", index)
            return
        self._replace_all_sessions(
            lambda sessions: lab_calculator.set_session_date(sessions, index, session_date)
        )
        self._lab_dates[index] = session_date
        self._touch()

    def update_lab_score(self, student_id: str, index: int, value: object) -> None:
        self._require_lab()
        if not 0 <= index < len(self._lab_dates):
            logger.warning(
                "Ignoring lab mark for student %s: no session column %d", student_id, index
            )
            return
        component_set = self._student(student_id)
        sessions = lab_calculator.set_session_marks(
            component_set.lab.sessions if component_set.lab is not None else [],
            index, value, self._lab_dates[index], self._settings,
        )
        self._sets[student_id] = self._with_lab_sessions(component_set, sessions)
        self._touch()

    # ── ASSIGNMENT edits ────────────────────────────────────

    def update_assignment(self, student_id: str, value: object) -> None:
        self._require_loaded()
        if self.component_name != ASSIGNMENT:
            raise ConfigurationError(f"{self.component_name} is not the assignment component")
        component_set = self._student(student_id)
        assignment = compute_assignment_score(value, self.course_type, self._registry)
        self._sets[student_id] = component_set.model_copy(update={"assignment": assignment})
        self._touch()

    # ── Reconfiguration ─────────────────────────────────────

    async def reconfigure(self, weights: PartWeights, confirmed: bool = False) -> None:
        """Save new part weights for this CA component.

        When the component was already configured this needs *confirmed* and
        zeroes every student's scores for it; without confirmation nothing
        changes and ``ReconfigurationConfirmationRequired`` is raised.
        """
        was_configured = not self._config.requires_configuration(
            self.course_id, self.component_name
        )
        config = await self._config.save(
            self.course_id, self.course_type, self.component_name, weights,
            confirm_reset=confirmed,
        )
        self._weights = config.part_weights
        if self._factor is None:
            self._factor = resolve_conversion_factor(
                self._registry.get_component_scale(self.course_type, self.component_name),
                self._registry, self.course_type, self._settings,
            )
        if not (was_configured and self._loaded):
            return

        for sid, component_set in self._sets.items():
            previous = component_set.ca.get(self.component_name)
            ca = dict(component_set.ca)
            ca[self.component_name] = empty_ca_score(previous.test_date if previous else None)
            self._sets[sid] = component_set.model_copy(update={"ca": ca})
        logger.info(
            "Zeroed %s scores for %d students after reconfiguration",
            self.component_name, len(self._sets),
        )
        self._touch()

    # ── Output ──────────────────────────────────────────────

    def snapshot_records(self) -> list[ScoreRecord]:
        """Persistable records for every student, flat scores derived."""
        part_weights = {self.component_name: self._weights} if self._weights is not None else None
        return [
            component_set_to_record(
                self._sets[sid], self._registry, part_weights, self._settings
            )
            for sid in sorted(self._sets)
        ]

    def results(self) -> dict[str, TotalResult]:
        return {
            sid: evaluate_component_set(self._sets[sid], self._registry, settings=self._settings)
            for sid in sorted(self._sets)
        }

    async def save(self) -> int:
        """Write the current state now.

        Raises:
            PersistenceError: the write failed; in-memory state is kept and
                the snapshot stays pending for a retry.
        """
        self._require_loaded()
        records = self.snapshot_records()
        self._writer.schedule(self.course_id, self.component_name, records)
        try:
            await self._writer.flush(self.course_id, self.component_name)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Could not save {self.component_name} scores") from exc
        logger.info(
            "Saved %s for course %s (%d records)", self.component_name, self.course_id, len(records)
        )
        return len(records)


class CourseScoreWorkspace:
    """Switches the active component of one course, one session at a time."""

    def __init__(
        self,
        course_id: str,
        course_type: CourseType | str,
        store: ScoreStore,
        config_service: PartWeightConfigService,
        writer: DebouncedScoreWriter | None = None,
        registry: ScaleRegistry | None = None,
        academic_year: str = "",
        settings: Settings | None = None,
    ) -> None:
        self.course_id = course_id
        self.course_type = course_type
        self.academic_year = academic_year
        self._store = store
        self._config = config_service
        self._settings = settings or get_settings()
        self._writer = writer or DebouncedScoreWriter(store, settings=self._settings)
        self._registry = registry or get_scale_registry()
        self.active: ComponentEntrySession | None = None
        self._config.add_reset_hook(self._reset_stored_scores)

    async def _reset_stored_scores(self, course_id: str, component_name: str) -> None:
        if course_id != self.course_id:
            return
        await self._store.reset_component(course_id, component_name)

    async def switch_component(self, component_name: str) -> ComponentEntrySession:
        """Flush the active component, then load *component_name* from the store.

        If the flush fails the active session is kept and the error raised.
        """
        if self.active is not None:
            await self._writer.flush(self.course_id, self.active.component_name)

        session = ComponentEntrySession(
            self.course_id,
            self.course_type,
            component_name,
            self._config,
            self._writer,
            registry=self._registry,
            academic_year=self.academic_year,
            settings=self._settings,
        )
        records = await self._store.get_records(self.course_id, self.academic_year or None)
        session.load(records)
        self.active = session
        return session

    async def close(self) -> None:
        await self._writer.flush()
        await self._writer.close()
