"""Adapter for persisted score records → structured component scores, and back.

Record shape handled (one per student, course and academic year)::

    {studentId, academicYear,
     scores:       [{componentName, maxMarks, obtainedMarks, testDate}],
     questions:    [{questionNumber, meta: {component, type, date},
                     parts: [{partName, maxMarks, obtainedMarks}]}],
     lab_sessions: [{date, maxMarks, obtainedMarks, index}]}

The structured per-question detail is the source of truth.  On load, when
the flat ``scores[].obtainedMarks`` disagrees with the total recomputed from
``questions``, the recomputed total wins.  On save, the flat entries are
always derived from the structured form, never edited directly.
"""

from __future__ import annotations

import logging
from typing import Any

from config.scale_registry import ScaleRegistry
from config.settings import Settings, get_settings
from errors.exceptions import ConfigurationError
from models.course import (
    ASSIGNMENT,
    CA_COMPONENTS,
    LAB,
    PART_NAMES,
    QUESTION_KEYS,
    CourseType,
    PartWeights,
    is_ca_component,
)
from models.records import (
    LabSessionRecord,
    QuestionMeta,
    QuestionPartRecord,
    QuestionRecord,
    ScoreEntry,
    ScoreRecord,
)
from models.scores import (
    AssignmentScore,
    LabScore,
    LabSession,
    QuestionPartScore,
    StudentCAScore,
    StudentComponentSet,
)
from services.assignment_calculator import compute_assignment_score
from services.ca_calculator import (
    empty_ca_score,
    reclamp_ca_score,
    resolve_conversion_factor,
    score_from_raw_total,
)
from services.lab_calculator import compute_lab_score, today_iso
from services.numeric import clamp, round_half_up

logger = logging.getLogger(__name__)

LAB_SESSION_QUESTION_TYPE = "lab_session"
QUESTIONS_PER_COMPONENT = len(QUESTION_KEYS)
MAX_QUESTION_NUMBER = QUESTIONS_PER_COMPONENT * len(CA_COMPONENTS)


# ---------------------------------------------------------------------------
# Question numbering
# ---------------------------------------------------------------------------

def question_key_for_number(question_number: int) -> str:
    """Roman-numeral position of a flat question number (1 → I, 7 → II)."""
    position = ((question_number - 1) % QUESTIONS_PER_COMPONENT) + 1
    return QUESTION_KEYS[position - 1]


def component_for_number(question_number: int) -> str:
    """CA component a flat question number belongs to when meta is missing."""
    return CA_COMPONENTS[(question_number - 1) // QUESTIONS_PER_COMPONENT]


def question_number_for(component_name: str, question_key: str) -> int:
    offset = CA_COMPONENTS.index(component_name) * QUESTIONS_PER_COMPONENT
    return offset + QUESTION_KEYS.index(question_key) + 1


def _is_lab_question(question: QuestionRecord) -> bool:
    return question.meta is not None and question.meta.type == LAB_SESSION_QUESTION_TYPE


# ---------------------------------------------------------------------------
# Record → structured
# ---------------------------------------------------------------------------

def parse_score_record(raw: dict[str, Any] | ScoreRecord) -> ScoreRecord:
    """Validate a raw persisted record (camelCase or snake_case keys)."""
    if isinstance(raw, ScoreRecord):
        return raw
    return ScoreRecord.model_validate(raw)


def _group_ca_questions(
    record: ScoreRecord, supported: set[str]
) -> dict[str, list[QuestionRecord]]:
    grouped: dict[str, list[QuestionRecord]] = {}
    for question in record.questions:
        if _is_lab_question(question):
            continue
        number = question.question_number
        if not 1 <= number <= MAX_QUESTION_NUMBER:
            logger.warning(
                "Skipping question %d for student %s: outside 1-%d",
                number, record.student_id, MAX_QUESTION_NUMBER,
            )
            continue
        if question.meta is not None and question.meta.component:
            component = question.meta.component.upper()
        else:
            component = component_for_number(number)
        if component not in supported:
            logger.warning(
                "Skipping question %d for student %s: %s is not in the course scheme",
                number, record.student_id, component,
            )
            continue
        grouped.setdefault(component, []).append(question)
    return grouped


def _ca_from_questions(
    questions: list[QuestionRecord],
    test_date: str | None,
) -> StudentCAScore:
    score = empty_ca_score(test_date)
    detail = {key: score.questions[key].model_dump() for key in QUESTION_KEYS}
    for question in questions:
        key = question_key_for_number(question.question_number)
        for part in question.parts:
            name = str(part.part_name).lower()
            if name in PART_NAMES:
                detail[key][name] = part.obtained_marks
    return score.model_copy(
        update={"questions": {k: QuestionPartScore(**v) for k, v in detail.items()}}
    )


def _question_test_date(questions: list[QuestionRecord]) -> str | None:
    for question in questions:
        if question.meta is not None and question.meta.date:
            return question.meta.date
    return None


def _lab_sessions_from_record(record: ScoreRecord) -> list[LabSession]:
    if record.lab_sessions:
        sessions = [
            LabSession(
                date=s.date or today_iso(),
                max_marks=s.max_marks,
                obtained_marks=s.obtained_marks,
                index=s.index if s.index is not None else position,
            )
            for position, s in enumerate(record.lab_sessions)
        ]
    else:
        # Older records kept sessions as pseudo-questions
        legacy = sorted(
            (q for q in record.questions if _is_lab_question(q)),
            key=lambda q: q.question_number,
        )
        sessions = [
            LabSession(
                date=(q.meta.date if q.meta and q.meta.date else today_iso()),
                max_marks=q.parts[0].max_marks if q.parts else 10,
                obtained_marks=q.parts[0].obtained_marks if q.parts else 0,
                index=position,
            )
            for position, q in enumerate(legacy)
        ]
    return sorted(sessions, key=lambda s: s.index)


def record_to_component_set(
    record: ScoreRecord | dict[str, Any],
    course_type: CourseType | str,
    registry: ScaleRegistry,
    part_weights: dict[str, PartWeights] | None = None,
    settings: Settings | None = None,
) -> StudentComponentSet:
    """Rebuild one student's structured scores from a persisted record.

    Only components in the course's evaluation scheme are produced; stray
    components and out-of-range question numbers are logged and skipped.
    CA parts are re-clamped against *part_weights* (uniform defaults for any
    component not given).
    """
    settings = settings or get_settings()
    resolved = CourseType.parse(course_type)
    if resolved is None:
        raise ConfigurationError(f"Unknown course type: {course_type}")
    course_type = resolved
    record = parse_score_record(record)
    part_weights = part_weights or {}
    scheme = registry.get_evaluation_scheme(course_type)
    supported = set(scheme.components)

    for entry in record.scores:
        if entry.component_name.upper() not in supported:
            logger.warning(
                "Ignoring stored %s score for student %s: not in the %s scheme",
                entry.component_name, record.student_id, course_type.value,
            )

    grouped = _group_ca_questions(record, supported)
    component_set = StudentComponentSet(
        student_id=record.student_id,
        academic_year=record.academic_year,
        course_type=course_type,
    )

    for component in scheme.components:
        flat = record.score_for(component)

        if is_ca_component(component):
            scale = registry.get_component_scale(course_type, component)
            factor = resolve_conversion_factor(scale, registry, course_type, settings)
            weights = part_weights.get(component) or PartWeights.uniform(
                settings.default_part_weight
            )
            questions = grouped.get(component, [])
            test_date = (flat.test_date if flat else None) or _question_test_date(questions)
            if questions:
                score = reclamp_ca_score(
                    _ca_from_questions(questions, test_date), weights, factor, settings
                )
                if flat is not None and abs(flat.obtained_marks - score.out_of_50) > 1e-6:
                    logger.info(
                        "Reconciled %s for student %s: stored %.2f, recomputed %.2f",
                        component, record.student_id, flat.obtained_marks, score.out_of_50,
                    )
            elif flat is not None:
                score = score_from_raw_total(flat.obtained_marks, factor, test_date, settings)
            else:
                score = empty_ca_score(test_date)
            component_set.ca[component] = score

        elif component == LAB:
            sessions = _lab_sessions_from_record(record)
            if sessions:
                lab = compute_lab_score(sessions, course_type, registry, settings)
                if flat is not None and abs(flat.obtained_marks - lab.total_obtained) > 1e-6:
                    logger.info(
                        "Reconciled LAB for student %s: stored %.2f, recomputed %d",
                        record.student_id, flat.obtained_marks, lab.total_obtained,
                    )
            else:
                lab = compute_lab_score([], course_type, registry, settings)
                if flat is not None:
                    lab = lab.model_copy(update={
                        "total_obtained": round_half_up(
                            clamp(flat.obtained_marks, 0.0, lab.max_marks)
                        )
                    })
            component_set.lab = lab

        elif component == ASSIGNMENT:
            component_set.assignment = compute_assignment_score(
                flat.obtained_marks if flat else 0, course_type, registry
            )

    return component_set


# ---------------------------------------------------------------------------
# Structured → record
# ---------------------------------------------------------------------------

def _ca_to_questions(
    component: str, score: StudentCAScore, weights: PartWeights
) -> list[QuestionRecord]:
    return [
        QuestionRecord(
            question_number=question_number_for(component, key),
            meta=QuestionMeta(component=component, date=score.test_date),
            parts=[
                QuestionPartRecord(
                    part_name=p,
                    max_marks=weights.get(key, p),
                    obtained_marks=score.questions[key].part(p),
                )
                for p in PART_NAMES
            ],
        )
        for key in QUESTION_KEYS
    ]


def ca_slice_to_record_parts(
    component: str,
    score: StudentCAScore,
    weights: PartWeights,
    settings: Settings | None = None,
) -> tuple[ScoreEntry, list[QuestionRecord]]:
    """Flat entry plus question rows (none without part detail) for one CA component."""
    settings = settings or get_settings()
    entry = ScoreEntry(
        component_name=component,
        max_marks=settings.ca_raw_max,
        obtained_marks=score.out_of_50,
        test_date=score.test_date,
    )
    # A bare raw total has no rows; all-zero rows would override it on reload
    if not score.has_detail:
        return entry, []
    return entry, _ca_to_questions(component, score, weights)


def lab_to_record_parts(lab: LabScore) -> tuple[ScoreEntry, list[LabSessionRecord]]:
    entry = ScoreEntry(
        component_name=LAB,
        max_marks=lab.max_marks,
        obtained_marks=lab.total_obtained,
    )
    sessions = [
        LabSessionRecord(
            date=s.date,
            max_marks=s.max_marks,
            obtained_marks=s.obtained_marks or 0,
            index=s.index,
        )
        for s in sorted(lab.sessions, key=lambda s: s.index)
    ]
    return entry, sessions


def assignment_to_record_entry(assignment: AssignmentScore) -> ScoreEntry:
    return ScoreEntry(
        component_name=ASSIGNMENT,
        max_marks=assignment.max_marks,
        obtained_marks=assignment.obtained_marks,
    )


def component_set_to_record(
    component_set: StudentComponentSet,
    registry: ScaleRegistry,
    part_weights: dict[str, PartWeights] | None = None,
    settings: Settings | None = None,
) -> ScoreRecord:
    """Collapse structured scores into the persisted record shape.

    CA parts are re-clamped against the current weights before writing, and
    the test date is written both on the flat entry and on every question.
    """
    settings = settings or get_settings()
    part_weights = part_weights or {}
    course_type = component_set.course_type
    scheme = registry.get_evaluation_scheme(course_type)

    scores: list[ScoreEntry] = []
    questions: list[QuestionRecord] = []
    lab_sessions: list[LabSessionRecord] = []

    for component in scheme.components:
        if is_ca_component(component) and component in component_set.ca:
            weights = part_weights.get(component) or PartWeights.uniform(
                settings.default_part_weight
            )
            factor = resolve_conversion_factor(
                registry.get_component_scale(course_type, component),
                registry, course_type, settings,
            )
            score = component_set.ca[component]
            if score.has_detail:
                score = reclamp_ca_score(score, weights, factor, settings)
            entry, rows = ca_slice_to_record_parts(component, score, weights, settings)
            scores.append(entry)
            questions.extend(rows)
        elif component == LAB and component_set.lab is not None:
            entry, lab_sessions = lab_to_record_parts(component_set.lab)
            scores.append(entry)
        elif component == ASSIGNMENT and component_set.assignment is not None:
            scores.append(assignment_to_record_entry(component_set.assignment))

    return ScoreRecord(
        student_id=component_set.student_id,
        academic_year=component_set.academic_year,
        scores=scores,
        questions=questions,
        lab_sessions=lab_sessions,
    )
