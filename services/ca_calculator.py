"""CA score calculator: part marks → question totals → raw /50 → scaled score.

All functions are pure: they take a ``StudentCAScore`` and return a new one
(or the very same object when an update is rejected).  Nothing here raises
for an out-of-range mark; values are clamped and totals capped instead.
"""

from __future__ import annotations

import logging

from config.scale_registry import ScaleRegistry
from config.settings import Settings, get_settings
from models.course import PART_NAMES, QUESTION_KEYS, ComponentScale, CourseType, PartWeights
from models.scores import QuestionPartScore, StudentCAScore
from services.config_audit import GAP_MISSING_CONVERSION_FACTOR
from services.numeric import clamp, round_half_up, to_number

logger = logging.getLogger(__name__)


def empty_ca_score(test_date: str | None = None) -> StudentCAScore:
    """All-zero CA structure, as created when a student first appears."""
    return StudentCAScore(test_date=test_date)


def resolve_conversion_factor(
    scale: ComponentScale,
    registry: ScaleRegistry | None = None,
    course_type: CourseType | str = "",
    settings: Settings | None = None,
) -> float:
    """Scale's conversion factor, or the configured fallback (flagged as a gap)."""
    if scale.conversion_factor is not None:
        return scale.conversion_factor
    settings = settings or get_settings()
    logger.warning(
        "No conversion factor for %s (%s); falling back to %.2f",
        scale.component_name,
        getattr(course_type, "value", course_type) or "unknown course type",
        settings.default_conversion_factor,
    )
    if registry is not None:
        registry.gaps.record_gap(
            kind=GAP_MISSING_CONVERSION_FACTOR,
            course_type=str(getattr(course_type, "value", course_type)),
            component_name=scale.component_name,
            detail=f"fallback {settings.default_conversion_factor}",
        )
    return settings.default_conversion_factor


def convert_ca_score(out_of_50: float, conversion_factor: float) -> int:
    """Scaled score counted towards the course total."""
    return round_half_up(to_number(out_of_50) * conversion_factor)


def _question_total(q: QuestionPartScore) -> float:
    return round(q.a + q.b + q.c + q.d, 4)


def recompute_totals(
    score: StudentCAScore,
    conversion_factor: float,
    settings: Settings | None = None,
) -> StudentCAScore:
    """Recompute every question total, the capped raw total and the scaled score."""
    settings = settings or get_settings()
    questions = {
        key: q.model_copy(update={"total": _question_total(q)})
        for key, q in score.questions.items()
    }
    raw = sum(q.total for q in questions.values())
    out_of_50 = min(round(raw, 4), settings.ca_raw_max)
    return score.model_copy(
        update={
            "questions": questions,
            "out_of_50": out_of_50,
            "out_of_20": convert_ca_score(out_of_50, conversion_factor),
        }
    )


def apply_part_update(
    score: StudentCAScore,
    question: str,
    part: str,
    value: object,
    weights: PartWeights,
    conversion_factor: float,
    settings: Settings | None = None,
) -> StudentCAScore:
    """Set one part mark, clamped to its weight, and recompute the totals.

    A part whose weight is 0 is disabled: the update is ignored and *score*
    is returned unchanged.  Unknown question/part names are ignored too.
    """
    if question not in QUESTION_KEYS or part not in PART_NAMES:
        logger.debug("Ignoring update for unknown part %s%s", question, part)
        return score
    max_for_part = weights.get(question, part)
    if max_for_part <= 0:
        return score

    current = score.questions.get(question, QuestionPartScore())
    updated = current.model_copy(update={part: clamp(value, 0.0, max_for_part)})
    questions = dict(score.questions)
    questions[question] = updated
    return recompute_totals(
        score.model_copy(update={"questions": questions}), conversion_factor, settings
    )


def reclamp_ca_score(
    score: StudentCAScore,
    weights: PartWeights,
    conversion_factor: float,
    settings: Settings | None = None,
) -> StudentCAScore:
    """Clamp every stored part to the current weights.

    Weights can change after marks were entered, so stored part values are
    never trusted as-is; this runs on every load and before every save.
    """
    questions: dict[str, QuestionPartScore] = {}
    for key in QUESTION_KEYS:
        current = score.questions.get(key, QuestionPartScore())
        questions[key] = QuestionPartScore(
            **{p: clamp(current.part(p), 0.0, weights.get(key, p)) for p in PART_NAMES}
        )
    return recompute_totals(
        score.model_copy(update={"questions": questions}), conversion_factor, settings
    )


def set_test_date(
    scores: dict[str, StudentCAScore], test_date: str | None
) -> dict[str, StudentCAScore]:
    """The test date belongs to the sitting: rewrite it on every student's record."""
    return {
        student_id: score.model_copy(update={"test_date": test_date})
        for student_id, score in scores.items()
    }


def score_from_raw_total(
    out_of_50: object,
    conversion_factor: float,
    test_date: str | None = None,
    settings: Settings | None = None,
) -> StudentCAScore:
    """CA score known only by its flat raw total (no per-part detail stored)."""
    settings = settings or get_settings()
    raw = clamp(out_of_50, 0.0, settings.ca_raw_max)
    return StudentCAScore(
        out_of_50=raw,
        out_of_20=convert_ca_score(raw, conversion_factor),
        test_date=test_date,
    )
