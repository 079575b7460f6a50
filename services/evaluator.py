"""Aggregation & pass/fail evaluator.

total = sum of *scaled* component scores over exactly the components in the
course's evaluation scheme.  A student passes when the total reaches the
course threshold and, for integrated and lab-only courses, the LAB score is
at least half of the LAB maximum.  Both conditions are required.

Results are derived on demand and never stored.
"""

from __future__ import annotations

import logging

from config.scale_registry import ScaleRegistry
from config.settings import Settings, get_settings
from models.course import LAB, CourseType
from models.scores import PassStatus, StudentComponentSet, TotalResult
from services.numeric import to_number

logger = logging.getLogger(__name__)


def lab_requirement_met(
    lab_scaled: float,
    course_type: CourseType | str,
    registry: ScaleRegistry,
    settings: Settings | None = None,
) -> bool:
    settings = settings or get_settings()
    lab_max = registry.get_component_scale(course_type, LAB).max_marks
    return to_number(lab_scaled) >= settings.lab_pass_fraction * lab_max


def evaluate_scaled_scores(
    scaled: dict[str, float],
    course_type: CourseType | str,
    registry: ScaleRegistry,
    passing_threshold: float | None = None,
    settings: Settings | None = None,
) -> TotalResult:
    """Total and verdict from per-component scaled scores.

    Components outside the course's scheme are dropped (stale records);
    supported components with no score count as 0.
    """
    settings = settings or get_settings()
    scheme = registry.get_evaluation_scheme(course_type)
    normalized = {name.upper(): value for name, value in scaled.items()}

    stray = sorted(set(normalized) - set(scheme.components))
    if stray:
        logger.debug(
            "Excluding components outside the %s scheme: %s",
            getattr(course_type, "value", course_type),
            ", ".join(stray),
        )

    per_component = {
        name: to_number(normalized.get(name, 0)) for name in scheme.components
    }
    total = round(sum(per_component.values()), 2)
    threshold = (
        passing_threshold
        if passing_threshold is not None
        else registry.get_course_total_passing_marks(course_type)
    )

    component_passed = {
        name: value >= registry.get_component_scale(course_type, name).passing_marks
        for name, value in per_component.items()
    }

    resolved = CourseType.parse(course_type)
    lab_ok: bool | None = None
    if resolved is not None and resolved.is_lab_constrained and scheme.supports(LAB):
        lab_ok = lab_requirement_met(per_component[LAB], resolved, registry, settings)

    passed = total >= threshold and lab_ok is not False
    return TotalResult(
        per_component_scaled=per_component,
        total=total,
        status=PassStatus.PASS if passed else PassStatus.FAIL,
        passing_threshold=threshold,
        lab_requirement_met=lab_ok,
        component_passed=component_passed,
    )


def evaluate_component_set(
    component_set: StudentComponentSet,
    registry: ScaleRegistry,
    passing_threshold: float | None = None,
    settings: Settings | None = None,
) -> TotalResult:
    return evaluate_scaled_scores(
        component_set.scaled_scores(),
        component_set.course_type,
        registry,
        passing_threshold=passing_threshold,
        settings=settings,
    )
