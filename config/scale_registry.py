"""Scale Registry: max/pass marks and conversion factors per course type.

The tables below are the only place course-type rules live.  Calculators
never read them directly: they receive a ``ScaleRegistry`` instance, so a
test or a future per-institution table can be injected without touching
global state.

Adding a course type requires:
  1. ``models.course.CourseType``: add the enum member
  2. ``COURSE_SCALES`` / ``EVALUATION_SCHEMES``: add its rows here
"""

from __future__ import annotations

import logging
from functools import lru_cache

from models.course import (
    ASSIGNMENT,
    CA1,
    CA2,
    CA3,
    LAB,
    ComponentScale,
    CourseType,
    EvaluationScheme,
)
from services.config_audit import (
    GAP_UNKNOWN_COMPONENT,
    GAP_UNKNOWN_COURSE_TYPE,
    ConfigGapCollector,
    get_config_gap_collector,
)

logger = logging.getLogger(__name__)

FALLBACK_MAX_MARKS = 100.0
FALLBACK_PASSING_MARKS = 40.0
FALLBACK_TOTAL_PASSING = 40.0

# (maxMarks, passingMarks, conversionFactor)
COURSE_SCALES: dict[CourseType, dict] = {
    CourseType.PG: {
        CA1: (40, 16, 0.8),
        CA2: (40, 16, 0.8),
        ASSIGNMENT: (20, 8, None),
        "totalPassing": 40,
    },
    CourseType.PG_INTEGRATED: {
        CA1: (30, 12, 0.6),
        CA2: (30, 12, 0.6),
        LAB: (30, 15, None),
        ASSIGNMENT: (10, 4, None),
        "totalPassing": 43,
    },
    CourseType.UG: {
        CA1: (25, 10, 0.5),
        CA2: (25, 10, 0.5),
        CA3: (25, 10, 0.5),
        ASSIGNMENT: (25, 10, None),
        "totalPassing": 40,
    },
    CourseType.UG_INTEGRATED: {
        CA1: (20, 8, 0.4),
        CA2: (20, 8, 0.4),
        CA3: (20, 8, 0.4),
        LAB: (30, 15, None),
        ASSIGNMENT: (10, 4, None),
        "totalPassing": 43,
    },
    CourseType.UG_LAB_ONLY: {
        LAB: (100, 50, None),
        "totalPassing": 50,
    },
    CourseType.PG_LAB_ONLY: {
        LAB: (100, 50, None),
        "totalPassing": 50,
    },
}

EVALUATION_SCHEMES: dict[CourseType, dict[str, float]] = {
    CourseType.PG: {CA1: 0.4, CA2: 0.4, ASSIGNMENT: 0.2},
    CourseType.PG_INTEGRATED: {CA1: 0.3, CA2: 0.3, LAB: 0.3, ASSIGNMENT: 0.1},
    CourseType.UG: {CA1: 0.25, CA2: 0.25, CA3: 0.25, ASSIGNMENT: 0.25},
    CourseType.UG_INTEGRATED: {CA1: 0.2, CA2: 0.2, CA3: 0.2, LAB: 0.3, ASSIGNMENT: 0.1},
    CourseType.UG_LAB_ONLY: {LAB: 1.0},
    CourseType.PG_LAB_ONLY: {LAB: 1.0},
}


class ScaleRegistry:
    """Read-only lookup over the course scale and evaluation scheme tables.

    Lookup misses never raise: display code must keep rendering, so a miss
    returns the safe fallback scale and is logged and recorded as a
    configuration gap.
    """

    def __init__(
        self,
        scales: dict[CourseType, dict] | None = None,
        schemes: dict[CourseType, dict[str, float]] | None = None,
        gaps: ConfigGapCollector | None = None,
    ) -> None:
        self._scales: dict[CourseType, dict[str, ComponentScale]] = {}
        self._total_passing: dict[CourseType, float] = {}
        for course_type, rows in (scales or COURSE_SCALES).items():
            self._total_passing[course_type] = float(rows["totalPassing"])
            self._scales[course_type] = {
                name: ComponentScale(
                    component_name=name,
                    max_marks=row[0],
                    passing_marks=row[1],
                    conversion_factor=row[2],
                )
                for name, row in rows.items()
                if name != "totalPassing"
            }
        self._schemes = {
            course_type: EvaluationScheme(weights=weights)
            for course_type, weights in (schemes or EVALUATION_SCHEMES).items()
        }
        self.gaps = gaps if gaps is not None else get_config_gap_collector()

    def _fallback_scale(self, component_name: str) -> ComponentScale:
        return ComponentScale(
            component_name=component_name,
            max_marks=FALLBACK_MAX_MARKS,
            passing_marks=FALLBACK_PASSING_MARKS,
        )

    def get_component_scale(
        self, course_type: CourseType | str, component_name: str
    ) -> ComponentScale:
        """Scale of *component_name* for *course_type*, or the safe fallback."""
        name = component_name.upper()
        resolved = CourseType.parse(course_type)
        if resolved is None or resolved not in self._scales:
            logger.warning("Unknown course type: %s", course_type)
            self.gaps.record_gap(
                kind=GAP_UNKNOWN_COURSE_TYPE,
                course_type=str(course_type),
                component_name=name,
            )
            return self._fallback_scale(name)

        scale = self._scales[resolved].get(name)
        if scale is None:
            logger.warning(
                "Component %s not configured for course type %s", name, resolved.value
            )
            self.gaps.record_gap(
                kind=GAP_UNKNOWN_COMPONENT,
                course_type=resolved.value,
                component_name=name,
            )
            return self._fallback_scale(name)
        return scale

    def get_course_total_passing_marks(self, course_type: CourseType | str) -> float:
        resolved = CourseType.parse(course_type)
        if resolved is None or resolved not in self._total_passing:
            logger.warning("Unknown course type: %s", course_type)
            self.gaps.record_gap(
                kind=GAP_UNKNOWN_COURSE_TYPE, course_type=str(course_type)
            )
            return FALLBACK_TOTAL_PASSING
        return self._total_passing[resolved]

    def get_evaluation_scheme(self, course_type: CourseType | str) -> EvaluationScheme:
        resolved = CourseType.parse(course_type)
        if resolved is None:
            return EvaluationScheme()
        return self._schemes.get(resolved, EvaluationScheme())

    def is_component_supported(
        self, course_type: CourseType | str, component_name: str
    ) -> bool:
        return self.get_evaluation_scheme(course_type).supports(component_name)


@lru_cache
def get_scale_registry() -> ScaleRegistry:
    """Process default registry over the built-in tables."""
    return ScaleRegistry()
