"""Assignment score calculator: a single mark clamped to the component max."""

from __future__ import annotations

from config.scale_registry import ScaleRegistry
from models.course import ASSIGNMENT, CourseType
from models.scores import AssignmentScore
from services.numeric import clamp


def compute_assignment_score(
    value: object,
    course_type: CourseType | str,
    registry: ScaleRegistry,
) -> AssignmentScore:
    max_marks = registry.get_component_scale(course_type, ASSIGNMENT).max_marks
    return AssignmentScore(max_marks=max_marks, obtained_marks=clamp(value, 0.0, max_marks))
