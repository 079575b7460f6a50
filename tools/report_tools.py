"""Result table tools: project evaluated scores into a table block.

No calculation happens here beyond calling the evaluator; the output shape
is the ``{headers, rows}`` table the entry screen and the report script
render.
"""

from __future__ import annotations

from typing import Any

from config.scale_registry import ScaleRegistry, get_scale_registry
from models.course import CourseType
from models.scores import StudentComponentSet
from services.evaluator import evaluate_component_set


def _format_mark(value: float) -> str:
    return f"{value:g}"


def component_header(
    component_name: str, course_type: CourseType | str, registry: ScaleRegistry
) -> str:
    """Column title, e.g. ``"CA1 (Out of 25, Pass 10)"``."""
    scale = registry.get_component_scale(course_type, component_name)
    return (
        f"{component_name} (Out of {_format_mark(scale.max_marks)}, "
        f"Pass {_format_mark(scale.passing_marks)})"
    )


def build_result_table(
    component_sets: list[StudentComponentSet],
    registry: ScaleRegistry | None = None,
    course_type: CourseType | str | None = None,
) -> dict[str, Any]:
    """One row per student: scaled component scores, total and PASS/FAIL.

    Args:
        component_sets: Students of one course.
        registry: Scale registry; the shared one by default.
        course_type: Course type for the header row when *component_sets*
            is empty; otherwise taken from the first student.

    Returns:
        ``{"headers": [...], "rows": [{"cells": [...], "status": "PASS"}]}``
    """
    registry = registry or get_scale_registry()
    if component_sets:
        course_type = component_sets[0].course_type
    if course_type is None:
        return {"headers": [], "rows": []}

    scheme = registry.get_evaluation_scheme(course_type)
    threshold = registry.get_course_total_passing_marks(course_type)
    headers = ["Student ID"]
    headers.extend(component_header(name, course_type, registry) for name in scheme.components)
    headers.extend([f"Total (Pass {_format_mark(threshold)})", "Status"])

    rows = []
    for component_set in sorted(component_sets, key=lambda cs: cs.student_id):
        result = evaluate_component_set(component_set, registry)
        cells: list[Any] = [component_set.student_id]
        cells.extend(result.per_component_scaled[name] for name in scheme.components)
        cells.extend([result.total, result.status.value])
        rows.append({"cells": cells, "status": result.status.value})

    return {"headers": headers, "rows": rows}
