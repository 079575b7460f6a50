"""Statistical computation tools: deterministic course summaries.

These produce the class-level numbers shown beside the score table:
totals, per-component averages and per-question-part averages.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

import numpy as np

from adapters.score_adapter import question_number_for
from config.scale_registry import ScaleRegistry, get_scale_registry
from models.course import PART_NAMES
from models.scores import StudentComponentSet
from services.evaluator import evaluate_component_set


def _distribution(arr: np.ndarray, max_marks: float, passing_marks: float | None) -> dict:
    """Ten equal bands over ``0..max_marks``, plus the count below the pass mark."""
    edges = np.linspace(0.0, max_marks, 11)
    counts, _ = np.histogram(np.clip(arr, 0.0, max_marks), bins=edges)
    labels = [f"{lo:g}-{hi:g}" for lo, hi in zip(edges[:-1], edges[1:])]
    distribution: dict[str, Any] = {"labels": labels, "counts": [int(c) for c in counts]}
    if passing_marks is not None:
        distribution["belowPass"] = int(np.sum(arr < passing_marks))
    return distribution


def calculate_stats(
    data: list[float | int],
    metrics: list[str] | None = None,
    max_marks: float = 100.0,
    passing_marks: float | None = None,
) -> dict:
    """Calculate descriptive statistics for a list of scaled scores.

    Args:
        data: List of numeric values (e.g. course totals).
        metrics: Which metrics to compute. Defaults to all.
            Supported: mean, median, stddev, min, max, percentiles, distribution.
        max_marks: Upper end of the distribution bands (the course's full marks).
        passing_marks: When given, the distribution also counts scores below it.

    Returns:
        Dictionary of computed metric results.
    """
    if not data:
        return {"error": "Empty data list"}

    arr = np.array(data, dtype=float)
    all_metrics = metrics or ["mean", "median", "stddev", "min", "max", "percentiles", "distribution"]

    result: dict[str, Any] = {"count": len(data)}

    if "mean" in all_metrics:
        result["mean"] = round(float(np.mean(arr)), 2)
    if "median" in all_metrics:
        result["median"] = round(float(np.median(arr)), 2)
    if "stddev" in all_metrics:
        result["stddev"] = round(float(np.std(arr, ddof=1)) if len(arr) > 1 else 0.0, 2)
    if "min" in all_metrics:
        result["min"] = round(float(np.min(arr)), 2)
    if "max" in all_metrics:
        result["max"] = round(float(np.max(arr)), 2)
    if "percentiles" in all_metrics:
        result["percentiles"] = {
            "p25": round(float(np.percentile(arr, 25)), 2),
            "p50": round(float(np.percentile(arr, 50)), 2),
            "p75": round(float(np.percentile(arr, 75)), 2),
        }
    if "distribution" in all_metrics and max_marks > 0:
        result["distribution"] = _distribution(arr, max_marks, passing_marks)

    return result


def _overall(values: list[float]) -> dict[str, float]:
    if not values:
        return {"highest": 0.0, "lowest": 0.0, "average": 0.0}
    arr = np.array(values, dtype=float)
    return {
        "highest": round(float(np.max(arr)), 2),
        "lowest": round(float(np.min(arr)), 2),
        "average": round(float(np.mean(arr)), 2),
    }


def _total_stats(
    totals: list[float],
    component_sets: list[StudentComponentSet],
    registry: ScaleRegistry,
) -> dict[str, Any]:
    if not totals:
        return {}
    course_type = component_sets[0].course_type
    scheme = registry.get_evaluation_scheme(course_type)
    full_marks = sum(
        registry.get_component_scale(course_type, name).max_marks for name in scheme.components
    )
    return calculate_stats(
        totals,
        max_marks=full_marks,
        passing_marks=registry.get_course_total_passing_marks(course_type),
    )


def summarize_course(
    component_sets: list[StudentComponentSet],
    registry: ScaleRegistry | None = None,
) -> dict[str, Any]:
    """Class summary over every student's structured scores.

    Returns:
        Dictionary containing:
        - totalStudents: number of students summarised
        - passCount / failCount
        - overallStats: highest, lowest and average course total
        - componentStats: the same per scaled component of the scheme
        - questionStats: average, highest and lowest per CA part, keyed
          ``Q{questionNumber}{part}`` (e.g. ``Q7b`` is CA2 question II part b)
        - totalStats: ``calculate_stats`` over the course totals, banded
          against the course's full marks and pass threshold (empty class: ``{}``)
    """
    registry = registry or get_scale_registry()
    totals: list[float] = []
    passed = 0
    per_component: dict[str, list[float]] = defaultdict(list)
    per_part: dict[str, list[float]] = defaultdict(list)

    for component_set in component_sets:
        result = evaluate_component_set(component_set, registry)
        totals.append(result.total)
        passed += int(result.passed)
        for name, value in result.per_component_scaled.items():
            per_component[name].append(value)
        for name, score in component_set.ca.items():
            if name not in result.per_component_scaled:
                continue
            for key, question in score.questions.items():
                number = question_number_for(name, key)
                for part in PART_NAMES:
                    per_part[f"Q{number}{part}"].append(question.part(part))

    return {
        "totalStudents": len(component_sets),
        "passCount": passed,
        "failCount": len(component_sets) - passed,
        "overallStats": _overall(totals),
        "totalStats": _total_stats(totals, component_sets, registry),
        "componentStats": {name: _overall(values) for name, values in per_component.items()},
        "questionStats": {key: _overall(values) for key, values in sorted(
            per_part.items(), key=lambda kv: (int(kv[0][1:-1]), kv[0][-1])
        )},
    }
