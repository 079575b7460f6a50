"""Deterministic reporting tools over evaluated scores."""

from __future__ import annotations

from tools.report_tools import build_result_table, component_header  # noqa: F401
from tools.stats_tools import calculate_stats, summarize_course  # noqa: F401
