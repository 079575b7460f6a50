"""Domain-specific exceptions for the scoring engine.

These exceptions let the entry screen distinguish configuration problems
(rejected with a message, nothing written) from persistence failures
(surfaced, in-memory state kept for a retry).  Out-of-range marks are never
an error: calculators clamp them instead.
"""

from __future__ import annotations


class ScoringError(Exception):
    """Base class for scoring engine errors.

    ``user_message`` is safe to show to faculty as-is.
    """

    def __init__(self, user_message: str) -> None:
        self.user_message = user_message
        super().__init__(user_message)


class ConfigurationError(ScoringError):
    """Invalid course/component configuration (unknown component, bad weights)."""

    def __init__(
        self,
        message: str,
        course_type: str = "",
        component_name: str = "",
    ) -> None:
        self.course_type = course_type
        self.component_name = component_name
        super().__init__(message)


class PartWeightSumError(ConfigurationError):
    """Configured part weights add up to more than the raw CA maximum.

    Carries the offending total and the excess so the configuration view can
    tell faculty exactly how much to remove.
    """

    def __init__(
        self,
        total: float,
        limit: float = 50.0,
        component_name: str = "",
    ) -> None:
        self.total = total
        self.limit = limit
        self.excess = round(total - limit, 2)
        super().__init__(
            f"Question part weights must not exceed {limit:g} "
            f"(currently {total:.1f}, {self.excess:g} over)",
            component_name=component_name,
        )


class NegativePartWeightError(ConfigurationError):
    """A part weight below zero."""

    def __init__(self, part_key: str, value: float, component_name: str = "") -> None:
        self.part_key = part_key
        self.value = value
        super().__init__(
            f"Part {part_key} must have a non-negative weight (got {value:g})",
            component_name=component_name,
        )


class ConfigurationRequiredError(ConfigurationError):
    """Score entry is blocked until part weights are configured for the component."""

    def __init__(self, course_id: str, component_name: str) -> None:
        self.course_id = course_id
        super().__init__(
            f"{component_name} must be configured before scores can be entered",
            component_name=component_name,
        )


class ReconfigurationConfirmationRequired(ConfigurationError):
    """Reconfiguring an already-configured component needs explicit confirmation.

    Confirming zeroes every student's detailed score for the component.
    """

    def __init__(self, course_id: str, component_name: str) -> None:
        self.course_id = course_id
        super().__init__(
            f"{component_name} is already configured. Changing part weights will "
            f"reset all existing {component_name} scores to zero.",
            component_name=component_name,
        )


class LabSessionLimitError(ScoringError):
    """Removing a lab session would leave fewer than the minimum."""

    def __init__(self, minimum: int = 2) -> None:
        self.minimum = minimum
        word = {2: "two"}.get(minimum, str(minimum))
        super().__init__(f"You must have at least {word} lab sessions")


class PersistenceError(ScoringError):
    """A save or auto-save was rejected by the persistence side."""


class ScoreEntryDisabledError(PersistenceError):
    """Score entry has been switched off administratively."""

    def __init__(self) -> None:
        super().__init__("Score entry has been disabled by administrator")
