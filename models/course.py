"""Course configuration models: course types, component scales, part weights.

These are the lookup values the calculators are parameterised with.  They
are built once per (course, component) scoring session and never mutated
while it runs; a reconfiguration replaces them wholesale.
"""

from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, Field, field_validator, model_validator

from models.base import CamelModel

# ── Component names ─────────────────────────────────────────

CA1 = "CA1"
CA2 = "CA2"
CA3 = "CA3"
LAB = "LAB"
ASSIGNMENT = "ASSIGNMENT"

CA_COMPONENTS = (CA1, CA2, CA3)

# ── Question / part layout of a CA paper ────────────────────

QUESTION_KEYS = ("I", "II", "III", "IV", "V")
PART_NAMES = ("a", "b", "c", "d")
PART_KEYS = tuple(f"{q}{p}" for q in QUESTION_KEYS for p in PART_NAMES)

DEFAULT_PART_WEIGHT = 2.5


def is_ca_component(component_name: str) -> bool:
    return component_name.upper() in CA_COMPONENTS


class CourseType(str, Enum):
    PG = "PG"
    PG_INTEGRATED = "PG-Integrated"
    UG = "UG"
    UG_INTEGRATED = "UG-Integrated"
    UG_LAB_ONLY = "UG-Lab-Only"
    PG_LAB_ONLY = "PG-Lab-Only"

    @classmethod
    def parse(cls, value: CourseType | str | None) -> CourseType | None:
        """Resolve a course type case-insensitively; ``None`` when unknown.

        Accepts the spaced spelling older records use (``"ug lab only"``).
        """
        if isinstance(value, cls):
            return value
        if not value:
            return None
        normalized = str(value).strip().lower().replace(" ", "-")
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None

    @property
    def is_lab_only(self) -> bool:
        return self in (CourseType.UG_LAB_ONLY, CourseType.PG_LAB_ONLY)

    @property
    def is_integrated(self) -> bool:
        return self in (CourseType.UG_INTEGRATED, CourseType.PG_INTEGRATED)

    @property
    def is_lab_constrained(self) -> bool:
        """Whether passing also requires a minimum LAB score."""
        return self.is_lab_only or self.is_integrated


class ComponentScale(CamelModel):
    """Max/pass marks of one component for one course type."""

    model_config = ConfigDict(frozen=True)

    component_name: str
    max_marks: float
    passing_marks: float
    conversion_factor: float | None = None  # CA only: raw /50 → scaled

    @model_validator(mode="after")
    def _passing_within_max(self) -> ComponentScale:
        if self.passing_marks > self.max_marks:
            raise ValueError(
                f"{self.component_name}: passing marks {self.passing_marks} "
                f"exceed max marks {self.max_marks}"
            )
        return self


class EvaluationScheme(CamelModel):
    """Component → weight fraction; defines which components a course supports."""

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = Field(default_factory=dict)

    @property
    def components(self) -> list[str]:
        return list(self.weights)

    def supports(self, component_name: str) -> bool:
        return component_name.upper() in self.weights


class PartWeights(CamelModel):
    """Max marks of each of the 20 question parts (``Ia`` … ``Vd``).

    Missing keys are filled with the uniform default.  A part with weight 0
    is disabled and can never hold marks.
    """

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = Field(default_factory=dict)

    @field_validator("weights", mode="before")
    @classmethod
    def _fill_and_check_keys(cls, value: dict[str, float] | None) -> dict[str, float]:
        value = dict(value or {})
        unknown = sorted(set(value) - set(PART_KEYS))
        if unknown:
            raise ValueError(f"Unknown question parts: {', '.join(unknown)}")
        return {
            key: float(value[key]) if value.get(key) is not None else DEFAULT_PART_WEIGHT
            for key in PART_KEYS
        }

    @classmethod
    def uniform(cls, value: float = DEFAULT_PART_WEIGHT) -> PartWeights:
        return cls(weights={key: value for key in PART_KEYS})

    def get(self, question: str, part: str) -> float:
        return self.weights[f"{question}{part}"]

    def question_total(self, question: str) -> float:
        return sum(self.get(question, p) for p in PART_NAMES)

    @property
    def total(self) -> float:
        return round(sum(self.weights.values()), 4)

    def is_part_enabled(self, question: str, part: str) -> bool:
        return self.get(question, part) > 0

    def with_updates(self, updates: dict[str, float]) -> PartWeights:
        """Return a copy with *updates* applied."""
        merged = dict(self.weights)
        merged.update(updates)
        return PartWeights(weights=merged)


class ComponentConfig(CamelModel):
    """Faculty's saved configuration for one CA component of one course."""

    component_name: str
    part_weights: PartWeights = Field(default_factory=PartWeights.uniform)
    is_configured: bool = False
