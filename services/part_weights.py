"""Part-weight configuration for CA components.

Each CA component of a course carries 20 part weights (5 questions × 4
parts) that must not add up to more than the raw CA maximum of 50.  Until a
component has been configured, score entry for it is blocked.

Reconfiguring an already-configured component is destructive: old part
values may exceed the new weights, so every registered reset hook zeroes
the component's detailed scores before the new weights are saved.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from config.scale_registry import ScaleRegistry
from config.settings import Settings, get_settings
from errors.exceptions import (
    ConfigurationError,
    ConfigurationRequiredError,
    NegativePartWeightError,
    PartWeightSumError,
    ReconfigurationConfirmationRequired,
)
from models.course import (
    PART_KEYS,
    PART_NAMES,
    QUESTION_KEYS,
    ComponentConfig,
    CourseType,
    PartWeights,
    is_ca_component,
)

logger = logging.getLogger(__name__)

# (course_id, component_name); may be a coroutine function
ResetHook = Callable[[str, str], Awaitable[Any] | None]


# ── Weight editing helpers (pure) ───────────────────────────


def _check_question(question: str) -> None:
    if question not in QUESTION_KEYS:
        raise ConfigurationError(f"Unknown question {question!r}")


def distribute_evenly(weights: PartWeights, question: str, total: float) -> PartWeights:
    """Split *total* equally across the question's four parts."""
    _check_question(question)
    share = total / len(PART_NAMES)
    return weights.with_updates({f"{question}{p}": share for p in PART_NAMES})


def zero_question(weights: PartWeights, question: str) -> PartWeights:
    """Disable every part of *question*."""
    _check_question(question)
    return weights.with_updates({f"{question}{p}": 0.0 for p in PART_NAMES})


def reset_all(settings: Settings | None = None) -> PartWeights:
    """Uniform default weights (2.5 each, 50 in total)."""
    settings = settings or get_settings()
    return PartWeights.uniform(settings.default_part_weight)


def validate_part_weights(
    weights: PartWeights,
    component_name: str = "",
    settings: Settings | None = None,
) -> None:
    """Reject negative weights and totals above the raw maximum.

    Totals below the maximum are accepted silently: a zero-weighted part
    simply was not asked.
    """
    settings = settings or get_settings()
    for key in PART_KEYS:
        value = weights.weights[key]
        if value < 0:
            raise NegativePartWeightError(key, value, component_name=component_name)
    total = weights.total
    if total > settings.ca_raw_max + settings.part_weight_tolerance:
        raise PartWeightSumError(
            total, limit=settings.ca_raw_max, component_name=component_name
        )


# ── Storage ─────────────────────────────────────────────────


class ComponentConfigStore(ABC):
    """Where saved component configurations live."""

    @abstractmethod
    def get(self, course_id: str, component_name: str) -> ComponentConfig | None:
        ...

    @abstractmethod
    def put(self, course_id: str, config: ComponentConfig) -> None:
        ...


class InMemoryComponentConfigStore(ComponentConfigStore):

    def __init__(self) -> None:
        self._configs: dict[tuple[str, str], ComponentConfig] = {}

    def get(self, course_id: str, component_name: str) -> ComponentConfig | None:
        return self._configs.get((course_id, component_name.upper()))

    def put(self, course_id: str, config: ComponentConfig) -> None:
        self._configs[(course_id, config.component_name.upper())] = config


# ── Service ─────────────────────────────────────────────────


class PartWeightConfigService:
    """Load, validate and save CA part-weight configurations."""

    def __init__(
        self,
        store: ComponentConfigStore,
        registry: ScaleRegistry,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._settings = settings or get_settings()
        self._reset_hooks: list[ResetHook] = []

    def add_reset_hook(self, hook: ResetHook) -> None:
        """Register a callback run when a configured component is reconfigured."""
        self._reset_hooks.append(hook)

    def load(self, course_id: str, component_name: str) -> ComponentConfig | None:
        return self._store.get(course_id, component_name)

    def requires_configuration(self, course_id: str, component_name: str) -> bool:
        config = self.load(course_id, component_name)
        return config is None or not config.is_configured

    def require_part_weights(self, course_id: str, component_name: str) -> PartWeights:
        """Configured weights, or ``ConfigurationRequiredError`` to block entry."""
        config = self.load(course_id, component_name)
        if config is None or not config.is_configured:
            raise ConfigurationRequiredError(course_id, component_name.upper())
        return config.part_weights

    def reconfigure_warning(self, course_id: str, component_name: str) -> str | None:
        if self.requires_configuration(course_id, component_name):
            return None
        return ReconfigurationConfirmationRequired(
            course_id, component_name.upper()
        ).user_message

    async def save(
        self,
        course_id: str,
        course_type: CourseType | str,
        component_name: str,
        weights: PartWeights,
        *,
        confirm_reset: bool = False,
    ) -> ComponentConfig:
        """Validate and save *weights*; nothing is written if validation fails.

        Raises:
            ConfigurationError: component is not a CA component of the course.
            PartWeightSumError / NegativePartWeightError: invalid weights.
            ReconfigurationConfirmationRequired: component already configured
                and *confirm_reset* not given.
        """
        name = component_name.upper()
        type_label = getattr(course_type, "value", course_type)
        if not is_ca_component(name) or not self._registry.is_component_supported(
            course_type, name
        ):
            raise ConfigurationError(
                f"{name} cannot be configured for course type {type_label}",
                course_type=str(type_label),
                component_name=name,
            )
        validate_part_weights(weights, component_name=name, settings=self._settings)

        previous = self._store.get(course_id, name)
        if previous is not None and previous.is_configured:
            if not confirm_reset:
                raise ReconfigurationConfirmationRequired(course_id, name)
            logger.info(
                "Reconfiguring %s for course %s; resetting existing scores", name, course_id
            )
            for hook in self._reset_hooks:
                result = hook(course_id, name)
                if inspect.isawaitable(result):
                    await result

        config = ComponentConfig(component_name=name, part_weights=weights, is_configured=True)
        self._store.put(course_id, config)
        logger.info(
            "Saved %s part weights for course %s (total %.1f)", name, course_id, weights.total
        )
        return config
