"""Tests for CA part-weight configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from errors.exceptions import (
    ConfigurationError,
    ConfigurationRequiredError,
    NegativePartWeightError,
    PartWeightSumError,
    ReconfigurationConfirmationRequired,
)
from models.course import PART_KEYS, PartWeights
from services.part_weights import (
    distribute_evenly,
    reset_all,
    validate_part_weights,
    zero_question,
)


# ── Value object ─────────────────────────────────────────────


class TestPartWeights:
    def test_missing_keys_filled_with_default(self):
        weights = PartWeights(weights={"Ia": 5})
        assert len(weights.weights) == 20
        assert weights.get("I", "a") == 5
        assert weights.get("V", "d") == 2.5

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            PartWeights(weights={"VIa": 1})

    def test_uniform_totals_fifty(self):
        assert PartWeights.uniform().total == 50

    def test_with_updates_returns_new_instance(self):
        weights = PartWeights.uniform()
        updated = weights.with_updates({"Ib": 0})
        assert weights.get("I", "b") == 2.5
        assert updated.get("I", "b") == 0
        assert not updated.is_part_enabled("I", "b")

    def test_accepts_camel_and_snake_payloads(self):
        assert PartWeights.model_validate({"weights": {"IIc": 4}}).get("II", "c") == 4


# ── Editing helpers ──────────────────────────────────────────


class TestEditingHelpers:
    def test_distribute_evenly(self):
        weights = distribute_evenly(PartWeights.uniform(), "III", 12)
        assert [weights.get("III", p) for p in "abcd"] == [3, 3, 3, 3]
        assert weights.question_total("III") == 12

    def test_zero_question(self):
        weights = zero_question(PartWeights.uniform(), "V")
        assert weights.question_total("V") == 0
        assert weights.total == 40

    def test_unknown_question_rejected(self):
        with pytest.raises(ConfigurationError):
            zero_question(PartWeights.uniform(), "VI")

    def test_reset_all(self, settings):
        assert reset_all(settings) == PartWeights.uniform()


# ── Validation ───────────────────────────────────────────────


class TestValidation:
    def test_exactly_fifty_accepted(self, settings):
        validate_part_weights(PartWeights.uniform(), settings=settings)

    def test_within_tolerance_accepted(self, settings):
        weights = PartWeights.uniform().with_updates({"Ia": 2.505})
        validate_part_weights(weights, settings=settings)

    def test_over_fifty_rejected_with_excess(self, settings):
        weights = PartWeights.uniform().with_updates({"Ia": 4.5})
        with pytest.raises(PartWeightSumError) as exc_info:
            validate_part_weights(weights, component_name="CA1", settings=settings)
        assert exc_info.value.excess == 2
        assert "must not exceed 50" in exc_info.value.user_message
        assert exc_info.value.component_name == "CA1"

    def test_under_fifty_accepted_silently(self, settings):
        validate_part_weights(PartWeights.uniform(1.0), settings=settings)

    def test_negative_rejected(self, settings):
        weights = PartWeights.uniform().with_updates({"IId": -1})
        with pytest.raises(NegativePartWeightError) as exc_info:
            validate_part_weights(weights, settings=settings)
        assert exc_info.value.part_key == "IId"


# ── Service ──────────────────────────────────────────────────


class TestPartWeightConfigService:
    def test_unconfigured_component_blocks_entry(self, config_service):
        assert config_service.requires_configuration("c1", "CA1")
        with pytest.raises(ConfigurationRequiredError):
            config_service.require_part_weights("c1", "CA1")

    @pytest.mark.asyncio
    async def test_first_save_needs_no_confirmation(self, config_service):
        config = await config_service.save("c1", "UG", "ca1", PartWeights.uniform())
        assert config.is_configured
        assert config.component_name == "CA1"
        assert config_service.require_part_weights("c1", "CA1") == PartWeights.uniform()
        assert config_service.reconfigure_warning("c1", "CA1") is not None

    @pytest.mark.asyncio
    async def test_invalid_weights_write_nothing(self, config_service):
        with pytest.raises(PartWeightSumError):
            await config_service.save(
                "c1", "UG", "CA1", PartWeights.uniform().with_updates({"Ia": 10})
            )
        assert config_service.load("c1", "CA1") is None

    @pytest.mark.asyncio
    async def test_non_ca_component_rejected(self, config_service):
        with pytest.raises(ConfigurationError):
            await config_service.save("c1", "UG-Integrated", "LAB", PartWeights.uniform())

    @pytest.mark.asyncio
    async def test_component_outside_scheme_rejected(self, config_service):
        with pytest.raises(ConfigurationError) as exc_info:
            await config_service.save("c1", "PG", "CA3", PartWeights.uniform())
        assert "PG" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_reconfigure_requires_confirmation(self, config_service):
        calls = []
        config_service.add_reset_hook(lambda course_id, name: calls.append((course_id, name)))
        await config_service.save("c1", "UG", "CA2", PartWeights.uniform())

        new_weights = PartWeights.uniform(2.0)
        with pytest.raises(ReconfigurationConfirmationRequired):
            await config_service.save("c1", "UG", "CA2", new_weights)
        assert calls == []
        assert config_service.require_part_weights("c1", "CA2") == PartWeights.uniform()

        await config_service.save("c1", "UG", "CA2", new_weights, confirm_reset=True)
        assert calls == [("c1", "CA2")]
        assert config_service.require_part_weights("c1", "CA2") == new_weights

    @pytest.mark.asyncio
    async def test_async_reset_hook_awaited(self, config_service):
        calls = []

        async def hook(course_id, name):
            calls.append(name)

        config_service.add_reset_hook(hook)
        await config_service.save("c1", "UG", "CA1", PartWeights.uniform())
        await config_service.save("c1", "UG", "CA1", PartWeights.uniform(), confirm_reset=True)
        assert calls == ["CA1"]

    def test_every_part_key_is_known(self):
        assert PART_KEYS[0] == "Ia" and PART_KEYS[-1] == "Vd"
