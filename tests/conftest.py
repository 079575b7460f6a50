"""Shared pytest fixtures for the scoring engine tests.

Provides:
- ``settings``: Default settings, independent of any local .env
- ``gaps``: Fresh ConfigGapCollector per test
- ``registry``: ScaleRegistry over the built-in tables, reporting into ``gaps``
- ``config_service``: PartWeightConfigService over an in-memory store
- ``score_store``: Fresh InMemoryScoreStore per test
- ``writer``: DebouncedScoreWriter over ``score_store`` with a short delay
"""

from __future__ import annotations

import pytest

from config.scale_registry import ScaleRegistry
from config.settings import Settings
from services.config_audit import ConfigGapCollector
from services.part_weights import InMemoryComponentConfigStore, PartWeightConfigService
from services.score_store import InMemoryScoreStore
from services.score_writer import DebouncedScoreWriter


@pytest.fixture
def settings() -> Settings:
    """Built-in defaults; ignores any .env in the working directory."""
    return Settings(_env_file=None)


@pytest.fixture
def gaps() -> ConfigGapCollector:
    return ConfigGapCollector()


@pytest.fixture
def registry(gaps: ConfigGapCollector) -> ScaleRegistry:
    return ScaleRegistry(gaps=gaps)


@pytest.fixture
def config_service(registry: ScaleRegistry, settings: Settings) -> PartWeightConfigService:
    return PartWeightConfigService(InMemoryComponentConfigStore(), registry, settings)


@pytest.fixture
def score_store(settings) -> InMemoryScoreStore:
    return InMemoryScoreStore(settings=settings)


@pytest.fixture
def writer(score_store: InMemoryScoreStore, settings: Settings) -> DebouncedScoreWriter:
    return DebouncedScoreWriter(score_store, delay_seconds=0.01, settings=settings)
