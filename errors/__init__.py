"""Custom exception hierarchy for the scoring engine."""

from errors.exceptions import (
    ConfigurationError,
    ConfigurationRequiredError,
    LabSessionLimitError,
    NegativePartWeightError,
    PartWeightSumError,
    PersistenceError,
    ReconfigurationConfirmationRequired,
    ScoreEntryDisabledError,
    ScoringError,
)

__all__ = [
    "ConfigurationError",
    "ConfigurationRequiredError",
    "LabSessionLimitError",
    "NegativePartWeightError",
    "PartWeightSumError",
    "PersistenceError",
    "ReconfigurationConfirmationRequired",
    "ScoreEntryDisabledError",
    "ScoringError",
]
