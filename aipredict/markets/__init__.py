# Prediction models and the LLM-driven generator/resolver services
from .models import (
    PredictionStatus,
    PredictionDraft,
    Prediction,
    UserStats,
    OutcomeDecision,
    PublishedPrediction,
    ResolutionResult,
)

__all__ = [
    "PredictionStatus",
    "PredictionDraft",
    "Prediction",
    "UserStats",
    "OutcomeDecision",
    "PublishedPrediction",
    "ResolutionResult",
]
