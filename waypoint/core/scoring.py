"""Frecency scoring: recency decay, frequency, favorites, context and path weights."""

import math
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from .models import utcnow

if TYPE_CHECKING:
    from .models import PathRecord
    from .predictor import ContextPredictor


# Default time constant of the recency decay: one week
BASE_HALF_LIFE_SECONDS = 3600 * 24 * 7

# Additive bonus for favorites; dominates ordinary frequency * decay products
FAVORITE_BONUS = 1000.0

MIN_RECENCY_WEIGHT = 0.1


class PathWeight(BaseModel):
    """Multiplier applied to every record whose path starts with ``prefix``."""
    prefix: str
    multiplier: float = 1.0

    @field_validator('multiplier')
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("multiplier must be positive")
        return v


class ScoringWeights(BaseModel):
    """User-tunable knobs of the scoring model."""
    weight_frequency: float = 1.0
    weight_recency: float = 1.0
    weight_prediction: float = 1.0
    custom_path_weights: List[PathWeight] = Field(default_factory=list)

    @field_validator('weight_frequency', 'weight_recency', 'weight_prediction')
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if v < 0:
            raise ValueError("weights must not be negative")
        return v

    @property
    def half_life(self) -> float:
        """Decay time constant; ``weight_recency`` > 1 decays faster."""
        return BASE_HALF_LIFE_SECONDS / max(MIN_RECENCY_WEIGHT, self.weight_recency)


def recency_decay(last_visited_at: datetime, weights: ScoringWeights, now: Optional[datetime] = None) -> float:
    """exp(-elapsed / half_life); visits in the future count as 'just now'."""
    if now is None:
        now = utcnow()
    elapsed = max(0.0, (now - last_visited_at).total_seconds())
    return math.exp(-elapsed / weights.half_life)


def frecency_score(
    record: "PathRecord",
    weights: ScoringWeights,
    predictor: Optional["ContextPredictor"] = None,
    now: Optional[datetime] = None
) -> float:
    """
    Score a record; higher is better.

    score = visit_count * weight_frequency * decay
            + FAVORITE_BONUS (favorites only)
            + context bonus * weight_prediction
    then multiplied by every matching custom path weight, in order.

    Args:
        record: The record to score
        weights: Scoring configuration
        predictor: Optional context predictor supplying the foreground-app bonus
        now: Reference time (defaults to the current time)

    Returns:
        The blended score
    """
    if now is None:
        now = utcnow()

    decay = recency_decay(record.last_visited_at, weights, now)
    score = record.visit_count * weights.weight_frequency * decay

    if record.is_favorite:
        score += FAVORITE_BONUS

    if predictor is not None:
        score += predictor.bonus(record, now=now) * weights.weight_prediction

    for path_weight in weights.custom_path_weights:
        if record.path.startswith(path_weight.prefix):
            score *= path_weight.multiplier

    return score
