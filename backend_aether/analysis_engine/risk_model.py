"""
Heuristic transaction risk model.

Weighted linear combination of log-scaled amount and volume, recipient
distrust and a timing-risk term, followed by an additive penalty when
biometric confidence is low. Output is always clamped to [0, 1]; low
biometric confidence can only raise the score. NaN inputs propagate to a
NaN score rather than raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from backend_aether.aether_logging import get_logger
from backend_aether.analysis_engine.features import TransactionFeatures

logger = get_logger(__name__)

MIN_CONFIDENCE = 0.3
MAX_RISK_SCORE = 1.0

# log10 ceilings: transfers below 10^10, daily volume below 10^12
AMOUNT_LOG_CEILING = 10.0
VOLUME_LOG_CEILING = 12.0

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6
WEEKEND_DAYS = (0, 6)


@dataclass(frozen=True)
class RiskWeights:
    """Linear weights; must sum to 1.0. Biometric weight is applied via the confidence penalty."""

    amount: float = 0.3
    volume: float = 0.2
    trust: float = 0.2
    biometric: float = 0.2
    timing: float = 0.1

    def __post_init__(self) -> None:
        total = self.amount + self.volume + self.trust + self.biometric + self.timing
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"risk weights must sum to 1.0, got {total}")


@dataclass(frozen=True)
class RiskModelConfig:
    weights: RiskWeights = field(default_factory=RiskWeights)
    min_confidence: float = MIN_CONFIDENCE
    max_risk_score: float = MAX_RISK_SCORE

    night_hour_risk: float = 0.8
    day_hour_risk: float = 0.2
    weekend_risk: float = 0.7
    weekday_risk: float = 0.3


def _clip(value: float, low: float, high: float) -> float:
    """Clamp to [low, high]; NaN passes through."""
    if math.isnan(value):
        return value
    return max(low, min(high, value))


def normalize_log(value: float, ceiling: float) -> float:
    """log10(value)/ceiling clipped to [0, 1]; 0 for non-positive values."""
    if value <= 0:
        return 0.0
    return _clip(math.log10(value) / ceiling, 0.0, 1.0)


class RiskScoringEngine:
    """Stateless risk model; predict() is pure and idempotent."""

    def __init__(self, config: RiskModelConfig | None = None) -> None:
        self.config = config or RiskModelConfig()

    def timing_risk(self, hour: int, day: int) -> float:
        """Average of hour risk (night is riskier) and day risk (weekend is riskier)."""
        cfg = self.config
        hour_risk = cfg.night_hour_risk if (hour < NIGHT_END_HOUR or hour > NIGHT_START_HOUR) else cfg.day_hour_risk
        day_risk = cfg.weekend_risk if day in WEEKEND_DAYS else cfg.weekday_risk
        return (hour_risk + day_risk) / 2

    def base_score(self, features: TransactionFeatures) -> float:
        """Weighted score before the biometric-confidence adjustment."""
        w = self.config.weights
        amount_n = normalize_log(features.amount, AMOUNT_LOG_CEILING)
        volume_n = normalize_log(features.historical_volume, VOLUME_LOG_CEILING)
        score = (
            w.amount * amount_n
            + w.volume * volume_n
            + w.trust * (1 - features.recipient_trust_score)
            + w.timing * self.timing_risk(features.time_of_day, features.day_of_week)
        )
        return _clip(score, 0.0, self.config.max_risk_score)

    def predict(self, features: TransactionFeatures) -> float:
        """
        Risk score in [0, 1] for a transfer.

        If biometric confidence is below min_confidence, (1 - confidence)
        is added before the final clamp.
        """
        score = self.base_score(features)
        confidence = features.biometric_confidence
        if confidence < self.config.min_confidence:
            score += 1 - confidence
        score = _clip(score, 0.0, self.config.max_risk_score)
        logger.debug(
            "risk_scored",
            risk_score=score,
            biometric_confidence=confidence,
            low_confidence=confidence < self.config.min_confidence,
        )
        return score
