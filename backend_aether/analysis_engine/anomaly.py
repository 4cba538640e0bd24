"""
Anomaly detection for transfers.

Canonical detector is rule-based and self-contained per call: an amount
rule, an off-hours timing rule and a combined behavioral rule, emitted in
that fixed order. Each anomaly carries a severity in [0, 1] and a
human-readable detail string. A z-score detector over a feature history is
kept as a secondary variant; both are exposed through the tagged
AnomalyResult (AnomalyFlags | AnomalyScore).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence, Union

import numpy as np

from backend_aether.aether_logging import get_logger
from backend_aether.analysis_engine.features import TransactionFeatures

logger = get_logger(__name__)

ANOMALY_THRESHOLD = 0.85
ZSCORE_THRESHOLD = 3.0


class AnomalyType(str, Enum):
    AMOUNT = "amount"
    TIMING = "timing"
    BEHAVIORAL = "behavioral"


@dataclass(frozen=True)
class Anomaly:
    """Single rule violation for one transfer."""

    type: AnomalyType
    severity: float
    """In [0, 1]; higher is more severe."""
    details: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "severity": self.severity, "details": self.details}


@dataclass(frozen=True)
class AnomalyConfig:
    """
    Thresholds for the anomaly rules.

    Multipliers are relative to average transaction size; confidence and
    trust cut-offs are on the [0, 1] scale.
    """

    anomaly_threshold: float = ANOMALY_THRESHOLD

    # Amount rule
    amount_multiplier: float = 2.0
    severity_deviation_divisor: float = 5.0
    low_confidence_severity_boost: float = 0.2

    # Timing rule: hours before night_end or after night_start
    night_end_hour: int = 6
    night_start_hour: int = 22
    timing_severity: float = 0.7

    # Behavioral rule
    behavioral_amount_multiplier: float = 3.0
    behavioral_amount_weight: float = 0.4
    behavioral_confidence_weight: float = 0.3
    behavioral_trust_weight: float = 0.3
    behavioral_severity: float = 0.9

    low_confidence_below: float = 0.7
    low_trust_below: float = 0.5


def _check_amount(
    current: TransactionFeatures,
    historical: TransactionFeatures,
    config: AnomalyConfig,
) -> Anomaly | None:
    """Flag transfers far above the account's average size; needs prior volume."""
    if not current.historical_volume > 0:
        return None
    if not current.amount > current.avg_transaction_size * config.amount_multiplier:
        return None
    if current.avg_transaction_size > 0:
        deviation = current.amount / current.avg_transaction_size
    else:
        deviation = math.inf
    severity = min(1.0, deviation / config.severity_deviation_divisor)
    if current.biometric_confidence < config.low_confidence_below:
        severity = min(1.0, severity + config.low_confidence_severity_boost)
    return Anomaly(AnomalyType.AMOUNT, severity, "Unusual transaction amount detected")


def _check_timing(
    current: TransactionFeatures,
    historical: TransactionFeatures,
    config: AnomalyConfig,
) -> Anomaly | None:
    """Flag transfers in the night window (before 06:00 or from 23:00)."""
    hour = current.time_of_day
    if hour < config.night_end_hour or hour > config.night_start_hour:
        return Anomaly(AnomalyType.TIMING, config.timing_severity, "Unusual transaction timing detected")
    return None


def behavioral_score(
    current: TransactionFeatures,
    historical: TransactionFeatures,
    config: AnomalyConfig,
) -> float:
    """Accumulated behavioral evidence in [0, 1]."""
    score = 0.0
    if current.amount > historical.avg_transaction_size * config.behavioral_amount_multiplier:
        score += config.behavioral_amount_weight
    if current.biometric_confidence < config.low_confidence_below:
        score += config.behavioral_confidence_weight
    if current.recipient_trust_score < config.low_trust_below:
        score += config.behavioral_trust_weight
    return score


def _check_behavioral(
    current: TransactionFeatures,
    historical: TransactionFeatures,
    config: AnomalyConfig,
) -> Anomaly | None:
    if behavioral_score(current, historical, config) > config.anomaly_threshold:
        return Anomaly(
            AnomalyType.BEHAVIORAL,
            config.behavioral_severity,
            "Unusual transaction behavior pattern detected",
        )
    return None


_RULES: tuple[Callable[[TransactionFeatures, TransactionFeatures, AnomalyConfig], Anomaly | None], ...] = (
    _check_amount,
    _check_timing,
    _check_behavioral,
)


class AnomalyDetector:
    """Rule-based detector; pure, no retained history."""

    def __init__(self, config: AnomalyConfig | None = None) -> None:
        self.config = config or AnomalyConfig()

    def detect(self, current: TransactionFeatures, historical: TransactionFeatures) -> list[Anomaly]:
        """
        Run the amount, timing and behavioral rules in that order.

        Returns only the anomalies that triggered; an empty list means none.
        """
        anomalies: list[Anomaly] = []
        for rule in _RULES:
            anomaly = rule(current, historical, self.config)
            if anomaly is not None:
                anomalies.append(anomaly)
        if anomalies:
            logger.info(
                "anomalies_detected",
                anomaly_types=[a.type.value for a in anomalies],
                max_severity=aggregate_anomaly_score(anomalies),
            )
        return anomalies

    def detect_result(self, current: TransactionFeatures, historical: TransactionFeatures) -> AnomalyFlags:
        return AnomalyFlags(tuple(self.detect(current, historical)))


def aggregate_anomaly_score(anomalies: Sequence[Anomaly]) -> float:
    """Highest severity among anomalies; 0 when there are none."""
    return max((a.severity for a in anomalies), default=0.0)


class ZScoreAnomalyDetector:
    """
    Statistical variant: max absolute z-score of amount, volume and average size
    against a feature history, scaled by the z threshold and capped at 1.
    """

    def __init__(self, z_threshold: float = ZSCORE_THRESHOLD) -> None:
        self.z_threshold = z_threshold

    @staticmethod
    def _z(value: float, history: np.ndarray) -> float:
        std = float(np.std(history, ddof=1))
        if std == 0:
            return 0.0
        return abs(value - float(np.mean(history))) / std

    def score(self, features: TransactionFeatures, history: Sequence[TransactionFeatures]) -> float:
        """Anomaly score in [0, 1]; 0 when fewer than two history entries."""
        if len(history) < 2:
            return 0.0
        columns = np.array(
            [[h.amount, h.historical_volume, h.avg_transaction_size] for h in history],
            dtype=np.float64,
        )
        current = (features.amount, features.historical_volume, features.avg_transaction_size)
        max_z = max(self._z(value, columns[:, i]) for i, value in enumerate(current))
        return min(max_z / self.z_threshold, 1.0)

    def score_result(self, features: TransactionFeatures, history: Sequence[TransactionFeatures]) -> AnomalyScore:
        return AnomalyScore(self.score(features, history))


@dataclass(frozen=True)
class AnomalyFlags:
    anomalies: tuple[Anomaly, ...]

    @property
    def score(self) -> float:
        return aggregate_anomaly_score(self.anomalies)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "flags", "score": self.score, "anomalies": [a.to_dict() for a in self.anomalies]}


@dataclass(frozen=True)
class AnomalyScore:
    value: float

    @property
    def score(self) -> float:
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "score", "score": self.value}


AnomalyResult = Union[AnomalyFlags, AnomalyScore]
