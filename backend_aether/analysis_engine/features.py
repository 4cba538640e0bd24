"""
Transaction feature vectors and account history summaries.

TransactionFeatures is the immutable input to the risk model and anomaly
detector. TransactionHistory summarizes an account's recent on-chain
transfers (supplied by the history collaborator). No scoring logic here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from backend_aether.core.exceptions import InvalidFeatures

# Trust assumed for recipients without an on-chain profile
DEFAULT_TRUST_SCORE = 0.5


def js_day_of_week(moment: datetime) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday."""
    return (moment.weekday() + 1) % 7


@dataclass(frozen=True)
class TransactionFeatures:
    """
    Feature vector for one assessed transfer.

    Built fresh per assessment and never mutated. The plain constructor does
    not validate (NaN and out-of-range values flow through the scoring
    math); use build() at trust boundaries.
    """

    amount: float
    historical_volume: float
    avg_transaction_size: float
    recipient_trust_score: float
    biometric_confidence: float
    time_of_day: int
    """Hour 0..23."""
    day_of_week: int
    """0 = Sunday .. 6 = Saturday."""

    @classmethod
    def build(
        cls,
        *,
        amount: float,
        historical_volume: float,
        avg_transaction_size: float,
        recipient_trust_score: float,
        biometric_confidence: float,
        time_of_day: int,
        day_of_week: int,
    ) -> TransactionFeatures:
        """Validated constructor; raises InvalidFeatures for out-of-range values."""
        checks = (
            ("amount", amount, amount >= 0),
            ("historical_volume", historical_volume, historical_volume >= 0),
            ("avg_transaction_size", avg_transaction_size, avg_transaction_size >= 0),
            ("recipient_trust_score", recipient_trust_score, 0.0 <= recipient_trust_score <= 1.0),
            ("biometric_confidence", biometric_confidence, 0.0 <= biometric_confidence <= 1.0),
            ("time_of_day", time_of_day, 0 <= time_of_day <= 23),
            ("day_of_week", day_of_week, 0 <= day_of_week <= 6),
        )
        for name, value, ok in checks:
            if not ok:
                raise InvalidFeatures(f"{name} out of range: {value!r}")
        return cls(
            amount=float(amount),
            historical_volume=float(historical_volume),
            avg_transaction_size=float(avg_transaction_size),
            recipient_trust_score=float(recipient_trust_score),
            biometric_confidence=float(biometric_confidence),
            time_of_day=int(time_of_day),
            day_of_week=int(day_of_week),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "historical_volume": self.historical_volume,
            "avg_transaction_size": self.avg_transaction_size,
            "recipient_trust_score": self.recipient_trust_score,
            "biometric_confidence": self.biometric_confidence,
            "time_of_day": self.time_of_day,
            "day_of_week": self.day_of_week,
        }


@dataclass(frozen=True)
class TransactionPattern:
    amount: float
    timestamp: int | None = None
    """Chain timestamp in microseconds, when known."""
    sender: str = ""
    receiver: str = ""


@dataclass(frozen=True)
class TransactionHistory:
    """Recent transfers of one account, oldest first as returned by the chain."""

    address: str
    patterns: tuple[TransactionPattern, ...] = field(default_factory=tuple)

    @property
    def total_volume(self) -> float:
        return sum(p.amount for p in self.patterns)

    @property
    def avg_amount(self) -> float:
        if not self.patterns:
            return 0.0
        return self.total_volume / len(self.patterns)

    @property
    def latest_amount(self) -> float:
        return self.patterns[-1].amount if self.patterns else 0.0

    def as_features(
        self,
        *,
        now: datetime | None = None,
        recipient_trust_score: float = DEFAULT_TRUST_SCORE,
        biometric_confidence: float = 1.0,
    ) -> TransactionFeatures:
        """
        Summarize the history as a feature vector: latest amount, total volume,
        average size. Trust and biometric confidence are placeholders unless given.
        """
        now = now or datetime.now(timezone.utc)
        return TransactionFeatures(
            amount=self.latest_amount,
            historical_volume=self.total_volume,
            avg_transaction_size=self.avg_amount,
            recipient_trust_score=recipient_trust_score,
            biometric_confidence=biometric_confidence,
            time_of_day=now.hour,
            day_of_week=js_day_of_week(now),
        )


def summarize_history(address: str, amounts: Iterable[float | tuple[float, int | None]]) -> TransactionHistory:
    """Build a TransactionHistory from plain amounts or (amount, timestamp) pairs."""
    patterns: list[TransactionPattern] = []
    for item in amounts:
        if isinstance(item, tuple):
            amount, ts = item
        else:
            amount, ts = item, None
        amount = float(amount)
        if math.isnan(amount):
            amount = 0.0
        patterns.append(TransactionPattern(amount=amount, timestamp=ts))
    return TransactionHistory(address=address, patterns=tuple(patterns))


def build_features(
    amount: float,
    history: TransactionHistory,
    recipient_trust_score: float,
    biometric_confidence: float,
    now: datetime | None = None,
) -> TransactionFeatures:
    """Feature vector for a new transfer of `amount` from the account described by `history`."""
    now = now or datetime.now(timezone.utc)
    return TransactionFeatures.build(
        amount=amount,
        historical_volume=history.total_volume,
        avg_transaction_size=history.avg_amount,
        recipient_trust_score=recipient_trust_score,
        biometric_confidence=biometric_confidence,
        time_of_day=now.hour,
        day_of_week=js_day_of_week(now),
    )
