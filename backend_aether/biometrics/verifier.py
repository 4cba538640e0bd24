"""
Behavioral biometric similarity verifier.

Scores a BiometricSample on three normalized sub-scores (keystroke rhythm,
mouse smoothness, transaction timing efficiency), combines them with fixed
weights and compares against a similarity threshold. Insufficient samples
fail closed: the verdict is False, never an exception. Also produces the
SHA-256 audit hash stored alongside accepted transfers.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from backend_aether.aether_logging import get_logger
from backend_aether.biometrics.models import (
    BiometricSample,
    KeystrokePattern,
    MouseMovement,
    TransactionTiming,
)

logger = get_logger(__name__)

SIMILARITY_THRESHOLD = 0.85
MIN_PATTERNS_REQUIRED = 5
MIN_TIMING_SAMPLES = 1

FIELD_SEPARATOR = ":"
RECORD_SEPARATOR = "|"
STREAM_SEPARATOR = ";"


@dataclass(frozen=True)
class BiometricConfig:
    """Thresholds, weights and decay constants for the similarity verifier."""

    similarity_threshold: float = SIMILARITY_THRESHOLD
    min_patterns_required: int = MIN_PATTERNS_REQUIRED
    min_timing_samples: int = MIN_TIMING_SAMPLES

    keystroke_weight: float = 0.4
    mouse_weight: float = 0.3
    timing_weight: float = 0.3

    # Reference rhythm (ms) and exponential decay scales
    interval_center_ms: float = 200.0
    interval_scale_ms: float = 200.0
    hold_center_ms: float = 100.0
    hold_scale_ms: float = 100.0
    velocity_scale: float = 1000.0
    acceleration_scale: float = 500.0
    efficiency_center: float = 0.7
    efficiency_scale: float = 0.3


@dataclass(frozen=True)
class BiometricScore:
    """Sub-scores and verdict for one sample; all scores in [0, 1]."""

    keystroke: float
    mouse: float
    timing: float
    aggregate: float
    verified: bool
    sufficient: bool
    """False when a stream was below its minimum sample count."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "keystroke": self.keystroke,
            "mouse": self.mouse,
            "timing": self.timing,
            "aggregate": self.aggregate,
            "verified": self.verified,
            "sufficient": self.sufficient,
        }


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _fmt(value: Any) -> str:
    """Render a field for hashing; integral floats print like ints (100.0 -> 100)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _canonical(records: Iterable[Sequence[Any]]) -> str:
    return RECORD_SEPARATOR.join(
        FIELD_SEPARATOR.join(_fmt(v) for v in record) for record in records
    )


class BiometricVerifier:
    """Stateless verifier; safe to share between concurrent requests."""

    def __init__(self, config: BiometricConfig | None = None) -> None:
        self.config = config or BiometricConfig()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_sufficient(self, sample: BiometricSample | None) -> bool:
        """True if every stream reaches its minimum sample count."""
        if sample is None:
            return False
        cfg = self.config
        return (
            len(sample.keystroke_patterns or ()) >= cfg.min_patterns_required
            and len(sample.mouse_movements or ()) >= cfg.min_patterns_required
            and len(sample.transaction_timing or ()) >= cfg.min_timing_samples
        )

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    def keystroke_score(self, patterns: Sequence[KeystrokePattern]) -> float:
        """
        Rhythm consistency over consecutive keystroke pairs.

        Interval is press[i] - release[i-1], hold is release[i] - press[i];
        each is scored by exponential decay around its reference value.
        """
        cfg = self.config
        if len(patterns) < cfg.min_patterns_required:
            return 0.0
        pair_scores: list[float] = []
        for prev, cur in zip(patterns, patterns[1:]):
            interval = cur.press_time - prev.release_time
            hold = cur.release_time - cur.press_time
            interval_score = math.exp(-abs(interval - cfg.interval_center_ms) / cfg.interval_scale_ms)
            hold_score = math.exp(-abs(hold - cfg.hold_center_ms) / cfg.hold_scale_ms)
            pair_scores.append((interval_score + hold_score) / 2)
        return _clamp_unit(_mean(pair_scores))

    def mouse_score(self, movements: Sequence[MouseMovement]) -> float:
        """Smoothness: small velocity and acceleration changes between samples score high."""
        cfg = self.config
        if len(movements) < cfg.min_patterns_required:
            return 0.0
        pair_scores: list[float] = []
        for prev, cur in zip(movements, movements[1:]):
            velocity_score = math.exp(-abs(cur.velocity - prev.velocity) / cfg.velocity_scale)
            accel_score = math.exp(-abs(cur.acceleration - prev.acceleration) / cfg.acceleration_scale)
            pair_scores.append((velocity_score + accel_score) / 2)
        return _clamp_unit(_mean(pair_scores))

    def timing_score(self, timings: Sequence[TransactionTiming]) -> float:
        """Penalize transactions confirmed much faster or slower than the reference efficiency."""
        cfg = self.config
        if len(timings) < cfg.min_timing_samples:
            return 0.0
        scores = [
            math.exp(-abs(t.efficiency - cfg.efficiency_center) / cfg.efficiency_scale)
            for t in timings
        ]
        return _clamp_unit(_mean(scores))

    # ------------------------------------------------------------------
    # Verdict
    # ------------------------------------------------------------------

    def score(self, sample: BiometricSample | None) -> BiometricScore:
        """Compute sub-scores, weighted aggregate and verdict for a sample."""
        if not self.is_sufficient(sample):
            logger.info(
                "biometric_sample_insufficient",
                keystrokes=len(sample.keystroke_patterns or ()) if sample else 0,
                mouse_movements=len(sample.mouse_movements or ()) if sample else 0,
                timings=len(sample.transaction_timing or ()) if sample else 0,
            )
            return BiometricScore(0.0, 0.0, 0.0, 0.0, verified=False, sufficient=False)

        cfg = self.config
        keystroke = self.keystroke_score(sample.keystroke_patterns)
        mouse = self.mouse_score(sample.mouse_movements)
        timing = self.timing_score(sample.transaction_timing)
        aggregate = (
            keystroke * cfg.keystroke_weight
            + mouse * cfg.mouse_weight
            + timing * cfg.timing_weight
        )
        verified = aggregate >= cfg.similarity_threshold
        logger.debug(
            "biometric_scored",
            keystroke=round(keystroke, 4),
            mouse=round(mouse, 4),
            timing=round(timing, 4),
            aggregate=round(aggregate, 4),
            verified=verified,
        )
        return BiometricScore(keystroke, mouse, timing, aggregate, verified=verified, sufficient=True)

    def verify(self, sample: BiometricSample | None) -> bool:
        """True iff the sample is sufficient and its aggregate similarity reaches the threshold."""
        return self.score(sample).verified

    # ------------------------------------------------------------------
    # Audit hash
    # ------------------------------------------------------------------

    def canonical_string(self, sample: BiometricSample) -> str:
        """Labelled, delimited serialization of all three streams in capture order."""
        keystrokes = _canonical(
            (k.key, k.press_time, k.release_time) for k in sample.keystroke_patterns
        )
        mouse = _canonical(
            (m.x, m.y, m.timestamp, m.velocity, m.acceleration) for m in sample.mouse_movements
        )
        timing = _canonical(
            (t.start_time, t.confirm_time, t.total_duration) for t in sample.transaction_timing
        )
        return STREAM_SEPARATOR.join(
            (f"keystroke={keystrokes}", f"mouse={mouse}", f"timing={timing}")
        )

    def hash(self, sample: BiometricSample) -> bytes:
        """32-byte SHA-256 digest of the canonical sample; audit/storage only."""
        return hashlib.sha256(self.canonical_string(sample).encode("utf-8")).digest()

    def hash_hex(self, sample: BiometricSample) -> str:
        return self.hash(sample).hex()
