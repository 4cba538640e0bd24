"""
Rolling capture buffers for behavioral telemetry.

Owned by the capture side (dashboard session or SDK), not by the scoring
core. Each stream is a bounded ring buffer; the verifier only ever receives
an immutable snapshot via snapshot().
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable

from backend_aether.biometrics.models import (
    BiometricSample,
    KeystrokePattern,
    MouseMovement,
    TransactionTiming,
)

DEFAULT_MAX_ENTRIES = 100

# Interaction counts at which each capture signal saturates
KEYSTROKES_FOR_FULL_CONFIDENCE = 20
MOVES_FOR_FULL_CONFIDENCE = 50
ELAPSED_MS_FOR_FULL_CONFIDENCE = 5000.0
READY_CONFIDENCE = 0.7


class BehaviorCaptureBuffer:
    """
    Bounded buffers of keystrokes, mouse movements and transaction timings.

    Mouse velocity (px/s) and acceleration (px/s^2) are derived from
    consecutive positions as they are recorded.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock_ms: Callable[[], float] | None = None,
    ) -> None:
        self._clock_ms = clock_ms or (lambda: time.time() * 1000.0)
        self._keystrokes: deque[KeystrokePattern] = deque(maxlen=max_entries)
        self._mouse: deque[MouseMovement] = deque(maxlen=max_entries)
        self._timings: deque[TransactionTiming] = deque(maxlen=max_entries)
        self._started_at_ms = self._clock_ms()

    def record_keystroke(self, key: str, press_time: float, release_time: float) -> None:
        self._keystrokes.append(KeystrokePattern(key, press_time, release_time))

    def record_mouse(self, x: float, y: float, timestamp: float) -> MouseMovement:
        velocity = 0.0
        acceleration = 0.0
        if self._mouse:
            prev = self._mouse[-1]
            dt_sec = (timestamp - prev.timestamp) / 1000.0
            if dt_sec > 0:
                velocity = math.hypot(x - prev.x, y - prev.y) / dt_sec
                acceleration = (velocity - prev.velocity) / dt_sec
        movement = MouseMovement(x, y, timestamp, velocity, acceleration)
        self._mouse.append(movement)
        return movement

    def record_transaction(self, start_time: float, confirm_time: float, total_duration: float) -> None:
        self._timings.append(TransactionTiming(start_time, confirm_time, total_duration))

    def capture_confidence(self) -> float:
        """How much telemetry has been gathered, in [0, 1]; not a similarity score."""
        keystroke = min(len(self._keystrokes) / KEYSTROKES_FOR_FULL_CONFIDENCE, 1.0)
        mouse = min(len(self._mouse) / MOVES_FOR_FULL_CONFIDENCE, 1.0)
        elapsed = min((self._clock_ms() - self._started_at_ms) / ELAPSED_MS_FOR_FULL_CONFIDENCE, 1.0)
        return (keystroke + mouse + max(elapsed, 0.0)) / 3

    @property
    def ready(self) -> bool:
        return self.capture_confidence() >= READY_CONFIDENCE

    def snapshot(self) -> BiometricSample:
        return BiometricSample.of(self._keystrokes, self._mouse, self._timings)

    def clear(self) -> None:
        self._keystrokes.clear()
        self._mouse.clear()
        self._timings.clear()
        self._started_at_ms = self._clock_ms()
