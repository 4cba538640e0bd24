"""
Synthetic behavioral samples for demos, load tests and unit tests.

Normal behavior types with a steady rhythm close to the verifier's
reference values; anomalous behavior alternates between extremes (very
fast / very slow typing, jerky mouse, rushed or stalled confirmations).
Pass a seeded random.Random for reproducible output.
"""

from __future__ import annotations

import random

from backend_aether.biometrics.models import (
    BiometricSample,
    KeystrokePattern,
    MouseMovement,
    TransactionTiming,
)

NORMAL_HOLD_MS = 100.0
NORMAL_GAP_MS = 200.0
NORMAL_MOUSE_SPEED = 500.0
NORMAL_TRANSACTION_MS = 2000.0
NORMAL_EFFICIENCY = 0.7

KEYS = "asdfjkl;"
DEFAULT_COUNT = 10


def _jitter(rng: random.Random, amount: float) -> float:
    return rng.uniform(-amount, amount)


def generate_normal_behavior(
    rng: random.Random | None = None,
    *,
    count: int = DEFAULT_COUNT,
    start_ms: float = 0.0,
) -> BiometricSample:
    rng = rng or random.Random()
    keystrokes: list[KeystrokePattern] = []
    t = start_ms
    for _ in range(count):
        hold = NORMAL_HOLD_MS + _jitter(rng, 10)
        keystrokes.append(KeystrokePattern(rng.choice(KEYS), t, t + hold))
        t += hold + NORMAL_GAP_MS + _jitter(rng, 20)

    movements: list[MouseMovement] = []
    t = start_ms
    x, y = 100.0, 100.0
    for _ in range(count):
        velocity = NORMAL_MOUSE_SPEED + _jitter(rng, 50)
        movements.append(MouseMovement(x, y, t, velocity, _jitter(rng, 25)))
        x += velocity * 0.016
        y += velocity * 0.008
        t += 16.0

    timings = []
    for _ in range(3):
        duration = NORMAL_TRANSACTION_MS + _jitter(rng, 200)
        efficiency = NORMAL_EFFICIENCY + _jitter(rng, 0.02)
        timings.append(TransactionTiming(0.0, duration * efficiency, duration))

    return BiometricSample.of(keystrokes, movements, timings)


def generate_anomalous_behavior(
    rng: random.Random | None = None,
    *,
    count: int = DEFAULT_COUNT,
    start_ms: float = 0.0,
) -> BiometricSample:
    rng = rng or random.Random()
    keystrokes: list[KeystrokePattern] = []
    t = start_ms
    for i in range(count):
        slow = i % 2 == 0
        hold = NORMAL_HOLD_MS * 5 if slow else NORMAL_HOLD_MS / 5
        keystrokes.append(KeystrokePattern(rng.choice(KEYS), t, t + hold))
        t += hold + (NORMAL_GAP_MS * 4 if slow else NORMAL_GAP_MS / 4)

    movements: list[MouseMovement] = []
    t = start_ms
    for i in range(count):
        fast = i % 2 == 0
        velocity = NORMAL_MOUSE_SPEED * 6 if fast else NORMAL_MOUSE_SPEED / 5
        acceleration = 2000.0 if fast else -2000.0
        movements.append(MouseMovement(rng.uniform(0, 1920), rng.uniform(0, 1080), t, velocity, acceleration))
        t += rng.uniform(5.0, 200.0)

    timings = []
    for i in range(3):
        duration = NORMAL_TRANSACTION_MS
        efficiency = 0.05 if i % 2 == 0 else 0.99
        timings.append(TransactionTiming(0.0, duration * efficiency, duration))

    return BiometricSample.of(keystrokes, movements, timings)
