"""
Data models for behavioral biometric samples.

A BiometricSample is a snapshot of three ordered streams captured by the UI:
keystroke press/release times, mouse movement dynamics and transaction
timing. Samples are request-scoped and immutable; the rolling capture
buffers live in biometrics.capture on the collaborator side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping


def _get(raw: Mapping[str, Any], camel: str, snake: str) -> Any:
    """Read a field by its camelCase (wire) or snake_case name."""
    if camel in raw:
        return raw[camel]
    return raw[snake]


@dataclass(frozen=True)
class KeystrokePattern:
    key: str
    press_time: float
    release_time: float

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> KeystrokePattern:
        return cls(
            key=str(raw["key"]),
            press_time=float(_get(raw, "pressTime", "press_time")),
            release_time=float(_get(raw, "releaseTime", "release_time")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "pressTime": self.press_time, "releaseTime": self.release_time}


@dataclass(frozen=True)
class MouseMovement:
    x: float
    y: float
    timestamp: float
    velocity: float
    acceleration: float

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> MouseMovement:
        return cls(
            x=float(raw["x"]),
            y=float(raw["y"]),
            timestamp=float(raw["timestamp"]),
            velocity=float(raw["velocity"]),
            acceleration=float(raw["acceleration"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "timestamp": self.timestamp,
            "velocity": self.velocity,
            "acceleration": self.acceleration,
        }


@dataclass(frozen=True)
class TransactionTiming:
    start_time: float
    confirm_time: float
    total_duration: float

    @property
    def efficiency(self) -> float:
        """Share of the total duration spent between start and confirm; 0 when duration is 0."""
        if self.total_duration > 0:
            return (self.confirm_time - self.start_time) / self.total_duration
        return 0.0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> TransactionTiming:
        return cls(
            start_time=float(_get(raw, "startTime", "start_time")),
            confirm_time=float(_get(raw, "confirmTime", "confirm_time")),
            total_duration=float(_get(raw, "totalDuration", "total_duration")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "startTime": self.start_time,
            "confirmTime": self.confirm_time,
            "totalDuration": self.total_duration,
        }


@dataclass(frozen=True)
class BiometricSample:
    """
    Behavioral sample for one verification call.

    Each stream is kept in capture order; ordering is significant both for
    the pairwise scores and for the audit hash.
    """

    keystroke_patterns: tuple[KeystrokePattern, ...] = field(default_factory=tuple)
    mouse_movements: tuple[MouseMovement, ...] = field(default_factory=tuple)
    transaction_timing: tuple[TransactionTiming, ...] = field(default_factory=tuple)

    @classmethod
    def of(
        cls,
        keystroke_patterns: Iterable[KeystrokePattern],
        mouse_movements: Iterable[MouseMovement],
        transaction_timing: Iterable[TransactionTiming],
    ) -> BiometricSample:
        return cls(tuple(keystroke_patterns), tuple(mouse_movements), tuple(transaction_timing))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> BiometricSample:
        """
        Build from the capture payload (camelCase keys, as sent by the dashboard)
        or snake_case keys. Missing streams become empty tuples.
        """

        def stream(camel: str, snake: str) -> list[Mapping[str, Any]]:
            value = raw.get(camel, raw.get(snake))
            return list(value or [])

        return cls(
            keystroke_patterns=tuple(
                KeystrokePattern.from_dict(r) for r in stream("keystrokePatterns", "keystroke_patterns")
            ),
            mouse_movements=tuple(
                MouseMovement.from_dict(r) for r in stream("mouseMovements", "mouse_movements")
            ),
            transaction_timing=tuple(
                TransactionTiming.from_dict(r) for r in stream("transactionTiming", "transaction_timing")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "keystrokePatterns": [k.to_dict() for k in self.keystroke_patterns],
            "mouseMovements": [m.to_dict() for m in self.mouse_movements],
            "transactionTiming": [t.to_dict() for t in self.transaction_timing],
        }
