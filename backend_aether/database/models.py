"""
Row models for the audit store.

Plain dataclasses, no ORM coupling; one row per assessed transfer and one
row per anomaly flagged during that assessment.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class AssessmentRecord:
    """Stored outcome of one transfer assessment."""

    id: int | None
    from_address: str
    to_address: str
    amount: float
    risk_score: float
    anomaly_score: float
    biometric_verified: bool
    accepted: bool
    assessed_at: str
    """ISO-8601 timestamp of the assessment."""
    recommendations_json: str | None = None
    assessment_json: str | None = None
    created_at: int | None = None


@dataclass
class AnomalyRecord:
    id: int | None
    assessment_id: int
    address: str
    anomaly_type: str
    severity: float
    details: str
    created_at: int | None = None
