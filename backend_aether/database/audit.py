"""
SQLite audit log for transfer assessments and the anomalies they flagged.

One connection per operation; safe to share one AuditLog between requests.
Implements the orchestrator's AuditSink interface via record_assessment.
"""

from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from backend_aether.aether_logging import get_logger, short_address
from backend_aether.agent_worker.orchestrator import RiskAssessment
from backend_aether.database.models import AnomalyRecord, AssessmentRecord

logger = get_logger(__name__)

SCHEMA_RISK_ASSESSMENTS = """
CREATE TABLE IF NOT EXISTS risk_assessments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_address TEXT NOT NULL,
    to_address TEXT NOT NULL,
    amount REAL NOT NULL,
    risk_score REAL,
    anomaly_score REAL NOT NULL,
    biometric_verified INTEGER NOT NULL,
    accepted INTEGER NOT NULL,
    assessed_at TEXT NOT NULL,
    recommendations_json TEXT,
    assessment_json TEXT,
    created_at INTEGER
);
CREATE INDEX IF NOT EXISTS ix_risk_assessments_from ON risk_assessments(from_address);
CREATE INDEX IF NOT EXISTS ix_risk_assessments_from_created ON risk_assessments(from_address, created_at);
"""

SCHEMA_ANOMALIES = """
CREATE TABLE IF NOT EXISTS anomalies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES risk_assessments(id) ON DELETE CASCADE,
    address TEXT NOT NULL,
    anomaly_type TEXT NOT NULL,
    severity REAL NOT NULL,
    details TEXT NOT NULL,
    created_at INTEGER
);
CREATE INDEX IF NOT EXISTS ix_anomalies_address ON anomalies(address);
CREATE INDEX IF NOT EXISTS ix_anomalies_assessment ON anomalies(assessment_id);
"""


class AuditLog:
    """Append-only SQLite store; creates its schema on first use."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec
        self.ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in (SCHEMA_RISK_ASSESSMENTS, SCHEMA_ANOMALIES):
                cur.executescript(stmt)

    def record_assessment(
        self,
        from_address: str,
        to_address: str,
        amount: float,
        assessment: RiskAssessment,
        accepted: bool,
    ) -> int:
        """Store the assessment and its anomalies in one transaction. Returns the assessment row id."""
        now = int(time.time())
        # sqlite stores NaN as NULL
        risk_score = None if assessment.risk_score != assessment.risk_score else assessment.risk_score
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO risk_assessments (
                    from_address, to_address, amount, risk_score, anomaly_score,
                    biometric_verified, accepted, assessed_at, recommendations_json,
                    assessment_json, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    from_address,
                    to_address,
                    amount,
                    risk_score,
                    assessment.anomaly_score,
                    int(assessment.biometric_verified),
                    int(accepted),
                    assessment.timestamp.isoformat(),
                    json.dumps(list(assessment.recommendations)),
                    assessment.to_json(),
                    now,
                ),
            )
            assessment_id = int(cur.lastrowid)
            cur.executemany(
                """
                INSERT INTO anomalies (assessment_id, address, anomaly_type, severity, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (assessment_id, from_address, a.type.value, a.severity, a.details, now)
                    for a in assessment.anomalies
                ],
            )
        logger.debug(
            "audit_assessment_recorded",
            assessment_id=assessment_id,
            from_address=short_address(from_address),
            accepted=accepted,
            anomaly_count=len(assessment.anomalies),
        )
        return assessment_id

    def list_assessments(self, address: str, *, limit: int = 100) -> list[AssessmentRecord]:
        """Assessments of transfers sent by `address`, newest first."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, from_address, to_address, amount, risk_score, anomaly_score,
                       biometric_verified, accepted, assessed_at, recommendations_json,
                       assessment_json, created_at
                FROM risk_assessments WHERE from_address = ?
                ORDER BY id DESC LIMIT ?
                """,
                (address, limit),
            )
            rows = cur.fetchall()
        return [
            AssessmentRecord(
                id=row["id"],
                from_address=row["from_address"],
                to_address=row["to_address"],
                amount=row["amount"],
                risk_score=float("nan") if row["risk_score"] is None else row["risk_score"],
                anomaly_score=row["anomaly_score"],
                biometric_verified=bool(row["biometric_verified"]),
                accepted=bool(row["accepted"]),
                assessed_at=row["assessed_at"],
                recommendations_json=row["recommendations_json"],
                assessment_json=row["assessment_json"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def list_anomalies(self, address: str, *, limit: int = 100) -> list[AnomalyRecord]:
        """Anomalies flagged on transfers sent by `address`, newest first."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, assessment_id, address, anomaly_type, severity, details, created_at
                FROM anomalies WHERE address = ?
                ORDER BY id DESC LIMIT ?
                """,
                (address, limit),
            )
            rows = cur.fetchall()
        return [
            AnomalyRecord(
                id=row["id"],
                assessment_id=row["assessment_id"],
                address=row["address"],
                anomaly_type=row["anomaly_type"],
                severity=row["severity"],
                details=row["details"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
