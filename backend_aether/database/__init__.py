"""SQLite audit store for transfer assessments and anomalies."""

from backend_aether.database.audit import AuditLog
from backend_aether.database.models import AnomalyRecord, AssessmentRecord

__all__ = ["AnomalyRecord", "AssessmentRecord", "AuditLog"]
