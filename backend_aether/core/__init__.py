"""
Core utilities: shared exceptions and cross-cutting concerns.
"""

from backend_aether.core.exceptions import (
    AetherError,
    CollaboratorError,
    HistoryFetchError,
    InvalidFeatures,
    PoolStateError,
    ResourceNotFound,
    SubmissionError,
    TrustProfileError,
)

__all__ = [
    "AetherError",
    "CollaboratorError",
    "HistoryFetchError",
    "InvalidFeatures",
    "PoolStateError",
    "ResourceNotFound",
    "SubmissionError",
    "TrustProfileError",
]
