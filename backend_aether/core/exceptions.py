"""
Application-level exceptions.

Collaborator failures (chain RPC, trust profile lookup, pool state, transfer
submission) are raised as CollaboratorError subclasses with the underlying
cause chained, so callers can tell "no data" apart from "fetch failed".
Scoring components never raise on bad telemetry; they degrade to safe defaults.
"""

from __future__ import annotations


class AetherError(Exception):
    """Base class for all Backend Aether errors."""


class InvalidFeatures(AetherError, ValueError):
    """Transaction feature values outside their documented ranges."""


class CollaboratorError(AetherError):
    """An external collaborator (chain, profile store, submitter) failed."""

    collaborator = "collaborator"

    def __init__(self, message: str, *, collaborator: str | None = None, cause: BaseException | None = None):
        super().__init__(message)
        if collaborator:
            self.collaborator = collaborator
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base


class ResourceNotFound(CollaboratorError):
    """Requested on-chain account or resource does not exist (HTTP 404)."""

    collaborator = "aptos"


class HistoryFetchError(CollaboratorError):
    collaborator = "history"


class TrustProfileError(CollaboratorError):
    collaborator = "trust_profile"


class PoolStateError(CollaboratorError):
    collaborator = "pool_state"


class SubmissionError(CollaboratorError):
    collaborator = "submission"
