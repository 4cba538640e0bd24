"""
Decision orchestrator: sequences biometric verification, risk scoring and
anomaly detection per transfer, and liquidity optimization per pool.

Per transfer the orchestrator fetches account history and recipient trust
concurrently from collaborators, runs the pure scoring
components, builds a RiskAssessment with human-readable recommendations and
decides accept/reject. Collaborator failures propagate as CollaboratorError;
a failed history fetch is never replaced by an empty history here.
"""

from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Protocol, TypeVar

from backend_aether.aether_logging import bind_pool, bind_transaction, get_logger
from backend_aether.analysis_engine.anomaly import (
    Anomaly,
    AnomalyDetector,
    aggregate_anomaly_score,
)
from backend_aether.analysis_engine.features import (
    TransactionFeatures,
    TransactionHistory,
    build_features,
)
from backend_aether.analysis_engine.liquidity import (
    LiquidityMetrics,
    LiquidityOptimizer,
    OptimalParameters,
    OptimalRange,
)
from backend_aether.analysis_engine.risk_model import RiskScoringEngine
from backend_aether.biometrics.models import BiometricSample
from backend_aether.biometrics.verifier import BiometricVerifier
from backend_aether.core.exceptions import (
    CollaboratorError,
    HistoryFetchError,
    PoolStateError,
    SubmissionError,
    TrustProfileError,
)

if TYPE_CHECKING:
    from backend_aether.config.settings import Settings

logger = get_logger(__name__)

T = TypeVar("T")

RISK_THRESHOLD = 0.75
HIGH_RISK_RECOMMENDATION_ABOVE = 0.7
UNUSUAL_PATTERN_ABOVE = 0.5
AMOUNT_MULTIPLE_WARNING = 3.0
RANGE_TOLERANCE = 0.01

REC_HIGH_RISK = "High-risk transaction detected. Additional verification recommended."
REC_UNUSUAL_PATTERN = "Unusual transaction pattern detected. Please review details."
REC_LARGE_AMOUNT = "Transaction amount significantly higher than usual."
REC_BIOMETRIC_FAILED = "Biometric verification failed. Re-authenticate before retrying."
REC_RISK_UNAVAILABLE = "Risk score could not be computed. Transfer held for review."


# -----------------------------------------------------------------------------
# Collaborator interfaces
# -----------------------------------------------------------------------------


class HistoryProvider(Protocol):
    async def get_history(self, address: str) -> TransactionHistory: ...


class TrustProvider(Protocol):
    async def get_trust_score(self, address: str) -> float: ...


class PoolStateProvider(Protocol):
    async def get_pool_metrics(self, pool_address: str) -> LiquidityMetrics: ...


class TransferSubmitter(Protocol):
    async def submit_transfer(self, request: TransferRequest) -> str: ...


class AuditSink(Protocol):
    def record_assessment(
        self,
        from_address: str,
        to_address: str,
        amount: float,
        assessment: RiskAssessment,
        accepted: bool,
    ) -> None: ...


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DecisionConfig:
    risk_threshold: float = RISK_THRESHOLD
    high_risk_recommendation_above: float = HIGH_RISK_RECOMMENDATION_ABOVE
    unusual_pattern_above: float = UNUSUAL_PATTERN_ABOVE
    amount_multiple_warning: float = AMOUNT_MULTIPLE_WARNING
    range_tolerance: float = RANGE_TOLERANCE


@dataclass(frozen=True)
class RiskAssessment:
    """Immutable outcome of assessing one transfer attempt."""

    risk_score: float
    anomaly_score: float
    recommendations: tuple[str, ...]
    timestamp: datetime
    anomalies: tuple[Anomaly, ...] = ()
    biometric_verified: bool = False
    features: TransactionFeatures | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "anomaly_score": self.anomaly_score,
            "recommendations": list(self.recommendations),
            "timestamp": self.timestamp.isoformat(),
            "anomalies": [a.to_dict() for a in self.anomalies],
            "biometric_verified": self.biometric_verified,
            "features": self.features.to_dict() if self.features else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


@dataclass(frozen=True)
class TransferRequest:
    """Accepted transfer handed to the submission collaborator."""

    from_address: str
    to_address: str
    amount: float
    biometric_hash: bytes
    assessment_json: str


@dataclass(frozen=True)
class TransferOutcome:
    accepted: bool
    assessment: RiskAssessment
    transaction_hash: str | None = None
    biometric_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "assessment": self.assessment.to_dict(),
            "transaction_hash": self.transaction_hash,
            "biometric_hash": self.biometric_hash,
        }


@dataclass(frozen=True)
class LiquidityDecision:
    pool_address: str
    metrics: LiquidityMetrics
    optimal_range: OptimalRange
    parameters: OptimalParameters
    valid_metrics: bool
    adjust: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool_address": self.pool_address,
            "metrics": self.metrics.to_dict(),
            "optimal_range": self.optimal_range.to_dict(),
            "parameters": self.parameters.to_dict(),
            "valid_metrics": self.valid_metrics,
            "adjust": self.adjust,
            "reasons": list(self.reasons),
        }


async def _call(
    awaitable: Awaitable[T],
    error_cls: type[CollaboratorError],
    message: str,
) -> T:
    """Await a collaborator call; wrap foreign exceptions in error_cls with the cause chained."""
    try:
        return await awaitable
    except CollaboratorError:
        raise
    except Exception as e:
        raise error_cls(message, cause=e) from e


def record_audit(
    audit: AuditSink,
    from_address: str,
    to_address: str,
    amount: float,
    assessment: RiskAssessment,
    accepted: bool,
) -> None:
    """Audit writes are fire-and-forget: a failing sink must not change the transfer decision."""
    try:
        audit.record_assessment(from_address, to_address, amount, assessment, accepted)
    except Exception as e:
        logger.warning(
            "audit_record_failed",
            from_address=from_address,
            error=str(e),
            error_type=type(e).__name__,
        )


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------


class DecisionOrchestrator:
    """Holds the scoring components; no per-request state, safe for concurrent assessments."""

    def __init__(
        self,
        verifier: BiometricVerifier | None = None,
        risk_engine: RiskScoringEngine | None = None,
        anomaly_detector: AnomalyDetector | None = None,
        liquidity_optimizer: LiquidityOptimizer | None = None,
        config: DecisionConfig | None = None,
    ) -> None:
        self.verifier = verifier or BiometricVerifier()
        self.risk_engine = risk_engine or RiskScoringEngine()
        self.anomaly_detector = anomaly_detector or AnomalyDetector()
        self.liquidity_optimizer = liquidity_optimizer or LiquidityOptimizer()
        self.config = config or DecisionConfig()

    @classmethod
    def from_settings(cls, settings: Settings) -> DecisionOrchestrator:
        return cls(
            verifier=BiometricVerifier(settings.biometric),
            risk_engine=RiskScoringEngine(settings.risk_model),
            anomaly_detector=AnomalyDetector(settings.anomaly),
            liquidity_optimizer=LiquidityOptimizer(settings.liquidity),
            config=settings.decision,
        )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def build_recommendations(
        self,
        risk_score: float,
        anomaly_score: float,
        features: TransactionFeatures,
        biometric_verified: bool,
    ) -> list[str]:
        cfg = self.config
        recommendations: list[str] = []
        if risk_score > cfg.high_risk_recommendation_above:
            recommendations.append(REC_HIGH_RISK)
        if anomaly_score > cfg.unusual_pattern_above:
            recommendations.append(REC_UNUSUAL_PATTERN)
        if features.amount > features.avg_transaction_size * cfg.amount_multiple_warning:
            recommendations.append(REC_LARGE_AMOUNT)
        if not biometric_verified:
            recommendations.append(REC_BIOMETRIC_FAILED)
        if math.isnan(risk_score):
            recommendations.append(REC_RISK_UNAVAILABLE)
        elif risk_score > cfg.risk_threshold and REC_HIGH_RISK not in recommendations:
            recommendations.append(
                f"Risk score {risk_score:.2f} exceeds threshold {cfg.risk_threshold:.2f}."
            )
        return recommendations

    async def assess(
        self,
        from_address: str,
        to_address: str,
        amount: float,
        sample: BiometricSample | None,
        history_provider: HistoryProvider,
        trust_provider: TrustProvider,
        *,
        now: datetime | None = None,
    ) -> RiskAssessment:
        """
        Assess one transfer attempt.

        History and recipient trust are fetched concurrently; either failing
        raises a CollaboratorError. Biometric confidence is 1.0 if the
        sample verifies, else 0.0.
        """
        log = bind_transaction(from_address, to_address)
        now = now or datetime.now(timezone.utc)

        history, trust_score = await asyncio.gather(
            _call(history_provider.get_history(from_address), HistoryFetchError, "history fetch failed"),
            _call(trust_provider.get_trust_score(to_address), TrustProfileError, "trust profile fetch failed"),
        )

        biometric_verified = self.verifier.verify(sample)
        biometric_confidence = 1.0 if biometric_verified else 0.0

        features = build_features(amount, history, trust_score, biometric_confidence, now=now)
        historical = history.as_features(now=now, recipient_trust_score=trust_score)

        risk_score = self.risk_engine.predict(features)
        anomalies = self.anomaly_detector.detect(features, historical)
        anomaly_score = aggregate_anomaly_score(anomalies)

        recommendations = self.build_recommendations(risk_score, anomaly_score, features, biometric_verified)
        assessment = RiskAssessment(
            risk_score=risk_score,
            anomaly_score=anomaly_score,
            recommendations=tuple(recommendations),
            timestamp=now,
            anomalies=tuple(anomalies),
            biometric_verified=biometric_verified,
            features=features,
        )
        log.info(
            "transfer_assessed",
            amount=amount,
            risk_score=risk_score,
            anomaly_score=anomaly_score,
            anomaly_types=[a.type.value for a in anomalies],
            biometric_verified=biometric_verified,
            history_size=len(history.patterns),
        )
        return assessment

    def decide_transfer(self, assessment: RiskAssessment) -> bool:
        """Accept only a risk score at or below the threshold with verified biometrics; NaN rejects."""
        if not (assessment.risk_score <= self.config.risk_threshold):
            return False
        if not assessment.biometric_verified:
            return False
        return True

    async def execute_secure_transfer(
        self,
        from_address: str,
        to_address: str,
        amount: float,
        sample: BiometricSample | None,
        history_provider: HistoryProvider,
        trust_provider: TrustProvider,
        submitter: TransferSubmitter,
        audit: AuditSink | None = None,
        *,
        now: datetime | None = None,
    ) -> TransferOutcome:
        """
        Assess, decide and, on accept, hand the transfer to the submitter.

        Audit writes are fire-and-forget. Submission failures raise SubmissionError.
        """
        log = bind_transaction(from_address, to_address)
        assessment = await self.assess(
            from_address, to_address, amount, sample, history_provider, trust_provider, now=now
        )
        accepted = self.decide_transfer(assessment)

        tx_hash: str | None = None
        biometric_hash: str | None = None
        if accepted and sample is not None:
            digest = self.verifier.hash(sample)
            biometric_hash = digest.hex()
            request = TransferRequest(
                from_address=from_address,
                to_address=to_address,
                amount=amount,
                biometric_hash=digest,
                assessment_json=assessment.to_json(),
            )
            tx_hash = await _call(submitter.submit_transfer(request), SubmissionError, "transfer submission failed")
            log.info("transfer_submitted", transaction_hash=tx_hash, risk_score=assessment.risk_score)
        else:
            log.warning(
                "transfer_rejected",
                risk_score=assessment.risk_score,
                biometric_verified=assessment.biometric_verified,
                recommendations=list(assessment.recommendations),
            )

        if audit is not None:
            record_audit(audit, from_address, to_address, amount, assessment, accepted)

        return TransferOutcome(
            accepted=accepted,
            assessment=assessment,
            transaction_hash=tx_hash,
            biometric_hash=biometric_hash,
        )

    # ------------------------------------------------------------------
    # Liquidity
    # ------------------------------------------------------------------

    async def optimize_pool(
        self,
        pool_address: str,
        pool_provider: PoolStateProvider,
        *,
        current_range: OptimalRange | None = None,
    ) -> LiquidityDecision:
        """
        Recommend a band for a pool and decide whether to adjust it.

        No adjustment when the metrics are invalid (default band) or when the
        pool's current band is already within tolerance of the recommendation.
        """
        metrics = await _call(
            pool_provider.get_pool_metrics(pool_address), PoolStateError, "pool state fetch failed"
        )
        optimizer = self.liquidity_optimizer
        valid = optimizer.validate(metrics)
        optimal = optimizer.optimize_range(metrics)
        parameters = optimizer.optimize_parameters(metrics)

        reasons: list[str] = []
        if not valid:
            adjust = False
            reasons.append("Pool metrics outside supported bounds; default range suggested only.")
        elif current_range is not None and (
            abs(current_range.min - optimal.min) <= self.config.range_tolerance
            and abs(current_range.max - optimal.max) <= self.config.range_tolerance
        ):
            adjust = False
            reasons.append("Current range already within tolerance of the optimal range.")
        else:
            adjust = True
            reasons.append("Range adjustment recommended.")

        bind_pool(pool_address).info(
            "pool_optimized",
            valid_metrics=valid,
            adjust=adjust,
            range_min=optimal.min,
            range_max=optimal.max,
            target_utilization=parameters.target_utilization,
        )
        return LiquidityDecision(
            pool_address=pool_address,
            metrics=metrics,
            optimal_range=optimal,
            parameters=parameters,
            valid_metrics=valid,
            adjust=adjust,
            reasons=tuple(reasons),
        )
