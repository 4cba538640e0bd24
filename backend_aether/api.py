"""
Embedding API: one function per engine operation, for callers that do not
go through HTTP. Each call uses components built from the current settings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from backend_aether.agent_worker.orchestrator import (
    DecisionOrchestrator,
    HistoryProvider,
    RiskAssessment,
    TrustProvider,
)
from backend_aether.analysis_engine.anomaly import Anomaly
from backend_aether.analysis_engine.features import TransactionFeatures
from backend_aether.analysis_engine.liquidity import LiquidityMetrics, OptimalRange
from backend_aether.biometrics.models import BiometricSample
from backend_aether.config.settings import get_settings


def _orchestrator() -> DecisionOrchestrator:
    return DecisionOrchestrator.from_settings(get_settings())


def _sample(sample: BiometricSample | Mapping[str, Any] | None) -> BiometricSample | None:
    if sample is None or isinstance(sample, BiometricSample):
        return sample
    return BiometricSample.from_dict(sample)


def verify_biometric(sample: BiometricSample | Mapping[str, Any] | None) -> bool:
    """True when the sample is sufficient and its aggregate score reaches the similarity threshold."""
    return _orchestrator().verifier.verify(_sample(sample))


def hash_biometric(sample: BiometricSample | Mapping[str, Any]) -> bytes:
    """32-byte SHA-256 of the canonical sample."""
    return _orchestrator().verifier.hash(_sample(sample))


def score_risk(features: TransactionFeatures) -> float:
    return _orchestrator().risk_engine.predict(features)


def detect_anomalies(current: TransactionFeatures, historical: TransactionFeatures) -> list[Anomaly]:
    return _orchestrator().anomaly_detector.detect(current, historical)


def optimize_liquidity_range(metrics: LiquidityMetrics) -> OptimalRange:
    return _orchestrator().liquidity_optimizer.optimize_range(metrics)


async def assess_transaction(
    from_address: str,
    to_address: str,
    amount: float,
    sample: BiometricSample | Mapping[str, Any] | None,
    history_provider: HistoryProvider,
    trust_provider: TrustProvider,
    *,
    now: datetime | None = None,
) -> RiskAssessment:
    return await _orchestrator().assess(
        from_address, to_address, amount, _sample(sample), history_provider, trust_provider, now=now
    )


def decide_transfer(assessment: RiskAssessment) -> bool:
    return _orchestrator().decide_transfer(assessment)
