"""
Tests for the decision orchestrator: transfer assessment, accept/reject,
submission, audit, collaborator failures and pool range decisions.

Collaborators are in-memory fakes from conftest; async calls run via asyncio.run.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone

import pytest

from backend_aether.agent_worker.orchestrator import (
    REC_BIOMETRIC_FAILED,
    REC_HIGH_RISK,
    REC_LARGE_AMOUNT,
    REC_RISK_UNAVAILABLE,
    REC_UNUSUAL_PATTERN,
    DecisionConfig,
    DecisionOrchestrator,
    RiskAssessment,
)
from backend_aether.analysis_engine.anomaly import AnomalyType
from backend_aether.analysis_engine.features import TransactionFeatures
from backend_aether.analysis_engine.liquidity import OptimalRange
from backend_aether.core.exceptions import (
    HistoryFetchError,
    PoolStateError,
    SubmissionError,
    TrustProfileError,
)

SENDER = "0x" + "a1" * 32
RECIPIENT = "0x" + "b2" * 32
POOL = "0x" + "c3" * 32
WEEKDAY_AFTERNOON = datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)


def _assess(orchestrator, amount, sample, history, trust):
    return asyncio.run(
        orchestrator.assess(SENDER, RECIPIENT, amount, sample, history, trust, now=WEEKDAY_AFTERNOON)
    )


def test_ordinary_transfer_is_accepted(fakes, normal_sample):
    orchestrator = DecisionOrchestrator()
    history = fakes.History([100.0] * 10)
    assessment = _assess(orchestrator, 120.0, normal_sample, history, fakes.Trust(0.9))
    assert history.calls == [SENDER]
    assert assessment.biometric_verified is True
    assert assessment.risk_score < 0.2
    assert assessment.anomalies == ()
    assert assessment.anomaly_score == 0.0
    assert assessment.recommendations == ()
    assert assessment.timestamp == WEEKDAY_AFTERNOON
    assert assessment.features.biometric_confidence == 1.0
    assert orchestrator.decide_transfer(assessment) is True


def test_failed_biometrics_rejects_with_reason(fakes):
    """No sample: confidence 0, risk saturates and the rejection says why."""
    orchestrator = DecisionOrchestrator()
    assessment = _assess(orchestrator, 120.0, None, fakes.History([100.0] * 10), fakes.Trust(0.9))
    assert assessment.biometric_verified is False
    assert assessment.risk_score == 1.0
    assert REC_HIGH_RISK in assessment.recommendations
    assert REC_BIOMETRIC_FAILED in assessment.recommendations
    assert orchestrator.decide_transfer(assessment) is False


def test_anomalous_biometrics_rejected(fakes, anomalous_sample):
    orchestrator = DecisionOrchestrator()
    assessment = _assess(orchestrator, 120.0, anomalous_sample, fakes.History([100.0] * 10), fakes.Trust(0.9))
    assert orchestrator.decide_transfer(assessment) is False


def test_large_amount_accepted_with_recommendations(fakes, normal_sample):
    """10x the usual size is flagged but stays under the risk threshold."""
    orchestrator = DecisionOrchestrator()
    assessment = _assess(orchestrator, 1000.0, normal_sample, fakes.History([100.0] * 10), fakes.Trust(0.9))
    assert [a.type for a in assessment.anomalies] == [AnomalyType.AMOUNT]
    assert assessment.anomaly_score == pytest.approx(1.0)
    assert assessment.recommendations == (REC_UNUSUAL_PATTERN, REC_LARGE_AMOUNT)
    assert orchestrator.decide_transfer(assessment) is True


def test_threshold_recommendation_when_not_high_risk():
    """Every rejection carries a reason even when the high-risk line does not apply."""
    orchestrator = DecisionOrchestrator(
        config=DecisionConfig(risk_threshold=0.5, high_risk_recommendation_above=0.9)
    )
    features = TransactionFeatures(120.0, 1000.0, 100.0, 0.9, 1.0, 14, 3)
    recs = orchestrator.build_recommendations(0.6, 0.0, features, True)
    assert recs == ["Risk score 0.60 exceeds threshold 0.50."]


def test_nan_risk_score_is_rejected_with_reason():
    """A risk score that cannot be computed never passes the threshold check."""
    orchestrator = DecisionOrchestrator()
    features = TransactionFeatures(float("nan"), 500.0, 100.0, 0.9, 1.0, 12, 3)
    risk = orchestrator.risk_engine.predict(features)
    assert math.isnan(risk)
    assessment = RiskAssessment(
        risk_score=risk,
        anomaly_score=0.0,
        recommendations=tuple(orchestrator.build_recommendations(risk, 0.0, features, True)),
        timestamp=WEEKDAY_AFTERNOON,
        biometric_verified=True,
        features=features,
    )
    assert assessment.recommendations == (REC_RISK_UNAVAILABLE,)
    assert orchestrator.decide_transfer(assessment) is False


def test_history_failure_is_a_hard_stop(fakes, normal_sample):
    """A failed history fetch raises; it never becomes an empty history."""
    boom = ConnectionError("node down")
    with pytest.raises(HistoryFetchError) as exc_info:
        _assess(DecisionOrchestrator(), 120.0, normal_sample, fakes.History(error=boom), fakes.Trust(0.9))
    assert exc_info.value.__cause__ is boom
    assert exc_info.value.collaborator == "history"


def test_trust_failure_propagates(fakes, normal_sample):
    with pytest.raises(TrustProfileError):
        _assess(
            DecisionOrchestrator(),
            120.0,
            normal_sample,
            fakes.History([100.0]),
            fakes.Trust(error=RuntimeError("bad profile")),
        )


def test_concurrent_assessments_are_independent(fakes, normal_sample):
    orchestrator = DecisionOrchestrator()

    async def run():
        return await asyncio.gather(
            orchestrator.assess(
                SENDER, RECIPIENT, 120.0, normal_sample, fakes.History([100.0] * 10), fakes.Trust(0.9),
                now=WEEKDAY_AFTERNOON,
            ),
            orchestrator.assess(
                SENDER, RECIPIENT, 120.0, None, fakes.History([100.0] * 10), fakes.Trust(0.9),
                now=WEEKDAY_AFTERNOON,
            ),
        )

    verified, unverified = asyncio.run(run())
    assert verified.biometric_verified is True
    assert unverified.biometric_verified is False
    assert verified.risk_score < unverified.risk_score


def test_assessment_json_is_stable(fakes, normal_sample):
    assessment = _assess(DecisionOrchestrator(), 1000.0, normal_sample, fakes.History([100.0] * 10), fakes.Trust(0.9))
    data = assessment.to_dict()
    assert data["anomalies"][0]["type"] == "amount"
    assert data["features"]["day_of_week"] == 3
    assert assessment.to_json() == assessment.to_json()


# --- Secure transfer ---


class _RecordingAudit:
    def __init__(self) -> None:
        self.rows = []

    def record_assessment(self, from_address, to_address, amount, assessment, accepted):
        self.rows.append((from_address, to_address, amount, assessment, accepted))


class _BrokenAudit:
    def record_assessment(self, *args, **kwargs):
        raise OSError("disk full")


def _execute(fakes, orchestrator, amount, sample, submitter, audit=None):
    return asyncio.run(
        orchestrator.execute_secure_transfer(
            SENDER,
            RECIPIENT,
            amount,
            sample,
            fakes.History([100.0] * 10),
            fakes.Trust(0.9),
            submitter,
            audit,
            now=WEEKDAY_AFTERNOON,
        )
    )


def test_accepted_transfer_is_submitted_with_hash(fakes, normal_sample):
    orchestrator = DecisionOrchestrator()
    submitter = fakes.Submitter("0xabc")
    audit = _RecordingAudit()
    outcome = _execute(fakes, orchestrator, 120.0, normal_sample, submitter, audit)
    assert outcome.accepted is True
    assert outcome.transaction_hash == "0xabc"
    assert outcome.biometric_hash == orchestrator.verifier.hash_hex(normal_sample)
    request = submitter.requests[0]
    assert request.amount == 120.0
    assert len(request.biometric_hash) == 32
    assert isinstance(outcome.assessment, RiskAssessment)
    assert '"risk_score"' in request.assessment_json
    assert audit.rows[0][4] is True


def test_rejected_transfer_is_not_submitted(fakes):
    submitter = fakes.Submitter()
    audit = _RecordingAudit()
    outcome = _execute(fakes, DecisionOrchestrator(), 120.0, None, submitter, audit)
    assert outcome.accepted is False
    assert outcome.transaction_hash is None
    assert submitter.requests == []
    assert audit.rows[0][4] is False
    assert outcome.assessment.recommendations


def test_audit_failure_does_not_change_decision(fakes, normal_sample):
    outcome = _execute(fakes, DecisionOrchestrator(), 120.0, normal_sample, fakes.Submitter("0x1"), _BrokenAudit())
    assert outcome.accepted is True
    assert outcome.transaction_hash == "0x1"


def test_submission_failure_raises(fakes, normal_sample):
    with pytest.raises(SubmissionError):
        _execute(fakes, DecisionOrchestrator(), 120.0, normal_sample, fakes.Submitter(error=TimeoutError("mempool")))


# --- Pools ---


def test_pool_adjust_when_no_current_range(fakes, pool_metrics):
    decision = asyncio.run(DecisionOrchestrator().optimize_pool(POOL, fakes.Pool(pool_metrics)))
    assert decision.valid_metrics is True
    assert decision.adjust is True
    assert decision.optimal_range == OptimalRange(0.5, 0.5)
    assert decision.parameters.target_utilization == pytest.approx(0.7)


def test_pool_noop_when_within_tolerance(fakes, pool_metrics):
    decision = asyncio.run(
        DecisionOrchestrator().optimize_pool(POOL, fakes.Pool(pool_metrics), current_range=OptimalRange(0.495, 0.5))
    )
    assert decision.adjust is False


def test_pool_noop_on_invalid_metrics(fakes, pool_metrics):
    from dataclasses import replace

    decision = asyncio.run(
        DecisionOrchestrator().optimize_pool(POOL, fakes.Pool(replace(pool_metrics, pool_depth=500.0)))
    )
    assert decision.valid_metrics is False
    assert decision.adjust is False
    assert decision.optimal_range == OptimalRange(0.1, 0.1)
    assert decision.to_dict()["reasons"]


def test_pool_state_failure_raises(fakes):
    with pytest.raises(PoolStateError):
        asyncio.run(DecisionOrchestrator().optimize_pool(POOL, fakes.Pool(error=KeyError("data"))))
