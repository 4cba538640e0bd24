"""
Tests for the module-level embedding API (backend_aether.api).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from backend_aether import api
from backend_aether.analysis_engine.features import TransactionFeatures
from backend_aether.analysis_engine.liquidity import OptimalRange


def test_verify_and_hash_accept_payload_dicts(normal_sample, anomalous_sample):
    assert api.verify_biometric(normal_sample) is True
    assert api.verify_biometric(normal_sample.to_dict()) is True
    assert api.verify_biometric(anomalous_sample) is False
    assert api.verify_biometric(None) is False
    assert api.hash_biometric(normal_sample.to_dict()) == api.hash_biometric(normal_sample)


def test_scoring_functions(pool_metrics):
    features = TransactionFeatures(250.0, 1000.0, 100.0, 0.9, 1.0, 14, 3)
    assert 0.0 <= api.score_risk(features) <= 1.0
    anomalies = api.detect_anomalies(features, features)
    assert anomalies[0].severity == pytest.approx(0.5)
    assert api.optimize_liquidity_range(pool_metrics) == OptimalRange(0.5, 0.5)


def test_assess_and_decide(fakes, normal_sample):
    now = datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)
    assessment = asyncio.run(
        api.assess_transaction(
            "0xa", "0xb", 120.0, normal_sample, fakes.History([100.0] * 10), fakes.Trust(0.9), now=now
        )
    )
    assert api.decide_transfer(assessment) is True
