"""
Tests for the FastAPI server. Chain collaborators and the audit log are
overridden in conftest; requests go through fastapi.testclient.TestClient.
"""

from __future__ import annotations

from backend_aether.agent_worker.orchestrator import REC_BIOMETRIC_FAILED
from backend_aether.biometrics import BiometricVerifier

SENDER = "0x" + "a1" * 32
RECIPIENT = "0x" + "b2" * 32
POOL = "0x" + "c3" * 32

FEATURES = {
    "amount": 120.0,
    "historical_volume": 1000.0,
    "avg_transaction_size": 100.0,
    "recipient_trust_score": 0.9,
    "biometric_confidence": 1.0,
    "time_of_day": 14,
    "day_of_week": 3,
}

METRICS = {
    "pool_depth": 1_000_000.0,
    "volatility": 0.15,
    "volume_24h": 500_000.0,
    "current_price": 1.2,
    "price_change_24h": 0.05,
}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_verify_normal_sample(client, normal_sample):
    r = client.post("/biometrics/verify", json=normal_sample.to_dict())
    assert r.status_code == 200
    data = r.json()
    assert data["verified"] is True
    assert data["sufficient"] is True
    assert data["aggregate"] >= 0.85


def test_verify_insufficient_sample(client, normal_sample):
    payload = normal_sample.to_dict()
    payload["keystrokePatterns"] = payload["keystrokePatterns"][:3]
    r = client.post("/biometrics/verify", json=payload)
    assert r.status_code == 200
    assert r.json()["verified"] is False
    assert r.json()["sufficient"] is False


def test_hash_matches_verifier(client, normal_sample):
    r = client.post("/biometrics/hash", json=normal_sample.to_dict())
    assert r.status_code == 200
    assert r.json()["hash"] == BiometricVerifier().hash_hex(normal_sample)


def test_risk_score(client):
    r = client.post("/risk/score", json=FEATURES)
    assert r.status_code == 200
    assert 0.0 < r.json()["risk_score"] < 0.2


def test_risk_score_rejects_bad_features(client):
    r = client.post("/risk/score", json={**FEATURES, "recipient_trust_score": 1.5})
    assert r.status_code == 422


def test_detect_anomalies(client):
    r = client.post("/anomalies/detect", json={"current": {**FEATURES, "amount": 250.0}, "historical": FEATURES})
    assert r.status_code == 200
    data = r.json()
    assert [a["type"] for a in data["anomalies"]] == ["amount"]
    assert data["anomaly_score"] == 0.5


def test_optimize_with_metrics(client):
    r = client.post("/liquidity/optimize", json={"metrics": METRICS})
    assert r.status_code == 200
    data = r.json()
    assert data["optimal_range"] == {"min": 0.5, "max": 0.5}
    assert abs(data["min_price"] - 0.6) < 1e-9
    assert abs(data["max_price"] - 1.8) < 1e-9
    assert data["valid_metrics"] is True
    assert data["adjust"] is None


def test_optimize_pool_from_chain(client):
    r = client.post(
        "/liquidity/optimize",
        json={"pool_address": POOL, "current_range": {"min": 0.5, "max": 0.5}},
    )
    assert r.status_code == 200
    assert r.json()["adjust"] is False


def test_optimize_needs_input(client):
    r = client.post("/liquidity/optimize", json={})
    assert r.status_code == 400


def test_optimize_pool_failure_is_502(client, api_collaborators, fakes):
    api_collaborators.pool = fakes.Pool(error=RuntimeError("node down"))
    r = client.post("/liquidity/optimize", json={"pool_address": POOL})
    assert r.status_code == 502
    assert r.json()["collaborator"] == "pool_state"


def test_assess_accepts_and_audits(client, normal_sample, audit_log):
    r = client.post(
        "/transactions/assess",
        json={"from_address": SENDER, "to_address": RECIPIENT, "amount": 120.0, "biometrics": normal_sample.to_dict()},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["accepted"] is True
    assert data["biometric_verified"] is True
    (row,) = audit_log.list_assessments(SENDER)
    assert row.accepted is True
    assert row.amount == 120.0

    audit = client.get(f"/audit/{SENDER}")
    assert audit.status_code == 200
    assert len(audit.json()["assessments"]) == 1


def test_assess_without_biometrics_is_rejected(client):
    r = client.post("/transactions/assess", json={"from_address": SENDER, "to_address": RECIPIENT, "amount": 120.0})
    assert r.status_code == 200
    data = r.json()
    assert data["accepted"] is False
    assert REC_BIOMETRIC_FAILED in data["recommendations"]


def test_assess_history_failure_is_502(client, api_collaborators, fakes, normal_sample):
    api_collaborators.history = fakes.History(error=ConnectionError("node down"))
    r = client.post(
        "/transactions/assess",
        json={"from_address": SENDER, "to_address": RECIPIENT, "amount": 1.0, "biometrics": normal_sample.to_dict()},
    )
    assert r.status_code == 502
    assert r.json()["collaborator"] == "history"


def test_assess_without_aptos_client_is_503(client):
    """Outside the app lifespan there is no Aptos client to build providers from."""
    from backend_aether.api_server import server

    del server.app.dependency_overrides[server.get_history_provider]
    r = client.post("/transactions/assess", json={"from_address": SENDER, "to_address": RECIPIENT, "amount": 1.0})
    assert r.status_code == 503


def test_assess_audit_write_runs_in_worker_thread(client, normal_sample, audit_log, monkeypatch):
    """The sqlite audit write is handed to a thread instead of running on the event loop."""
    from backend_aether.api_server import server

    offloaded = []
    real_to_thread = server.asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        offloaded.append(func)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(server.asyncio, "to_thread", recording_to_thread)
    r = client.post(
        "/transactions/assess",
        json={"from_address": SENDER, "to_address": RECIPIENT, "amount": 120.0, "biometrics": normal_sample.to_dict()},
    )
    assert r.status_code == 200
    assert server.record_audit in offloaded
    assert len(audit_log.list_assessments(SENDER)) == 1
