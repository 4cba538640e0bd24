"""
Pytest fixtures for Aether tests: in-memory async collaborators, a temporary
SQLite audit log and a FastAPI TestClient with chain-facing dependencies
overridden so no Aptos node is needed.
"""

from __future__ import annotations

import random

import pytest

from backend_aether.analysis_engine.features import TransactionHistory, summarize_history
from backend_aether.analysis_engine.liquidity import LiquidityMetrics
from backend_aether.biometrics.synthetic import generate_anomalous_behavior, generate_normal_behavior
from backend_aether.config.settings import get_settings
from backend_aether.database.audit import AuditLog


class FakeHistoryProvider:
    def __init__(self, amounts=(), error: Exception | None = None) -> None:
        self.amounts = list(amounts)
        self.error = error
        self.calls: list[str] = []

    async def get_history(self, address: str) -> TransactionHistory:
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return summarize_history(address, self.amounts)


class FakeTrustProvider:
    def __init__(self, score: float = 0.9, error: Exception | None = None) -> None:
        self.score = score
        self.error = error

    async def get_trust_score(self, address: str) -> float:
        if self.error is not None:
            raise self.error
        return self.score


class FakePoolProvider:
    def __init__(self, metrics: LiquidityMetrics | None = None, error: Exception | None = None) -> None:
        self.metrics = metrics
        self.error = error

    async def get_pool_metrics(self, pool_address: str) -> LiquidityMetrics:
        if self.error is not None:
            raise self.error
        return self.metrics


class FakeSubmitter:
    def __init__(self, tx_hash: str = "0xfeed", error: Exception | None = None) -> None:
        self.tx_hash = tx_hash
        self.error = error
        self.requests = []

    async def submit_transfer(self, request) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.tx_hash


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; rebuild them around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def normal_sample():
    return generate_normal_behavior(random.Random(7))


@pytest.fixture
def anomalous_sample():
    return generate_anomalous_behavior(random.Random(7))


@pytest.fixture
def pool_metrics():
    """Deep, moderately volatile pool with a mild upward trend."""
    return LiquidityMetrics(
        pool_depth=1_000_000.0,
        volatility=0.15,
        volume_24h=500_000.0,
        current_price=1.2,
        price_change_24h=0.05,
    )


@pytest.fixture
def fakes():
    """Namespace of fake collaborator classes, for tests that build their own."""

    class _Fakes:
        History = FakeHistoryProvider
        Trust = FakeTrustProvider
        Pool = FakePoolProvider
        Submitter = FakeSubmitter

    return _Fakes


@pytest.fixture
def audit_log(tmp_path):
    return AuditLog(tmp_path / "audit.db")


@pytest.fixture
def api_collaborators(pool_metrics):
    """Mutable collaborators the API client fixture serves; tests may swap attributes."""

    class _Collaborators:
        history = FakeHistoryProvider([100.0] * 10)
        trust = FakeTrustProvider(0.9)
        pool = FakePoolProvider(pool_metrics)

    return _Collaborators


@pytest.fixture
def client(api_collaborators, audit_log, monkeypatch, tmp_path):
    """FastAPI TestClient with Aptos collaborators and audit log overridden."""
    from fastapi.testclient import TestClient

    from backend_aether.api_server import server

    monkeypatch.setenv("AUDIT_DB_PATH", str(tmp_path / "audit.db"))
    server.app.dependency_overrides[server.get_history_provider] = lambda: api_collaborators.history
    server.app.dependency_overrides[server.get_trust_provider] = lambda: api_collaborators.trust
    server.app.dependency_overrides[server.get_pool_provider] = lambda: api_collaborators.pool
    server.app.dependency_overrides[server.get_audit_log] = lambda: audit_log
    yield TestClient(server.app)
    server.app.dependency_overrides.clear()
