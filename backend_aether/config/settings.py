"""
Application settings.

Collects the immutable per-component configs (biometric, risk model,
anomaly, liquidity, decision) and the Aptos/API environment into one
Settings object. Thresholds can be overridden from the environment so
deployments and tests can tune them without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path

from backend_aether.agent_worker.orchestrator import DecisionConfig
from backend_aether.analysis_engine.anomaly import AnomalyConfig
from backend_aether.analysis_engine.liquidity import LiquidityConfig
from backend_aether.analysis_engine.risk_model import RiskModelConfig
from backend_aether.biometrics.verifier import BiometricConfig
from backend_aether.config.env import (
    get_aptos_node_url,
    get_audit_db_path,
    get_module_address,
    load_aether_env,
)


@dataclass(frozen=True)
class Settings:
    node_url: str
    module_address: str
    audit_db_path: Path
    biometric: BiometricConfig = field(default_factory=BiometricConfig)
    risk_model: RiskModelConfig = field(default_factory=RiskModelConfig)
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    liquidity: LiquidityConfig = field(default_factory=LiquidityConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)


def _env_float(name: str) -> float | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def load_settings() -> Settings:
    """Build Settings from the environment (and .env); no caching."""
    load_aether_env()
    biometric = BiometricConfig()
    risk_model = RiskModelConfig()
    anomaly = AnomalyConfig()
    decision = DecisionConfig()

    similarity = _env_float("AETHER_SIMILARITY_THRESHOLD")
    if similarity is not None:
        biometric = replace(biometric, similarity_threshold=similarity)
    min_confidence = _env_float("AETHER_MIN_CONFIDENCE")
    if min_confidence is not None:
        risk_model = replace(risk_model, min_confidence=min_confidence)
    anomaly_threshold = _env_float("AETHER_ANOMALY_THRESHOLD")
    if anomaly_threshold is not None:
        anomaly = replace(anomaly, anomaly_threshold=anomaly_threshold)
    risk_threshold = _env_float("AETHER_RISK_THRESHOLD")
    if risk_threshold is not None:
        decision = replace(decision, risk_threshold=risk_threshold)

    return Settings(
        node_url=get_aptos_node_url(),
        module_address=get_module_address(),
        audit_db_path=get_audit_db_path(),
        biometric=biometric,
        risk_model=risk_model,
        anomaly=anomaly,
        liquidity=LiquidityConfig(),
        decision=decision,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings; call get_settings.cache_clear() after changing env."""
    return load_settings()
