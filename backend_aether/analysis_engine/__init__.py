"""
Analysis engine package: risk scoring, anomaly detection and liquidity optimization.

Consumes transaction features and pool metrics and produces a bounded risk
score, typed anomalies and a recommended liquidity band. All components are
pure and synchronous.
"""

from backend_aether.analysis_engine.anomaly import (
    Anomaly,
    AnomalyConfig,
    AnomalyDetector,
    AnomalyFlags,
    AnomalyResult,
    AnomalyScore,
    AnomalyType,
    ZScoreAnomalyDetector,
    aggregate_anomaly_score,
)
from backend_aether.analysis_engine.features import (
    TransactionFeatures,
    TransactionHistory,
    TransactionPattern,
    build_features,
    summarize_history,
)
from backend_aether.analysis_engine.liquidity import (
    LiquidityConfig,
    LiquidityMetrics,
    LiquidityOptimizer,
    OptimalParameters,
    OptimalRange,
)
from backend_aether.analysis_engine.risk_model import (
    RiskModelConfig,
    RiskScoringEngine,
    RiskWeights,
)

__all__ = [
    "Anomaly",
    "AnomalyConfig",
    "AnomalyDetector",
    "AnomalyFlags",
    "AnomalyResult",
    "AnomalyScore",
    "AnomalyType",
    "ZScoreAnomalyDetector",
    "aggregate_anomaly_score",
    "TransactionFeatures",
    "TransactionHistory",
    "TransactionPattern",
    "build_features",
    "summarize_history",
    "LiquidityConfig",
    "LiquidityMetrics",
    "LiquidityOptimizer",
    "OptimalParameters",
    "OptimalRange",
    "RiskModelConfig",
    "RiskScoringEngine",
    "RiskWeights",
]
