"""
Agent worker: orchestrates per-transfer decisions, pool optimization and
account monitoring on top of the pure analysis engine.
"""

from backend_aether.agent_worker.monitor import AnomalyHandler, TransactionMonitor, run_monitor_loop
from backend_aether.agent_worker.orchestrator import (
    DecisionConfig,
    DecisionOrchestrator,
    LiquidityDecision,
    RiskAssessment,
    TransferOutcome,
    TransferRequest,
)

__all__ = [
    "AnomalyHandler",
    "DecisionConfig",
    "DecisionOrchestrator",
    "LiquidityDecision",
    "RiskAssessment",
    "TransactionMonitor",
    "TransferOutcome",
    "TransferRequest",
    "run_monitor_loop",
]
