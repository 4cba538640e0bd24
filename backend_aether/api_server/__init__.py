"""
API server package: HTTP interface over the decision engine.

Exposes biometric verification, risk scoring, anomaly detection, liquidity
range optimization and transfer assessment. Delegates all scoring to the
agent worker orchestrator; chain reads go through the Aptos collaborators.
"""
