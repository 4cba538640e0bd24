"""
Backend Aether: behavioral-risk decision engine for DeFi transfers on Aptos.

Scores transactions with behavioral biometrics, rule-based anomaly detection
and a weighted risk model, and recommends liquidity ranges for pools.
Modular layout: biometrics, analysis engine, agent worker (orchestration),
Aptos client collaborators, audit store and API server.
"""

__version__ = "0.1.0"
