"""Aptos fullnode REST client and the chain-backed orchestrator collaborators."""

from backend_aether.aptos_client.client import AptosRestClient
from backend_aether.aptos_client.providers import (
    AptosHistoryProvider,
    AptosPoolStateProvider,
    AptosTrustProvider,
)

__all__ = [
    "AptosHistoryProvider",
    "AptosPoolStateProvider",
    "AptosRestClient",
    "AptosTrustProvider",
]
