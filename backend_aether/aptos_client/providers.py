"""
Aptos-backed collaborators for the decision orchestrator.

- AptosHistoryProvider: recent account transactions -> TransactionHistory
- AptosTrustProvider: defi_agent::UserProfile.trust_score (0..100) -> [0, 1]
- AptosPoolStateProvider: liquidity_pool::Pool resource -> LiquidityMetrics
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from backend_aether.aether_logging import get_logger, short_address
from backend_aether.analysis_engine.features import (
    DEFAULT_TRUST_SCORE,
    TransactionHistory,
    TransactionPattern,
)
from backend_aether.analysis_engine.liquidity import LiquidityMetrics
from backend_aether.aptos_client.client import AptosRestClient
from backend_aether.core.exceptions import CollaboratorError, ResourceNotFound

logger = get_logger(__name__)

HISTORY_LIMIT = 50
TRUST_SCORE_SCALE = 100.0

# Transfer entry functions take (recipient, amount, ...)
_RECIPIENT_ARG = 0
_AMOUNT_ARG = 1


def _to_float(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(value) else value


def _to_int(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def pattern_from_transaction(tx: Mapping[str, Any]) -> TransactionPattern:
    """Transfer amount is the second entry-function argument; missing or non-numeric counts as 0."""
    payload = tx.get("payload") or {}
    args = payload.get("arguments") or []
    amount = _to_float(args[_AMOUNT_ARG]) if len(args) > _AMOUNT_ARG else 0.0
    receiver = args[_RECIPIENT_ARG] if args and isinstance(args[_RECIPIENT_ARG], str) else ""
    return TransactionPattern(
        amount=amount,
        timestamp=_to_int(tx.get("timestamp")),
        sender=str(tx.get("sender") or ""),
        receiver=receiver,
    )


class AptosHistoryProvider:
    """
    Fetches the latest `limit` transactions of an account.

    An account unknown to the node (HTTP 404) has no history and yields an
    empty TransactionHistory; any other failure propagates.
    """

    def __init__(self, client: AptosRestClient, limit: int = HISTORY_LIMIT) -> None:
        self.client = client
        self.limit = limit

    async def get_history(self, address: str) -> TransactionHistory:
        try:
            txs = await self.client.get_account_transactions(address, limit=self.limit)
        except ResourceNotFound:
            logger.info("history_account_not_found", address=short_address(address))
            return TransactionHistory(address=address)
        patterns = tuple(pattern_from_transaction(tx) for tx in txs[-self.limit:])
        return TransactionHistory(address=address, patterns=patterns)


class AptosTrustProvider:
    """Recipient trust from the on-chain user profile; 0.5 when the recipient has none."""

    def __init__(self, client: AptosRestClient, module_address: str) -> None:
        self.client = client
        self.resource_type = f"{module_address}::defi_agent::UserProfile"

    async def get_trust_score(self, address: str) -> float:
        try:
            resource = await self.client.get_account_resource(address, self.resource_type)
        except ResourceNotFound:
            logger.debug("trust_profile_missing", address=short_address(address), default=DEFAULT_TRUST_SCORE)
            return DEFAULT_TRUST_SCORE
        data = resource.get("data") or {}
        if "trust_score" not in data:
            raise CollaboratorError("UserProfile has no trust_score field", collaborator="trust_profile")
        score = _to_float(data["trust_score"]) / TRUST_SCORE_SCALE
        return min(1.0, max(0.0, score))


class AptosPoolStateProvider:
    def __init__(self, client: AptosRestClient, module_address: str) -> None:
        self.client = client
        self.resource_type = f"{module_address}::liquidity_pool::Pool"

    async def get_pool_metrics(self, pool_address: str) -> LiquidityMetrics:
        resource = await self.client.get_account_resource(pool_address, self.resource_type)
        try:
            return LiquidityMetrics.from_pool_resource(resource.get("data") or {})
        except (KeyError, TypeError, ValueError) as e:
            raise CollaboratorError("malformed liquidity_pool::Pool resource", collaborator="pool_state", cause=e) from e
