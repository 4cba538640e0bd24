"""
Async Aptos fullnode REST client (read side).

Wraps the two endpoints the decision engine consumes: account transactions
and account resources. HTTP 404 raises ResourceNotFound so callers can apply
documented defaults for unknown accounts; every other transport or HTTP
failure raises CollaboratorError with the underlying cause chained.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from backend_aether.aether_logging import get_logger, short_address
from backend_aether.core.exceptions import CollaboratorError, ResourceNotFound

logger = get_logger(__name__)

_REQUEST_TIMEOUT = 15.0
DEFAULT_TRANSACTIONS_LIMIT = 100


class AptosRestClient:
    """
    Thin async client over the Aptos REST API.

    Use as an async context manager, or call aclose() when done. Pass
    `transport` (e.g. httpx.MockTransport) to test without a node.
    """

    def __init__(
        self,
        node_url: str,
        *,
        timeout: float = _REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.node_url = node_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.node_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> AptosRestClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("aptos_request_failed", path=path, error=str(e))
            raise CollaboratorError(f"Aptos request failed: GET {path}", collaborator="aptos", cause=e) from e
        if resp.status_code == 404:
            raise ResourceNotFound(f"Aptos resource not found: GET {path}")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("aptos_http_error", path=path, status_code=resp.status_code)
            raise CollaboratorError(
                f"Aptos returned HTTP {resp.status_code}: GET {path}", collaborator="aptos", cause=e
            ) from e
        try:
            return resp.json()
        except ValueError as e:
            raise CollaboratorError(f"Aptos returned invalid JSON: GET {path}", collaborator="aptos", cause=e) from e

    async def get_account_transactions(
        self,
        address: str,
        *,
        start: int | None = None,
        limit: int = DEFAULT_TRANSACTIONS_LIMIT,
    ) -> list[dict[str, Any]]:
        """Transactions sent by `address`, oldest first."""
        params: dict[str, Any] = {"limit": limit}
        if start is not None:
            params["start"] = start
        data = await self._get_json(f"/accounts/{address}/transactions", params=params)
        if not isinstance(data, list):
            raise CollaboratorError("Aptos transactions response is not a list", collaborator="aptos")
        logger.debug("aptos_transactions_fetched", address=short_address(address), count=len(data))
        return data

    async def get_account_resource(self, address: str, resource_type: str) -> dict[str, Any]:
        """One Move resource of `address`, e.g. `0x1::coin::CoinStore<...>`; returns {type, data}."""
        data = await self._get_json(f"/accounts/{address}/resource/{quote(resource_type, safe=':<>,')}")
        if not isinstance(data, dict):
            raise CollaboratorError("Aptos resource response is not an object", collaborator="aptos")
        return data
