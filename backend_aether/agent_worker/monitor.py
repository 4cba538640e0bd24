"""
Account transaction monitor.

Periodically summarizes an account's recent transactions into a feature
snapshot, runs the rule-based detector against the previous snapshot for
that account, and forwards any anomalies to a handler collaborator (for
example an on-chain anomaly response). One monitor instance keeps one
snapshot per account; do not share an instance between event loops.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Protocol, Sequence

from backend_aether.aether_logging import get_logger, short_address
from backend_aether.agent_worker.orchestrator import HistoryProvider
from backend_aether.analysis_engine.anomaly import Anomaly, AnomalyDetector
from backend_aether.analysis_engine.features import TransactionFeatures
from backend_aether.core.exceptions import CollaboratorError, HistoryFetchError

logger = get_logger(__name__)


class AnomalyHandler(Protocol):
    async def handle_anomaly(self, address: str, anomaly: Anomaly) -> None: ...


class TransactionMonitor:
    def __init__(
        self,
        history_provider: HistoryProvider,
        handler: AnomalyHandler | None = None,
        anomaly_detector: AnomalyDetector | None = None,
    ) -> None:
        self.history_provider = history_provider
        self.handler = handler
        self.anomaly_detector = anomaly_detector or AnomalyDetector()
        self._last_features: dict[str, TransactionFeatures] = {}

    def last_snapshot(self, address: str) -> TransactionFeatures | None:
        return self._last_features.get(address)

    async def monitor(self, address: str, *, now: datetime | None = None) -> list[Anomaly]:
        """
        Check one account. Returns the anomalies found (empty when the account
        has no transactions). Handler failures propagate as CollaboratorError.
        """
        now = now or datetime.now(timezone.utc)
        try:
            history = await self.history_provider.get_history(address)
        except CollaboratorError:
            raise
        except Exception as e:
            raise HistoryFetchError("history fetch failed", cause=e) from e

        if not history.patterns:
            logger.debug("monitor_skip_no_history", address=short_address(address))
            return []

        current = history.as_features(now=now)
        previous = self._last_features.get(address, current)
        anomalies = self.anomaly_detector.detect(current, previous)
        self._last_features[address] = current

        logger.info(
            "monitor_checked",
            address=short_address(address),
            tx_count=len(history.patterns),
            anomaly_types=[a.type.value for a in anomalies],
        )
        if self.handler is not None:
            for anomaly in anomalies:
                try:
                    await self.handler.handle_anomaly(address, anomaly)
                except CollaboratorError:
                    raise
                except Exception as e:
                    raise CollaboratorError(
                        "anomaly response failed", collaborator="anomaly_handler", cause=e
                    ) from e
        return anomalies


async def run_monitor_loop(
    monitor: TransactionMonitor,
    addresses: Sequence[str],
    interval_sec: float,
    stop_event: asyncio.Event,
) -> None:
    """
    Check every address each tick until stop_event is set. A failing address
    is logged and retried next tick; it does not stop the loop.
    """
    logger.info("monitor_loop_started", address_count=len(addresses), interval_sec=interval_sec)
    while not stop_event.is_set():
        for address in addresses:
            try:
                await monitor.monitor(address)
            except CollaboratorError as e:
                logger.warning(
                    "monitor_address_failed",
                    address=short_address(address),
                    collaborator=e.collaborator,
                    error=str(e),
                )
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_sec)
        except asyncio.TimeoutError:
            pass
    logger.info("monitor_loop_stopped")
