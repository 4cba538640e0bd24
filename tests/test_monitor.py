"""
Tests for the account transaction monitor and its polling loop.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from backend_aether.agent_worker.monitor import TransactionMonitor, run_monitor_loop
from backend_aether.analysis_engine.anomaly import AnomalyType
from backend_aether.core.exceptions import CollaboratorError, HistoryFetchError

ACCOUNT = "0x" + "d4" * 32
AFTERNOON = datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)


class _Handler:
    def __init__(self, error: Exception | None = None) -> None:
        self.seen = []
        self.error = error

    async def handle_anomaly(self, address, anomaly):
        if self.error is not None:
            raise self.error
        self.seen.append((address, anomaly))


def test_first_run_compares_against_itself(fakes):
    """No previous snapshot: the account is its own baseline and nothing is flagged."""
    monitor = TransactionMonitor(fakes.History([100.0] * 5))
    assert asyncio.run(monitor.monitor(ACCOUNT, now=AFTERNOON)) == []
    snapshot = monitor.last_snapshot(ACCOUNT)
    assert snapshot.historical_volume == 500.0
    assert snapshot.recipient_trust_score == 0.5
    assert snapshot.biometric_confidence == 1.0


def test_spike_after_baseline_is_forwarded(fakes):
    history = fakes.History([100.0] * 5)
    handler = _Handler()
    monitor = TransactionMonitor(history, handler)
    asyncio.run(monitor.monitor(ACCOUNT, now=AFTERNOON))

    history.amounts = [100.0] * 5 + [1000.0]
    anomalies = asyncio.run(monitor.monitor(ACCOUNT, now=AFTERNOON))
    assert [a.type for a in anomalies] == [AnomalyType.AMOUNT]
    # 1000 against a running average of 250
    assert anomalies[0].severity == pytest.approx(0.8)
    assert handler.seen == [(ACCOUNT, anomalies[0])]
    assert monitor.last_snapshot(ACCOUNT).amount == 1000.0


def test_empty_history_is_skipped(fakes):
    handler = _Handler()
    monitor = TransactionMonitor(fakes.History([]), handler)
    assert asyncio.run(monitor.monitor(ACCOUNT, now=AFTERNOON)) == []
    assert monitor.last_snapshot(ACCOUNT) is None
    assert handler.seen == []


def test_history_failure_raises(fakes):
    monitor = TransactionMonitor(fakes.History(error=RuntimeError("timeout")))
    with pytest.raises(HistoryFetchError):
        asyncio.run(monitor.monitor(ACCOUNT, now=AFTERNOON))


def test_handler_failure_raises(fakes):
    night = datetime(2024, 1, 10, 3, 0, tzinfo=timezone.utc)
    monitor = TransactionMonitor(fakes.History([100.0] * 3), _Handler(error=ValueError("contract reverted")))
    with pytest.raises(CollaboratorError) as exc_info:
        asyncio.run(monitor.monitor(ACCOUNT, now=night))
    assert exc_info.value.collaborator == "anomaly_handler"


def test_loop_survives_failing_address(fakes):
    """One failing account is logged; the others are still checked and the loop stops on request."""

    async def run():
        stop = asyncio.Event()
        good = fakes.History([100.0] * 3)

        class _Router:
            async def get_history(self, address):
                if address == "bad":
                    raise RuntimeError("node down")
                stop.set()
                return await good.get_history(address)

        monitor = TransactionMonitor(_Router())
        await asyncio.wait_for(run_monitor_loop(monitor, ["bad", ACCOUNT], 0.01, stop), timeout=5)
        return monitor, good

    monitor, good = asyncio.run(run())
    assert good.calls == [ACCOUNT]
    assert monitor.last_snapshot(ACCOUNT) is not None
    assert monitor.last_snapshot("bad") is None
