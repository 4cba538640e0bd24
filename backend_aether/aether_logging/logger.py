"""
Structured JSON logging for transfer and pool decisions.

Every line carries timestamp, level, event_type and logger. Account
addresses under ADDRESS_KEYS are shortened and scores under SCORE_KEYS are
rounded by one processor, so call sites pass raw values:

    log = bind_transaction(sender, recipient)
    log.info("transfer_assessed", risk_score=0.4213377, anomaly_score=0.0)

Imports only stdlib logging and structlog; backend_aether modules import this one.
"""

from __future__ import annotations

import logging
import math
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json for deployments, console for local runs
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

ADDRESS_LOG_CHARS = 16
SCORE_DIGITS = 4

ADDRESS_KEYS = frozenset({"from_address", "to_address", "pool_address", "address"})
SCORE_KEYS = frozenset({"risk_score", "anomaly_score", "severity", "trust_score", "aggregate"})


def short_address(address: str | None) -> str:
    """Truncate an account address for log lines; already-short values pass through."""
    address = address or ""
    if len(address) <= ADDRESS_LOG_CHARS or address.endswith("..."):
        return address
    return address[:ADDRESS_LOG_CHARS] + "..."


def format_aether_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Shorten address keys and round score keys; NaN scores are logged as null."""
    for key in ADDRESS_KEYS & event_dict.keys():
        if isinstance(event_dict[key], str):
            event_dict[key] = short_address(event_dict[key])
    for key in SCORE_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, float):
            event_dict[key] = None if math.isnan(value) else round(value, SCORE_DIGITS)
    return event_dict


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _rename_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's 'event' becomes event_type; message mirrors it unless given."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "event_type" in event_dict:
        event_dict.setdefault("message", str(event_dict["event_type"]))
    return event_dict


def configure_structlog() -> None:
    """Processor chain: context vars, level, exceptions, timestamp, event_type, Aether context, renderer."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _rename_event,
        format_aether_context,
    ]
    if LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("pool_optimized", pool_address=pool, adjust=True)

    Output (JSON): {"event_type": "pool_optimized", "pool_address": "0x3c1d...", "adjust": true,
    "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_transaction(from_address: str, to_address: str) -> structlog.BoundLogger:
    """Logger with both transfer endpoints bound to every subsequent call."""
    return get_logger("backend_aether.transfer").bind(from_address=from_address, to_address=to_address)


def bind_pool(pool_address: str) -> structlog.BoundLogger:
    """Logger with the liquidity pool bound to every subsequent call."""
    return get_logger("backend_aether.pool").bind(pool_address=pool_address)
