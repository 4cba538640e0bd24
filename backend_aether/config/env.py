"""
Environment variable loading and validation for Aether.

- APTOS_NETWORK: devnet | testnet | mainnet (default: devnet)
- APTOS_NODE_URL: fullnode REST endpoint (overrides the network default)
- AETHER_MODULE_ADDRESS: account that publishes the defi_agent / liquidity_pool modules
- AUDIT_DB_PATH: SQLite file for the assessment audit log
- API_HOST, API_PORT: HTTP server bind
- MONITOR_ADDRESSES, MONITOR_INTERVAL_SEC: accounts watched by the background monitor
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_aether/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_NODE_URL = "https://fullnode.devnet.aptoslabs.com/v1"
TESTNET_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
MAINNET_NODE_URL = "https://fullnode.mainnet.aptoslabs.com/v1"

DEFAULT_MODULE_ADDRESS = "0x1"
DEFAULT_AUDIT_DB_PATH = "aether_audit.db"

_NETWORK_URLS = {
    "devnet": DEVNET_NODE_URL,
    "testnet": TESTNET_NODE_URL,
    "mainnet": MAINNET_NODE_URL,
}


def load_aether_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def get_aptos_network() -> str:
    """
    Return APTOS_NETWORK from env: devnet | testnet | mainnet.
    Unknown values fall back to devnet.
    """
    load_aether_env()
    raw = (os.getenv("APTOS_NETWORK") or "devnet").strip().lower()
    if raw in _NETWORK_URLS:
        return raw
    return "devnet"


def get_aptos_node_url() -> str:
    """
    Resolve the Aptos fullnode REST URL.
    Order: APTOS_NODE_URL > network default.
    """
    load_aether_env()
    url = (os.getenv("APTOS_NODE_URL") or "").strip()
    if url:
        return url.rstrip("/")
    return _NETWORK_URLS[get_aptos_network()]


def get_module_address() -> str:
    """Return AETHER_MODULE_ADDRESS (hex account address), default 0x1."""
    load_aether_env()
    return (os.getenv("AETHER_MODULE_ADDRESS") or "").strip() or DEFAULT_MODULE_ADDRESS


def get_audit_db_path() -> Path:
    load_aether_env()
    return Path((os.getenv("AUDIT_DB_PATH") or "").strip() or DEFAULT_AUDIT_DB_PATH)


def get_api_bind() -> tuple[str, int]:
    """Return (API_HOST, API_PORT) for the HTTP server."""
    load_aether_env()
    host = (os.getenv("API_HOST") or "0.0.0.0").strip()
    port = int((os.getenv("API_PORT") or "8000").strip() or "8000")
    return host, port


def get_monitor_addresses() -> list[str]:
    """Return MONITOR_ADDRESSES (comma-separated); empty disables the background monitor."""
    load_aether_env()
    raw = (os.getenv("MONITOR_ADDRESSES") or "").strip()
    return [a.strip() for a in raw.split(",") if a.strip()]


def get_monitor_interval_sec() -> float:
    load_aether_env()
    return float((os.getenv("MONITOR_INTERVAL_SEC") or "60").strip() or "60")
