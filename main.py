"""
Main entrypoint: FastAPI server for the Aether decision engine.

The background account monitor starts inside the app lifespan when
MONITOR_ADDRESSES is set. Env: APTOS_NETWORK / APTOS_NODE_URL,
AETHER_MODULE_ADDRESS, AUDIT_DB_PATH, API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT.

API-only equivalent: uvicorn backend_aether.api_server.server:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured logging before other imports that may log
from backend_aether.aether_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Resolve settings, then run the FastAPI server in the main thread."""
    from backend_aether.config.env import get_api_bind
    from backend_aether.config.settings import get_settings

    api_host, api_port = get_api_bind()
    settings = get_settings()
    logger.info(
        "main_server_starting",
        host=api_host,
        port=api_port,
        node_url=settings.node_url,
        audit_db_path=str(settings.audit_db_path),
    )

    from backend_aether.api_server.server import app
    import uvicorn

    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
