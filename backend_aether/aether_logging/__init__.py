"""
Structured logging for Backend Aether.

JSON logs with timestamp, event_type and transfer or pool context.
Use get_logger() in all modules; bind_transaction and bind_pool carry decision context.
"""

from backend_aether.aether_logging.logger import bind_pool, bind_transaction, get_logger, short_address

__all__ = ["bind_pool", "bind_transaction", "get_logger", "short_address"]
