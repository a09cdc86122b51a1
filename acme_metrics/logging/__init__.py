"""
Structured logging for the ACME metrics service.

JSON logs with timestamp, event_type and keyword context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from acme_metrics.logging.logger import bind_txid, configure_logging, get_logger

__all__ = ["bind_txid", "configure_logging", "get_logger"]
