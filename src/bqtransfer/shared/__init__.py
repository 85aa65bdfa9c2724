"""Shared utilities package."""

from bqtransfer.shared.logging import setup_logger, get_logger
from bqtransfer.shared.retry import RetryStrategy

__all__ = [
    "setup_logger",
    "get_logger",
    "RetryStrategy",
]
