"""Configuration package."""

from bqtransfer.infrastructure.config.loader import ConfigLoader, Settings

__all__ = ["ConfigLoader", "Settings"]
