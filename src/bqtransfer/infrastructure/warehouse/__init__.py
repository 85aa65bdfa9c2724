"""Warehouse infrastructure."""

from bqtransfer.infrastructure.warehouse.client import BigQueryClient

__all__ = ['BigQueryClient']
