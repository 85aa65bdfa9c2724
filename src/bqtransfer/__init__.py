"""Command-line tools for BigQuery datasets, tables and export/import jobs."""

__version__ = "0.1.0"
