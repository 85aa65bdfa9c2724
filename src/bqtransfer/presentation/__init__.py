"""Presentation layer package."""

from bqtransfer.presentation.cli import main, build_parser

__all__ = ["main", "build_parser"]
