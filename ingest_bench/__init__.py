"""Synthetic signal load generator, bulk ingestion pipeline and lag probe."""

__version__ = "0.1.0"
