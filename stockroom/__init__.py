"""Stockroom - bulk CSV import for inventory records."""

__version__ = "0.1.0"
