"""Business logic services for Stockroom."""
