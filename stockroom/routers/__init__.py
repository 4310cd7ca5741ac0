"""API routers for Stockroom."""
