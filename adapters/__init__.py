"""Adapters connecting external reading sources to the monitoring core."""
