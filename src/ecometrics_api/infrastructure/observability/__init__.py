"""Prometheus metrics for the repository and the version store."""
