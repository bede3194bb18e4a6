"""Prometheus exporter and health endpoints for an Ethereum JSON-RPC node."""

__version__ = "0.1.0"
