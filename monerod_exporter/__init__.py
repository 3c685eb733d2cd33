"""Prometheus exporter for Monero daemon (monerod) RPC metrics."""

__version__ = "0.1.0"
