"""
OKX Futures Trading Gateway.

A thin, stable set of trading primitives for an automated strategy on OKX
derivatives: cached balance and positions, idempotent leverage changes,
quantity precision, and compound open/close/stop-loss/take-profit operations.
"""

__version__ = "0.1.0"
