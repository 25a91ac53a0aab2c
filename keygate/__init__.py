"""keygate: API access gateway.

Authenticates API-key-bearing requests, enforces per-tier sliding-window
rate limits, meters usage against plan allowances, and raises billing
threshold alerts.
"""

__version__ = "1.0.0"
