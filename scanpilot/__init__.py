"""Scan bookkeeping, interactive cancellation and adaptive request-rate tuning."""

__version__ = "0.1.0"

__all__ = [
    "limit_heap",
    "policy_data",
    "scan",
    "menu",
    "response_container",
    "scan_container",
    "rate_limiter",
    "requester",
]