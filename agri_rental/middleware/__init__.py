"""
Request processing middleware for the rental API.

- Request ID tracking so log lines and problem responses can be correlated
"""

from .correlation import RequestIdMiddleware, RequestIdLogFilter, get_request_id

__all__ = [
    "RequestIdMiddleware",
    "RequestIdLogFilter",
    "get_request_id",
]
