"""Observability: structured logging, request context, in-process metrics
and the ASGI middleware tying them together.
"""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
