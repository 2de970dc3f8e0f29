"""
Domain utilities for the Candidate Details service.

Cross-cutting request processing helpers that do not belong to adapters
or the caching pipeline.
"""

from .auth_middleware import AuthMiddleware

__all__ = [
    "AuthMiddleware",
]
