"""
Middleware package for the markup engine
"""

from app.pricing_intelligence.middleware.timing_middleware import TimingMiddleware

__all__ = [
    "TimingMiddleware",
]
