"""
Middleware module for FastAPI application.

This module contains custom middleware for:
- Prometheus metrics collection
"""
from storage_lifecycle.middleware.metrics import MetricsMiddleware

__all__ = ["MetricsMiddleware"]
