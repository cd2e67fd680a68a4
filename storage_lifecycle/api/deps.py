"""
Shared FastAPI dependencies.
"""
from fastapi import Request

from storage_lifecycle.engine import LifecycleEngine


def get_engine(request: Request) -> LifecycleEngine:
    """The engine built at application startup."""
    return request.app.state.engine
