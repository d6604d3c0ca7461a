"""
API connector endpoints (login, ciam, ciamtest).
"""

from .routes import ciam_router

__all__ = ["ciam_router"]
