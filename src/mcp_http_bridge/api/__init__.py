"""
API HTTP du bridge (FastAPI).
"""

from .router import api_router

__all__ = ["api_router"]
