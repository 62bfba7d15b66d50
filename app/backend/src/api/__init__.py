"""Public API routers exposed by the FastAPI application."""

from . import health, memorials, uploads

__all__ = [
    "health",
    "memorials",
    "uploads",
]
