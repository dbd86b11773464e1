"""API Routes Package."""

from api.routes import data, health

__all__ = [
    "data",
    "health",
]
