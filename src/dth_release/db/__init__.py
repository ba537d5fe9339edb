"""Database layer for the DTH vehicle release portal."""

from .repository import Repository

__all__ = [
    "Repository",
]
