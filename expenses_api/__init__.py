"""HTTP layer for the expense wallet."""

from .app import create_app

__all__ = ["create_app"]
