"""API module."""

from seedbed.api.routes import router

__all__ = ["router"]
