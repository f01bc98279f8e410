"""API routers."""

from billwatch.routers import recurring

__all__ = ["recurring"]
