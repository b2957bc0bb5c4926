"""HTTP surface for hubs (and satellites that expose the same API)."""

from .app import bind_first_free, create_app

__all__ = ["bind_first_free", "create_app"]
