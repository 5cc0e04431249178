"""API routers for MenuBox."""

from menubox.routers import menu_import

__all__ = ["menu_import"]
