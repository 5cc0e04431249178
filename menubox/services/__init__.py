"""Services for MenuBox."""

from menubox.services.menu_import import MenuImportComponents, MenuImportService, build_components

__all__ = ["MenuImportComponents", "MenuImportService", "build_components"]
