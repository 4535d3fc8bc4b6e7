"""Domain port definitions for adapters."""

from __future__ import annotations

from .store import ItemCatalogStore, ListStore

__all__ = ["ItemCatalogStore", "ListStore"]
