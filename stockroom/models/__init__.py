"""MongoDB document models for Stockroom."""

from stockroom.models.inventory_item import InventoryItem, ItemStatus
from stockroom.models.reference import Category, Location

__all__ = [
    "Category",
    "InventoryItem",
    "ItemStatus",
    "Location",
]
