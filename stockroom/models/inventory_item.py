"""InventoryItem document model for imported stock records."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field


class ItemStatus(str, Enum):
    """Lifecycle status of an inventory item."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class InventoryItem(Document):
    """A stock keeping unit held in inventory."""

    sku: Indexed(str, unique=True)
    name: Indexed(str)
    description: Optional[str] = None
    category: Optional[Indexed(str)] = None
    location: Optional[str] = None
    category_id: Optional[PydanticObjectId] = None
    location_id: Optional[PydanticObjectId] = None

    # Pricing
    price: float = Field(default=0, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)

    # Stock levels
    quantity: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    max_stock: Optional[int] = Field(default=None, ge=0)

    status: ItemStatus = ItemStatus.ACTIVE
    barcode: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    supplier: Optional[str] = None
    notes: Optional[str] = None

    # Import provenance
    import_session_id: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "inventory_items"
