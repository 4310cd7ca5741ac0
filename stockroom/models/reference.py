"""Category and location reference documents created on demand by imports."""

from datetime import datetime, timezone
from typing import Optional, TypeVar

from beanie import Document, Indexed
from pydantic import Field
from pymongo.errors import DuplicateKeyError

T = TypeVar("T", bound=Document)


async def _get_or_create(model: type[T], name: str, description: str | None) -> T:
    name = name.strip()
    existing = await model.find_one(model.name == name)
    if existing is not None:
        return existing

    document = model(name=name, description=description)
    try:
        await document.insert()
    except DuplicateKeyError:
        # Inserted concurrently by another writer
        return await model.find_one(model.name == name)
    return document


class Category(Document):
    """Product category referenced by inventory items."""

    name: Indexed(str, unique=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "categories"

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"

    @classmethod
    async def get_or_create(cls, name: str, description: str | None = None) -> "Category":
        """Return the category called ``name``, inserting it if missing.

        Surrounding whitespace in ``name`` is ignored.
        """
        return await _get_or_create(cls, name, description)


class Location(Document):
    """Storage location referenced by inventory items."""

    name: Indexed(str, unique=True)
    description: Optional[str] = None
    kind: str = "storage"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "locations"

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name={self.name})>"

    @classmethod
    async def get_or_create(cls, name: str, description: str | None = None) -> "Location":
        """Return the location called ``name``, inserting it if missing."""
        return await _get_or_create(cls, name, description)
