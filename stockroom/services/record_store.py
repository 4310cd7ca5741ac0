"""Record store interface and its MongoDB implementation."""

import logging
from typing import Any, Protocol

from beanie import PydanticObjectId
from pydantic import ValidationError
from pymongo.errors import BulkWriteError, PyMongoError

from stockroom.models import Category, InventoryItem, Location
from stockroom.services.csv_import.errors import BatchImportError

logger = logging.getLogger(__name__)

AUTO_CREATED_DESCRIPTION = "Created automatically by CSV import"


class RecordStore(Protocol):
    """Destination for validated records.

    ``import_session_id`` identifies the import that produced the records;
    stores that keep provenance stamp it on every record.
    """

    async def create(
        self, record: dict[str, Any], import_session_id: str | None = None
    ) -> dict[str, Any]: ...

    async def create_many(
        self, records: list[dict[str, Any]], import_session_id: str | None = None
    ) -> list[dict[str, Any]]: ...


class MongoRecordStore:
    """Stores records as InventoryItem documents.

    Category and location names are resolved to Category and Location
    documents, which are created when missing. A batch is all or nothing:
    if the bulk insert fails part way, the documents it did write are
    deleted again. Validation and driver failures are raised as
    BatchImportError.
    """

    def __init__(self, import_session_id: str | None = None, resolve_references: bool = True):
        self.import_session_id = import_session_id
        self.resolve_references = resolve_references
        # Reference ids are cached for one import session at a time
        self._reference_ids: dict[tuple[str, str], PydanticObjectId] = {}
        self._cache_session: str | None = None

    async def _reference_id(
        self, kind: str, model: type[Category] | type[Location], name: str
    ) -> PydanticObjectId:
        key = (kind, name.strip())
        if key not in self._reference_ids:
            document = await model.get_or_create(name, description=AUTO_CREATED_DESCRIPTION)
            self._reference_ids[key] = document.id
            logger.debug("Resolved %s %r to %s", kind, key[1], document.id)
        return self._reference_ids[key]

    async def _build(self, record: dict[str, Any], import_session_id: str | None) -> InventoryItem:
        data = dict(record)
        session_id = import_session_id or self.import_session_id
        if session_id is not None:
            data.setdefault("import_session_id", session_id)

        if self.resolve_references:
            if session_id != self._cache_session:
                self._reference_ids.clear()
                self._cache_session = session_id
            if data.get("category") and "category_id" not in data:
                data["category_id"] = await self._reference_id("category", Category, data["category"])
            if data.get("location") and "location_id" not in data:
                data["location_id"] = await self._reference_id("location", Location, data["location"])

        item = InventoryItem(**data)
        item.id = PydanticObjectId()
        return item

    async def create(
        self, record: dict[str, Any], import_session_id: str | None = None
    ) -> dict[str, Any]:
        try:
            item = await self._build(record, import_session_id)
            await item.insert()
        except (ValidationError, PyMongoError) as e:
            raise BatchImportError(f"Could not store record: {e}") from e
        return item.model_dump(mode="json")

    async def create_many(
        self, records: list[dict[str, Any]], import_session_id: str | None = None
    ) -> list[dict[str, Any]]:
        if not records:
            return []
        try:
            items = [await self._build(record, import_session_id) for record in records]
            await InventoryItem.insert_many(items)
        except BulkWriteError as e:
            await self._rollback(items, e)
            raise BatchImportError(f"Could not store {len(records)} records: {e}") from e
        except (ValidationError, PyMongoError) as e:
            raise BatchImportError(f"Could not store {len(records)} records: {e}") from e
        logger.debug("Inserted %d inventory items", len(items))
        return [item.model_dump(mode="json") for item in items]

    async def _rollback(self, items: list[InventoryItem], error: BulkWriteError) -> None:
        """Delete the documents a failed bulk insert managed to write."""
        inserted = error.details.get("nInserted", 0)
        if not inserted:
            return
        ids = [item.id for item in items]
        try:
            await InventoryItem.find({"_id": {"$in": ids}}).delete()
        except PyMongoError as e:
            logger.exception("Could not roll back %d of %d inserted items", inserted, len(items))
            raise BatchImportError(
                f"Could not store {len(items)} records and could not remove the "
                f"{inserted} already written: {e}"
            ) from e
        logger.warning(
            "Rolled back %d of %d items after a failed bulk insert", inserted, len(items)
        )
