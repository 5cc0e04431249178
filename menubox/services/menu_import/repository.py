"""Catalog and job persistence used by the import pipeline.

The pipeline talks to two protocols: ``CatalogRepository`` for menus and
menu items, and ``JobStore`` for queued imports. Both have MongoDB
implementations backed by the Beanie documents in ``menubox.models``; the
in-memory implementations live in ``memory``.
"""

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, AsyncIterator, Optional, Protocol

from beanie import BulkWriter, PydanticObjectId, UpdateResponse
from bson import ObjectId
from pydantic import BaseModel, Field

from menubox.models import ImportJobStatus, Menu, MenuImportJob, MenuItem

from .errors import JobNotFoundError, JobStateError

logger = logging.getLogger(__name__)

# MenuItem attributes that describe the item itself (everything the
# finalizer may write)
ITEM_FIELDS: tuple[str, ...] = (
    "item_name",
    "item_price",
    "item_type",
    "item_category",
    "description",
    "item_ingredients",
    "allergens",
    "is_gluten_free",
    "is_vegan",
    "is_vegetarian",
    "is_dairy_free",
    "wine_style",
    "wine_producer",
    "wine_grape_variety",
    "wine_vintage",
    "wine_region",
    "serving_options",
    "wine_pairings",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Records
# =============================================================================


class CatalogMenu(BaseModel):
    """A menu as seen by the import pipeline."""

    id: str
    restaurant_id: str
    name: str
    is_active: bool = True


class CatalogItem(BaseModel):
    """A catalog item as seen by the import pipeline."""

    id: str
    restaurant_id: str
    menu_id: str
    item_name: str
    fields: dict[str, Any] = Field(default_factory=dict)


class ImportJobRecord(BaseModel):
    """Snapshot of an import job."""

    id: str
    restaurant_id: str
    original_file_path: Optional[str] = None
    parsed_menu_name: str
    target_menu_id: Optional[str] = None
    replace_all_items: bool = False
    items_to_import: list[dict[str, Any]] = Field(default_factory=list)

    status: ImportJobStatus = ImportJobStatus.PENDING
    progress: int = 0
    attempts: int = 0
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    claimed_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# =============================================================================
# Protocols
# =============================================================================


class CatalogRepository(Protocol):
    """Read and write access to menus and menu items."""

    def transaction(self) -> AsyncContextManager[Any]:
        """Context manager yielding a session; every write inside is atomic."""
        ...

    async def find_items_by_name(
        self,
        restaurant_id: str,
        name: str,
        menu_id: str | None = None,
        exact: bool = False,
    ) -> list[CatalogItem]:
        """Active items whose name equals (``exact``) or contains ``name``, case-insensitively."""
        ...

    async def get_menu(self, menu_id: str, restaurant_id: str, session: Any = None) -> CatalogMenu | None: ...

    async def create_menu(self, restaurant_id: str, name: str, session: Any = None) -> CatalogMenu: ...

    async def delete_menu_items(self, menu_id: str, session: Any = None) -> int: ...

    async def get_items(self, item_ids: list[str], session: Any = None) -> dict[str, CatalogItem]: ...

    async def bulk_write(
        self,
        restaurant_id: str,
        menu_id: str,
        creates: list[dict[str, Any]],
        updates: list[tuple[str, dict[str, Any]]],
        session: Any = None,
    ) -> list[str]:
        """Insert ``creates`` and apply ``updates`` in one batch; returns the new item ids."""
        ...


class JobStore(Protocol):
    """Durable storage of import jobs."""

    async def create(
        self,
        *,
        restaurant_id: str,
        parsed_menu_name: str,
        items_to_import: list[dict[str, Any]],
        original_file_path: str | None = None,
        target_menu_id: str | None = None,
        replace_all_items: bool = False,
    ) -> ImportJobRecord: ...

    async def get(self, job_id: str) -> ImportJobRecord | None: ...

    async def list_for_restaurant(self, restaurant_id: str, limit: int = 50) -> list[ImportJobRecord]: ...

    async def claim(self, job_id: str) -> ImportJobRecord | None:
        """Atomically move a pending job to processing; None if it was not pending."""
        ...

    async def update_progress(self, job_id: str, progress: int) -> None: ...

    async def complete(
        self,
        job_id: str,
        status: ImportJobStatus,
        result: dict[str, Any],
        error_message: str | None = None,
    ) -> None: ...

    async def fail(self, job_id: str, error_message: str, error_details: str | None = None) -> None: ...

    async def cancel(self, job_id: str) -> ImportJobRecord: ...

    async def reset_stale(self, claimed_before: datetime, max_attempts: int) -> tuple[list[str], list[str]]:
        """Release stuck processing jobs; returns (reset ids, failed ids)."""
        ...

    async def pending_ids(self) -> list[str]: ...


# =============================================================================
# MongoDB implementations
# =============================================================================


def _object_id(value: str | None) -> PydanticObjectId | None:
    if value is None or not ObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


def _menu_record(menu: Menu) -> CatalogMenu:
    return CatalogMenu(id=str(menu.id), restaurant_id=menu.restaurant_id, name=menu.name, is_active=menu.is_active)


def _item_record(item: MenuItem) -> CatalogItem:
    return CatalogItem(
        id=str(item.id),
        restaurant_id=item.restaurant_id,
        menu_id=str(item.menu_id),
        item_name=item.item_name,
        fields=item.model_dump(include=set(ITEM_FIELDS)),
    )


def _job_record(job: MenuImportJob) -> ImportJobRecord:
    return ImportJobRecord(id=str(job.id), **job.model_dump(exclude={"id", "revision_id"}))


class MongoCatalogRepository:
    """CatalogRepository over the Menu and MenuItem Beanie documents."""

    def __init__(self, client: Any = None, use_transactions: bool = False) -> None:
        self._client = client
        self.use_transactions = use_transactions

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        if not self.use_transactions:
            # Standalone servers have no transactions; writes are still batched
            yield None
            return

        from menubox.database import get_client

        client = self._client or get_client()
        async with await client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def find_items_by_name(
        self,
        restaurant_id: str,
        name: str,
        menu_id: str | None = None,
        exact: bool = False,
    ) -> list[CatalogItem]:
        pattern = f"^{re.escape(name)}$" if exact else re.escape(name)
        conditions: dict[str, Any] = {
            "restaurant_id": restaurant_id,
            "is_active": True,
            "item_name": {"$regex": re.compile(pattern, re.IGNORECASE)},
        }
        if menu_id is not None:
            menu_oid = _object_id(menu_id)
            if menu_oid is None:
                return []
            conditions["menu_id"] = menu_oid

        items = await MenuItem.find(conditions).limit(100).to_list()
        return [_item_record(item) for item in items]

    async def get_menu(self, menu_id: str, restaurant_id: str, session: Any = None) -> CatalogMenu | None:
        menu_oid = _object_id(menu_id)
        if menu_oid is None:
            return None
        menu = await Menu.find_one(
            Menu.id == menu_oid,
            Menu.restaurant_id == restaurant_id,
            session=session,
        )
        return _menu_record(menu) if menu else None

    async def create_menu(self, restaurant_id: str, name: str, session: Any = None) -> CatalogMenu:
        menu = Menu(restaurant_id=restaurant_id, name=name, is_active=True)
        await menu.insert(session=session)
        logger.info("Created menu %s (%s) for restaurant %s", menu.id, name, restaurant_id)
        return _menu_record(menu)

    async def delete_menu_items(self, menu_id: str, session: Any = None) -> int:
        menu_oid = _object_id(menu_id)
        if menu_oid is None:
            return 0
        result = await MenuItem.find(MenuItem.menu_id == menu_oid, session=session).delete(session=session)
        deleted = result.deleted_count if result else 0
        logger.info("Deleted %d items from menu %s", deleted, menu_id)
        return deleted

    async def get_items(self, item_ids: list[str], session: Any = None) -> dict[str, CatalogItem]:
        oids = [oid for oid in (_object_id(i) for i in item_ids) if oid is not None]
        if not oids:
            return {}
        items = await MenuItem.find({"_id": {"$in": oids}}, session=session).to_list()
        return {str(item.id): _item_record(item) for item in items}

    async def bulk_write(
        self,
        restaurant_id: str,
        menu_id: str,
        creates: list[dict[str, Any]],
        updates: list[tuple[str, dict[str, Any]]],
        session: Any = None,
    ) -> list[str]:
        if not creates and not updates:
            return []

        menu_oid = PydanticObjectId(menu_id)
        new_ids: list[str] = []
        now = utcnow()
        async with BulkWriter(session=session) as bulk_writer:
            for fields in creates:
                item = MenuItem(id=PydanticObjectId(), restaurant_id=restaurant_id, menu_id=menu_oid, **fields)
                await MenuItem.insert_one(item, session=session, bulk_writer=bulk_writer)
                new_ids.append(str(item.id))
            for item_id, changes in updates:
                await MenuItem.find_one({"_id": PydanticObjectId(item_id)}, session=session).update(
                    {"$set": {**changes, "updated_at": now}},
                    session=session,
                    bulk_writer=bulk_writer,
                )
        logger.debug("Bulk write: %d inserts, %d updates", len(creates), len(updates))
        return new_ids


class MongoJobStore:
    """JobStore over the MenuImportJob Beanie document."""

    async def create(
        self,
        *,
        restaurant_id: str,
        parsed_menu_name: str,
        items_to_import: list[dict[str, Any]],
        original_file_path: str | None = None,
        target_menu_id: str | None = None,
        replace_all_items: bool = False,
    ) -> ImportJobRecord:
        job = MenuImportJob(
            restaurant_id=restaurant_id,
            parsed_menu_name=parsed_menu_name,
            items_to_import=items_to_import,
            original_file_path=original_file_path,
            target_menu_id=target_menu_id,
            replace_all_items=replace_all_items,
        )
        await job.insert()
        return _job_record(job)

    async def get(self, job_id: str) -> ImportJobRecord | None:
        job_oid = _object_id(job_id)
        if job_oid is None:
            return None
        job = await MenuImportJob.get(job_oid)
        return _job_record(job) if job else None

    async def list_for_restaurant(self, restaurant_id: str, limit: int = 50) -> list[ImportJobRecord]:
        jobs = (
            await MenuImportJob.find(MenuImportJob.restaurant_id == restaurant_id)
            .sort(-MenuImportJob.created_at)
            .limit(limit)
            .to_list()
        )
        return [_job_record(job) for job in jobs]

    async def claim(self, job_id: str) -> ImportJobRecord | None:
        job_oid = _object_id(job_id)
        if job_oid is None:
            return None
        now = utcnow()
        job = await MenuImportJob.find_one(
            {"_id": job_oid, "status": ImportJobStatus.PENDING.value}
        ).update(
            {
                "$set": {
                    "status": ImportJobStatus.PROCESSING.value,
                    "claimed_at": now,
                    "processed_at": now,
                },
                "$inc": {"attempts": 1},
            },
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return _job_record(job) if job else None

    async def update_progress(self, job_id: str, progress: int) -> None:
        await MenuImportJob.find_one({"_id": PydanticObjectId(job_id)}).update(
            {"$set": {"progress": progress}}
        )

    async def complete(
        self,
        job_id: str,
        status: ImportJobStatus,
        result: dict[str, Any],
        error_message: str | None = None,
    ) -> None:
        await MenuImportJob.find_one({"_id": PydanticObjectId(job_id)}).update(
            {
                "$set": {
                    "status": status.value,
                    "result": result,
                    "progress": 100,
                    "error_message": error_message,
                    "completed_at": utcnow(),
                }
            }
        )

    async def fail(self, job_id: str, error_message: str, error_details: str | None = None) -> None:
        await MenuImportJob.find_one({"_id": PydanticObjectId(job_id)}).update(
            {
                "$set": {
                    "status": ImportJobStatus.FAILED.value,
                    "error_message": error_message,
                    "error_details": error_details,
                    "completed_at": utcnow(),
                }
            }
        )

    async def cancel(self, job_id: str) -> ImportJobRecord:
        job_oid = _object_id(job_id)
        if job_oid is None:
            raise JobNotFoundError(f"Import job {job_id} not found", job_id=job_id)

        job = await MenuImportJob.find_one(
            {"_id": job_oid, "status": ImportJobStatus.PENDING.value}
        ).update(
            {"$set": {"status": ImportJobStatus.CANCELLED.value, "completed_at": utcnow()}},
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if job is not None:
            return _job_record(job)

        existing = await MenuImportJob.get(job_oid)
        if existing is None:
            raise JobNotFoundError(f"Import job {job_id} not found", job_id=job_id)
        raise JobStateError(
            f"Import job {job_id} is {existing.status.value} and can no longer be cancelled",
            job_id=job_id,
            status=existing.status.value,
        )

    async def reset_stale(self, claimed_before: datetime, max_attempts: int) -> tuple[list[str], list[str]]:
        stale = await MenuImportJob.find(
            {"status": ImportJobStatus.PROCESSING.value, "claimed_at": {"$lt": claimed_before}}
        ).to_list()

        reset_ids: list[str] = []
        failed_ids: list[str] = []
        for job in stale:
            if job.attempts < max_attempts:
                await job.set({"status": ImportJobStatus.PENDING.value, "claimed_at": None})
                reset_ids.append(str(job.id))
            else:
                await job.set(
                    {
                        "status": ImportJobStatus.FAILED.value,
                        "error_message": f"Job abandoned after {job.attempts} attempts",
                        "completed_at": utcnow(),
                    }
                )
                failed_ids.append(str(job.id))
        return reset_ids, failed_ids

    async def pending_ids(self) -> list[str]:
        jobs = (
            await MenuImportJob.find({"status": ImportJobStatus.PENDING.value})
            .sort(+MenuImportJob.created_at)
            .to_list()
        )
        return [str(job.id) for job in jobs]
