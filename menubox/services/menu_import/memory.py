"""In-memory CatalogRepository and JobStore.

Used by the test suite and for running the service without MongoDB. A
transaction snapshots the catalog and restores it if the block raises.
"""

import asyncio
import copy
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from menubox.models import ImportJobStatus

from .errors import JobNotFoundError, JobStateError
from .repository import CatalogItem, CatalogMenu, ImportJobRecord, utcnow


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryCatalogRepository:
    """Dictionary-backed catalog."""

    def __init__(self) -> None:
        self.menus: dict[str, CatalogMenu] = {}
        self.items: dict[str, CatalogItem] = {}
        self._lock = asyncio.Lock()

    def add_menu(self, restaurant_id: str, name: str, menu_id: str | None = None) -> CatalogMenu:
        menu = CatalogMenu(id=menu_id or _new_id(), restaurant_id=restaurant_id, name=name)
        self.menus[menu.id] = menu
        return menu

    def add_item(
        self,
        restaurant_id: str,
        menu_id: str,
        item_name: str,
        item_id: str | None = None,
        **fields: Any,
    ) -> CatalogItem:
        item = CatalogItem(
            id=item_id or _new_id(),
            restaurant_id=restaurant_id,
            menu_id=menu_id,
            item_name=item_name,
            fields={"item_name": item_name, **fields},
        )
        self.items[item.id] = item
        return item

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with self._lock:
            menus = copy.deepcopy(self.menus)
            items = copy.deepcopy(self.items)
            try:
                yield None
            except BaseException:
                self.menus, self.items = menus, items
                raise

    async def find_items_by_name(
        self,
        restaurant_id: str,
        name: str,
        menu_id: str | None = None,
        exact: bool = False,
    ) -> list[CatalogItem]:
        needle = name.lower()
        matches = []
        for item in self.items.values():
            if item.restaurant_id != restaurant_id or not item.fields.get("is_active", True):
                continue
            if menu_id is not None and item.menu_id != menu_id:
                continue
            candidate = item.item_name.lower()
            matched = candidate == needle if exact else needle in candidate
            if matched:
                matches.append(item)
        return matches

    async def get_menu(self, menu_id: str, restaurant_id: str, session: Any = None) -> CatalogMenu | None:
        menu = self.menus.get(menu_id)
        if menu is None or menu.restaurant_id != restaurant_id:
            return None
        return menu

    async def create_menu(self, restaurant_id: str, name: str, session: Any = None) -> CatalogMenu:
        return self.add_menu(restaurant_id, name)

    async def delete_menu_items(self, menu_id: str, session: Any = None) -> int:
        doomed = [item_id for item_id, item in self.items.items() if item.menu_id == menu_id]
        for item_id in doomed:
            del self.items[item_id]
        return len(doomed)

    async def get_items(self, item_ids: list[str], session: Any = None) -> dict[str, CatalogItem]:
        return {item_id: self.items[item_id] for item_id in item_ids if item_id in self.items}

    async def bulk_write(
        self,
        restaurant_id: str,
        menu_id: str,
        creates: list[dict[str, Any]],
        updates: list[tuple[str, dict[str, Any]]],
        session: Any = None,
    ) -> list[str]:
        new_ids = []
        for fields in creates:
            item = self.add_item(restaurant_id, menu_id, **fields)
            new_ids.append(item.id)
        for item_id, changes in updates:
            item = self.items[item_id]
            item.fields.update(changes)
            item.item_name = item.fields["item_name"]
        return new_ids


class InMemoryJobStore:
    """Dictionary-backed job store; status transitions are lock-protected."""

    def __init__(self) -> None:
        self.jobs: dict[str, ImportJobRecord] = {}
        self._lock = asyncio.Lock()

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
        job = ImportJobRecord(
            id=_new_id(),
            restaurant_id=restaurant_id,
            parsed_menu_name=parsed_menu_name,
            items_to_import=items_to_import,
            original_file_path=original_file_path,
            target_menu_id=target_menu_id,
            replace_all_items=replace_all_items,
        )
        self.jobs[job.id] = job
        return job.model_copy(deep=True)

    async def get(self, job_id: str) -> ImportJobRecord | None:
        job = self.jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def list_for_restaurant(self, restaurant_id: str, limit: int = 50) -> list[ImportJobRecord]:
        jobs = [job for job in self.jobs.values() if job.restaurant_id == restaurant_id]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return [job.model_copy(deep=True) for job in jobs[:limit]]

    async def claim(self, job_id: str) -> ImportJobRecord | None:
        async with self._lock:
            job = self.jobs.get(job_id)
            if job is None or job.status != ImportJobStatus.PENDING:
                return None
            now = utcnow()
            job.status = ImportJobStatus.PROCESSING
            job.attempts += 1
            job.claimed_at = now
            job.processed_at = now
            return job.model_copy(deep=True)

    def _require(self, job_id: str) -> ImportJobRecord:
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Import job {job_id} not found", job_id=job_id)
        return job

    async def update_progress(self, job_id: str, progress: int) -> None:
        self._require(job_id).progress = progress

    async def complete(
        self,
        job_id: str,
        status: ImportJobStatus,
        result: dict[str, Any],
        error_message: str | None = None,
    ) -> None:
        async with self._lock:
            job = self._require(job_id)
            job.status = status
            job.result = result
            job.error_message = error_message
            job.progress = 100
            job.completed_at = utcnow()

    async def fail(self, job_id: str, error_message: str, error_details: str | None = None) -> None:
        async with self._lock:
            job = self._require(job_id)
            job.status = ImportJobStatus.FAILED
            job.error_message = error_message
            job.error_details = error_details
            job.completed_at = utcnow()

    async def cancel(self, job_id: str) -> ImportJobRecord:
        async with self._lock:
            job = self._require(job_id)
            if job.status != ImportJobStatus.PENDING:
                raise JobStateError(
                    f"Import job {job_id} is {job.status.value} and can no longer be cancelled",
                    job_id=job_id,
                    status=job.status.value,
                )
            job.status = ImportJobStatus.CANCELLED
            job.completed_at = utcnow()
            return job.model_copy(deep=True)

    async def reset_stale(self, claimed_before: datetime, max_attempts: int) -> tuple[list[str], list[str]]:
        reset_ids: list[str] = []
        failed_ids: list[str] = []
        async with self._lock:
            for job in self.jobs.values():
                if job.status != ImportJobStatus.PROCESSING or job.claimed_at is None:
                    continue
                if job.claimed_at >= claimed_before:
                    continue
                if job.attempts < max_attempts:
                    job.status = ImportJobStatus.PENDING
                    job.claimed_at = None
                    reset_ids.append(job.id)
                else:
                    job.status = ImportJobStatus.FAILED
                    job.error_message = f"Job abandoned after {job.attempts} attempts"
                    job.completed_at = utcnow()
                    failed_ids.append(job.id)
        return reset_ids, failed_ids

    async def pending_ids(self) -> list[str]:
        pending = [job for job in self.jobs.values() if job.status == ImportJobStatus.PENDING]
        pending.sort(key=lambda job: job.created_at)
        return [job.id for job in pending]
