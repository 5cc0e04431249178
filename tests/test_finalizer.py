"""Tests for committing reviewed items to the catalog."""

from datetime import datetime
from pathlib import Path

import pytest

from conftest import RESTAURANT_ID, parsed_item
from menubox.models import ImportJobStatus
from menubox.schemas.items import ServingOption
from menubox.schemas.menu_import import (
    FinalImportRequest,
    ImportAction,
    ImportResult,
    ImportResultItemDetail,
    QueuedImportResponse,
    UserAction,
)
from menubox.services.menu_import import (
    ImportFinalizer,
    InMemoryCatalogRepository,
    InMemoryJobStore,
    JobQueue,
    SourceFileError,
    build_error_report,
    remove_source_file,
)
from menubox.services.menu_import.finalizer import ItemImportError, overall_status, prepare_item_fields


@pytest.fixture
def queue() -> JobQueue:
    return JobQueue()


@pytest.fixture
def finalizer(
    catalog: InMemoryCatalogRepository, job_store: InMemoryJobStore, queue: JobQueue, upload_dir: Path
) -> ImportFinalizer:
    return ImportFinalizer(catalog, job_store, queue=queue, async_threshold=50, upload_dir=upload_dir)


def _request(items, **kwargs) -> FinalImportRequest:
    kwargs.setdefault("parsed_menu_name", "Dinner")
    return FinalImportRequest(restaurant_id=RESTAURANT_ID, items_to_import=items, **kwargs)


def _update(name: str, existing_item_id: str, **fields):
    return parsed_item(name, **fields).model_copy(
        update={"import_action": ImportAction.UPDATE, "existing_item_id": existing_item_id}
    )


def _menu_items(catalog: InMemoryCatalogRepository, menu_id: str) -> list[str]:
    return sorted(item.item_name for item in catalog.items.values() if item.menu_id == menu_id)


# =============================================================================
# Item preparation
# =============================================================================


class TestPrepareItemFields:
    def test_food_item(self):
        data = prepare_item_fields(
            parsed_item("Caesar Salad", price=12.99, category="Starters", ingredients=["romaine"], is_vegan=False)
        )

        assert data["item_name"] == "Caesar Salad"
        assert data["item_price"] == 12.99
        assert data["item_category"] == "Starters"
        assert data["item_ingredients"] == ["romaine"]
        assert data["item_type"] == "food"
        assert data["wine_style"] is None
        assert data["serving_options"] == []

    def test_wine_item(self):
        data = prepare_item_fields(
            parsed_item(
                "Chablis Premier Cru",
                item_type="wine",
                wine_style="still",
                wine_vintage=2020,
                wine_grape_varieties=["Chardonnay"],
                serving_options=[ServingOption(size="175ml", price=14), ServingOption(size="Carafe")],
            )
        )

        assert data["wine_style"] == "still"
        assert data["wine_vintage"] == 2020
        assert data["wine_grape_variety"] == ["Chardonnay"]
        # Options without a price are not stored
        assert data["serving_options"] == [{"size": "175ml", "price": 14.0}]

    @pytest.mark.parametrize(
        "style,expected",
        [
            ("Red", "still"),
            ("port", "fortified"),
            ("Prosecco", "sparkling"),
            ("champagne", "champagne"),
            ("orange", "other"),
        ],
    )
    def test_wine_style_aliases(self, style, expected):
        item = parsed_item("House Wine", item_type="wine", wine_style="still")
        item.fields.wine_style.value = style

        assert prepare_item_fields(item)["wine_style"] == expected

    def test_wine_fields_cleared_when_type_changes(self):
        item = parsed_item("Sangria", item_type="wine", wine_style="still", wine_region="Rioja")
        item.fields.item_type.value = "beverage"

        data = prepare_item_fields(item)

        assert data["item_type"] == "beverage"
        assert data["wine_style"] is None
        assert data["wine_region"] is None

    def test_invalid_vintage(self):
        item = parsed_item("Old Port", item_type="wine", wine_style="fortified", wine_vintage=1700)
        max_year = datetime.now().year + 5

        with pytest.raises(ItemImportError, match=f"Vintage 1700 must be between 1800 and {max_year}"):
            prepare_item_fields(item)

    def test_empty_name(self):
        with pytest.raises(ItemImportError, match="Name cannot be empty."):
            prepare_item_fields(parsed_item("  "))

    def test_invalid_item_type(self):
        item = parsed_item("Gift Card")
        item.fields.item_type.value = "voucher"

        with pytest.raises(ItemImportError, match="Invalid item type: voucher"):
            prepare_item_fields(item)


# =============================================================================
# Reports
# =============================================================================


def test_overall_status():
    assert overall_status(10, 0, 0) == "success"
    assert overall_status(10, 2, 3) == "partial_success"
    assert overall_status(10, 2, 8) == "failed"
    assert overall_status(1, 0, 1) == "failed"


def test_build_error_report_quotes_fields():
    details = [
        ImportResultItemDetail(id="a1", name="Fine", status="created"),
        ImportResultItemDetail(
            id="b2",
            name='The "Big" Burger',
            status="error",
            action_attempted="update",
            error_reason="Price cannot be negative",
        ),
    ]

    assert build_error_report(details) == (
        "ItemID,ItemName,ActionAttempted,ErrorReason\n"
        '"b2","The ""Big"" Burger","update","Price cannot be negative"\n'
    )
    assert build_error_report(details[:1]) == ""


# =============================================================================
# Finalize
# =============================================================================


@pytest.mark.asyncio
async def test_small_batch_is_imported_directly(finalizer, catalog, job_store):
    items = [parsed_item(f"Dish {i}", i, price=10.0 + i) for i in range(10)]

    result = await finalizer.finalize(_request(items))

    assert isinstance(result, ImportResult)
    assert result.overall_status == "success"
    assert result.items_created == 10
    assert result.message == "Successfully imported 10 new items and updated 0 items. 0 items were skipped."
    assert catalog.menus[result.menu_id].name == "Dinner"
    assert len(_menu_items(catalog, result.menu_id)) == 10
    assert job_store.jobs == {}


@pytest.mark.asyncio
async def test_large_batch_is_queued(finalizer, catalog, job_store, queue, upload_dir: Path):
    items = [parsed_item(f"Dish {i}", i) for i in range(60)]
    source = str(upload_dir / "upload.csv")

    response = await finalizer.finalize(_request(items, file_path=source))

    assert isinstance(response, QueuedImportResponse)
    assert response.message == f"Menu import with 60 items queued. Job ID: {response.job_id}"
    job = await job_store.get(response.job_id)
    assert job.status == ImportJobStatus.PENDING
    assert len(job.items_to_import) == 60
    assert job.original_file_path == source
    assert queue.qsize() == 1
    assert catalog.items == {}


@pytest.mark.asyncio
async def test_threshold_is_exclusive(finalizer):
    items = [parsed_item(f"Dish {i}", i) for i in range(50)]

    result = await finalizer.finalize(_request(items))

    assert isinstance(result, ImportResult)
    assert result.items_created == 50


@pytest.mark.asyncio
async def test_update_writes_only_changed_fields(finalizer, catalog):
    menu = catalog.add_menu(RESTAURANT_ID, "Dinner")
    existing = catalog.add_item(RESTAURANT_ID, menu.id, "Caesar Salad", item_price=10.0, supplier="Acme")

    result = await finalizer.finalize(
        _request([_update("Caesar Salad", existing.id, price=12.99)], target_menu_id=menu.id)
    )

    assert result.overall_status == "success"
    assert result.items_updated == 1
    stored = catalog.items[existing.id]
    assert stored.fields["item_price"] == 12.99
    # Attributes the import does not manage are left alone
    assert stored.fields["supplier"] == "Acme"


@pytest.mark.asyncio
async def test_unchanged_update_counts_as_skipped(finalizer, catalog):
    menu = catalog.add_menu(RESTAURANT_ID, "Dinner")
    incoming = parsed_item("Soup", price=6.0)
    existing = catalog.add_item(RESTAURANT_ID, menu.id, **prepare_item_fields(incoming))

    result = await finalizer.finalize(
        _request([_update("Soup", existing.id, price=6.0)], target_menu_id=menu.id)
    )

    assert result.items_updated == 0
    assert result.items_skipped == 1
    assert result.overall_status == "success"


@pytest.mark.asyncio
async def test_skip_and_ignore_are_skipped(finalizer, catalog):
    items = [
        parsed_item("Soup", 0),
        parsed_item("Bread", 1).model_copy(update={"import_action": ImportAction.SKIP}),
        parsed_item("Olives", 2).model_copy(update={"user_action": UserAction.IGNORE}),
    ]

    result = await finalizer.finalize(_request(items))

    assert result.items_created == 1
    assert result.items_skipped == 2
    assert result.message == "Successfully imported 1 new items and updated 0 items. 2 items were skipped."


@pytest.mark.asyncio
async def test_item_errors_give_partial_success(finalizer, catalog):
    menu = catalog.add_menu(RESTAURANT_ID, "Dinner")
    ghost = _update("Ghost", "ghost")
    unresolved = parsed_item("Burger", 2).model_copy(update={"import_action": None})

    result = await finalizer.finalize(
        _request([parsed_item("Soup", 0), ghost, unresolved], target_menu_id=menu.id)
    )

    assert result.overall_status == "partial_success"
    assert result.items_created == 1
    assert result.items_errored == 2
    assert result.message == "Import completed with 2 errors."
    reasons = {d.name: d.error_reason for d in result.error_details}
    assert reasons == {
        "Ghost": 'Item to update with ID "ghost" not found.',
        "Burger": "Unresolved conflict: choose new, update or skip for this item.",
    }
    assert result.error_report.splitlines()[1] == (
        f'"{ghost.id}","Ghost","update","Item to update with ID ""ghost"" not found."'
    )
    assert _menu_items(catalog, menu.id) == ["Soup"]


@pytest.mark.asyncio
async def test_all_items_failing_is_failed(finalizer, upload_dir: Path):
    source = upload_dir / "menu.csv"
    source.write_text("name\n")
    items = [parsed_item("Port", item_type="wine", wine_style="fortified", wine_vintage=1700)]

    result = await finalizer.finalize(_request(items, file_path=str(source)))

    assert result.overall_status == "failed"
    assert result.items_errored == 1
    # Source file is kept so the import can be retried
    assert source.exists()


@pytest.mark.asyncio
async def test_missing_target_menu_fails_whole_import(finalizer, catalog):
    items = [parsed_item("Soup", 0), parsed_item("Bread", 1)]

    result = await finalizer.finalize(_request(items, target_menu_id="missing"))

    assert result.overall_status == "failed"
    assert result.message == 'Import failed: Target menu with ID "missing" not found.'
    assert result.items_processed == 2
    assert result.items_errored == 2
    detail = result.error_details[0]
    assert (detail.id, detail.action_attempted) == ("global_error", "import")
    assert result.error_report.startswith("ItemID,ItemName,ActionAttempted,ErrorReason\n")
    assert catalog.items == {}


@pytest.mark.asyncio
async def test_replace_all_items(finalizer, catalog):
    menu = catalog.add_menu(RESTAURANT_ID, "Dinner")
    catalog.add_item(RESTAURANT_ID, menu.id, "Old Soup")
    catalog.add_item(RESTAURANT_ID, menu.id, "Old Bread")
    other = catalog.add_menu(RESTAURANT_ID, "Lunch")
    catalog.add_item(RESTAURANT_ID, other.id, "Sandwich")

    result = await finalizer.finalize(
        _request([parsed_item("New Soup")], target_menu_id=menu.id, replace_all_items=True)
    )

    assert result.menu_id == menu.id
    assert _menu_items(catalog, menu.id) == ["New Soup"]
    assert _menu_items(catalog, other.id) == ["Sandwich"]


@pytest.mark.asyncio
async def test_source_file_removed_on_success(finalizer, upload_dir: Path):
    source = upload_dir / "menu.csv"
    source.write_text("name\nSoup\n")

    result = await finalizer.finalize(_request([parsed_item("Soup")], file_path=str(source)))

    assert result.overall_status == "success"
    assert not source.exists()


@pytest.mark.asyncio
async def test_source_outside_upload_dir_is_rejected(finalizer, catalog, job_store, tmp_path: Path):
    important = tmp_path / "important.txt"
    important.write_text("keep me")

    with pytest.raises(SourceFileError):
        await finalizer.finalize(_request([parsed_item("Soup")], file_path=str(important)))
    with pytest.raises(SourceFileError):
        await finalizer.finalize(
            _request([parsed_item(f"Dish {i}", i) for i in range(60)], file_path=str(important))
        )

    assert important.exists()
    assert catalog.items == {}
    assert job_store.jobs == {}


def test_remove_source_file_stays_in_upload_dir(upload_dir: Path, tmp_path: Path):
    inside = upload_dir / "menu.csv"
    inside.write_text("name\n")
    outside = tmp_path / "important.txt"
    outside.write_text("keep me")

    remove_source_file(str(outside), upload_dir)
    remove_source_file(str(upload_dir / ".." / ".." / "important.txt"), upload_dir)
    remove_source_file(str(inside), upload_dir)

    assert outside.exists()
    assert not inside.exists()


class ExplodingCatalog(InMemoryCatalogRepository):
    """Fails after the batch has been written, before the transaction ends."""

    async def bulk_write(self, *args, **kwargs):
        await super().bulk_write(*args, **kwargs)
        raise RuntimeError("write conflict")


@pytest.mark.asyncio
async def test_failure_rolls_back_batch(job_store):
    catalog = ExplodingCatalog()
    menu = catalog.add_menu(RESTAURANT_ID, "Dinner")
    existing = catalog.add_item(RESTAURANT_ID, menu.id, "Soup", item_price=5.0)
    finalizer = ImportFinalizer(catalog, job_store)

    result = await finalizer.finalize(
        _request(
            [_update("Soup", existing.id, price=7.0), parsed_item("Bread", 1)],
            target_menu_id=menu.id,
        )
    )

    assert result.overall_status == "failed"
    assert result.message == "Import failed: write conflict"
    assert list(catalog.items) == [existing.id]
    assert catalog.items[existing.id].fields["item_price"] == 5.0
