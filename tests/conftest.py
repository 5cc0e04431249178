"""Pytest configuration and fixtures for MenuBox tests.

The import pipeline runs against the in-memory catalog and job store; tests
that need a real MongoDB use the ``init_test_db`` fixture and are skipped
unless ``TEST_MONGODB_URL`` points at a reachable server.
"""

import csv
import importlib
import io
import os
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook

from menubox.config import DatabaseConfig, ImportConfig, MenuboxConfig, SecretsConfig, Settings, StorageConfig
from menubox.schemas.items import CanonicalItem
from menubox.schemas.menu_import import ParsedMenuItem
from menubox.services.menu_import import (
    ExtractionResponse,
    InMemoryCatalogRepository,
    InMemoryJobStore,
    MenuImportComponents,
    RetryPolicy,
    build_components,
)
from menubox.services.menu_import.preview import create_parsed_item

# MongoDB connection URL for integration tests; unset means "skip them"
TEST_MONGODB_URL = os.environ.get("TEST_MONGODB_URL")

RESTAURANT_ID = "restaurant-1"


# =============================================================================
# Fakes and builders
# =============================================================================


class FakeExtractionClient:
    """ExtractionClient that replays queued responses (or raises queued errors)."""

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses: list[Any] = list(responses or [])
        self.prompts: list[str] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def extract(self, *, system: str, prompt: str, tool: dict[str, Any]) -> ExtractionResponse:
        self.prompts.append(prompt)
        if not self.responses:
            raise RuntimeError("No extraction response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_csv(headers: list[str], rows: list[list[Any]]) -> bytes:
    """Helper to create CSV bytes."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return output.getvalue().encode("utf-8")


def make_xlsx(headers: list[str], rows: list[list[Any]], title: str | None = None) -> bytes:
    """Helper to create XLSX bytes."""
    wb = Workbook()
    ws = wb.active
    if title:
        ws.title = title
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_pdf(lines: list[str]) -> bytes:
    """Build a single-page PDF whose text layer holds ``lines``."""
    text_ops = []
    y = 750
    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        text_ops.append(f"BT /F1 12 Tf 72 {y} Td ({escaped}) Tj ET")
        y -= 18
    stream = "\n".join(text_ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n".encode() + body + b"\nendobj\n")
    xref_offset = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode())
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(f"{offset:010d} 00000 n \n".encode())
    out.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    )
    return out.getvalue()


def parsed_item(name: str, index: int = 0, **fields: Any) -> ParsedMenuItem:
    """Build a reviewable item from canonical field values."""
    item = CanonicalItem(name=name, **fields)
    return create_parsed_item(item, index)


# =============================================================================
# Test app
# =============================================================================


def create_test_app():
    """Create a FastAPI app configured for testing (no database lifespan)."""
    from fastapi import FastAPI
    from slowapi import _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded

    from menubox import __version__
    from menubox.main import app as main_app
    from menubox.main import limiter

    # Empty lifespan for testing - components are attached per test
    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(
        title="MenuBox Test",
        version=__version__,
        lifespan=test_lifespan,
    )
    test_app.state.limiter = limiter
    test_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Copy all routes
    for route in main_app.routes:
        test_app.routes.append(route)

    return test_app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Directory where test uploads and source files live."""
    path = tmp_path / "data" / "uploads"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def test_settings(tmp_path: Path, upload_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings with a temporary data dir, installed as the global settings."""
    config = MenuboxConfig(
        database=DatabaseConfig(use_transactions=False),
        storage=StorageConfig(data_dir=tmp_path / "data", max_upload_mb=1),
        imports=ImportConfig(async_threshold=50, worker_concurrency=1),
    )
    test_settings = Settings(config=config, secrets=SecretsConfig(anthropic_api_key="test-key"))

    settings_module = importlib.import_module("menubox.config.settings")
    monkeypatch.setattr(settings_module, "_settings", test_settings)
    return test_settings


@pytest.fixture
def catalog() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def extraction_client() -> FakeExtractionClient:
    return FakeExtractionClient()


@pytest.fixture
def components(
    test_settings: Settings,
    catalog: InMemoryCatalogRepository,
    job_store: InMemoryJobStore,
    extraction_client: FakeExtractionClient,
) -> MenuImportComponents:
    """Import pipeline wired to in-memory stores and a fake model client."""
    return build_components(
        test_settings,
        repository=catalog,
        job_store=job_store,
        extraction_client=extraction_client,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0, sleep=AsyncMock()),
    )


@pytest_asyncio.fixture(scope="function")
async def client(components: MenuImportComponents) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client backed by the in-memory pipeline."""
    from menubox.routers.menu_import import limiter as upload_limiter

    upload_limiter.reset()

    app = create_test_app()
    app.state.menu_import = components
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def init_test_db():
    """Initialize Beanie with a unique test database, dropped afterwards."""
    if not TEST_MONGODB_URL:
        pytest.skip("TEST_MONGODB_URL not set")

    from motor.motor_asyncio import AsyncIOMotorClient
    from pymongo.errors import PyMongoError

    from menubox.database import close_db, init_db

    mongo_client = AsyncIOMotorClient(TEST_MONGODB_URL, serverSelectionTimeoutMS=2000)
    try:
        await mongo_client.admin.command("ping")
    except PyMongoError:
        mongo_client.close()
        pytest.skip(f"MongoDB not reachable at {TEST_MONGODB_URL}")

    db_name = f"test_menubox_{uuid.uuid4().hex[:8]}"
    await init_db(mongodb_database=db_name, motor_client=mongo_client)
    yield mongo_client[db_name]

    await mongo_client.drop_database(db_name)
    await close_db()
