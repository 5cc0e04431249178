"""FastAPI application entry point for MenuBox."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from menubox import __version__
from menubox.config import get_settings, settings
from menubox.database import close_db, init_db
from menubox.services import build_components

logger = logging.getLogger(__name__)

if settings.debug:
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Rate limiter configuration
limiter = Limiter(key_func=get_remote_address)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), microphone=(), payment=(), usb=()"
        )

        # JSON API only: nothing is embedded or scripted
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none';"
        )

        if settings.enforce_https:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings.upload_dir.mkdir(parents=True, exist_ok=True)

    await init_db()

    components = build_components(get_settings())
    app.state.menu_import = components
    await components.worker_pool.start()
    logger.info("%s %s started", settings.app_name, __version__)

    yield

    # Shutdown
    await components.worker_pool.stop()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Restaurant menu ingestion and enrichment service",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", tags=["Health"])
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    components = getattr(request.app.state, "menu_import", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "version": __version__,
            "app_name": settings.app_name,
            "queued_jobs": components.queue.qsize() if components else 0,
            "workers_running": components.worker_pool.running if components else False,
        }
    )


# Import and include routers
from menubox.routers import menu_import

app.include_router(menu_import.router, prefix="/api/menu-import", tags=["Menu Import"])
