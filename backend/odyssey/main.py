from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from odyssey.api.routes import limiter, router
from odyssey.core.config import settings
from odyssey.core.logging import log


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the asset pipeline API."""
    log.info("ODYSSEY_STARTUP")

    assets_dir = Path(settings.assets_dir)
    assets_dir.mkdir(parents=True, exist_ok=True)
    log.info(f"ODYSSEY_READY assets_dir={assets_dir}")

    yield

    log.info("ODYSSEY_SHUTDOWN")


app = FastAPI(lifespan=lifespan)

# Rate limiter (shared with the routes); exceeded limits become 429
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def body_size_limit_middleware(request: Request, call_next):
    """Limits request body size.

    Raises:
        JSONResponse: 413 if body exceeds 1MB
    """
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > 1_000_000:
        log.warning(f"body_too_large client={get_remote_address(request)} size={content_length}")
        return JSONResponse(
            {"error": "Payload too large (max 1MB)"},
            status_code=413,
        )
    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    """Adds security headers to all responses."""
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


# API routes
app.include_router(router, prefix="/api")


@app.get("/")
def root() -> dict:
    """Root endpoint."""
    return {
        "name": "Odyssey Asset Pipeline API",
        "docs": "/docs",
        "health": "/api/healthz",
        "endpoints": {
            "trait_config": "/api/trait-config",
            "regenerate_trait_config": "/api/trait-config/regenerate",
            "validate_assets": "/api/assets/validate",
            "token_assets": "/api/tokens/{token_id}/assets",
            "publish_token": "/api/tokens/{token_id}/publish",
        },
    }
