# 📂 backend/fulfillment/main.py — FastAPI app: fulfillment + admin notifications
# -----------------------------------------------------------------------------
# What it does:
#   1) Builds and configures the FastAPI application (create_app()).
#   2) CORS for the storefront frontend.
#   3) Routers under settings.API_V1_STR:
#        POST /api/provision-pterodactyl  — provision_routes
#        POST /api/notify                 — notify_routes
#   4) Error bodies are always {"error": ...}: HTTPException, 405 and request
#      validation (→ 400) are re-shaped by the handlers below.
#   5) Startup: DB health check, shared httpx.AsyncClient, Telegram notifier
#      (all kept on app.state). Shutdown closes them.
#   6) Info endpoints: GET / and GET /healthz.
# -----------------------------------------------------------------------------

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .bot_notify import build_admin_notifier
from .config import get_settings
from .database import on_shutdown_dispose, on_startup_init_db
from .notify_routes import router as notify_router
from .provision_routes import router as provision_router
from .utils import get_logger

settings = get_settings()
logger = get_logger("storeskull")


# -----------------------------------------------------------------------------
# Error bodies
# -----------------------------------------------------------------------------
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if exc.status_code == 405:
        detail = "Method not allowed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    logger.warning("Invalid payload on %s: %s", request.url.path, details)
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request payload.", "details": details},
    )


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1) DB: engine + health check (raises on failure).
      2) Shared HTTP client for the panel and Resend APIs.
      3) Telegram notifier (None when not configured).
    Shutdown closes them in reverse order and disposes the engine.
    """
    logger.info("Starting up...")
    await on_startup_init_db()
    logger.info("DB initialized")

    app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    app.state.notifier = build_admin_notifier(settings)
    logger.info("Clients ready (telegram=%s)", app.state.notifier is not None)

    try:
        yield
    finally:
        logger.info("Shutting down...")
        if app.state.notifier is not None:
            await app.state.notifier.close()
        await app.state.http_client.aclose()
        await on_shutdown_dispose()
        logger.info("Shutdown complete")


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Order fulfillment backend (FastAPI + PostgreSQL + Pterodactyl + Resend + Telegram)",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(provision_router, prefix=settings.API_V1_STR, tags=["provision"])
    app.include_router(notify_router, prefix=settings.API_V1_STR, tags=["notify"])

    @app.get("/")
    async def root():
        return {
            "name": settings.PROJECT_NAME,
            "env": settings.ENV,
            "api_prefix": settings.API_V1_STR,
            "telegram_configured": settings.telegram_configured(),
            "email_configured": bool(settings.RESEND_API_KEY),
        }

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()


# -----------------------------------------------------------------------------
# Local run: python -m backend.fulfillment.main
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run("backend.fulfillment.main:app", host="0.0.0.0", port=8000, reload=True)
