# 📂 backend/fulfillment/deps.py — FastAPI dependencies for collaborators
# -----------------------------------------------------------------------------
# Process-scoped handles are created in main.py on startup and kept on app.state:
#   app.state.http_client — httpx.AsyncClient (panel + email REST APIs)
#   app.state.notifier    — AdminNotifier | None (Telegram)
# Request-scoped: OrderStore over a fresh AsyncSession, Mailer over the shared client.
# Tests replace any of these through app.dependency_overrides.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .bot_notify import AdminNotifier
from .config import get_settings
from .database import get_session
from .services.mailer import Mailer, build_mailer
from .services.orders import OrderStore


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_notifier(request: Request) -> Optional[AdminNotifier]:
    return getattr(request.app.state, "notifier", None)


async def get_order_store(db: AsyncSession = Depends(get_session)) -> OrderStore:
    return OrderStore(db)


def get_mailer(http: httpx.AsyncClient = Depends(get_http_client)) -> Mailer:
    return build_mailer(http, get_settings())
