# 📂 backend/fulfillment/notify_routes.py — admin chat relay for storefront orders
# -----------------------------------------------------------------------------
# POST {API_V1_STR}/notify   body: {"orders": [ {...order record...}, ... ]}
#
#   • Records are taken as posted (already joined with the product), not re-fetched.
#   • The panel URL is read once per batch from the `settings` row; a missing row
#     or a read error gives the "-" placeholder instead of failing the batch.
#   • One Telegram message per record: sendPhoto with caption when payment_proof
#     is present, sendMessage otherwise.
#   • A failing record is logged and skipped; the batch still answers 200.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .bot_notify import AdminNotifier
from .deps import get_notifier, get_order_store
from .notifications import PLACEHOLDER, format_order_notice
from .schemas import ErrorResponse, NotifyRequest, OrderNotice, SuccessResponse
from .services.orders import OrderStore
from .utils import get_logger

router = APIRouter()
logger = get_logger("storeskull.notify")


async def _resolve_panel_url(store: OrderStore) -> str:
    try:
        panel = await store.get_panel_settings()
    except SQLAlchemyError as e:
        logger.error("Error fetching Pterodactyl panel URL from settings: %s", e)
        return PLACEHOLDER
    if panel is None:
        return PLACEHOLDER
    return panel.pterodactyl_panel_url or PLACEHOLDER


async def _relay(notifier: AdminNotifier, order: OrderNotice, panel_url: str) -> bool:
    text = format_order_notice(order, panel_url)
    if order.payment_proof:
        return await notifier.send_photo(photo=order.payment_proof, caption=text)
    return await notifier.send_text(text)


@router.post(
    "/notify",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def notify_orders(
    payload: NotifyRequest,
    store: OrderStore = Depends(get_order_store),
    notifier: Optional[AdminNotifier] = Depends(get_notifier),
):
    if payload.orders is None:
        raise HTTPException(status_code=400, detail="Invalid payload: 'orders' array is required.")

    if notifier is None:
        logger.error("TELEGRAM_BOT_TOKEN or TELEGRAM_ADMIN_CHAT_ID is not set.")
        raise HTTPException(status_code=500, detail="Telegram bot credentials not configured.")

    try:
        panel_url = await _resolve_panel_url(store)

        sent = 0
        for idx, raw in enumerate(payload.orders):
            try:
                order = OrderNotice.model_validate(raw)
            except ValidationError as e:
                logger.error("Skipping malformed order record #%s: %s", idx, e)
                continue
            try:
                if await _relay(notifier, order, panel_url):
                    sent += 1
            except Exception:
                logger.exception("Notification for order %s failed", order.id)

        logger.info("Relayed %s/%s order notifications", sent, len(payload.orders))
        return {"success": True, "message": "Notifications sent."}

    except Exception as e:
        logger.exception("Error in notify API")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "details": str(e)},
        )
