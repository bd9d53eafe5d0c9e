# 📂 backend/fulfillment/provision_routes.py — automatic Pterodactyl fulfillment
# -----------------------------------------------------------------------------
# POST {API_V1_STR}/provision-pterodactyl   body: {"order_id": <int>}
#
# Sequence:
#   1) panel credentials from the `settings` row          → 500 if missing
#   2) order + product + pterodactyl_config by id         → 404 if not found
#   3) product category must be PANEL_PRODUCT_CATEGORY    → 400 otherwise
#   4) product must link a pterodactyl_configs row        → 500 otherwise
#   5) order already has pterodactyl_server_id            → 200, nothing else happens
#   6) panel: find-or-create user, create server          → 500 on PanelError
#   7) status='done' + server uuid (compare-and-swap)     → failure only logged
#   8) completion email  ┐ concurrently, failures only logged
#   9) admin Telegram    ┘
#  10) 200 {"success": true, "message": ...}
#
# There is no rollback: once the server exists on the panel the request reports
# success even if step 7 failed; the admin reconciles from the logs.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .bot_notify import AdminNotifier
from .config import get_settings
from .deps import get_http_client, get_mailer, get_notifier, get_order_store
from .models import Order
from .notifications import format_auto_provisioned_notice
from .schemas import ErrorResponse, ProvisionRequest, SuccessResponse
from .services.mailer import Mailer, render_provisioned_email
from .services.orders import OrderStore
from .services.pterodactyl import PanelError, ProvisionOutcome, PterodactylClient
from .utils import get_logger

router = APIRouter()
settings = get_settings()
logger = get_logger("storeskull.provision")


async def _send_completion_email(
    mailer: Mailer,
    order: Order,
    outcome: ProvisionOutcome,
    panel_url: str,
) -> None:
    subject, html = render_provisioned_email(
        order_id=order.id,
        username=order.username,
        contact_email=order.contact_email,
        product_name=order.product.name,
        panel_url=panel_url,
        server_name=outcome.server.name,
        server_ip=outcome.server.ip,
        server_port=outcome.server.port,
    )
    result = await mailer.send_email(order.contact_email, subject, html)
    if not result.get("success"):
        logger.error("Completion email for order %s failed: %s", order.id, result.get("error"))


async def _notify_admin(
    notifier: Optional[AdminNotifier],
    order: Order,
    outcome: ProvisionOutcome,
    panel_url: str,
) -> None:
    if notifier is None:
        return
    text = format_auto_provisioned_notice(
        order_id=order.id,
        username=order.username,
        contact_email=order.contact_email,
        product_name=order.product.name,
        server_id=outcome.server.uuid,
        panel_url=panel_url,
    )
    if await notifier.send_text(text):
        logger.info("Admin notified about auto-provisioned order %s", order.id)


@router.post(
    "/provision-pterodactyl",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def provision_pterodactyl(
    payload: ProvisionRequest,
    store: OrderStore = Depends(get_order_store),
    http: httpx.AsyncClient = Depends(get_http_client),
    mailer: Mailer = Depends(get_mailer),
    notifier: Optional[AdminNotifier] = Depends(get_notifier),
):
    """
    Creates the panel account/server for a paid order and completes it.
    """
    if not payload.order_id:
        raise HTTPException(status_code=400, detail="Order ID is required")
    order_id = payload.order_id

    try:
        # --- 1) panel credentials
        try:
            panel = await store.get_panel_settings()
        except SQLAlchemyError as e:
            logger.error("Error reading settings: %s", e)
            panel = None
        if panel is None or not panel.pterodactyl_api_key or not panel.pterodactyl_panel_url:
            logger.error("Pterodactyl API Key or Panel URL is not configured in settings table.")
            raise HTTPException(status_code=500, detail="Pterodactyl API credentials not configured by admin.")
        panel_url = panel.pterodactyl_panel_url
        api_key = panel.pterodactyl_api_key

        # --- 2) order + product + config
        try:
            order = await store.get_order(order_id)
        except SQLAlchemyError as e:
            logger.error("Error fetching order %s: %s", order_id, e)
            order = None
        if order is None or order.product is None:
            raise HTTPException(status_code=404, detail="Order not found.")

        # --- 3) product type
        product = order.product
        if product.category != settings.PANEL_PRODUCT_CATEGORY:
            raise HTTPException(status_code=400, detail="Product is not a Pterodactyl panel type.")

        # --- 4) linked config
        config = product.pterodactyl_config
        if config is None:
            logger.error("Pterodactyl configuration not found for product: %s", product.name)
            raise HTTPException(
                status_code=500,
                detail="Pterodactyl configuration not linked to product. Please check product settings.",
            )

        # --- 5) already provisioned
        if order.pterodactyl_server_id:
            return {"success": True, "message": "Server already provisioned for this order."}

        # --- 6) panel user + server
        client = PterodactylClient(http, panel_url, api_key)
        try:
            outcome = await client.provision(order, config)
        except PanelError as e:
            raise HTTPException(status_code=500, detail=str(e))

        # --- 7) complete the order
        try:
            if not await store.mark_provisioned(order.id, outcome.server.uuid):
                logger.warning(
                    "Order %s already carries a server id; created server %s needs manual review",
                    order.id, outcome.server.uuid,
                )
        except SQLAlchemyError as e:
            logger.error(
                "Error updating order %s with server %s: %s", order.id, outcome.server.uuid, e,
            )

        # --- 8) + 9) email and admin message
        results = await asyncio.gather(
            _send_completion_email(mailer, order, outcome, panel_url),
            _notify_admin(notifier, order, outcome, panel_url),
            return_exceptions=True,
        )
        for res in results:
            if isinstance(res, Exception):
                logger.error("Notification for order %s failed: %r", order.id, res)

        return {"success": True, "message": "Pterodactyl server provisioned and order completed."}

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error in provision-pterodactyl for order %s", order_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "details": str(e)},
        )
