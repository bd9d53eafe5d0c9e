# 📂 backend/fulfillment/notifications.py — admin chat message formatting
# -----------------------------------------------------------------------------
# What it does:
#   • Renders Telegram (parse_mode=HTML) messages about orders for the admin chat.
#   • Every interpolated value goes through escape_html(): customer-supplied
#     strings must not inject markup into the chat renderer.
#   • Template choice depends only on (status, product_category):
#       waiting_confirmation            → NEW_ORDER
#       done + panel product category   → PROVISIONED (server id + panel URL)
#       anything else                   → STATUS_UPDATE
#
# Used by:
#   • notify_routes.py — batch relay of storefront orders.
#   • provision_routes.py — "auto-provisioned" message after fulfillment.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
import html
from typing import Any, Optional

from .config import get_settings
from .models import OrderStatus
from .schemas import OrderNotice

settings = get_settings()

PLACEHOLDER = "-"


class NoticeTemplate(str, enum.Enum):
    NEW_ORDER = "new_order"
    PROVISIONED = "provisioned"
    STATUS_UPDATE = "status_update"


def escape_html(value: Any) -> str:
    """None → ''. Everything else is str()-ed and & < > " ' escaped."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def humanize_status(status: Optional[str]) -> str:
    """'waiting_confirmation' → 'WAITING CONFIRMATION'."""
    return (status or "").replace("_", " ").upper()


def select_template(status: Optional[str], category: Optional[str]) -> NoticeTemplate:
    if status == OrderStatus.WAITING_CONFIRMATION.value:
        return NoticeTemplate.NEW_ORDER
    if status == OrderStatus.DONE.value and category == settings.PANEL_PRODUCT_CATEGORY:
        return NoticeTemplate.PROVISIONED
    return NoticeTemplate.STATUS_UPDATE


def format_order_notice(order: OrderNotice, panel_url: Optional[str]) -> str:
    """
    Admin message for one storefront order. `panel_url` is resolved once per
    batch by the caller (placeholder when the settings row is missing).
    """
    order_id = escape_html(order.id)
    username = escape_html(order.username)
    product_name = escape_html(order.product_name)
    payment_method = escape_html(order.payment_method)
    contact_email = escape_html(order.contact_email or PLACEHOLDER)
    status = escape_html(humanize_status(order.status))

    template = select_template(order.status, order.product_category)

    if template is NoticeTemplate.NEW_ORDER:
        return (
            "🛒 <b>New Order</b>\n\n"
            f"🆔 Order ID: <code>{order_id}</code>\n"
            f"👤 User: <b>{username}</b>\n"
            f"📦 Product: <b>{product_name}</b>\n"
            f"📧 Email: <b>{contact_email}</b>\n"
            f"💳 Method: <b>{payment_method}</b>\n"
            "📄 Status: <b>Awaiting confirmation</b>"
        )

    if template is NoticeTemplate.PROVISIONED:
        server_id = escape_html(order.pterodactyl_server_id or PLACEHOLDER)
        url = escape_html(panel_url or PLACEHOLDER)
        return (
            "✅ <b>Order Completed (Pterodactyl)</b>\n\n"
            f"🆔 Order ID: <code>{order_id}</code>\n"
            f"👤 User: <b>{username}</b>\n"
            f"📦 Product: <b>{product_name}</b>\n"
            f"📧 Email: <b>{contact_email}</b>\n"
            f"📄 Status: <b>{status}</b>\n"
            f"⚙️ Pterodactyl Server ID: <code>{server_id}</code>\n"
            f"🔗 Panel URL: {url}"
        )

    return (
        "📢 <b>Order Update</b>\n\n"
        f"🆔 Order ID: <code>{order_id}</code>\n"
        f"👤 User: <b>{username}</b>\n"
        f"📦 Product: <b>{product_name}</b>\n"
        f"📧 Email: <b>{contact_email}</b>\n"
        f"📄 Status: <b>{status}</b>"
    )


def format_auto_provisioned_notice(
    order_id: Any,
    username: Optional[str],
    contact_email: Optional[str],
    product_name: Optional[str],
    server_id: str,
    panel_url: str,
) -> str:
    """Message sent by the fulfillment handler right after a server is created."""
    return (
        "✅ <b>Order Completed Automatically</b>\n\n"
        f"🆔 Order ID: <code>{escape_html(order_id)}</code>\n"
        f"👤 User: <b>{escape_html(username or contact_email)}</b>\n"
        f"📦 Product: <b>{escape_html(product_name)}</b>\n"
        f"📧 Email: <b>{escape_html(contact_email)}</b>\n"
        "📄 Status: <b>DONE (Auto-Provisioned)</b>\n"
        f"⚙️ Pterodactyl Server ID: <code>{escape_html(server_id)}</code>\n"
        f"🔗 Panel URL: {escape_html(panel_url)}"
    )
