# 📂 backend/fulfillment/services/mailer.py — transactional email (Resend)
# -----------------------------------------------------------------------------
# What it does:
#   - Mailer.send_email(to, subject, html) → {"success": bool, "data"?, "error"?}
#     Always returns that dict: provider errors and transport failures are logged
#     and folded into {"success": False, "error": ...}. Never raises.
#   - render_provisioned_email(...) → (subject, html) for a fulfilled order.
#
# The sender is fixed: settings.email_sender() → "STORESKULL <address>".
# The caller passes fully rendered HTML; no templating engine, no retry.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import httpx

from ..config import Settings, get_settings
from ..notifications import escape_html
from ..utils import get_logger

logger = get_logger("storeskull.mail")


class Mailer:
    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        sender: str,
        api_url: str = "https://api.resend.com/emails",
    ):
        self.http = http
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url

    async def send_email(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        if not self.api_key:
            logger.error("RESEND_API_KEY is not set; email to %s not sent", to)
            return {"success": False, "error": "Email provider is not configured."}

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        try:
            r = await self.http.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            try:
                body: Any = r.json()
            except ValueError:
                body = {"message": r.text}

            if r.is_error:
                logger.error("Error sending email to %s (HTTP %s): %s", to, r.status_code, body)
                return {"success": False, "error": body}

            logger.info("Email sent to %s: %s", to, body)
            return {"success": True, "data": body}
        except Exception as e:
            logger.exception("Exception while sending email to %s", to)
            return {"success": False, "error": str(e)}


def build_mailer(http: httpx.AsyncClient, settings: Settings) -> Mailer:
    return Mailer(
        http,
        api_key=settings.RESEND_API_KEY,
        sender=settings.email_sender(),
        api_url=settings.RESEND_API_URL,
    )


def render_provisioned_email(
    order_id: Any,
    username: Optional[str],
    contact_email: str,
    product_name: str,
    panel_url: str,
    server_name: str,
    server_ip: str,
    server_port: str,
) -> Tuple[str, str]:
    """
    Completion email for an auto-provisioned order.

    The login is the contact email. No password is included: new panel
    accounts receive the panel's own "set your password" email, existing
    accounts keep their password.
    """
    store = get_settings().STORE_NAME
    subject = f"Your order is complete: {product_name} - #{order_id}"

    url = escape_html(panel_url)
    html = f"""
      <p>Hello {escape_html(username or 'Customer')},</p>
      <p>Your order for <b>{escape_html(product_name)}</b> (Order ID: <code>{escape_html(order_id)}</code>) has been processed.</p>
      <p>Your Pterodactyl panel access:</p>
      <ul>
        <li><b>Panel URL:</b> <a href="{url}">{url}</a></li>
        <li><b>Username:</b> {escape_html(contact_email)}</li>
        <li><b>Password:</b> If this is a new account, the panel will send you a separate email to set your password. If you already have an account, use your existing password.</li>
        <li><b>Server name:</b> {escape_html(server_name)}</li>
        <li><b>Server address:</b> <code>{escape_html(server_ip)}:{escape_html(server_port)}</code></li>
      </ul>
      <p>Log in to the panel to manage your server.</p>
      <p>Thank you for shopping at {escape_html(store)}!</p>
      <p>Regards,<br>The {escape_html(store)} team</p>
    """
    return subject, html
