# 📂 backend/fulfillment/services/pterodactyl.py — Pterodactyl Application API client
# -----------------------------------------------------------------------------
# What it does (per order, nothing persisted here):
#
#     LookupUser ──found──────────────┐
#         │                           ▼
#         └─not found─► CreateUser ─► CreateServer ─► Done
#
#   • LookupUser:  GET  /api/application/users?search=<email>
#       non-2xx is logged and treated as "not found" (the user may not exist yet).
#   • CreateUser:  POST /api/application/users
#       random password, never stored or returned. The panel mails new users a
#       "set your password" link; PanelAccount.created tells the caller that
#       credential delivery was left to the panel.
#   • CreateServer: POST /api/application/servers
#       limits/feature limits copied from the product's pterodactyl_configs row,
#       one deploy location, empty port_range (the panel picks the port),
#       start_on_completion, external_id "order-<id>" (unique on the panel side).
#
# Failures of CreateUser/CreateServer raise PanelError; the route turns it into 500.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from ..config import get_settings
from ..models import Order, PterodactylConfig
from ..utils import display_username, generate_password, get_logger

logger = get_logger("storeskull.panel")
settings = get_settings()

PANEL_ACCEPT = "Application/vnd.pterodactyl.v1+json"
PLACEHOLDER = "N/A"


class PanelError(Exception):
    """A fatal panel API step failed (user or server creation)."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class PanelAccount(BaseModel):
    id: int
    email: str
    username: str
    # True → account was just created; its password reaches the customer only
    # through the panel's own set-password email.
    created: bool = False


class ProvisionedServer(BaseModel):
    uuid: str
    name: str
    ip: str = PLACEHOLDER
    port: str = PLACEHOLDER


class ProvisionOutcome(BaseModel):
    account: PanelAccount
    server: ProvisionedServer


def _json(r: httpx.Response) -> Dict[str, Any]:
    try:
        data = r.json()
    except ValueError:
        return {"raw": r.text}
    return data if isinstance(data, dict) else {"data": data}


def server_display_name(product_name: Optional[str], username: str, order_id: Any) -> str:
    base = " ".join(p for p in (settings.PANEL_SERVER_NAME_PREFIX, product_name) if p)
    return f"{base} - {username} - {order_id}"


def extract_server(attributes: Dict[str, Any]) -> ProvisionedServer:
    """
    uuid/name plus the first allocation. A server without allocations yet gets
    "N/A" for ip and port.
    """
    allocations = (
        ((attributes.get("relationships") or {}).get("allocations") or {}).get("data") or []
    )
    first = (allocations[0] or {}).get("attributes") if allocations else None
    ip = str(first.get("ip")) if first and first.get("ip") is not None else PLACEHOLDER
    port = str(first.get("port")) if first and first.get("port") is not None else PLACEHOLDER
    return ProvisionedServer(
        uuid=str(attributes["uuid"]),
        name=str(attributes.get("name") or ""),
        ip=ip,
        port=port,
    )


class PterodactylClient:
    """
    Thin async client over the panel's Application API.
    `http` is the process-wide httpx.AsyncClient; credentials are per request
    (they come from the settings table).
    """

    def __init__(self, http: httpx.AsyncClient, panel_url: str, api_key: str):
        self.http = http
        self.panel_url = panel_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": PANEL_ACCEPT,
        }

    def _url(self, path: str) -> str:
        return f"{self.panel_url}/api/application{path}"

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Attributes of the panel user whose email equals `email`
        (case-insensitive), or None.
        """
        r = await self.http.get(self._url("/users"), params={"search": email}, headers=self._headers())
        data = _json(r)
        if r.is_error:
            logger.warning("User search for %s failed (HTTP %s): %s", email, r.status_code, data)
            return None

        for item in data.get("data") or []:
            attrs = (item or {}).get("attributes") or {}
            if str(attrs.get("email", "")).lower() == email.lower() and attrs.get("id") is not None:
                return attrs
        return None

    async def create_user(self, email: str, username: str) -> Dict[str, Any]:
        payload = {
            "email": email,
            "username": username,
            "first_name": username,
            "last_name": settings.PANEL_LAST_NAME,
            "password": generate_password(),
        }
        r = await self.http.post(self._url("/users"), json=payload, headers=self._headers())
        data = _json(r)
        attrs = data.get("attributes") or {}
        if r.is_error or attrs.get("id") is None:
            logger.error("Error creating Pterodactyl user %s (HTTP %s): %s", email, r.status_code, data)
            raise PanelError("Failed to create Pterodactyl user.", data)
        return attrs

    async def ensure_user(self, email: str, username: str) -> PanelAccount:
        """
        Reuses the panel account registered with `email` or creates one.
        A created account has no usable password on our side (created=True).
        """
        existing = await self.find_user_by_email(email)
        if existing:
            logger.info("Found existing Pterodactyl user %s for %s", existing["id"], email)
            return PanelAccount(
                id=int(existing["id"]),
                email=email,
                username=str(existing.get("username") or username),
            )

        attrs = await self.create_user(email, username)
        logger.info("Created Pterodactyl user %s for %s", attrs["id"], email)
        return PanelAccount(
            id=int(attrs["id"]),
            email=email,
            username=str(attrs.get("username") or username),
            created=True,
        )

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------
    def build_server_payload(
        self,
        order: Order,
        config: PterodactylConfig,
        user_id: int,
    ) -> Dict[str, Any]:
        username = display_username(order.username, order.contact_email)
        product_name = order.product.name if order.product is not None else None

        payload: Dict[str, Any] = {
            "name": server_display_name(product_name, username, order.id),
            "user": user_id,
            "egg": config.egg_id,
            "nest": config.nest_id,
            "docker_image": config.docker_image or settings.PANEL_DEFAULT_DOCKER_IMAGE,
            "limits": {
                "memory": config.memory,
                "swap": config.swap,
                "disk": config.disk,
                "io": config.io,
                "cpu": config.cpu,
            },
            "feature_limits": {
                "databases": config.databases or 0,
                "allocations": config.allocations or 0,
                "backups": config.backups or 0,
            },
            "deploy": {
                "locations": [config.location_id],
                "dedicated_ip": False,
                "port_range": [],
            },
            "start_on_completion": True,
            "external_id": f"order-{order.id}",
        }
        if config.startup:
            payload["startup"] = config.startup
        if config.environment:
            payload["environment"] = dict(config.environment)
        return payload

    async def create_server(self, payload: Dict[str, Any]) -> ProvisionedServer:
        r = await self.http.post(
            self._url("/servers"),
            params={"include": "allocations"},
            json=payload,
            headers=self._headers(),
        )
        data = _json(r)
        attrs = data.get("attributes")
        if r.is_error or not attrs or not attrs.get("uuid"):
            logger.error("Error creating Pterodactyl server %s (HTTP %s): %s", payload.get("name"), r.status_code, data)
            raise PanelError("Failed to create Pterodactyl server.", data)
        return extract_server(attrs)

    # ------------------------------------------------------------------
    # Whole flow
    # ------------------------------------------------------------------
    async def provision(self, order: Order, config: PterodactylConfig) -> ProvisionOutcome:
        username = display_username(order.username, order.contact_email)
        account = await self.ensure_user(order.contact_email, username)
        server = await self.create_server(self.build_server_payload(order, config, account.id))
        logger.info("Created Pterodactyl server %s for order %s", server.uuid, order.id)
        return ProvisionOutcome(account=account, server=server)
