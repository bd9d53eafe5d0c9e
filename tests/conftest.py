import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from backend.fulfillment.deps import get_http_client, get_mailer, get_notifier, get_order_store
from backend.fulfillment.main import create_app
from backend.fulfillment.models import Order, Product, PterodactylConfig, SiteSettings

PANEL_URL = "https://panel.example.com"
PANEL_KEY = "ptla_test_key"


# -----------------------------------------------------------------------------
# Collaborator fakes
# -----------------------------------------------------------------------------
class FakeStore:
    def __init__(self):
        self.panel_settings: Optional[SiteSettings] = SiteSettings(
            id=1, pterodactyl_api_key=PANEL_KEY, pterodactyl_panel_url=PANEL_URL,
        )
        self.orders: Dict[int, Order] = {}
        self.settings_error = False
        self.update_error = False
        self.update_result = True
        self.updates: List[tuple] = []

    async def get_panel_settings(self):
        if self.settings_error:
            raise OperationalError("SELECT settings", {}, Exception("connection reset"))
        return self.panel_settings

    async def get_order(self, order_id):
        return self.orders.get(order_id)

    async def mark_provisioned(self, order_id, server_id):
        self.updates.append((order_id, server_id))
        if self.update_error:
            raise OperationalError("UPDATE orders", {}, Exception("connection reset"))
        return self.update_result


class FakeMailer:
    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.result: Dict[str, Any] = {"success": True, "data": {"id": "email-1"}}

    async def send_email(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return self.result


class FakeNotifier:
    def __init__(self):
        self.texts: List[str] = []
        self.photos: List[Dict[str, str]] = []
        self.fail_on: Optional[str] = None

    async def send_text(self, text):
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("chat api down")
        self.texts.append(text)
        return True

    async def send_photo(self, photo, caption):
        self.photos.append({"photo": photo, "caption": caption})
        return True


class FakePanel:
    """Pterodactyl Application API served through httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.users: List[Dict[str, Any]] = []
        self.search_status = 200
        self.user_status = 201
        self.server_status = 201
        self.next_user_id = 7
        self.allocations: List[Dict[str, Any]] = [
            {"object": "allocation", "attributes": {"id": 3, "ip": "10.0.0.5", "port": 25565}}
        ]

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path == "/api/application/users":
            if self.search_status >= 400:
                return httpx.Response(self.search_status, json={"errors": [{"code": "Forbidden"}]})
            return httpx.Response(
                200,
                json={"object": "list", "data": [{"object": "user", "attributes": u} for u in self.users]},
            )

        if request.method == "POST" and path == "/api/application/users":
            body = json.loads(request.content)
            if self.user_status >= 400:
                return httpx.Response(self.user_status, json={"errors": [{"code": "ValidationException"}]})
            attrs = {"id": self.next_user_id, "email": body["email"], "username": body["username"]}
            self.users.append(attrs)
            return httpx.Response(201, json={"object": "user", "attributes": attrs})

        if request.method == "POST" and path == "/api/application/servers":
            body = json.loads(request.content)
            if self.server_status >= 400:
                return httpx.Response(self.server_status, json={"errors": [{"code": "NoViableNodeException"}]})
            return httpx.Response(
                201,
                json={
                    "object": "server",
                    "attributes": {
                        "id": 11,
                        "uuid": "1a7ce997-259b-452e-8b4e-cecc464142ca",
                        "name": body["name"],
                        "external_id": body.get("external_id"),
                        "relationships": {"allocations": {"object": "list", "data": self.allocations}},
                    },
                },
            )

        return httpx.Response(404, json={"errors": [{"code": "NotFound"}]})


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------
def make_config(**overrides) -> PterodactylConfig:
    values = dict(
        id=5, name="Paper 2GB", egg_id=3, nest_id=1, location_id=2,
        memory=2048, cpu=150, disk=10240, swap=0, io=500,
        databases=1, allocations=1, backups=2,
    )
    values.update(overrides)
    return PterodactylConfig(**values)


def make_order(
    order_id: int = 42,
    category: str = "panel_pterodactyl",
    config: Optional[PterodactylConfig] = None,
    with_config: bool = True,
    **overrides,
) -> Order:
    product = Product(id=9, name="Minecraft Paper", category=category)
    if with_config:
        product.pterodactyl_config = config or make_config()
    values = dict(
        id=order_id, user_id="u-1", product_id=9, contact_email="a@b.com",
        username="abe", status="waiting_confirmation", pterodactyl_server_id=None,
    )
    values.update(overrides)
    order = Order(**values)
    order.product = product
    return order


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def panel():
    return FakePanel()


@pytest.fixture
def app(store, mailer, notifier, panel):
    application = create_app()
    http = httpx.AsyncClient(transport=httpx.MockTransport(panel.handler))
    application.dependency_overrides[get_order_store] = lambda: store
    application.dependency_overrides[get_mailer] = lambda: mailer
    application.dependency_overrides[get_notifier] = lambda: notifier
    application.dependency_overrides[get_http_client] = lambda: http
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
