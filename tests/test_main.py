import httpx
from fastapi.testclient import TestClient

from backend.fulfillment import main


def test_lifespan_builds_and_closes_shared_clients(monkeypatch):
    events = []

    async def init_db():
        events.append("init_db")

    async def dispose():
        events.append("dispose")

    monkeypatch.setattr(main, "on_startup_init_db", init_db)
    monkeypatch.setattr(main, "on_shutdown_dispose", dispose)
    monkeypatch.setattr(main, "build_admin_notifier", lambda settings: None)

    app = main.create_app()
    with TestClient(app) as client:
        assert events == ["init_db"]
        assert isinstance(app.state.http_client, httpx.AsyncClient)
        assert app.state.notifier is None
        assert client.get("/healthz").json() == {"status": "ok"}

    assert events == ["init_db", "dispose"]
    assert app.state.http_client.is_closed
