from backend.fulfillment.deps import get_notifier

from .conftest import PANEL_URL

ENDPOINT = "/api/notify"


def _order(**overrides):
    record = {
        "id": 42,
        "username": "abe",
        "product_name": "Minecraft Paper",
        "payment_method": "QRIS",
        "contact_email": "a@b.com",
        "status": "waiting_confirmation",
        "product_category": "panel_pterodactyl",
    }
    record.update(overrides)
    return record


def test_payment_proof_is_sent_as_photo(client, notifier):
    proof = "https://cdn.example.com/proofs/42.jpg"

    r = client.post(ENDPOINT, json={"orders": [_order(payment_proof=proof)]})

    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Notifications sent."}
    assert notifier.texts == []
    assert len(notifier.photos) == 1
    assert notifier.photos[0]["photo"] == proof
    assert "New Order" in notifier.photos[0]["caption"]


def test_one_message_per_record(client, notifier):
    orders = [
        _order(id=1),
        _order(id=2, status="done", pterodactyl_server_id="srv-2"),
        _order(id=3, status="rejected"),
    ]

    r = client.post(ENDPOINT, json={"orders": orders})

    assert r.status_code == 200
    assert len(notifier.texts) == 3
    assert "New Order" in notifier.texts[0]
    assert "srv-2" in notifier.texts[1]
    assert PANEL_URL in notifier.texts[1]
    assert "Order Update" in notifier.texts[2]
    assert "REJECTED" in notifier.texts[2]


def test_missing_settings_row_uses_placeholder(client, store, notifier):
    store.panel_settings = None

    r = client.post(ENDPOINT, json={"orders": [_order(status="done", pterodactyl_server_id="srv")]})

    assert r.status_code == 200
    assert notifier.texts[0].endswith("🔗 Panel URL: -")


def test_settings_read_error_is_not_fatal(client, store, notifier):
    store.settings_error = True

    r = client.post(ENDPOINT, json={"orders": [_order(status="done")]})

    assert r.status_code == 200
    assert len(notifier.texts) == 1
    assert "Panel URL: -" in notifier.texts[0]


def test_failing_record_does_not_abort_batch(client, notifier):
    notifier.fail_on = "<code>1</code>"
    orders = [_order(id=1), _order(id=2)]

    r = client.post(ENDPOINT, json={"orders": orders})

    assert r.status_code == 200
    assert len(notifier.texts) == 1
    assert "<code>2</code>" in notifier.texts[0]


def test_malformed_record_is_skipped(client, notifier):
    orders = [{"id": 1, "username": "no-status"}, _order(id=2)]

    r = client.post(ENDPOINT, json={"orders": orders})

    assert r.status_code == 200
    assert len(notifier.texts) == 1


def test_user_fields_are_escaped(client, notifier):
    r = client.post(ENDPOINT, json={"orders": [_order(username="<b>x</b> & 'y'")]})

    assert r.status_code == 200
    text = notifier.texts[0]
    assert "&lt;b&gt;x&lt;/b&gt; &amp; &#x27;y&#x27;" in text
    assert "<b>x</b>" not in text


def test_orders_required(client):
    r = client.post(ENDPOINT, json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid payload: 'orders' array is required."}


def test_orders_must_be_a_list(client):
    r = client.post(ENDPOINT, json={"orders": "42"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_missing_telegram_credentials(app, client, notifier):
    app.dependency_overrides[get_notifier] = lambda: None

    r = client.post(ENDPOINT, json={"orders": [_order()]})

    assert r.status_code == 500
    assert r.json() == {"error": "Telegram bot credentials not configured."}
    assert notifier.texts == []


def test_only_post_is_allowed(client):
    r = client.put(ENDPOINT, json={"orders": []})
    assert r.status_code == 405
    assert r.json() == {"error": "Method not allowed"}


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
