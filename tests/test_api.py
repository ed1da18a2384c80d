from __future__ import annotations

import json

import httpx
import pytest

from conftest import ADMIN_HEADERS, API_BASE, DOMAIN, RecordingHandler, json_handler
from paylink.dependencies import get_payment_service, get_reconciler
from paylink.main import app
from paylink.services.hesabpay_api import HesabPayClient
from paylink.services.payments import PaymentService
from paylink.services.reconciler import CallbackReconciler, CallbackSigner


def get_order(client, order_id):
    resp = client.get(f"/api/orders/{order_id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    return resp.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_end_to_end_payment(client, gateway_handler):
    resp = client.post("/payments/create", json={"amount": 45})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["payment_url"] == "https://pay.example/x"
    order_id = body["order_id"]
    assert order_id.startswith("ORD-")
    sent = json.loads(gateway_handler.requests[0].content)
    assert sent["redirect_success_url"].endswith(f"/payments/callback/success?order_id={order_id}")
    pending = get_order(client, order_id)
    assert pending["status"] == "PENDING"
    assert pending["updatedAt"] is None

    page = client.get("/payments/callback/success", params={"order_id": order_id})
    assert page.status_code == 200
    assert "text/html" in page.headers["content-type"]
    paid = get_order(client, order_id)
    assert paid["status"] == "PAID"
    assert paid["updatedAt"] is not None

    client.get("/payments/callback/success", params={"order_id": order_id})
    client.get("/payments/callback/failure", params={"order_id": order_id})
    assert get_order(client, order_id) == paid


def test_failure_callback(client):
    order_id = client.post("/payments/create", json={"amount": 10, "description": "Rugs"}).json()["order_id"]

    page = client.get("/payments/callback/failure", params={"order_id": order_id})

    assert page.status_code == 200
    assert get_order(client, order_id)["status"] == "FAILED"


@pytest.mark.parametrize("params", [{}, {"order_id": "ORD-unknown"}, {"order_id": "../../secret"}])
def test_callbacks_always_render_page(client, params):
    assert client.get("/payments/callback/success", params=params).status_code == 200
    assert client.get("/payments/callback/failure", params=params).status_code == 200


@pytest.mark.parametrize("gateway_handler", [json_handler(200, {"error": "bad currency"})])
def test_missing_redirect_url_keeps_order_pending(client, gateway_handler):
    resp = client.post("/payments/create", json={"amount": 45, "description": "Tea"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Could not generate invoice link."}
    orders = client.get("/api/orders", headers=ADMIN_HEADERS).json()
    assert [o["status"] for o in orders] == ["PENDING"]


def _timeout(request):
    raise httpx.ConnectTimeout("slow", request=request)


@pytest.mark.parametrize("gateway_handler", [RecordingHandler(_timeout)])
def test_gateway_timeout_is_retryable(client, gateway_handler):
    resp = client.post("/payments/create", json={"amount": 45})

    assert resp.status_code == 502
    assert resp.json()["success"] is False
    orders = client.get("/api/orders", headers=ADMIN_HEADERS).json()
    assert [o["status"] for o in orders] == ["PENDING"]


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"amount": -5},
        {"amount": 45, "items": [{"name": "Tea", "price": 40}]},
        {"amount": 45, "items": [{"name": "Tea", "price": 50}, {"name": "Refund", "price": -5}]},
        {"amount": 45, "items": [{"name": "Tea", "price": 45, "quantity": 0}]},
    ],
)
def test_invalid_requests_are_rejected(client, body):
    resp = client.post("/payments/create", json=body)

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert client.get("/api/orders", headers=ADMIN_HEADERS).json() == []


def test_orders_require_admin_token(client):
    assert client.get("/api/orders").status_code == 401
    assert client.get("/api/orders", headers={"X-Admin-Token": "wrong"}).status_code == 401
    assert client.get("/api/orders/ORD-missing", headers=ADMIN_HEADERS).status_code == 404


def test_disbursement_trigger(client, payout_handler):
    resp = client.post("/internal/disbursements", json={"amount": 45}, headers=ADMIN_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["status_code"] == 200
    assert len(payout_handler.requests) == 1


def test_disbursement_split_mismatch(client, payout_handler):
    resp = client.post("/internal/disbursements", json={"amount": 44}, headers=ADMIN_HEADERS)

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert payout_handler.requests == []


def test_disbursement_requires_admin(client):
    assert client.post("/internal/disbursements", json={"amount": 45}).status_code == 401


def test_amounts_are_json_numbers(client):
    order_id = client.post(
        "/payments/create",
        json={"amount": 45, "items": [{"name": "Tea", "price": 20}, {"name": "Cup", "price": 12.5, "quantity": 2}]},
    ).json()["order_id"]

    order = get_order(client, order_id)

    assert order["amount"] == 45 and isinstance(order["amount"], int)
    assert [i["price"] for i in order["items"]] == [20, 12.5]
    assert isinstance(order["items"][1]["price"], float)


def test_signed_callback_round_trip(client, store, gateway_handler):
    signer = CallbackSigner("callback-secret")
    gateway = HesabPayClient("test-key", API_BASE, "buyer@example.com", transport=httpx.MockTransport(gateway_handler))
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(store, gateway, DOMAIN, "AFN", signer)
    app.dependency_overrides[get_reconciler] = lambda: CallbackReconciler(store, signer)

    order_id = client.post("/payments/create", json={"amount": 45}).json()["order_id"]

    sent = json.loads(gateway_handler.requests[0].content)
    token = signer.sign(order_id)
    assert sent["redirect_success_url"].endswith(f"?order_id={order_id}&token={token}")
    assert sent["redirect_failure_url"].endswith(f"?order_id={order_id}&token={token}")

    client.get("/payments/callback/success", params={"order_id": order_id})
    client.get("/payments/callback/failure", params={"order_id": order_id, "token": "forged"})
    assert get_order(client, order_id)["status"] == "PENDING"

    page = client.get("/payments/callback/success", params={"order_id": order_id, "token": token})
    assert page.status_code == 200
    assert get_order(client, order_id)["status"] == "PAID"
