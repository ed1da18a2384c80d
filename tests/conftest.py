from __future__ import annotations

import os

os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("CALLBACK_SECRET", None)

from decimal import Decimal
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from paylink.dependencies import get_disbursement_client, get_payment_service, get_reconciler, get_store
from paylink.main import app
from paylink.models.payout import VendorShare
from paylink.services.disbursement import DisbursementClient
from paylink.services.hesabpay_api import HesabPayClient
from paylink.services.order_store import JsonFileOrderRepository
from paylink.services.payments import PaymentService
from paylink.services.pin_cipher import EvpAesPinCipher
from paylink.services.reconciler import CallbackReconciler

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}
API_BASE = "https://api.hesab.test/api/v1"
DOMAIN = "https://shop.example"


class RecordingHandler:
    """MockTransport handler that records requests and answers with a fixed response."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self._respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)


def json_handler(status: int, body) -> RecordingHandler:
    return RecordingHandler(lambda request: httpx.Response(status, json=body))


@pytest.fixture
def store(tmp_path) -> JsonFileOrderRepository:
    return JsonFileOrderRepository(tmp_path / "orders")


@pytest.fixture
def gateway_handler() -> RecordingHandler:
    return json_handler(200, {"url": "https://pay.example/x"})


@pytest.fixture
def payout_handler() -> RecordingHandler:
    return json_handler(200, {"success": True, "message": "queued"})


@pytest.fixture
def vendors() -> List[VendorShare]:
    return [
        VendorShare(account_number="0700000001", amount=Decimal("30")),
        VendorShare(account_number="0700000002", amount=Decimal("15")),
    ]


@pytest.fixture
def client(store, gateway_handler, payout_handler, vendors):
    gateway = HesabPayClient(
        api_key="test-key",
        base_url=API_BASE,
        payer_email="buyer@example.com",
        transport=httpx.MockTransport(gateway_handler),
    )
    service = PaymentService(store, gateway, DOMAIN, "AFN")
    payouts = DisbursementClient(
        api_key="test-key",
        pin="1234",
        cipher=EvpAesPinCipher("test-key"),
        vendors=vendors,
        base_url=API_BASE,
        transport=httpx.MockTransport(payout_handler),
    )
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_payment_service] = lambda: service
    app.dependency_overrides[get_reconciler] = lambda: CallbackReconciler(store)
    app.dependency_overrides[get_disbursement_client] = lambda: payouts
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
