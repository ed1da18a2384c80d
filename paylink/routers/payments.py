"""Payments router: session creation and the provider's browser callbacks."""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from paylink.dependencies import get_payment_service, get_reconciler
from paylink.models.payment import CreatePaymentRequest, CreatePaymentResponse
from paylink.services.payments import PaymentService
from paylink.services.reconciler import CallbackReconciler
from paylink.utils.logger import logger

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

router = APIRouter()


@router.post("/create", response_model=CreatePaymentResponse)
async def create_payment(
    body: CreatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> CreatePaymentResponse:
    """Persist a PENDING order and return the hosted payment page URL."""
    return await service.create_payment(body)


@router.get("/callback/success", response_class=FileResponse)
async def callback_success(
    order_id: str | None = Query(default=None),
    data: str | None = Query(default=None, description="Provider payload"),
    token: str | None = Query(default=None),
    reconciler: CallbackReconciler = Depends(get_reconciler),
) -> FileResponse:
    try:
        await reconciler.handle_success(order_id, data, token)
    except Exception:  # noqa: BLE001 the browser always gets the terminal page
        logger.exception("Success callback failed for order %s", order_id, extra={"order_id": order_id})
    return FileResponse(STATIC_DIR / "success.html")


@router.get("/callback/failure", response_class=FileResponse)
async def callback_failure(
    order_id: str | None = Query(default=None),
    token: str | None = Query(default=None),
    reconciler: CallbackReconciler = Depends(get_reconciler),
) -> FileResponse:
    try:
        await reconciler.handle_failure(order_id, token)
    except Exception:  # noqa: BLE001
        logger.exception("Failure callback failed for order %s", order_id, extra={"order_id": order_id})
    return FileResponse(STATIC_DIR / "failure.html")
