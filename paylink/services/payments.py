"""Create-payment flow: record a PENDING order, then open a provider session.

The order is persisted before the provider is called, so a gateway failure or
timeout leaves it PENDING for later reconciliation instead of losing it.
"""
from __future__ import annotations

import secrets
import time
from decimal import Decimal

from paylink.errors import DuplicateId, GatewayError, ValidationError
from paylink.models.order import Order, OrderStatus
from paylink.models.payment import CreatePaymentRequest, CreatePaymentResponse, GatewayFailure
from paylink.services.hesabpay_api import HesabPayClient
from paylink.services.order_store import OrderRepository, utcnow
from paylink.services.reconciler import CallbackSigner
from paylink.utils.logger import logger

SUCCESS_PATH = "/payments/callback/success"
FAILURE_PATH = "/payments/callback/failure"
_ID_ATTEMPTS = 3


def new_order_id() -> str:
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class PaymentService:
    def __init__(
        self,
        store: OrderRepository,
        gateway: HesabPayClient,
        domain: str,
        currency: str,
        signer: CallbackSigner | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._domain = domain.rstrip("/")
        self._currency = currency
        self._signer = signer or CallbackSigner(None)

    @staticmethod
    def validate(request: CreatePaymentRequest) -> None:
        if request.items:
            total = sum((it.price * it.quantity for it in request.items), Decimal("0"))
            if total != request.amount:
                raise ValidationError(f"items total {total} does not match amount {request.amount}")

    async def _create_order(self, request: CreatePaymentRequest) -> Order:
        for _ in range(_ID_ATTEMPTS):
            order = Order(
                id=new_order_id(),
                amount=request.amount,
                currency=self._currency,
                description=request.description or None,
                items=request.items or [],
                status=OrderStatus.PENDING,
                created_at=utcnow(),
            )
            try:
                return await self._store.create(order)
            except DuplicateId:
                logger.warning("Order id %s collided, regenerating", order.id, extra={"order_id": order.id})
        raise DuplicateId("could not allocate a unique order id")

    async def create_payment(self, request: CreatePaymentRequest) -> CreatePaymentResponse:
        self.validate(request)
        order = await self._create_order(request)

        result = await self._gateway.create_session(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            description=order.description,
            success_url=f"{self._domain}{SUCCESS_PATH}",
            failure_url=f"{self._domain}{FAILURE_PATH}",
            items=order.items or None,
            callback_params=self._signer.callback_params(order.id),
        )
        if isinstance(result, GatewayFailure):
            logger.warning(
                "Order %s left pending after gateway failure: %s", order.id, result.reason, extra={"order_id": order.id}
            )
            if result.retryable:
                raise GatewayError("Payment provider did not respond, please retry.", retryable=True)
            raise GatewayError("Could not generate invoice link.")
        return CreatePaymentResponse(payment_url=result.payment_url, order_id=order.id)
