"""Reconciles provider redirects with stored orders.

The success/failure redirects are plain browser GETs, so their parameters are
untrusted. Only ``PENDING -> PAID`` and ``PENDING -> FAILED`` are accepted,
each at most once, and when a callback secret is configured the redirect must
also carry the HMAC token that was embedded in the callback URLs at session
creation.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from typing import Any, Dict, Optional

from paylink.errors import PaylinkError
from paylink.models.order import OrderStatus
from paylink.services.order_store import OrderRepository
from paylink.utils.logger import logger

TRANSACTION_ID_KEYS = ("transaction_id", "transactionId", "tran_id", "id")


class CallbackSigner:
    """Binds callback URLs to an order id with an HMAC-SHA256 token."""

    def __init__(self, secret: str | None) -> None:
        self._secret = secret.encode("utf-8") if secret else None

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def sign(self, order_id: str) -> str:
        if self._secret is None:
            raise RuntimeError("callback secret is not configured")
        return hmac.new(self._secret, order_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def callback_params(self, order_id: str) -> Dict[str, str]:
        return {"token": self.sign(order_id)} if self.enabled else {}

    def verify(self, order_id: str, token: str | None) -> bool:
        if self._secret is None:
            return True
        if not token:
            return False
        return hmac.compare_digest(self.sign(order_id), token)


def _decode_provider_data(raw: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if data is None:
        padded = raw + "=" * (-len(raw) % 4)
        for decode in (base64.urlsafe_b64decode, base64.b64decode):
            try:
                data = json.loads(decode(padded.encode("ascii")))
                break
            except (ValueError, binascii.Error, UnicodeError):
                continue
    return data if isinstance(data, dict) else None


def extract_transaction_id(provider_data: str | None) -> Optional[str]:
    """Pull the provider's transaction id out of the ``data`` redirect parameter.

    The parameter may be raw JSON or base64 encoded JSON; anything else yields None.
    """
    if not provider_data:
        return None
    data = _decode_provider_data(provider_data)
    if not data:
        return None
    for key in TRANSACTION_ID_KEYS:
        value = data.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    return None


class CallbackReconciler:
    def __init__(self, store: OrderRepository, signer: CallbackSigner | None = None) -> None:
        self._store = store
        self._signer = signer or CallbackSigner(None)

    async def handle_success(
        self, order_id: str | None, provider_data: str | None = None, token: str | None = None
    ) -> bool:
        extra = {"transaction_id": extract_transaction_id(provider_data)}
        return await self._settle(order_id, OrderStatus.PAID, extra, token)

    async def handle_failure(self, order_id: str | None, token: str | None = None) -> bool:
        return await self._settle(order_id, OrderStatus.FAILED, None, token)

    async def _settle(
        self,
        order_id: str | None,
        to: OrderStatus,
        extra: Optional[Dict[str, Any]],
        token: str | None,
    ) -> bool:
        """Apply ``PENDING -> to``; returns True only when this call changed the order."""
        logger.info("Payment callback for order %s: %s", order_id, to.value, extra={"order_id": order_id})
        if not order_id:
            return False
        if not self._signer.verify(order_id, token):
            logger.warning("Callback token rejected for order %s", order_id, extra={"order_id": order_id})
            return False
        try:
            result = await self._store.transition_status(order_id, {OrderStatus.PENDING}, to, extra)
        except PaylinkError as exc:
            logger.error(
                "Callback could not update order %s: %s", order_id, exc.reason, extra={"order_id": order_id}
            )
            return False
        if not result.applied:
            current = result.order.status.value if result.order else None
            logger.warning(
                "Callback ignored for order %s (%s, currently %s)", order_id, to.value, current,
                extra={"order_id": order_id, "outcome": to.value, "current": current}
            )
        return result.applied
