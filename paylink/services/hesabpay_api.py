"""HesabPay hosted payment page client.

Creates a checkout session for an order and returns the URL the browser is
redirected to. Failures are returned as ``GatewayFailure`` values, never
raised, so the caller decides how to answer the client. Calls are single
attempt with a bounded timeout.
"""
from __future__ import annotations

from decimal import Decimal
from time import monotonic
from typing import Any, Dict, List, Optional

import httpx

from paylink.models.order import OrderItem
from paylink.models.payment import GatewayFailure, SessionResult
from paylink.utils.logger import logger

CREATE_SESSION_PATH = "/payment/create-session"


def with_query(url: str, **params: str) -> str:
    return str(httpx.URL(url).copy_merge_params(params))


def auth_headers(api_key: str | None) -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if api_key:
        headers["Authorization"] = f"API-KEY {api_key}"
    return headers


class HesabPayClient:
    """Async client for the HesabPay session API."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        payer_email: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base = base_url.rstrip("/")
        self._email = payer_email
        self._timeout = timeout
        self._transport = transport

    def build_payload(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str | None,
        success_url: str,
        failure_url: str,
        items: Optional[List[OrderItem]] = None,
        callback_params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        params = {"order_id": order_id, **(callback_params or {})}
        if items:
            lines = [
                {"name": it.name, "price": float(it.price), "id": it.id if it.id is not None else n, "quantity": it.quantity}
                for n, it in enumerate(items, start=1)
            ]
        else:
            lines = [{"name": description or order_id, "price": float(amount), "id": 1}]
        return {
            "currency": currency,
            "items": lines,
            "email": self._email,
            "redirect_success_url": with_query(success_url, **params),
            "redirect_failure_url": with_query(failure_url, **params),
        }

    async def create_session(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str | None,
        success_url: str,
        failure_url: str,
        items: Optional[List[OrderItem]] = None,
        callback_params: Optional[Dict[str, str]] = None,
    ) -> SessionResult | GatewayFailure:
        payload = self.build_payload(
            order_id, amount, currency, description, success_url, failure_url, items, callback_params
        )
        url = f"{self._base}{CREATE_SESSION_PATH}"
        start = monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=auth_headers(self._api_key))
        except httpx.TimeoutException:
            logger.error("HesabPay session request timed out for order %s", order_id, extra={"order_id": order_id})
            return GatewayFailure(reason="payment provider timed out", retryable=True)
        except httpx.TransportError as exc:
            logger.error("HesabPay unreachable for order %s: %s", order_id, exc, extra={"order_id": order_id, "error": str(exc)})
            return GatewayFailure(reason="payment provider unreachable", retryable=True)
        except httpx.HTTPError as exc:
            logger.error("HesabPay request failed for order %s: %s", order_id, exc, extra={"order_id": order_id, "error": str(exc)})
            return GatewayFailure(reason="payment provider request failed")
        finally:
            logger.debug("HesabPay create-session call", extra={"elapsed": monotonic() - start})

        if not resp.is_success:
            logger.error(
                "HesabPay rejected session for order %s: %s %s", order_id, resp.status_code, resp.text,
                extra={"order_id": order_id},
            )
            return GatewayFailure(reason="provider rejected session", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            logger.error("HesabPay returned malformed JSON for order %s: %s", order_id, resp.text, extra={"order_id": order_id})
            return GatewayFailure(reason="malformed provider response", status_code=resp.status_code)

        payment_url = data.get("url") if isinstance(data, dict) else None
        if not isinstance(payment_url, str) or not payment_url:
            logger.error("HesabPay response for order %s lacks url: %s", order_id, data, extra={"order_id": order_id})
            return GatewayFailure(reason="provider response lacks redirect url", status_code=resp.status_code)
        logger.info("HesabPay session created for order %s", order_id, extra={"order_id": order_id})
        return SessionResult(payment_url=payment_url)
