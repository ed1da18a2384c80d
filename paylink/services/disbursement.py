"""Multi-vendor disbursement of settled proceeds through HesabPay."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

import httpx

from paylink.errors import MissingCredential, PayoutError, SplitMismatch
from paylink.models.payout import PayoutResult, VendorShare
from paylink.services.hesabpay_api import auth_headers
from paylink.services.pin_cipher import PinCipher
from paylink.utils.logger import logger

PAYOUT_PATH = "/payment/send-money-multi-vendor"


class DisbursementClient:
    """Splits an amount across the configured recipients and submits one payout."""

    def __init__(
        self,
        api_key: str | None,
        pin: str | None,
        cipher: PinCipher | None,
        vendors: List[VendorShare],
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._pin = pin
        self._cipher = cipher
        self._vendors = list(vendors)
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def check_split(self, total: Decimal) -> None:
        if not self._vendors:
            raise SplitMismatch("no payout recipients configured")
        allotted = sum((v.amount for v in self._vendors), Decimal("0"))
        if allotted != total:
            raise SplitMismatch(f"recipients sum to {allotted}, requested {total}")

    async def distribute(self, total: Decimal) -> PayoutResult:
        self.check_split(total)
        if not self._pin or not self._api_key or self._cipher is None:
            raise MissingCredential("payout PIN or API key is not configured")

        payload: Dict[str, Any] = {
            "pin": self._cipher.encrypt(self._pin),
            "vendors": [
                {"account_number": v.account_number, "amount": float(v.amount)} for v in self._vendors
            ],
        }
        url = f"{self._base}{PAYOUT_PATH}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=auth_headers(self._api_key))
        except httpx.TimeoutException as exc:
            raise PayoutError("payout provider timed out") from exc
        except httpx.HTTPError as exc:
            raise PayoutError(f"payout provider unreachable: {exc}") from exc

        if not resp.is_success:
            logger.error("Payout rejected: %s %s", resp.status_code, resp.text)
            raise PayoutError(f"payout rejected with status {resp.status_code}")
        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}
        if not isinstance(body, dict):
            body = {"data": body}
        logger.info("Payout submitted", extra={"total": str(total), "recipients": len(self._vendors)})
        return PayoutResult(status_code=resp.status_code, body=body)
