"""Pydantic models for the create-payment flow and gateway results."""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from paylink.models.order import OrderItem


class CreatePaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = ""
    items: Optional[List[OrderItem]] = None


class CreatePaymentResponse(BaseModel):
    success: bool = True
    payment_url: str
    order_id: str


class SessionResult(BaseModel):
    payment_url: str


class GatewayFailure(BaseModel):
    reason: str
    retryable: bool = False
    status_code: Optional[int] = None
