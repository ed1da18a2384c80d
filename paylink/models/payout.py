"""Pydantic models for multi-vendor disbursements."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, Field


class VendorShare(BaseModel):
    account_number: str
    amount: Decimal = Field(..., gt=0)


class DisbursementRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class PayoutResult(BaseModel):
    status_code: int
    body: Dict[str, Any] = Field(default_factory=dict)
