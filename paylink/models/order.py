"""Pydantic models for orders and their status lifecycle."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


def money_to_number(value: Decimal) -> int | float:
    """JSON form of an amount: an int when integral, otherwise a float."""
    return int(value) if value == value.to_integral_value() else float(value)


Money = Annotated[Decimal, PlainSerializer(money_to_number, when_used="json")]


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class OrderItem(BaseModel):
    name: str
    price: Money = Field(..., gt=0)
    id: int | str | None = None
    quantity: int = Field(default=1, ge=1)


class Order(BaseModel):
    """One purchase attempt. Serialized with camelCase keys on disk and over the API."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    amount: Money
    currency: str
    description: str | None = None
    items: List[OrderItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TransitionResult(BaseModel):
    """Outcome of a conditional status transition.

    ``applied`` is False when the order is unknown or its current status was
    not among the expected ones; ``order`` is then the unchanged record (or None).
    """

    applied: bool
    order: Optional[Order] = None
