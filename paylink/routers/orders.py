"""Orders router: diagnostic read access, restricted to the admin token."""
from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from paylink.dependencies import get_store, require_admin
from paylink.services.order_store import OrderRepository

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("", response_model=list)
async def list_orders(store: OrderRepository = Depends(get_store)) -> List[Dict[str, Any]]:
    orders = await store.list()
    return [o.to_record() for o in orders]


@router.get("/{order_id}", response_model=dict)
async def get_order(order_id: str, store: OrderRepository = Depends(get_store)) -> Dict[str, Any]:
    order = await store.get(order_id)
    return order.to_record()
