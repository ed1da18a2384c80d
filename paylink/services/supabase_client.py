"""Supabase-backed order repository.

Uses the supabase Python client against an ``orders`` table whose columns
match ``Order`` field names. The status transition is a single conditional
UPDATE (``id = ? AND status IN (...)``), so concurrent callbacks for the same
order are resolved by the database.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from paylink.errors import DuplicateId, NotFound, StorageError
from paylink.models.order import Order, OrderStatus, TransitionResult
from paylink.services.order_store import OrderRepository, TRANSITION_FIELDS, is_valid_order_id, utcnow
from paylink.utils.logger import logger

UNIQUE_VIOLATION = "23505"


class SupabaseOrderRepository(OrderRepository):
    """Order repository stored in a Supabase (PostgREST) table."""

    def __init__(self, url: str | None, key: str | None, table: str = "orders", client: Client | None = None) -> None:
        if client is None:
            if not url or not key:
                raise StorageError("Supabase env vars are not configured")
            client = create_client(url, key)
        self._client = client
        self._table = table

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _execute(self, query: Any) -> List[Dict[str, Any]]:
        return query.execute().data or []

    async def _run(self, query: Any) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._execute, query)
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise DuplicateId(str(exc.message)) from exc
            raise StorageError(f"supabase rejected query: {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise StorageError(f"supabase unreachable: {exc}") from exc

    async def create(self, order: Order) -> Order:
        record = order.model_dump(mode="json")
        await self._run(self._client.table(self._table).insert(record))
        logger.info("Order %s created", order.id, extra={"order_id": order.id, "status": order.status.value})
        return order

    async def get(self, order_id: str) -> Order:
        if not is_valid_order_id(order_id):
            raise NotFound(order_id)
        rows = await self._run(self._client.table(self._table).select("*").eq("id", order_id).limit(1))
        if not rows:
            raise NotFound(order_id)
        return Order.model_validate(rows[0])

    def _status_update(self, payload: Dict[str, Any], order_id: str, statuses: List[str]) -> Any:
        return self._client.table(self._table).update(payload).eq("id", order_id).in_("status", statuses)

    async def transition_status(
        self,
        order_id: str,
        from_expected: Iterable[OrderStatus],
        to: OrderStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        if not is_valid_order_id(order_id):
            return TransitionResult(applied=False)
        statuses = [s.value for s in from_expected]
        payload: Dict[str, Any] = {"status": to.value, "updated_at": utcnow().isoformat()}
        fills: Dict[str, Any] = {}
        for key, value in (extra or {}).items():
            if key not in TRANSITION_FIELDS:
                raise ValueError(f"field {key!r} cannot change on transition")
            if value is not None:
                fills[key] = value

        rows: List[Dict[str, Any]] = []
        if fills:
            # fields are written only while still null; a set value is kept
            query = self._status_update({**payload, **fills}, order_id, statuses)
            for key in fills:
                query = query.is_(key, "null")
            rows = await self._run(query)
        if not rows:
            rows = await self._run(self._status_update(payload, order_id, statuses))
        if not rows:
            try:
                current = await self.get(order_id)
            except NotFound:
                current = None
            return TransitionResult(applied=False, order=current)
        logger.info("Order %s status -> %s", order_id, to.value, extra={"order_id": order_id, "to": to.value})
        return TransitionResult(applied=True, order=Order.model_validate(rows[0]))

    async def list(self) -> List[Order]:
        rows = await self._run(self._client.table(self._table).select("*").order("created_at"))
        return [Order.model_validate(r) for r in rows]
