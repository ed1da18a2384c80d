"""Order persistence.

``OrderRepository`` is the capability set the payment flow and the callback
reconciler depend on. ``JsonFileOrderRepository`` keeps one JSON document per
order and replaces it atomically, so a crash mid-write leaves the previous
record intact. Status transitions are serialized per order id; different ids
never wait on each other.
"""
from __future__ import annotations

import asyncio
import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from pydantic import ValidationError as ModelValidationError

from paylink.errors import DuplicateId, NotFound, StorageError
from paylink.models.order import Order, OrderStatus, TransitionResult
from paylink.utils.logger import logger

ORDER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

# Fields a transition may set besides status/updated_at.
TRANSITION_FIELDS = frozenset({"transaction_id"})


def is_valid_order_id(order_id: Optional[str]) -> bool:
    return bool(order_id) and ORDER_ID_PATTERN.match(order_id) is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_transition(order: Order, to: OrderStatus, extra: Optional[Dict[str, Any]]) -> Order:
    """Return ``order`` moved to ``to``; fields already set are never overwritten."""
    update: Dict[str, Any] = {"status": to, "updated_at": utcnow()}
    for key, value in (extra or {}).items():
        if key not in TRANSITION_FIELDS:
            raise ValueError(f"field {key!r} cannot change on transition")
        if value is not None and getattr(order, key) is None:
            update[key] = value
    return order.model_copy(update=update)


class OrderRepository(ABC):
    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Insert a new order; raise ``DuplicateId`` if the id exists."""

    @abstractmethod
    async def get(self, order_id: str) -> Order:
        """Return the order or raise ``NotFound``."""

    @abstractmethod
    async def transition_status(
        self,
        order_id: str,
        from_expected: Iterable[OrderStatus],
        to: OrderStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """Atomically move an order from one of ``from_expected`` to ``to``.

        Unknown ids and orders in any other status yield a no-op result.
        """

    @abstractmethod
    async def list(self) -> List[Order]:
        ...


class JsonFileOrderRepository(OrderRepository):
    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)
        self._locks: Dict[str, list] = {}

    @asynccontextmanager
    async def _locked(self, order_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(order_id)
        if entry is None:
            entry = self._locks[order_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[order_id]

    def _path(self, order_id: str) -> Path:
        return self._root / f"{order_id}.json"

    def _read(self, path: Path) -> Optional[Order]:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return Order.model_validate(json.load(fh))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, ModelValidationError) as exc:
            raise StorageError(f"cannot read {path.name}: {exc}") from exc

    def _write(self, path: Path, order: Order) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._root, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(order.to_record(), fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
            self._sync_dir()
        except OSError as exc:
            raise StorageError(f"cannot write {path.name}: {exc}") from exc

    def _sync_dir(self) -> None:
        if not hasattr(os, "O_DIRECTORY"):
            return
        fd = os.open(self._root, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    async def create(self, order: Order) -> Order:
        if not is_valid_order_id(order.id):
            raise StorageError(f"order id {order.id!r} is not storable")
        path = self._path(order.id)
        async with self._locked(order.id):
            if await asyncio.to_thread(path.exists):
                raise DuplicateId(order.id)
            await asyncio.to_thread(self._write, path, order)
        logger.info("Order %s created", order.id, extra={"order_id": order.id, "status": order.status.value})
        return order

    async def get(self, order_id: str) -> Order:
        if not is_valid_order_id(order_id):
            raise NotFound(order_id)
        order = await asyncio.to_thread(self._read, self._path(order_id))
        if order is None:
            raise NotFound(order_id)
        return order

    async def transition_status(
        self,
        order_id: str,
        from_expected: Iterable[OrderStatus],
        to: OrderStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        if not is_valid_order_id(order_id):
            return TransitionResult(applied=False)
        expected = frozenset(from_expected)
        path = self._path(order_id)
        async with self._locked(order_id):
            current = await asyncio.to_thread(self._read, path)
            if current is None or current.status not in expected:
                return TransitionResult(applied=False, order=current)
            updated = apply_transition(current, to, extra)
            await asyncio.to_thread(self._write, path, updated)
        logger.info(
            "Order %s status %s -> %s", order_id, current.status.value, to.value,
            extra={"order_id": order_id, "from": current.status.value, "to": to.value},
        )
        return TransitionResult(applied=True, order=updated)

    def _read_all(self) -> List[Order]:
        if not self._root.exists():
            return []
        orders = []
        for path in self._root.glob("*.json"):
            order = self._read(path)
            if order is not None:
                orders.append(order)
        return sorted(orders, key=lambda o: o.created_at)

    async def list(self) -> List[Order]:
        return await asyncio.to_thread(self._read_all)
