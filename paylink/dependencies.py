"""Wiring of repositories and clients for the API layer.

Route handlers receive their collaborators through these FastAPI
dependencies; tests replace them with ``app.dependency_overrides``.
"""
from __future__ import annotations

import secrets
from functools import lru_cache

from fastapi import Header

from paylink.config import get_settings
from paylink.errors import Unauthorized
from paylink.services.disbursement import DisbursementClient
from paylink.services.hesabpay_api import HesabPayClient
from paylink.services.order_store import JsonFileOrderRepository, OrderRepository
from paylink.services.payments import PaymentService
from paylink.services.pin_cipher import EvpAesPinCipher
from paylink.services.reconciler import CallbackReconciler, CallbackSigner


@lru_cache(maxsize=1)
def get_store() -> OrderRepository:
    settings = get_settings()
    if settings.store_backend == "supabase":
        from paylink.services.supabase_client import SupabaseOrderRepository

        return SupabaseOrderRepository(settings.supabase_url, settings.supabase_key)
    return JsonFileOrderRepository(settings.store_path)


def get_signer() -> CallbackSigner:
    return CallbackSigner(get_settings().callback_secret)


def get_payment_service() -> PaymentService:
    settings = get_settings()
    gateway = HesabPayClient(
        api_key=settings.api_key,
        base_url=settings.api_base,
        payer_email=settings.payer_email,
        timeout=settings.http_timeout,
    )
    return PaymentService(get_store(), gateway, settings.domain, settings.currency, get_signer())


def get_reconciler() -> CallbackReconciler:
    return CallbackReconciler(get_store(), get_signer())


def get_disbursement_client() -> DisbursementClient:
    settings = get_settings()
    key = settings.pin_key_material
    return DisbursementClient(
        api_key=settings.api_key,
        pin=settings.pin,
        cipher=EvpAesPinCipher(key, settings.pin_cipher) if key else None,
        vendors=settings.vendors,
        base_url=settings.api_base,
        timeout=settings.http_timeout,
    )


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    """Guard diagnostic and internal routes; they are closed when no token is configured."""
    expected = get_settings().admin_token
    if not expected or not secrets.compare_digest(x_admin_token or "", expected):
        raise Unauthorized("admin token required")
