"""Runtime settings read from the environment.

Only the variables listed on ``Settings`` are recognized. ``get_settings`` is
cached so every request sees the same validated configuration.
"""
from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from paylink.models.payout import VendorShare

PIN_CIPHERS = ("aes-128-cbc", "aes-192-cbc", "aes-256-cbc")


class Settings(BaseModel):
    app_name: str = "paylink"
    api_key: Optional[str] = None
    pin: Optional[str] = None
    pin_key: Optional[str] = None
    pin_cipher: str = "aes-256-cbc"
    api_base: str = "https://api.hesab.com/api/v1"
    domain: str = "http://localhost:8000"
    currency: str = "AFN"
    payer_email: str = "boss@example.com"
    http_timeout: float = Field(default=15.0, gt=0)
    store_backend: str = "file"
    store_path: str = "data/orders"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    vendors: List[VendorShare] = Field(default_factory=list)
    callback_secret: Optional[str] = None
    admin_token: Optional[str] = None
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("pin_cipher")
    @classmethod
    def _known_cipher(cls, value: str) -> str:
        value = value.lower()
        if value not in PIN_CIPHERS:
            raise ValueError(f"unsupported PIN cipher {value!r}")
        return value

    @field_validator("store_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        if value not in ("file", "supabase"):
            raise ValueError(f"unknown order store backend {value!r}")
        return value

    @property
    def pin_key_material(self) -> Optional[str]:
        return self.pin_key or self.api_key

    @classmethod
    def from_env(cls) -> "Settings":
        vendors = json.loads(os.getenv("PAYOUT_VENDORS", "[]") or "[]")
        if not isinstance(vendors, list):
            raise ValueError("PAYOUT_VENDORS must be a JSON list")
        return cls(
            app_name=os.getenv("APP_NAME", "paylink"),
            api_key=os.getenv("HESABPAY_API_KEY") or None,
            pin=os.getenv("HESABPAY_PIN") or None,
            pin_key=os.getenv("HESABPAY_PIN_KEY") or None,
            pin_cipher=os.getenv("HESABPAY_PIN_CIPHER", "aes-256-cbc"),
            api_base=os.getenv("HESABPAY_API_BASE", "https://api.hesab.com/api/v1"),
            domain=os.getenv("DOMAIN", "http://localhost:8000"),
            currency=os.getenv("PAYMENT_CURRENCY", "AFN"),
            payer_email=os.getenv("PAYMENT_EMAIL", "boss@example.com"),
            http_timeout=float(os.getenv("HTTP_TIMEOUT_SECONDS", "15")),
            store_backend=os.getenv("ORDER_STORE_BACKEND", "file"),
            store_path=os.getenv("ORDER_STORE_PATH", "data/orders"),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            vendors=vendors,
            callback_secret=os.getenv("CALLBACK_SECRET") or None,
            admin_token=os.getenv("ADMIN_TOKEN") or None,
            cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
