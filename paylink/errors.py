"""Error taxonomy for the payment relay.

Each error carries the HTTP status the API layer answers with. Callback
handlers never surface these to the browser.
"""
from __future__ import annotations


class PaylinkError(Exception):
    status_code = 500

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(PaylinkError):
    """Bad or missing request fields."""

    status_code = 400


class Unauthorized(PaylinkError):
    status_code = 401


class NotFound(PaylinkError):
    status_code = 404


class DuplicateId(PaylinkError):
    status_code = 409


class GatewayError(PaylinkError):
    """The hosted payment page provider rejected the session or was unreachable."""

    status_code = 400

    def __init__(self, reason: str = "", retryable: bool = False) -> None:
        super().__init__(reason)
        self.retryable = retryable
        if retryable:
            self.status_code = 502


class PayoutError(PaylinkError):
    status_code = 502


class SplitMismatch(PaylinkError):
    status_code = 400


class MissingCredential(PaylinkError):
    status_code = 500


class StorageError(PaylinkError):
    status_code = 500
