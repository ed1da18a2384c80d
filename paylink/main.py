"""FastAPI entrypoint for the payment relay.

Exposes health check, payment session creation, the provider's browser
callbacks, diagnostic order access and the internal disbursement trigger.
Business logic is delegated to services modules.
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paylink.config import get_settings
from paylink.errors import PaylinkError
from paylink.utils.logger import logger
from paylink.routers.disbursements import router as disbursements_router
from paylink.routers.orders import router as orders_router
from paylink.routers.payments import router as payments_router

settings = get_settings()

app = FastAPI(title="Paylink", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PaylinkError)
async def paylink_error_handler(request: Request, exc: PaylinkError) -> JSONResponse:
    if exc.status_code >= 500 and exc.status_code != 502:
        logger.error("Request failed: %s", exc.reason, extra={"path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content={"error": "Internal Server Error"})
    logger.warning("Request rejected: %s", exc.reason, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.reason})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "message": problems})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/health")
async def health() -> dict:
    """Simple health endpoint to verify service readiness."""
    logger.debug("Health check requested")
    return {
        "status": "ok",
        "app": settings.app_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Routers
app.include_router(payments_router, prefix="/payments", tags=["payments"])
app.include_router(orders_router, prefix="/api/orders", tags=["orders"])
app.include_router(disbursements_router, prefix="/internal/disbursements", tags=["disbursements"])
