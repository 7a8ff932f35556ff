from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.billing.api.v1.routes_webhooks import router as webhooks_router
from app.core.config import settings
from app.core.limits.api.v1.routes_limits import router as limits_router
from app.core.moodboards.api.v1.routes_moodboards import router as moodboards_router
from app.core.repairs.api.v1.routes_repairs import router as repairs_router
from app.core.subscriptions.api.v1.routes_subscriptions import (
    router as subscriptions_router,
)
from app.core.users.api.v1.routes_users import router as users_router
from app.database.session import SessionLocal, is_configured
from app.response import error_json_response
from app.response.response import APIError
from app.utils.redis_client import get_redis


logger = logging.getLogger(__name__)


app = FastAPI()
try:
    uploads_dir = Path(settings.uploads_dir)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(uploads_dir)), name="uploads")
except (OSError, RuntimeError):
    logger.warning("uploads directory %s is not available", settings.uploads_dir)


@app.exception_handler(APIError)
async def api_error_handler(
    request: Request,
    exc: APIError,
) -> JSONResponse:
    return error_json_response(
        code=exc.code,
        http_code=exc.http_code,
        message=exc.message,
        details=exc.details,
        fields=exc.fields,
    )


def _field_name(loc: Sequence[Any]) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "header")]
    return ".".join(parts)


def _validation_message(errors: List[Dict[str, Any]]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = first["field"]
    if first["type"] == "json_invalid":
        return "Invalid JSON body"
    if not field:
        return "Missing request body"
    if field == "action":
        return 'Invalid action. Must be "check" or "increment"'
    if first["type"] in ("missing", "string_too_short"):
        return f"Missing {field}"
    return f"Invalid {field}"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    fields = [
        {
            "field": _field_name(error.get("loc", ())),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    logger.info("validation error on %s: %s", request.url.path, fields)
    return error_json_response(
        code="VALIDATION_ERROR",
        http_code=400,
        message=_validation_message(fields),
        fields=fields,
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(
    request: Request,
    exc: SQLAlchemyError,
) -> JSONResponse:
    logger.error("database error on %s: %r", request.url.path, exc)
    return error_json_response(
        code="INTERNAL_ERROR",
        http_code=500,
        message="Internal server error",
    )


app.title = "Mood Board API"
app.version = "1.0.0"


def _database_ok() -> bool:
    if not is_configured():
        return False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
    finally:
        db.close()


def _redis_ok() -> bool:
    try:
        return bool(get_redis().ping())
    except Exception:
        return False


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def root() -> str:
    def row(label: str, ok: bool, on: str = "Online", off: str = "Offline") -> str:
        color = "#10B981" if ok else "#EF4444"
        return f"""
                <div class="info-row">
                    <span>{label}</span>
                    <span style="color:{color}; font-weight:600;">{on if ok else off}</span>
                </div>
        """

    stripe_ok = bool(settings.stripe_secret_key and settings.stripe_webhook_secret)
    status_rows = (
        row("API:", True)
        + row("Database:", _database_ok())
        + row("Redis:", _redis_ok())
        + row("Stripe:", stripe_ok, on="Configured", off="Not configured")
    )

    html = """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8" />
        <title>Mood Board API - Status</title>
        <style>
            body {
                font-family: Inter, system-ui, sans-serif;
                background: #0F0F13;
                color: #E5E5E5;
                min-height: 100vh;
                display: flex;
                align-items: center;
                justify-content: center;
                margin: 0;
            }
            .container {
                text-align: center;
                background: #18181B;
                padding: 40px;
                border-radius: 16px;
                border: 1px solid rgba(255, 255, 255, 0.08);
                width: 100%;
                max-width: 480px;
            }
            .info-box {
                background: #111113;
                border-radius: 12px;
                padding: 16px;
                text-align: left;
                margin: 24px 0;
            }
            .info-row {
                display: flex;
                justify-content: space-between;
                margin-bottom: 8px;
                font-size: 14px;
            }
            a { color: #6366F1; margin: 0 8px; }
        </style>
    </head>
    <body>
        <div class="container">
            <h1>Mood Board Backend</h1>
            <div class="info-box">
__STATUS_ROWS__
            </div>
            <a href="/docs">Swagger UI</a>
            <a href="/redoc">ReDoc</a>
        </div>
    </body>
    </html>
    """
    return html.replace("__STATUS_ROWS__", status_rows)


app.include_router(webhooks_router, prefix="/api/v1")
app.include_router(subscriptions_router, prefix="/api/v1")
app.include_router(limits_router, prefix="/api/v1")
app.include_router(repairs_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(moodboards_router, prefix="/api/v1")


__all__ = ["app"]
