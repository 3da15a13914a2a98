"""Logging setup and the HTTP audit trail."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from time import perf_counter
from typing import Iterable, Optional

from fastapi import FastAPI, Request

from .auth import decode_access_token
from .config import get_settings
from .dependencies import extract_token

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_LOG_FORMAT, datefmt=_DATE_FORMAT)
    root.setLevel(level.upper())


def _audit_logger(name: str, log_dir: Path) -> logging.Logger:
    logger = logging.getLogger(f"audit.{name}")
    if logger.handlers:
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def _caller(request: Request) -> str:
    """Best-effort ``id:username`` of the bearer, for the audit line only."""

    token = extract_token(request.headers.get(get_settings().token_header))
    identity = decode_access_token(token) if token else None
    return f"{identity.user_id}:{identity.username}" if identity else "anonymous"


def add_audit_middleware(app: FastAPI, name: str, quiet_paths: Iterable[str] = ("/health", "/metrics")) -> None:
    """Record one line per request and tag the response with a request id."""

    logger = _audit_logger(name, Path(get_settings().log_dir))
    quiet = frozenset(quiet_paths)

    @app.middleware("http")
    async def audit_trail(request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        if request.url.path in quiet:
            return response

        client_ip: Optional[str] = request.client.host if request.client else None
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s | %s %s | status=%s | user=%s | client=%s | duration=%.2fms",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            _caller(request),
            client_ip or "unknown",
            (perf_counter() - started) * 1000,
        )
        return response
