"""Request throttling with SlowAPI, keyed per account when a token is present."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .auth import decode_access_token
from .config import get_settings
from .dependencies import extract_token
from .errors import error_response

settings = get_settings()


def client_key(request: Request) -> str:
    token = extract_token(request.headers.get(settings.token_header))
    identity = decode_access_token(token) if token else None
    if identity is not None:
        return f"user:{identity.user_id}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limiting_enabled,
)


def rate_limit_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(429, f"请求过于频繁，请稍后再试 ({exc.detail})")


def apply_rate_limiter(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
