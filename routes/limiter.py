"""
Rate limiting for the unauthenticated auth endpoints (slowapi).

Requests are bucketed by client IP, resolved through the usual proxy headers.
The limiter instance is shared by every router; create_app() switches it on
or off and installs the 429 handler.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from config import RateLimitSettings
from errors import RateLimitError
from shared.logging import get_logger

log = get_logger(__name__)

LOGIN_LIMIT = "5/minute"
REGISTER_LIMIT = "5/minute"
EMAIL_ACTION_LIMIT = "3/minute"
CODE_VERIFY_LIMIT = "10/minute"

_PROXY_HEADERS = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "X-Client-IP",
)


def get_client_ip(request: Request) -> str:
    """First address from the most specific proxy header, else the peer address."""
    for header in _PROXY_HEADERS:
        value = request.headers.get(header)
        if value:
            client_ip = value.split(",")[0].strip()
            if client_ip:
                return client_ip
    return request.client.host if request.client else ""


limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=RateLimitSettings().rate_limit_storage_uri,
    strategy="fixed-window",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        client_ip=get_client_ip(request),
        limit=str(exc.detail),
    )
    error = RateLimitError(f"Too many requests: {exc.detail}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
