"""HTTP middleware for request tracing, access logging, and security headers."""

import re
import time
import uuid

from fastapi import Request

from .logger import logger

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Probe endpoints logged at DEBUG so they don't drown the access log
QUIET_PATHS = ("/health", "/metrics", "/favicon.ico")


# ==================== Request ID Middleware ====================

async def add_request_id_middleware(request: Request, call_next):
    """Reuse the caller's X-Request-ID when it is well formed, otherwise mint one."""
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    request_id = incoming if _REQUEST_ID_PATTERN.match(incoming) else str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# ==================== Request Logging Middleware ====================

async def request_logging_middleware(request: Request, call_next):
    """One access-log line per request with client, status and latency."""
    start = time.perf_counter()
    request_id = getattr(request.state, "request_id", "-")
    client = request.client.host if request.client else "-"
    target = f"{request.method} {request.url.path}"
    quiet = request.url.path.endswith(QUIET_PATHS)

    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            f"[{request_id}] {target} from {client} - unhandled error after "
            f"{(time.perf_counter() - start) * 1000:.1f}ms",
            exc_info=True,
        )
        raise

    elapsed_ms = (time.perf_counter() - start) * 1000
    message = f"[{request_id}] {target} from {client} - {response.status_code} in {elapsed_ms:.1f}ms"
    if response.status_code >= 500:
        logger.warning(message)
    elif quiet:
        logger.debug(message)
    else:
        logger.info(message)
    return response


# ==================== Security Headers Middleware ====================

# Swagger UI assets are served from jsdelivr
CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
    "img-src 'self' data: https://cdn.jsdelivr.net https://fastapi.tiangolo.com",
    "font-src 'self' https://cdn.jsdelivr.net",
])


def build_security_headers(app_env: str) -> dict[str, str]:
    """Headers added to every response; HSTS only in production."""
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": CONTENT_SECURITY_POLICY,
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        "Cross-Origin-Opener-Policy": "same-origin",
    }
    if app_env == "production":
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


def security_headers_middleware(app_env: str):
    """Build a middleware stamping the security headers for ``app_env``."""
    headers = build_security_headers(app_env)

    async def middleware(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(headers)
        return response

    return middleware
