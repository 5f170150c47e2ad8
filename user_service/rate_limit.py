"""Per-client rate limiting with slowapi.

Both budgets are enforced by route dependencies against the limiter's storage,
so they apply no matter how routers are nested or prefixed.
"""

from fastapi import HTTPException, Request
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Settings
from .errors import ErrorKind, ServiceError
from .logger import logger

RATE_LIMIT_MESSAGE = "Too many requests. Please try again in a minute."
RETRY_AFTER_SECONDS = "60"

_rate_limited = ServiceError(ErrorKind.RATE_LIMITED, RATE_LIMIT_MESSAGE, {})


def build_limiter(settings: Settings) -> Limiter:
    """Limiter holding the hit counters; limits themselves come from settings."""
    return Limiter(
        key_func=get_remote_address,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        enabled=settings.RATE_LIMIT_ENABLED,
    )


def _consume(request: Request, limit_string: str, scope: str) -> None:
    """Count one hit for this client in ``scope``; raise 429 once the budget is spent."""
    limiter: Limiter = request.app.state.limiter
    if not limiter.enabled:
        return

    client = get_remote_address(request)
    if not limiter.limiter.hit(parse(limit_string), client, scope):
        logger.warning(
            f"Rate limit exceeded: {request.method} {request.url.path} "
            f"client={client} scope={scope} ({limit_string})"
        )
        raise HTTPException(
            status_code=429,
            detail=_rate_limited.as_detail(),
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )


async def enforce_default_limit(request: Request) -> None:
    """RATE_LIMIT_DEFAULT per client, counted separately for each endpoint."""
    settings: Settings = request.app.state.settings
    endpoint = request.scope.get("endpoint")
    name = getattr(endpoint, "__name__", request.url.path)
    _consume(request, settings.RATE_LIMIT_DEFAULT, f"default:{name}")


async def enforce_create_limit(request: Request) -> None:
    """Stricter per-client budget for user registration, on top of the default limit."""
    settings: Settings = request.app.state.settings
    _consume(request, settings.RATE_LIMIT_CREATE, "users:create")
