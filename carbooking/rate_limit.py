import jwt
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from .config import settings


def user_or_ip_key(request: Request) -> str:
    """Bucket by authenticated user when a valid bearer token is present, else by client IP."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            payload = jwt.decode(auth[7:], settings.jwt_secret, algorithms=[settings.jwt_algorithm])
            if payload.get("sub"):
                return f"user:{payload['sub']}"
        except jwt.InvalidTokenError:
            pass
    return get_remote_address(request)


# Storage is a `limits` URI: memory:// is per process, redis://host:6379 is shared across instances
limiter = Limiter(
    key_func=user_or_ip_key,
    default_limits=[settings.rate_limit],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)
