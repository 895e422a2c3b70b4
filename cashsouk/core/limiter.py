from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from cashsouk.core.settings import settings


def actor_or_address(request: Request) -> str:
    """Bucket authenticated callers by token subject, anonymous ones by address.

    The claims are read unverified; the subject only picks a bucket.
    """
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            subject = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            subject = None
        if subject:
            return f"actor:{subject}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=actor_or_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)


def upload_rate_limit() -> str:
    return f"{settings.upload_rate_limit_per_minute}/minute"
