from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from cashsouk.core.context import set_actor_id
from cashsouk.core.permissions import PermissionCode
from cashsouk.core.security import JWTKeyError, decode_token


@dataclass(slots=True)
class Actor:
    """Caller identity resolved from bearer token claims."""

    user_id: str
    org_ids: frozenset[str] = field(default_factory=frozenset)
    permissions: frozenset[str] = field(default_factory=frozenset)

    def can(self, permission_code: PermissionCode | str) -> bool:
        code = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
        return code in self.permissions

    def belongs_to(self, organization_id: str | None) -> bool:
        return bool(organization_id) and organization_id in self.org_ids


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def _claim_set(value) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset(part for part in value.split() if part)
    return frozenset(str(item) for item in value)


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    try:
        payload = decode_token(token)
    except (ValueError, JWTKeyError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    actor = Actor(
        user_id=str(subject),
        org_ids=_claim_set(payload.get("org_ids")),
        permissions=_claim_set(payload.get("permissions")),
    )
    set_actor_id(actor.user_id)
    return actor


def require_permission(permission_code: PermissionCode | str):
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.can(permission_code):
            target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return actor

    return dependency


def service_error(exc: Exception, status_by_code: dict[str, int] | None = None) -> HTTPException:
    """Translate a service ``{code, message, details}`` error into an HTTP error."""
    code = getattr(exc, "code", "invalid_request")
    status_code = (status_by_code or {}).get(code, status.HTTP_400_BAD_REQUEST)
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": getattr(exc, "message", str(exc)), "details": getattr(exc, "details", {})},
    )
