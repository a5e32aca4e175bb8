
from fastapi import Depends, HTTPException, status

from engagement.core.auth import AuthUser, get_current_user
from engagement.core.config import get_settings


def is_service_principal(user: AuthUser) -> bool:
    return user.has_role(get_settings().service_role_name)


def belongs_to_authorized_domain(user: AuthUser) -> bool:
    domain = get_settings().authorized_email_domain.lower().lstrip("@")
    return bool(user.email) and user.email.endswith(f"@{domain}")


async def require_org_member(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if is_service_principal(user) or belongs_to_authorized_domain(user):
        return user
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"error": "Forbidden"})
