from dataclasses import dataclass, field

from fastapi import HTTPException, status
from jose import JWTError, jwt
from starlette.requests import Request

from engagement.core.config import get_settings
from engagement.core.context import get_request_context


@dataclass
class AuthUser:
    sub: str
    email: str | None = None
    roles: list[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def _extract_roles(payload: dict) -> list[str]:
    roles = payload.get("roles")
    if isinstance(roles, list):
        return [str(role) for role in roles]
    role = payload.get("role")
    if isinstance(role, str) and role:
        return [role]
    return ["user"]


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    if not auth_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Missing authorization"})

    token = auth_header[7:].strip() if auth_header.lower().startswith("bearer ") else ""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Unauthorized"})

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Unauthorized"})

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "Unauthorized"})

    email = payload.get("email")
    user = AuthUser(
        sub=str(subject),
        email=str(email).lower() if isinstance(email, str) and email else None,
        roles=_extract_roles(payload),
    )
    context = get_request_context(request)
    if context is not None:
        context.principal_sub = user.sub
        context.principal_email = user.email
    return user
