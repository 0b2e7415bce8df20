"""
Security and Authentication for the Outlet API.

Implements OAuth2 with password flow and JWT tokens. The token carries the
caller's user id, org and role; everything the outlet core decides about
access starts from the Principal built here.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jose import JWTError, jwt
from pydantic import BaseModel

from backend.app.core.config import get_settings
from backend.app.core.logging import org_id_ctx

settings = get_settings()

# Outlet scopes
OUTLET_READ = "outlet:read"
OUTLET_WRITE = "outlet:write"
OUTLET_STAFF = "outlet:staff"

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="api/v1/auth/token",
    scopes={
        OUTLET_READ: "Read own outlet sessions and any session the visibility rules allow",
        OUTLET_WRITE: "Create sessions, post messages, escalate and close",
        OUTLET_STAFF: "Staff triage listing, resolution and analytics",
    },
)


class Role(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.MANAGER, Role.ADMIN})

ROLE_SCOPES = {
    Role.USER: [OUTLET_READ, OUTLET_WRITE],
    Role.MANAGER: [OUTLET_READ, OUTLET_WRITE, OUTLET_STAFF],
    Role.ADMIN: [OUTLET_READ, OUTLET_WRITE, OUTLET_STAFF],
}


class Principal(BaseModel):
    """The authenticated caller."""
    user_id: str
    org_id: str
    role: Role
    username: Optional[str] = None
    scopes: List[str] = []

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Generate a signed JWT token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    if isinstance(to_encode.get("role"), Role):
        to_encode["role"] = to_encode["role"].value

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


async def get_current_user(
    security_scopes: SecurityScopes,
    token: str = Depends(oauth2_scheme)
) -> Principal:
    """
    Validate JWT token and check required scopes based on the caller's role.
    """
    if security_scopes.scopes:
        authenticate_value = f'Bearer scope="{security_scopes.scope_str}"'
    else:
        authenticate_value = "Bearer"

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": authenticate_value},
    )

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    org_id = payload.get("org_id")
    if not isinstance(user_id, str) or not user_id.strip():
        raise credentials_exception
    if not isinstance(org_id, str) or not org_id.strip():
        raise credentials_exception
    try:
        role = Role(payload.get("role", Role.USER.value))
    except ValueError:
        raise credentials_exception

    # Scopes always derive from the role so a forged scope list cannot widen access
    token_scopes = ROLE_SCOPES[role]

    for scope in security_scopes.scopes:
        if scope not in token_scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not enough permissions. Required scope: {scope}",
                headers={"WWW-Authenticate": authenticate_value},
            )

    org_id_ctx.set(org_id)
    return Principal(
        user_id=user_id,
        org_id=org_id,
        role=role,
        username=payload.get("username"),
        scopes=token_scopes,
    )
