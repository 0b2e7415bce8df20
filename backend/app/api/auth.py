"""
Login for the Outlet API.

Exchanges a stored user's credentials for a bearer token carrying the
user id, org and role. Everything the outlet routes decide about access
starts from those three claims.
"""

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.database import get_db
from backend.app.core.logging import get_logger
from backend.app.core.security import create_access_token, Role, ROLE_SCOPES, STAFF_ROLES
from backend.app.services import auth_service

router = APIRouter()
settings = get_settings()
logger = get_logger(__name__)


@router.post("/token")
async def issue_outlet_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Password login. Inactive users and wrong passwords both get 401."""
    user = await auth_service.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        logger.info("Outlet login rejected", extra={"extra_data": {"username": form_data.username}})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = Role(user.role)
    # Informational for clients; the server re-derives scopes from the role
    scopes = ROLE_SCOPES[role]

    access_token = create_access_token(
        data={
            "sub": user.id,
            "username": user.username,
            "org_id": user.org_id,
            "role": role,
            "scopes": scopes,
        },
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    logger.info(
        "Outlet token issued",
        extra={"extra_data": {"user_id": user.id, "org_id": user.org_id, "role": role.value}},
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": role,
        "staff": role in STAFF_ROLES,
        "scopes": scopes,
    }
