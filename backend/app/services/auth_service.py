import logging, os
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import bcrypt
from backend.app.models.user_orm import UserORM

logger = logging.getLogger(__name__)

def hash_password(plain: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash. A malformed hash never matches."""
    try:
        return bcrypt.checkpw(plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[UserORM]:
    result = await db.execute(select(UserORM).where(UserORM.username == username))
    return result.scalar_one_or_none()

async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[UserORM]:
    user = await get_user_by_username(db, username)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user

async def create_user(db: AsyncSession, username: str, password: str, role: str, org_id: str) -> UserORM:
    from backend.app.core.security import Role
    user = UserORM(
        username=username,
        hashed_password=hash_password(password),
        role=Role(role).value,
        org_id=org_id,
    )
    db.add(user)
    await db.flush()
    return user

async def seed_default_users(db: AsyncSession, org_id: str = "default") -> None:
    """Seed one user per role on first startup. Passwords from env vars."""
    from backend.app.core.security import Role
    existing = await db.execute(select(UserORM).limit(1))
    if existing.scalar_one_or_none():
        return
    for username, role, env_var in (
        ("admin", Role.ADMIN, "ADMIN_PASSWORD"),
        ("manager", Role.MANAGER, "MANAGER_PASSWORD"),
        ("member", Role.USER, "MEMBER_PASSWORD"),
    ):
        await create_user(db, username, os.getenv(env_var, "CHANGE_ME"), role, org_id)
    await db.commit()
    logger.info(f"Seeded 3 default users for org {org_id}")
