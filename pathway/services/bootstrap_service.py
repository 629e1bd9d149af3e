"""
Bootstrap Service

Creates the initial administrator account at startup.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.config import settings
from pathway.core.security import hash_password
from pathway.models.enums import UserRole
from pathway.models.user import User


logger = logging.getLogger(__name__)


async def ensure_admin_user(
    db: AsyncSession,
) -> User:
    """
    Make sure the configured administrator exists.

    Idempotent: an existing account with ADMIN_EMAIL is returned untouched,
    password and role included.

    Args:
        db: Database session.

    Returns:
        The administrator User.
    """
    email = settings.ADMIN_EMAIL.lower()

    result = await db.execute(
        select(User).where(User.email == email)
    )
    user = result.scalar_one_or_none()

    if user:
        if user.role != UserRole.ADMIN:
            logger.warning(f"Bootstrap account {email} exists without the ADMIN role; left unchanged")
        return user

    user = User(
        email=email,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        full_name=settings.ADMIN_FULL_NAME,
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        # another worker created it first
        await db.rollback()
        result = await db.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one()

    await db.refresh(user)

    logger.info(f"Administrator account {email} created")
    return user
