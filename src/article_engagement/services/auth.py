from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.models.db import UserRole, UserSession


def extract_session_token(authorization: str | None, cookie_token: str | None) -> str | None:
    """Bearer token from the Authorization header, falling back to the session cookie."""
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    if cookie_token and cookie_token.strip():
        return cookie_token.strip()
    return None


async def resolve_session(session: AsyncSession, token: str | None, now: datetime | None = None) -> str | None:
    if not token:
        return None
    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(UserSession.user_id).where(UserSession.token == token, UserSession.expires_at > now).limit(1)
    )
    return result.scalar_one_or_none()


async def get_user_roles(session: AsyncSession, user_id: str) -> list[UserRole]:
    result = await session.execute(
        select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.role, UserRole.region_code)
    )
    return list(result.scalars().all())
