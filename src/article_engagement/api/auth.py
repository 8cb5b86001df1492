from fastapi import APIRouter, Cookie, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.config import settings
from article_engagement.db.session import get_async_session
from article_engagement.errors import Unauthorized
from article_engagement.models.schemas import CurrentUserResponse, ErrorResponse, RoleAssignment
from article_engagement.services.auth import extract_session_token, get_user_roles, resolve_session

router = APIRouter(tags=["auth"])


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session_token: str | None = Cookie(default=None, alias=settings.session_cookie_name),
    session: AsyncSession = Depends(get_async_session),
) -> str | None:
    token = extract_session_token(authorization, session_token)
    if token is None:
        return None
    # Close the read so handlers can open their own transaction on the same session.
    async with session.begin():
        return await resolve_session(session, token)


async def require_user_id(user_id: str | None = Depends(get_current_user_id)) -> str:
    if user_id is None:
        raise Unauthorized()
    return user_id


@router.get("/auth/me", response_model=CurrentUserResponse, responses={401: {"model": ErrorResponse}})
async def get_me(
    user_id: str = Depends(require_user_id),
    session: AsyncSession = Depends(get_async_session),
):
    roles = await get_user_roles(session, user_id)
    return CurrentUserResponse(id=user_id, roles=[RoleAssignment.model_validate(r) for r in roles])
