from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.api.auth import get_current_user_id
from article_engagement.db.queries import lookup_article_by_slug
from article_engagement.db.session import get_async_session
from article_engagement.errors import ArticleNotFound, Unauthorized
from article_engagement.models.schemas import ArticleEngagement, ErrorResponse, LikeResponse, ViewResponse
from article_engagement.services.likes import toggle_like
from article_engagement.services.views import record_view

router = APIRouter(tags=["articles"])

UNKNOWN_ADDRESS = "unknown"


def resolve_source_address(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_ADDRESS


@router.get("/articles/{slug}", response_model=ArticleEngagement, responses={404: {"model": ErrorResponse}})
async def get_article(slug: str, session: AsyncSession = Depends(get_async_session)):
    article = await lookup_article_by_slug(session, slug)
    if article is None:
        raise ArticleNotFound()
    return ArticleEngagement.model_validate(article)


@router.post(
    "/articles/{slug}/view",
    response_model=ViewResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def track_article_view(
    slug: str,
    request: Request,
    user_agent: str | None = Header(default=None),
    referer: str | None = Header(default=None),
    session: AsyncSession = Depends(get_async_session),
):
    await record_view(session, slug, resolve_source_address(request), user_agent, referer)
    return ViewResponse(success=True)


@router.post(
    "/articles/{slug}/like",
    response_model=LikeResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def toggle_article_like(
    slug: str,
    user_id: str | None = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
):
    if user_id is None:
        raise Unauthorized()
    outcome = await toggle_like(session, slug, user_id)
    return LikeResponse(liked=outcome.liked)
