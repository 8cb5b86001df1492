import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.db.queries import acquire_key_lock, delete_like, insert_like, like_exists, lookup_article_by_slug
from article_engagement.db.transactions import run_in_transaction
from article_engagement.errors import ArticleNotFound, Conflict, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeOutcome:
    article_id: int
    liked: bool


async def toggle_like(
    session: AsyncSession,
    slug: str,
    user_id: str | None,
    now: datetime | None = None,
) -> LikeOutcome:
    """Flip the caller's like on an article and move like_count by one in the same direction.

    Calls for the same (article, user) are serialized by a per-key lock. If
    the insert still loses a race against the unique constraint, the winner's
    row is visible on re-read and this call takes the unlike branch instead.
    """
    if not user_id:
        raise Unauthorized()

    created_at = now or datetime.now(timezone.utc)

    async def _toggle(tx: AsyncSession) -> LikeOutcome:
        article = await lookup_article_by_slug(tx, slug)
        if article is None:
            raise ArticleNotFound()

        await acquire_key_lock(tx, "like", article.id, user_id)
        if not await like_exists(tx, article.id, user_id):
            try:
                await insert_like(tx, article.id, user_id, created_at)
                return LikeOutcome(article_id=article.id, liked=True)
            except Conflict:
                logger.info("Like insert lost a race for article=%s user=%s; unliking", article.id, user_id)

        await delete_like(tx, article.id, user_id)
        return LikeOutcome(article_id=article.id, liked=False)

    outcome = await run_in_transaction(session, _toggle, "Failed to toggle like")
    logger.debug("like slug=%s user=%s liked=%s", slug, user_id, outcome.liked)
    return outcome
