import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.config import settings
from article_engagement.db.queries import acquire_key_lock, find_recent_view, insert_view, lookup_article_by_slug
from article_engagement.db.transactions import run_in_transaction
from article_engagement.errors import ArticleNotFound

logger = logging.getLogger(__name__)

UNKNOWN_USER_AGENT = "unknown"


@dataclass(frozen=True)
class ViewOutcome:
    article_id: int
    counted: bool


def dedup_window() -> timedelta:
    return timedelta(hours=settings.view_dedup_window_hours)


async def record_view(
    session: AsyncSession,
    slug: str,
    source_address: str,
    user_agent: str | None = None,
    referrer: str | None = None,
    now: datetime | None = None,
) -> ViewOutcome:
    """Count a page view unless the same address viewed the article within the dedup window.

    The dedup lookup, the event insert and the view_count increment run in one
    transaction under a lock keyed by (article, address), so concurrent
    requests from one address cannot both pass the lookup.
    """
    viewed_at = now or datetime.now(timezone.utc)

    async def _record(tx: AsyncSession) -> ViewOutcome:
        article = await lookup_article_by_slug(tx, slug)
        if article is None:
            raise ArticleNotFound()

        await acquire_key_lock(tx, "view", article.id, source_address)
        recent = await find_recent_view(tx, article.id, source_address, since=viewed_at - dedup_window())
        if recent is not None:
            return ViewOutcome(article_id=article.id, counted=False)

        await insert_view(
            tx,
            article.id,
            source_address,
            user_agent or UNKNOWN_USER_AGENT,
            referrer or None,
            viewed_at,
        )
        return ViewOutcome(article_id=article.id, counted=True)

    outcome = await run_in_transaction(session, _record, "Failed to record view")
    logger.debug("view slug=%s address=%s counted=%s", slug, source_address, outcome.counted)
    return outcome
