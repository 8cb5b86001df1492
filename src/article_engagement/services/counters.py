import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from article_engagement.models.db import Article, ArticleLike, ArticleView

logger = logging.getLogger(__name__)


def repair_counters(session: Session, slug: str | None = None) -> int:
    """Reset view_count and like_count to the true number of detail rows.

    Locks the target article rows first so in-flight view/like transactions
    finish before counting and new ones wait until the reset commits. Safe to
    run at any time; running it twice is a no-op the second time.
    """
    lock_stmt = select(Article.id).with_for_update()
    if slug is not None:
        lock_stmt = lock_stmt.where(Article.slug == slug)
    session.execute(lock_stmt)

    view_total = (
        select(func.count(ArticleView.id))
        .where(ArticleView.article_id == Article.id)
        .correlate(Article)
        .scalar_subquery()
    )
    like_total = (
        select(func.count(ArticleLike.id))
        .where(ArticleLike.article_id == Article.id)
        .correlate(Article)
        .scalar_subquery()
    )
    stmt = update(Article).values(view_count=view_total, like_count=like_total)
    if slug is not None:
        stmt = stmt.where(Article.slug == slug)

    result = session.execute(stmt.execution_options(synchronize_session=False))
    session.commit()
    logger.info("Repaired counters for %d article(s)", result.rowcount)
    return result.rowcount


def find_counter_drift(session: Session, slug: str | None = None) -> list[tuple[str, int, int, int, int]]:
    """List (slug, view_count, true_views, like_count, true_likes) for articles whose counters disagree."""
    view_total = (
        select(func.count(ArticleView.id)).where(ArticleView.article_id == Article.id).correlate(Article).scalar_subquery()
    )
    like_total = (
        select(func.count(ArticleLike.id)).where(ArticleLike.article_id == Article.id).correlate(Article).scalar_subquery()
    )
    stmt = (
        select(Article.slug, Article.view_count, view_total, Article.like_count, like_total)
        .where((Article.view_count != view_total) | (Article.like_count != like_total))
        .order_by(Article.id)
    )
    if slug is not None:
        stmt = stmt.where(Article.slug == slug)
    return [tuple(row) for row in session.execute(stmt).all()]
