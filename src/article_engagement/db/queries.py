import hashlib
from datetime import datetime

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.errors import Conflict
from article_engagement.models.db import Article, ArticleLike, ArticleView


def lock_key(scope: str, *parts: object) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    raw = ":".join([scope, *(str(p) for p in parts)]).encode("utf-8")
    return int.from_bytes(hashlib.blake2b(raw, digest_size=8).digest(), "big", signed=True)


async def acquire_key_lock(session: AsyncSession, scope: str, *parts: object) -> None:
    """Hold an exclusion lock on (scope, *parts) until the current transaction ends.

    SQLite transactions already run under BEGIN IMMEDIATE, which excludes every
    other writer, so only PostgreSQL needs an explicit lock.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    await session.execute(select(func.pg_advisory_xact_lock(lock_key(scope, *parts))))


async def lookup_article_by_slug(session: AsyncSession, slug: str) -> Article | None:
    result = await session.execute(select(Article).where(Article.slug == slug).limit(1))
    return result.scalar_one_or_none()


async def get_article_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Article.id)))
    return result.scalar_one()


async def find_recent_view(
    session: AsyncSession, article_id: int, source_address: str, since: datetime
) -> ArticleView | None:
    result = await session.execute(
        select(ArticleView)
        .where(
            ArticleView.article_id == article_id,
            ArticleView.source_address == source_address,
            ArticleView.viewed_at >= since,
        )
        .order_by(ArticleView.viewed_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def insert_view(
    session: AsyncSession,
    article_id: int,
    source_address: str,
    user_agent: str,
    referrer: str | None,
    viewed_at: datetime,
) -> None:
    await session.execute(
        insert(ArticleView).values(
            article_id=article_id,
            source_address=source_address,
            user_agent=user_agent,
            referrer=referrer,
            viewed_at=viewed_at,
        )
    )
    await session.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(view_count=Article.view_count + 1, last_read_at=viewed_at)
        .execution_options(synchronize_session=False)
    )


async def like_exists(session: AsyncSession, article_id: int, user_id: str) -> bool:
    result = await session.execute(
        select(ArticleLike.id).where(ArticleLike.article_id == article_id, ArticleLike.user_id == user_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


LIKE_UNIQUE_CONSTRAINT = "uq_article_like_user"
UNIQUE_VIOLATION_SQLSTATE = "23505"


def _is_like_uniqueness_violation(exc: IntegrityError) -> bool:
    """True only for a duplicate (article_id, user_id) like; foreign-key and other violations are real errors."""
    orig = exc.orig
    message = str(orig)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE and LIKE_UNIQUE_CONSTRAINT in message
    return "UNIQUE constraint failed: article_likes.article_id, article_likes.user_id" in message


async def insert_like(session: AsyncSession, article_id: int, user_id: str, created_at: datetime) -> None:
    """Insert the like mark and bump like_count; raises Conflict if the mark already exists."""
    try:
        async with session.begin_nested():
            await session.execute(
                insert(ArticleLike).values(article_id=article_id, user_id=user_id, created_at=created_at)
            )
    except IntegrityError as exc:
        if not _is_like_uniqueness_violation(exc):
            raise
        raise Conflict(f"like already recorded for article={article_id} user={user_id}") from exc

    await session.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(like_count=Article.like_count + 1)
        .execution_options(synchronize_session=False)
    )


async def delete_like(session: AsyncSession, article_id: int, user_id: str) -> bool:
    """Remove the like mark and decrement like_count. Returns False if there was nothing to remove."""
    result = await session.execute(
        delete(ArticleLike)
        .where(ArticleLike.article_id == article_id, ArticleLike.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    await session.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(like_count=Article.like_count - result.rowcount)
        .execution_options(synchronize_session=False)
    )
    return True
