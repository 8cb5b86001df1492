from datetime import datetime, timedelta, timezone
import os
import tempfile
import unittest
from unittest.mock import patch

from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from article_engagement.cli import repair
from article_engagement.db.session import build_sync_engine
from article_engagement.models.db import Article, ArticleLike, ArticleView, Base, User
from article_engagement.services.counters import find_counter_drift, repair_counters

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class _SyncStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        fd, self.db_path = tempfile.mkstemp(suffix=".db")
        os.close(fd)
        self.engine = build_sync_engine(f"sqlite:///{self.db_path}")
        Base.metadata.create_all(self.engine)
        self.sessions = sessionmaker(self.engine, class_=Session, expire_on_commit=False)

        with self.sessions() as session:
            session.add_all([User(id="u1"), User(id="u2")])
            drifted = Article(slug="badak-jawa", title="Badak Jawa", view_count=10, like_count=0)
            healthy = Article(slug="orangutan", title="Orangutan", view_count=1, like_count=1)
            session.add_all([drifted, healthy])
            session.flush()
            session.add_all(
                [
                    ArticleView(article_id=drifted.id, source_address="1.1.1.1", user_agent="ua", viewed_at=NOW),
                    ArticleView(
                        article_id=drifted.id,
                        source_address="2.2.2.2",
                        user_agent="ua",
                        viewed_at=NOW + timedelta(minutes=1),
                    ),
                    ArticleLike(article_id=drifted.id, user_id="u1", created_at=NOW),
                    ArticleLike(article_id=drifted.id, user_id="u2", created_at=NOW),
                    ArticleView(article_id=healthy.id, source_address="1.1.1.1", user_agent="ua", viewed_at=NOW),
                    ArticleLike(article_id=healthy.id, user_id="u1", created_at=NOW),
                ]
            )
            session.commit()

    def tearDown(self) -> None:
        self.engine.dispose()
        os.remove(self.db_path)

    def _counters(self) -> dict[str, tuple[int, int]]:
        with self.sessions() as session:
            rows = session.execute(select(Article.slug, Article.view_count, Article.like_count)).all()
        return {slug: (views, likes) for slug, views, likes in rows}


class RepairCountersTests(_SyncStoreTestCase):
    def test_drift_report_lists_only_mismatched_articles(self) -> None:
        with self.sessions() as session:
            drift = find_counter_drift(session)

        self.assertEqual(drift, [("badak-jawa", 10, 2, 0, 2)])

    def test_repair_resets_counters_to_row_counts(self) -> None:
        with self.sessions() as session:
            touched = repair_counters(session)

        self.assertEqual(touched, 2)
        self.assertEqual(self._counters(), {"badak-jawa": (2, 2), "orangutan": (1, 1)})

    def test_repair_is_idempotent(self) -> None:
        with self.sessions() as session:
            repair_counters(session)
        with self.sessions() as session:
            repair_counters(session)
            self.assertEqual(find_counter_drift(session), [])

        self.assertEqual(self._counters(), {"badak-jawa": (2, 2), "orangutan": (1, 1)})

    def test_repair_single_slug_leaves_others_alone(self) -> None:
        with self.sessions() as session:
            session.execute(Article.__table__.update().where(Article.slug == "orangutan").values(view_count=99))
            session.commit()

        with self.sessions() as session:
            touched = repair_counters(session, slug="badak-jawa")

        self.assertEqual(touched, 1)
        self.assertEqual(self._counters(), {"badak-jawa": (2, 2), "orangutan": (99, 1)})

    def test_drift_report_can_be_limited_to_one_slug(self) -> None:
        with self.sessions() as session:
            session.execute(Article.__table__.update().where(Article.slug == "orangutan").values(like_count=5))
            session.commit()

        with self.sessions() as session:
            self.assertEqual(find_counter_drift(session, slug="orangutan"), [("orangutan", 1, 1, 5, 1)])
            self.assertEqual(find_counter_drift(session, slug="no-such-article"), [])
            self.assertEqual(len(find_counter_drift(session)), 2)


class RepairCliTests(_SyncStoreTestCase):
    def _run(self, args: list[str]):
        with patch.object(repair, "sync_engine", self.engine), patch.object(repair, "SyncSessionLocal", self.sessions):
            return CliRunner().invoke(repair.main, args)

    def test_dry_run_reports_without_updating(self) -> None:
        result = self._run([])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("Found 1 article(s) with drifted counters.", result.output)
        self.assertIn("badak-jawa | views 10 -> 2 | likes 0 -> 2", result.output)
        self.assertIn("Dry-run complete.", result.output)
        self.assertEqual(self._counters()["badak-jawa"], (10, 0))

    def test_apply_repairs_counters(self) -> None:
        result = self._run(["--apply"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("Repaired 2 article(s).", result.output)
        self.assertEqual(self._counters()["badak-jawa"], (2, 2))

    def test_slug_filter_limits_report_and_repair(self) -> None:
        result = self._run(["--slug", "orangutan", "--apply"])

        self.assertEqual(result.exit_code, 0, msg=result.output)
        self.assertIn("Found 0 article(s) with drifted counters.", result.output)
        self.assertIn("Repaired 1 article(s).", result.output)
        self.assertEqual(self._counters()["badak-jawa"], (10, 0))


if __name__ == "__main__":
    unittest.main()
