from datetime import datetime, timedelta, timezone
import unittest

from engagement_db import SqliteStoreTestCase

from article_engagement.models.db import UserRole, UserSession
from article_engagement.services.auth import extract_session_token, get_user_roles, resolve_session

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class ExtractSessionTokenTests(unittest.TestCase):
    def test_bearer_header_wins_over_cookie(self) -> None:
        self.assertEqual(extract_session_token("Bearer abc123", "cookie-token"), "abc123")

    def test_scheme_is_case_insensitive(self) -> None:
        self.assertEqual(extract_session_token("bearer abc123", None), "abc123")

    def test_falls_back_to_cookie_for_other_schemes(self) -> None:
        self.assertEqual(extract_session_token("Basic dXNlcjpwYXNz", "cookie-token"), "cookie-token")

    def test_missing_credentials_return_none(self) -> None:
        self.assertIsNone(extract_session_token(None, None))
        self.assertIsNone(extract_session_token("Bearer   ", "  "))


class SessionStoreTests(SqliteStoreTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        await self.seed_user("u1")
        async with self.sessions() as session:
            async with session.begin():
                session.add_all(
                    [
                        UserSession(token="live", user_id="u1", expires_at=NOW + timedelta(days=1)),
                        UserSession(token="stale", user_id="u1", expires_at=NOW - timedelta(seconds=1)),
                        UserRole(user_id="u1", role="regional_admin", region_code="JKT"),
                        UserRole(user_id="u1", role="editor", region_code=None),
                    ]
                )

    async def test_live_session_resolves_to_user(self) -> None:
        async with self.sessions() as session:
            self.assertEqual(await resolve_session(session, "live", now=NOW), "u1")

    async def test_expired_or_unknown_session_resolves_to_none(self) -> None:
        async with self.sessions() as session:
            self.assertIsNone(await resolve_session(session, "stale", now=NOW))
            self.assertIsNone(await resolve_session(session, "nope", now=NOW))
            self.assertIsNone(await resolve_session(session, None, now=NOW))

    async def test_roles_come_from_persisted_assignments(self) -> None:
        async with self.sessions() as session:
            roles = await get_user_roles(session, "u1")

        self.assertEqual([(r.role, r.region_code) for r in roles], [("editor", None), ("regional_admin", "JKT")])

    async def test_user_without_assignments_has_no_roles(self) -> None:
        async with self.sessions() as session:
            self.assertEqual(await get_user_roles(session, "someone-else"), [])


if __name__ == "__main__":
    unittest.main()
