"""
SQL shape of the share link repository. The download statement carries the
whole quota check, so its WHERE clause is asserted directly.
"""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from sharegate.crud.audit_log import AuditLogRepository
from sharegate.crud.share_link import (
    ShareLinkRepository,
    _filter_conditions,
    consume_download_statement,
    record_view_statement,
    update_link_statement,
)
from sharegate.domain.ports.audit import AuditLogFilter
from sharegate.domain.ports.share_links import ExpiryStatus, ShareLinkFilter
from sharegate.models.share_link import ShareLink

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestConsumeDownloadStatement:
    def test_guards_quota_expiry_and_revocation_in_one_update(self):
        sql = _sql(consume_download_statement(uuid.uuid4(), NOW))

        assert sql.startswith("UPDATE share_links SET")
        assert "current_downloads=(share_links.current_downloads + " in sql
        assert "download_count=(share_links.download_count + " in sql
        assert "share_links.is_active IS true" in sql
        assert "share_links.expires_at IS NULL OR share_links.expires_at > " in sql
        assert (
            "share_links.max_downloads IS NULL OR "
            "share_links.current_downloads < share_links.max_downloads" in sql
        )
        assert "RETURNING" in sql

    def test_refreshes_identity_map(self):
        statement = consume_download_statement(uuid.uuid4(), NOW)

        assert statement.get_execution_options()["populate_existing"] is True

    def test_record_view_only_touches_view_counter(self):
        sql = _sql(record_view_statement(uuid.uuid4(), NOW))

        assert "view_count=(share_links.view_count + " in sql
        assert "current_downloads" not in sql
        assert "download_count" not in sql


class TestUpdateLinkStatement:
    def test_new_quota_is_guarded_by_served_downloads(self):
        sql = _sql(update_link_statement(uuid.uuid4(), {"max_downloads": 3}))

        assert sql.startswith("UPDATE share_links SET")
        assert "share_links.current_downloads <= " in sql
        assert "RETURNING" in sql

    def test_other_edits_are_unguarded(self):
        sql = _sql(update_link_statement(uuid.uuid4(), {"allow_download": False}))

        assert "current_downloads <=" not in sql

    def test_clearing_the_quota_is_unguarded(self):
        sql = _sql(update_link_statement(uuid.uuid4(), {"max_downloads": None}))

        assert "current_downloads <=" not in sql


class TestFilterConditions:
    def test_no_filters(self):
        assert _filter_conditions(ShareLinkFilter(), NOW) == []

    def test_expiring_soon_is_a_bounded_window(self):
        conditions = _filter_conditions(
            ShareLinkFilter(expiry_status=ExpiryStatus.EXPIRING_SOON), NOW
        )

        assert len(conditions) == 2
        assert all("share_links.expires_at" in _sql(c) for c in conditions)

    def test_password_and_search(self):
        conditions = _filter_conditions(
            ShareLinkFilter(has_password=False, search="banner"), NOW
        )

        rendered = " ".join(_sql(c) for c in conditions)
        assert "share_links.password_hash IS NULL" in rendered
        assert "assets.name ILIKE" in rendered


class TestShareLinkRepository:
    @pytest.mark.anyio
    async def test_update_returns_none_when_guard_fails(self):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)

        assert await ShareLinkRepository(session).update(uuid.uuid4(), {"max_downloads": 1}) is None
        session.execute.assert_awaited_once()

    @pytest.mark.anyio
    async def test_consume_download_returns_none_when_no_row_matched(self):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)

        repo = ShareLinkRepository(session)

        assert await repo.consume_download(uuid.uuid4(), now=NOW) is None
        session.execute.assert_awaited_once()

    @pytest.mark.anyio
    async def test_update_rejects_non_updatable_fields(self):
        session = MagicMock()
        session.execute = AsyncMock()
        repo = ShareLinkRepository(session)

        with pytest.raises(ValueError):
            await repo.update(uuid.uuid4(), {"current_downloads": 0})

        session.execute.assert_not_called()

    @pytest.mark.anyio
    async def test_set_active_on_missing_link(self):
        session = MagicMock()
        session.get = AsyncMock(return_value=None)

        assert await ShareLinkRepository(session).set_active(uuid.uuid4(), False) is None


class TestShareLinkModel:
    def test_has_password(self):
        link = ShareLink(token="t", asset_id=uuid.uuid4(), created_by_id=uuid.uuid4())
        assert link.has_password is False
        link.password_hash = "$2b$04$abc"
        assert link.has_password is True


class TestAuditLogRepository:
    @pytest.mark.anyio
    async def test_count_by_rejects_unknown_columns(self):
        repo = AuditLogRepository(MagicMock())

        with pytest.raises(ValueError):
            await repo.count_by("ip_address", AuditLogFilter(), limit=5)
