"""
Audit writes run in their own unit of work and never affect the caller.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from sharegate.domain.context import RequestContext
from sharegate.models.audit_log import AuditAction
from sharegate.services.audit.audit_service import AuditEmitter, build_metadata
from tests.fakes import FakeAuditStoreFactory


class TestBuildMetadata:
    def test_all_parts(self):
        assert build_metadata({"a": 1}, {"a": 2}, {"why": "test"}) == {
            "old_values": {"a": 1},
            "new_values": {"a": 2},
            "additional_data": {"why": "test"},
        }

    def test_only_present_parts(self):
        assert build_metadata(new_values={"x": True}) == {"new_values": {"x": True}}

    def test_nothing_yields_none(self):
        assert build_metadata() is None


class TestAuditEmitter:
    @pytest.mark.anyio
    async def test_writes_and_commits_in_own_store(self):
        factory = FakeAuditStoreFactory()
        emitter = AuditEmitter(factory)
        actor_id = uuid.uuid4()
        entity_id = uuid.uuid4()

        entry = await emitter.emit(
            AuditAction.SHARE_LINK_REVOKED,
            actor_id=actor_id,
            entity_type="share_link",
            entity_id=entity_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
            context=RequestContext(ip_address="192.0.2.1", user_agent="curl/8"),
        )

        assert entry is not None
        assert factory.entries == [entry]
        assert entry.entity_id == str(entity_id)
        assert entry.action == "SHARE_LINK_REVOKED"
        assert entry.user_agent == "curl/8"
        assert factory.stores[0].commits == 1

    @pytest.mark.anyio
    async def test_each_emit_gets_a_fresh_store(self):
        factory = FakeAuditStoreFactory()
        emitter = AuditEmitter(factory)

        await emitter.emit(AuditAction.SHARE_LINK_CREATED, actor_id=None)
        await emitter.emit(AuditAction.SHARE_LINK_UPDATED, actor_id=None)

        assert len(factory.stores) == 2
        assert factory.stores[0] is not factory.stores[1]

    @pytest.mark.anyio
    async def test_append_failure_is_rolled_back_and_swallowed(self, caplog):
        factory = FakeAuditStoreFactory(fail=True)
        emitter = AuditEmitter(factory)

        with caplog.at_level(logging.ERROR, logger="sharegate.audit"):
            entry = await emitter.emit(AuditAction.PERMISSION_DENIED, actor_id=uuid.uuid4())

        assert entry is None
        assert factory.entries == []
        assert factory.stores[0].rollbacks == 1
        assert "audit_write_failed" in caplog.text

    @pytest.mark.anyio
    async def test_commit_failure_is_swallowed(self):
        store = MagicMock()
        store.append = AsyncMock(return_value=MagicMock())
        store.commit = AsyncMock(side_effect=RuntimeError("connection reset"))
        store.rollback = AsyncMock()

        @asynccontextmanager
        async def factory():
            yield store

        entry = await AuditEmitter(factory).emit(
            AuditAction.ROLE_TEMPLATE_DELETED, actor_id=uuid.uuid4()
        )

        assert entry is None
        store.rollback.assert_awaited_once()

    @pytest.mark.anyio
    async def test_factory_failure_is_swallowed(self):
        @asynccontextmanager
        async def factory():
            raise ConnectionError("database unavailable")
            yield  # pragma: no cover

        entry = await AuditEmitter(factory).emit(
            AuditAction.SHARE_LINK_CREATED, actor_id=uuid.uuid4()
        )

        assert entry is None
