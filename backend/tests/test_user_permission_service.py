import uuid

import pytest

from sharegate.auth.permissions import Permission, Role
from sharegate.domain.context import RequestContext
from sharegate.errors import NotFoundError, PermissionError, ValidationError
from sharegate.models.audit_log import AuditAction
from sharegate.services.admin.permission_service import PermissionResolver
from sharegate.services.admin.user_permission_service import UserPermissionService
from sharegate.services.audit.audit_service import AuditEmitter
from tests.fakes import FakeAuditStoreFactory, FakeRoleTemplateStore, FakeUserStore


@pytest.fixture
def users():
    return FakeUserStore()


@pytest.fixture
def audit_factory():
    return FakeAuditStoreFactory()


@pytest.fixture
def service(users, audit_factory):
    audit = AuditEmitter(audit_factory)
    resolver = PermissionResolver(users, FakeRoleTemplateStore(), audit)
    return UserPermissionService(users, resolver, audit)


class TestUpdateUserPermissions:
    @pytest.mark.anyio
    async def test_admin_grants_client_extra_permission(self, service, users, audit_factory):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value, email="client@example.com")
        context = RequestContext(ip_address="198.51.100.7")

        view = await service.update_user_permissions(
            admin.id, client.id, ["asset:create"], context=context
        )

        assert client.additional_permissions == ["asset:create"]
        assert view.permissions.allows(Permission.ASSET_CREATE)
        assert users.commits == 1

        [entry] = audit_factory.entries
        assert entry.action == AuditAction.USER_PERMISSIONS_UPDATED.value
        assert entry.entity_type == "user"
        assert entry.entity_id == str(client.id)
        assert entry.ip_address == "198.51.100.7"
        assert entry.metadata_ == {
            "old_values": {"additional_permissions": []},
            "new_values": {"additional_permissions": ["asset:create"]},
            "additional_data": {
                "target_email": "client@example.com",
                "target_role": "CLIENT",
                "updated_by": str(admin.id),
            },
        }

    @pytest.mark.anyio
    async def test_permissions_are_deduplicated_in_catalog_order(self, service, users):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value)

        await service.update_user_permissions(
            admin.id, client.id, ["comment:delete", "PROJECT_CREATE", "comment:delete"]
        )

        assert client.additional_permissions == ["project:create", "comment:delete"]

    @pytest.mark.anyio
    async def test_empty_list_clears_grants(self, service, users):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value, additional=["asset:create"])

        view = await service.update_user_permissions(admin.id, client.id, [])

        assert client.additional_permissions == []
        assert view.permissions.additional_permissions == frozenset()

    @pytest.mark.anyio
    async def test_unknown_permission_is_rejected(self, service, users):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_user_permissions(admin.id, client.id, ["asset:fly"])

        assert exc_info.value.details == {"unknown": ["asset:fly"]}
        assert client.additional_permissions == []

    @pytest.mark.anyio
    async def test_moderator_cannot_manage_admin(self, service, users):
        moderator = users.add(
            Role.MODERATOR.value, additional=[Permission.USER_UPDATE_PERMISSIONS.value]
        )
        admin = users.add(Role.ADMIN.value)

        with pytest.raises(PermissionError):
            await service.update_user_permissions(moderator.id, admin.id, ["asset:read"])

    @pytest.mark.anyio
    async def test_moderator_with_grant_manages_client(self, service, users):
        moderator = users.add(
            Role.MODERATOR.value, additional=[Permission.USER_UPDATE_PERMISSIONS.value]
        )
        client = users.add(Role.CLIENT.value)

        await service.update_user_permissions(moderator.id, client.id, ["asset:create"])

        assert client.additional_permissions == ["asset:create"]

    @pytest.mark.anyio
    async def test_actor_without_permission_is_denied_and_audited(
        self, service, users, audit_factory
    ):
        designer = users.add(Role.DESIGNER.value)
        client = users.add(Role.CLIENT.value)

        with pytest.raises(PermissionError):
            await service.update_user_permissions(designer.id, client.id, ["asset:create"])

        assert audit_factory.actions() == [AuditAction.PERMISSION_DENIED.value]

    @pytest.mark.anyio
    async def test_missing_target_is_not_found(self, service, users):
        admin = users.add(Role.ADMIN.value)

        with pytest.raises(NotFoundError):
            await service.update_user_permissions(admin.id, uuid.uuid4(), [])


class TestGetUserPermissions:
    @pytest.mark.anyio
    async def test_user_reads_own_permissions(self, service, users):
        client = users.add(Role.CLIENT.value)

        view = await service.get_user_permissions(client.id, client.id)

        assert view.role == "CLIENT"
        assert view.permissions.allows(Permission.ASSET_READ)

    @pytest.mark.anyio
    async def test_reading_others_requires_user_read(self, service, users):
        client = users.add(Role.CLIENT.value)
        other = users.add(Role.DESIGNER.value)

        with pytest.raises(PermissionError):
            await service.get_user_permissions(client.id, other.id)

    @pytest.mark.anyio
    async def test_moderator_reads_others(self, service, users):
        moderator = users.add(Role.MODERATOR.value)
        other = users.add(Role.DESIGNER.value)

        view = await service.get_user_permissions(moderator.id, other.id)

        assert view.user_id == other.id


class TestDownloadAccess:
    @pytest.mark.anyio
    async def test_admin_enables_direct_downloads(self, service, users, audit_factory):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value, email="client@example.com")

        view = await service.set_download_access(
            admin.id, client.id, True, context=RequestContext(ip_address="198.51.100.7")
        )

        assert view.can_download_directly is True
        assert client.can_download_directly is True
        assert users.commits == 1

        [entry] = audit_factory.entries
        assert entry.action == AuditAction.USER_DOWNLOAD_ACCESS_CHANGED.value
        assert entry.entity_id == str(client.id)
        assert entry.metadata_ == {
            "old_values": {"can_download_directly": False},
            "new_values": {"can_download_directly": True},
            "additional_data": {
                "target_email": "client@example.com",
                "target_role": "CLIENT",
            },
        }

    @pytest.mark.anyio
    async def test_revoking_records_previous_value(self, service, users, audit_factory):
        admin = users.add(Role.ADMIN.value)
        client = users.add(Role.CLIENT.value)
        client.can_download_directly = True

        await service.set_download_access(admin.id, client.id, False)

        assert client.can_download_directly is False
        assert audit_factory.entries[0].metadata_["old_values"] == {"can_download_directly": True}

    @pytest.mark.anyio
    async def test_requires_update_permissions(self, service, users, audit_factory):
        designer = users.add(Role.DESIGNER.value)
        client = users.add(Role.CLIENT.value)

        with pytest.raises(PermissionError):
            await service.set_download_access(designer.id, client.id, True)

        assert client.can_download_directly is False
        assert audit_factory.actions() == [AuditAction.PERMISSION_DENIED.value]

    @pytest.mark.anyio
    async def test_moderator_cannot_change_admin(self, service, users):
        moderator = users.add(
            Role.MODERATOR.value, additional=[Permission.USER_UPDATE_PERMISSIONS.value]
        )
        admin = users.add(Role.ADMIN.value)

        with pytest.raises(PermissionError):
            await service.set_download_access(moderator.id, admin.id, True)

        assert admin.can_download_directly is False

    @pytest.mark.anyio
    async def test_missing_target_is_not_found(self, service, users):
        admin = users.add(Role.ADMIN.value)

        with pytest.raises(NotFoundError):
            await service.set_download_access(admin.id, uuid.uuid4(), True)
