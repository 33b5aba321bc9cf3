"""
HTTP surface: routing, status codes and the error envelope. Stores are the
in-memory fakes, wired in through dependency overrides.
"""
import time
import uuid

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from sharegate.auth.permissions import Role
from sharegate.config import settings
from sharegate.dependencies import (
    get_audit_log_service,
    get_client_ip,
    get_current_user,
    get_db,
    get_permission_resolver,
    get_request_context,
    get_role_template_service,
    get_share_link_manager,
    get_user_permission_service,
)
from sharegate.main import app
from sharegate.services.admin.permission_service import PermissionResolver
from sharegate.services.admin.role_template_service import RoleTemplateService
from sharegate.services.admin.user_permission_service import UserPermissionService
from sharegate.services.audit.audit_log_service import AuditLogService
from sharegate.services.audit.audit_service import AuditEmitter
from tests.fakes import FakeAuditStore, FakeRoleTemplateStore, build_world


@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def actor(world):
    return world.users.add(Role.DESIGNER.value)


@pytest.fixture
def current(actor):
    return {"user": actor}


@pytest.fixture
def client(world, current):
    templates = FakeRoleTemplateStore()
    audit = AuditEmitter(world.audit)
    resolver = PermissionResolver(world.users, templates, audit)
    app.dependency_overrides[get_current_user] = lambda: current["user"]
    app.dependency_overrides[get_share_link_manager] = lambda: world.manager
    app.dependency_overrides[get_permission_resolver] = lambda: resolver
    app.dependency_overrides[get_user_permission_service] = lambda: UserPermissionService(
        world.users, resolver, audit
    )
    app.dependency_overrides[get_role_template_service] = lambda: RoleTemplateService(
        templates, resolver, audit
    )
    app.dependency_overrides[get_audit_log_service] = lambda: AuditLogService(
        FakeAuditStore(world.audit.entries), resolver
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, world, **body):
    response = client.post("/share-links", json={"asset_id": str(world.asset.id), **body})
    assert response.status_code == 201, response.text
    return response.json()


class TestShareLinkRoutes:
    def test_create_returns_url_and_hides_password(self, client, world):
        data = _create(client, world, password="pw", max_downloads=2)

        assert data["url"] == f"https://share.example.com/share/{data['token']}"
        assert data["has_password"] is True
        assert "password_hash" not in data
        assert data["max_downloads"] == 2

    def test_create_validates_body(self, client, world):
        response = client.post(
            "/share-links", json={"asset_id": str(world.asset.id), "max_downloads": 0}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_for_missing_asset(self, client):
        response = client.post("/share-links", json={"asset_id": str(uuid.uuid4())})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_revoke_reactivate_and_stats(self, client, world):
        link = _create(client, world)

        revoked = client.post(f"/share-links/{link['id']}/revoke")
        assert revoked.status_code == 200
        assert revoked.json()["is_active"] is False

        reactivated = client.post(f"/share-links/{link['id']}/reactivate")
        assert reactivated.json()["is_active"] is True

        stats = client.get(f"/share-links/{link['id']}/stats").json()
        assert stats["view_count"] == 0
        assert stats["is_expired"] is False

    def test_patch_only_touches_sent_fields(self, client, world):
        link = _create(client, world, max_downloads=5)

        response = client.patch(f"/share-links/{link['id']}", json={"allow_download": False})

        assert response.status_code == 200
        assert response.json()["allow_download"] is False
        assert response.json()["max_downloads"] == 5

    def test_non_owner_gets_403(self, client, world, current):
        link = _create(client, world)
        current["user"] = world.users.add(Role.DESIGNER.value)

        response = client.post(f"/share-links/{link['id']}/revoke")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

    def test_listing_all_links_requires_full_access(self, client, world, current):
        _create(client, world)

        assert client.get("/share-links").status_code == 403

        current["user"] = world.users.add(Role.ADMIN.value)
        response = client.get("/share-links", params={"expiry_status": "NEVER"})
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_asset_links(self, client, world):
        _create(client, world)

        response = client.get(f"/assets/{world.asset.id}/share-links")

        assert response.status_code == 200
        assert len(response.json()) == 1


class TestPublicShareRoutes:
    def test_open_link_records_view(self, client, world):
        link = _create(client, world)

        response = client.get(f"/share/{link['token']}", headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"})

        assert response.status_code == 200
        body = response.json()
        assert body["asset"]["name"] == world.asset.name
        assert body["requires_password"] is False
        assert "file_key" not in body["asset"]
        assert world.access_logs.entries[-1].ip_address == "203.0.113.7"

    def test_unknown_token(self, client):
        response = client.get("/share/nope")

        assert response.status_code == 404

    def test_revoked_link_reason(self, client, world):
        link = _create(client, world)
        client.post(f"/share-links/{link['id']}/revoke")

        response = client.get(f"/share/{link['token']}")

        assert response.status_code == 403
        assert response.json()["error"]["details"] == {"reason": "revoked"}

    def test_download_flow_with_password(self, client, world):
        link = _create(client, world, password="hunter2", max_downloads=1)

        missing = client.post(f"/share/{link['token']}/download", json={})
        assert missing.status_code == 401
        assert missing.json()["error"]["details"]["reason"] == "password required"

        ok = client.post(f"/share/{link['token']}/download", json={"password": "hunter2"})
        assert ok.status_code == 200
        assert ok.json()["filename"] == world.asset.original_name
        assert ok.json()["expires_in"] == 900

        exhausted = client.post(f"/share/{link['token']}/download", json={"password": "hunter2"})
        assert exhausted.status_code == 403
        assert exhausted.json()["error"]["details"]["reason"] == "limit reached"

    def test_verify_password(self, client, world):
        link = _create(client, world, password="hunter2")

        good = client.post(f"/share/{link['token']}/verify-password", json={"password": "hunter2"})
        bad = client.post(f"/share/{link['token']}/verify-password", json={"password": "nope"})

        assert good.json() == {"valid": True}
        assert bad.status_code == 401
        assert bad.json()["error"]["code"] == "AUTH_ERROR"
        assert bad.json()["error"]["details"]["reason"] == "incorrect password"


class TestAdminRoutes:
    def test_my_permissions(self, client):
        response = client.get("/permissions/me")

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "DESIGNER"
        assert "asset:create" in body["all_permissions"]
        assert body["uses_template"] is False

    def test_update_user_permissions(self, client, world, current):
        current["user"] = world.users.add(Role.ADMIN.value)
        target = world.users.add(Role.CLIENT.value)

        response = client.put(
            f"/admin/users/{target.id}/permissions", json={"permissions": ["asset:create"]}
        )

        assert response.status_code == 200
        assert response.json()["permissions"]["additional_permissions"] == ["asset:create"]

    def test_unknown_permission_is_400(self, client, world, current):
        current["user"] = world.users.add(Role.ADMIN.value)
        target = world.users.add(Role.CLIENT.value)

        response = client.put(
            f"/admin/users/{target.id}/permissions", json={"permissions": ["asset:*"]}
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"unknown": ["asset:*"]}

    def test_role_template_round_trip(self, client, world, current):
        current["user"] = world.users.add(Role.ADMIN.value)

        saved = client.put(
            "/admin/role-templates/MODERATOR",
            json={"permissions": ["asset:read"], "category": "Custom"},
        )
        assert saved.status_code == 200
        assert saved.json()["is_default"] is False

        assert client.delete("/admin/role-templates/MODERATOR").status_code == 204
        restored = client.get("/admin/role-templates/MODERATOR").json()
        assert restored["is_default"] is True
        assert restored["id"] == "default-MODERATOR"

    def test_role_templates_forbidden_for_designer(self, client):
        assert client.get("/admin/role-templates").status_code == 403

    def test_toggle_download_access(self, client, world, current):
        current["user"] = world.users.add(Role.ADMIN.value)
        target = world.users.add(Role.CLIENT.value)

        response = client.put(
            f"/admin/users/{target.id}/download-access", json={"can_download_directly": True}
        )

        assert response.status_code == 200
        assert response.json()["can_download_directly"] is True
        assert target.can_download_directly is True
        assert "USER_DOWNLOAD_ACCESS_CHANGED" in world.audit.actions()

    def test_toggle_download_access_forbidden_for_designer(self, client, world):
        target = world.users.add(Role.CLIENT.value)

        response = client.put(
            f"/admin/users/{target.id}/download-access", json={"can_download_directly": True}
        )

        assert response.status_code == 403
        assert target.can_download_directly is False

    def test_audit_actions(self, client, world, current):
        current["user"] = world.users.add(Role.ADMIN.value)

        response = client.get("/admin/audit-logs/actions")

        assert response.status_code == 200
        assert "USER_DOWNLOAD_ACCESS_CHANGED" in response.json()


class TestAuthentication:
    def test_missing_bearer_token(self):
        app.dependency_overrides[get_db] = lambda: None
        try:
            response = TestClient(app).get("/permissions/me")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    def test_expired_bearer_token(self):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "exp": int(time.time()) - 10},
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        app.dependency_overrides[get_db] = lambda: None
        try:
            response = TestClient(app).get(
                "/permissions/me", headers={"Authorization": f"Bearer {token}"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401


def _request(headers: dict[str, str], client=("10.1.1.1", 5555)) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": client,
        }
    )


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        assert get_client_ip(_request({"X-Forwarded-For": " 198.51.100.1 , 10.0.0.2"})) == "198.51.100.1"

    def test_real_ip_header(self):
        assert get_client_ip(_request({"X-Real-IP": "198.51.100.9"})) == "198.51.100.9"

    def test_socket_peer(self):
        assert get_client_ip(_request({})) == "10.1.1.1"

    def test_unknown(self):
        assert get_client_ip(_request({}, client=None)) == "unknown"

    def test_request_context(self):
        context = get_request_context(
            _request({"User-Agent": "ua", "Referer": "https://ref.example"})
        )

        assert context.user_agent == "ua"
        assert context.referrer == "https://ref.example"
        assert context.country is None
