"""
Authentication and authorization tests.

Verifies:
- Login returns a token and the role's permissions
- Bad credentials / inactive users are rejected
- Logout revokes the token
- Protected endpoints return 401 without a token
- Shopkeepers are denied admin-only operations (403)
"""

from datetime import timedelta

import pytest

from conftest import TEST_PASSWORD, auth_headers, get_auth_token
from shopflow.models import SessionToken
from shopflow.permissions import ROLE_PERMISSIONS, has_permission
from shopflow.services import auth_service, session_service
from shopflow.services.auth_service import PasswordValidationError


class TestLogin:

    def test_login_success(self, client, shopkeeper_user):
        response = client.post('/api/auth/login', json={
            "email": "KEEPER@shop.test", "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        body = response.json
        assert body["token"]
        assert body["user"]["role"] == "shopkeeper"
        assert "CREATE_SALE" in body["permissions"]
        assert "VIEW_COSTS" not in body["permissions"]

    def test_wrong_password(self, client, shopkeeper_user):
        response = client.post('/api/auth/login', json={"email": shopkeeper_user.email, "password": "wrong123"})
        assert response.status_code == 401

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={"email": "a@b.c"})
        assert response.status_code == 400

    def test_inactive_user(self, client, db_session, shopkeeper_user):
        shopkeeper_user.is_active = False
        db_session.commit()
        assert get_auth_token(client, "keeper@shop.test") is None


class TestSession:

    def test_me_and_logout(self, client, admin_user):
        headers = auth_headers(get_auth_token(client, admin_user.email))

        me = client.get('/api/auth/me', headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["email"] == "admin@shop.test"

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_idle_session_expires(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        session.last_used_at = session.last_used_at - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.expire_all()
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/auth/me', headers=auth_headers("not-a-token"))
        assert response.status_code == 401


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1", "allletters", "12345678"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_duplicate_email_rejected(self, db_session, admin_user, password_hash):
        with pytest.raises(ValueError):
            auth_service.create_user("Admin@Shop.test", TEST_PASSWORD, "admin", password_hash=password_hash)

    def test_unknown_role_rejected(self, db_session, password_hash):
        with pytest.raises(ValueError):
            auth_service.create_user("x@shop.test", TEST_PASSWORD, "manager", password_hash=password_hash)


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("GET", "/api/products/search?q=a"),
            ("POST", "/api/sales/checkout"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales/abc/items/0/return"),
            ("GET", "/api/reports/stock"),
            ("GET", "/api/reports/profit"),
            ("GET", "/api/changes"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        response = client.open(path, method=method)
        assert response.status_code == 401


class TestShopkeeperDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/reports/stock"),
            ("GET", "/api/reports/profit"),
            ("POST", "/api/products/abc/recalculate"),
            ("DELETE", "/api/products/abc"),
        ],
    )
    def test_admin_only(self, client, shopkeeper_headers, method, path):
        response = client.open(path, method=method, headers=shopkeeper_headers)
        assert response.status_code == 403


def test_role_permission_map():
    assert ROLE_PERMISSIONS["admin"] >= ROLE_PERMISSIONS["shopkeeper"]
    assert has_permission("shopkeeper", "PROCESS_RETURN")
    assert not has_permission("shopkeeper", "VIEW_COSTS")
    assert not has_permission(None, "VIEW_PRODUCTS")


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json["checks"]["database"]["status"] == "healthy"
