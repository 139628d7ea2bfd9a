"""
Tests for admin authentication
"""

from datetime import timedelta

from foodhub.auth.auth_handler import AuthHandler, Actor, get_actor
from foodhub.models.activity_log import ActivityLog

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Kitchen123!"


class TestLogin:
    """Test cases for POST /auth/login"""

    def test_login_success(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
        )
        assert response.status_code == 200

        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["expires_in"] > 0
        assert data["admin"]["username"] == ADMIN_USERNAME
        assert data["admin"]["last_login"] is not None

    def test_username_is_case_insensitive(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": ADMIN_USERNAME.upper(), "password": ADMIN_PASSWORD}
        )
        assert response.status_code == 200

    def test_wrong_password(self, client, db, admin_headers):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": ADMIN_USERNAME, "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

        failed = db.query(ActivityLog).filter(ActivityLog.action == "auth.login_failed").all()
        assert len(failed) == 1
        assert failed[0].status_code == 401

    def test_unknown_user(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "nobody", "password": "x"})
        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME})
        assert response.status_code == 422


class TestCurrentAdmin:
    """Test cases for GET /auth/me"""

    def test_me(self, client, admin_headers):
        response = client.get("/api/v1/auth/me", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["username"] == ADMIN_USERNAME

    def test_me_requires_token(self, client, session_headers):
        assert client.get("/api/v1/auth/me").status_code == 401
        assert client.get("/api/v1/auth/me", headers=session_headers).status_code == 403

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_expired_token(self, client, admin_headers):
        token = AuthHandler().create_access_token(
            {"sub": "1", "username": ADMIN_USERNAME, "role": "admin"},
            expires_delta=timedelta(minutes=-1)
        )
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_without_admin_role(self, client, admin_headers):
        token = AuthHandler().create_access_token({"sub": "1", "username": ADMIN_USERNAME})
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestActorResolution:
    """Test cases for caller identity resolution"""

    def test_session_header(self):
        actor = get_actor(credentials=None, x_session_id="  abc  ")
        assert actor == Actor(kind="customer", session_id="abc")
        assert actor.label == "session:abc"
        assert not actor.is_admin

    def test_anonymous(self):
        actor = get_actor(credentials=None, x_session_id=None)
        assert actor.kind == "anonymous"
        assert actor.label == "anonymous"

    def test_password_hashing(self):
        handler = AuthHandler()
        hashed = handler.get_password_hash("Kitchen123!")
        assert hashed != "Kitchen123!"
        assert handler.verify_password("Kitchen123!", hashed)
        assert not handler.verify_password("kitchen123!", hashed)


class TestActivityLog:
    """Test cases for GET /auth/activity"""

    def test_recent_activity_newest_first(self, client, admin_headers, order_payload):
        order = client.post("/api/v1/orders/", json=order_payload()).json()
        client.post(f"/api/v1/orders/{order['id']}/status", json={"status": "cancelled"}, headers=admin_headers)

        response = client.get("/api/v1/auth/activity", headers=admin_headers)
        assert response.status_code == 200
        actions = [entry["action"] for entry in response.json()]
        assert actions[:2] == ["order.transition", "auth.login"]
        assert response.json()[0]["target"] == "FPI-AB12CD"

    def test_filter_and_limit(self, client, admin_headers):
        client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": "wrong"})
        client.post("/api/v1/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})

        failed = client.get("/api/v1/auth/activity?action=auth.login_failed", headers=admin_headers).json()
        assert [entry["status_code"] for entry in failed] == [401]

        limited = client.get("/api/v1/auth/activity?limit=1", headers=admin_headers).json()
        assert len(limited) == 1
        assert limited[0]["action"] == "auth.login"

    def test_requires_admin(self, client, session_headers):
        assert client.get("/api/v1/auth/activity", headers=session_headers).status_code == 403
