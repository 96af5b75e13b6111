"""
Authentication integration tests.

Verifies:
- Login sets the session cookie and resolves the user
- Bad credentials are rejected
- Logout and unknown sessions fall back to anonymous
"""
from fastapi.testclient import TestClient

from tests.conftest import login


class TestLogin:

    def test_login_sets_session(self, client: TestClient, owner: dict):
        login(client, owner)

        response = client.get("/api/me")

        assert response.status_code == 200
        me = response.json()
        assert me["id"] == owner["id"]
        assert me["email"] == owner["email"]
        assert me["role"] == "USER"

    def test_wrong_password(self, client: TestClient, owner: dict):
        response = client.post(
            "/login", data={"username": owner["username"], "password": "wrong"}
        )

        assert response.status_code == 401
        assert "sharegate_session" not in response.cookies

    def test_unknown_user(self, client: TestClient):
        response = client.post("/login", data={"username": "ghost", "password": "x"})
        assert response.status_code == 401


class TestSessions:

    def test_logout_ends_session(self, owner_client: TestClient):
        session_id = owner_client.cookies.get("sharegate_session")

        response = owner_client.post("/logout")
        assert response.status_code == 200

        # Replaying the old cookie no longer authenticates
        owner_client.cookies.set("sharegate_session", session_id)
        assert owner_client.get("/api/me").status_code == 401

    def test_unknown_session_is_anonymous(self, client: TestClient, owner_client: TestClient,
                                          shared_folder: dict):
        client.cookies.clear()
        client.cookies.set("sharegate_session", "forged")

        response = client.get(f"/api/folders/{shared_folder['id']}")

        assert response.status_code == 401
        assert response.json() == {"error": "unauthenticated"}
