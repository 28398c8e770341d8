from __future__ import annotations

from fastapi.testclient import TestClient

from tests._helpers.auth import DEFAULT_PASSWORD, login, login_user, register_user
from vidtube.api.models import UserStore
from vidtube.server import app


def test_login_by_username_sets_cookies_and_stores_refresh_token() -> None:
    with TestClient(app) as client:
        user = register_user(client, username="ivan")
        r = client.post(
            "/api/v1/users/login", json={"username": "ivan", "password": DEFAULT_PASSWORD}
        )
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["success"] is True
        data = body["data"]
        assert data["user"]["id"] == user["id"]
        assert "refreshToken" not in data["user"]
        assert client.cookies.get("accessToken") == data["accessToken"]
        assert client.cookies.get("refreshToken") == data["refreshToken"]

        set_cookie = ",".join(r.headers.get_list("set-cookie")).lower()
        assert "httponly" in set_cookie

        store: UserStore = app.state.user_store
        stored = store.get_user(user["id"])
        assert stored is not None
        assert stored.refresh_token == data["refreshToken"]


def test_login_by_email() -> None:
    with TestClient(app) as client:
        register_user(client, username="judy")
        r = client.post(
            "/api/v1/users/login",
            json={"email": "JUDY@example.com", "password": DEFAULT_PASSWORD},
        )
        assert r.status_code == 200
        assert r.json()["data"]["user"]["username"] == "judy"


def test_login_failures() -> None:
    with TestClient(app) as client:
        register_user(client, username="mallory")
        r = client.post("/api/v1/users/login", json={"username": "mallory", "password": "nope"})
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid user credentials"
        assert r.headers.get("www-authenticate") == "Bearer"

        r = client.post("/api/v1/users/login", json={"username": "nobody", "password": "x"})
        assert r.status_code == 404
        assert r.json()["message"] == "User does not exist"

        r = client.post("/api/v1/users/login", json={"password": "x"})
        assert r.status_code == 400

        r = client.post(
            "/api/v1/users/login",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        assert r.status_code == 400


def test_refresh_rotates_and_rejects_replay() -> None:
    with TestClient(app) as client:
        register_user(client, username="niaj")
        first = login(client, username="niaj")

        r = client.post("/api/v1/users/refresh-token")
        assert r.status_code == 200, r.text
        rotated = r.json()["data"]
        assert rotated["refreshToken"] != first["refreshToken"]
        assert client.cookies.get("refreshToken") == rotated["refreshToken"]

        client.cookies.clear()
        r = client.post("/api/v1/users/refresh-token", json={"refreshToken": first["refreshToken"]})
        assert r.status_code == 401
        assert r.json()["message"] == "Refresh token is expired or used"

        # The rotated token is still the live one.
        r = client.post(
            "/api/v1/users/refresh-token", json={"refreshToken": rotated["refreshToken"]}
        )
        assert r.status_code == 200


def test_refresh_requires_a_token() -> None:
    with TestClient(app) as client:
        r = client.post("/api/v1/users/refresh-token")
        assert r.status_code == 401
        assert r.json()["message"] == "Unauthorized request"


def test_refresh_rejects_access_token() -> None:
    with TestClient(app) as client:
        register_user(client, username="olivia")
        data = login(client, username="olivia")
        client.cookies.clear()
        r = client.post("/api/v1/users/refresh-token", json={"refreshToken": data["accessToken"]})
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid refresh token"


def test_logout_clears_session() -> None:
    with TestClient(app) as client:
        user = register_user(client, username="peggy")
        data = login(client, username="peggy")

        r = client.post("/api/v1/users/logout")
        assert r.status_code == 200, r.text
        assert client.cookies.get("accessToken") is None
        assert client.cookies.get("refreshToken") is None

        store: UserStore = app.state.user_store
        stored = store.get_user(user["id"])
        assert stored is not None
        assert stored.refresh_token is None

        r = client.post("/api/v1/users/refresh-token", json={"refreshToken": data["refreshToken"]})
        assert r.status_code == 401


def test_protected_routes_require_access_token() -> None:
    with TestClient(app) as client:
        r = client.get("/api/v1/users/current-user")
        assert r.status_code == 401
        assert r.json() == {
            "statusCode": 401,
            "message": "Unauthorized request",
            "success": False,
            "errors": [],
        }
        r = client.get(
            "/api/v1/users/current-user", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid access token"


def test_bearer_and_cookie_auth() -> None:
    with TestClient(app) as client:
        register_user(client, username="rupert")
        headers = login_user(client, username="rupert")
        r = client.get("/api/v1/users/current-user", headers=headers)
        assert r.status_code == 200
        assert r.json()["data"]["username"] == "rupert"

        login(client, username="rupert")
        r = client.get("/api/v1/users/current-user")
        assert r.status_code == 200


def test_register_login_refresh_end_to_end() -> None:
    with TestClient(app) as client:
        register_user(client, username="sybil")
        first = login(client, username="sybil")
        client.cookies.clear()

        r = client.post("/api/v1/users/refresh-token", json={"refreshToken": first["refreshToken"]})
        assert r.status_code == 200
        pair = r.json()["data"]

        r = client.get(
            "/api/v1/users/current-user",
            headers={"Authorization": f"Bearer {pair['accessToken']}"},
        )
        assert r.status_code == 200

        client.cookies.clear()
        r = client.post("/api/v1/users/refresh-token", json={"refreshToken": first["refreshToken"]})
        assert r.status_code == 401
