from __future__ import annotations

from fastapi.testclient import TestClient

from tests._helpers.auth import DEFAULT_PASSWORD, login_user, register_user
from tests._helpers.media import FakeUploader, image_file
from vidtube.api.models import UserStore
from vidtube.config import get_settings
from vidtube.server import app
from vidtube.utils.crypto import PasswordHasher


def test_change_password() -> None:
    with TestClient(app) as client:
        user = register_user(client, username="uma")
        headers = login_user(client, username="uma")
        store: UserStore = app.state.user_store
        before = store.get_user(user["id"])
        assert before is not None

        r = client.post(
            "/api/v1/users/change-password",
            json={"oldPassword": "wrong-password", "newPassword": "new-secret-1"},
            headers=headers,
        )
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid old password"
        unchanged = store.get_user(user["id"])
        assert unchanged is not None
        assert unchanged.password_hash == before.password_hash

        r = client.post(
            "/api/v1/users/change-password",
            json={"oldPassword": DEFAULT_PASSWORD},
            headers=headers,
        )
        assert r.status_code == 400

        r = client.post(
            "/api/v1/users/change-password",
            json={"oldPassword": DEFAULT_PASSWORD, "newPassword": "new-secret-1"},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        after = store.get_user(user["id"])
        assert after is not None
        hasher = PasswordHasher()
        assert not hasher.verify(after.password_hash, DEFAULT_PASSWORD)
        assert hasher.verify(after.password_hash, "new-secret-1")

        r = client.post(
            "/api/v1/users/login", json={"username": "uma", "password": "new-secret-1"}
        )
        assert r.status_code == 200


def test_current_user_and_update_account() -> None:
    with TestClient(app) as client:
        register_user(client, username="vera")
        register_user(client, username="walt")
        headers = login_user(client, username="vera")

        r = client.get("/api/v1/users/current-user", headers=headers)
        assert r.status_code == 200
        assert r.json()["data"]["username"] == "vera"

        r = client.patch(
            "/api/v1/users/update-account",
            json={"fullName": "Vera Updated", "email": "Vera.New@example.com"},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        data = r.json()["data"]
        assert data["fullName"] == "Vera Updated"
        assert data["email"] == "vera.new@example.com"

        r = client.patch(
            "/api/v1/users/update-account",
            json={"fullName": "Vera", "email": "walt@example.com"},
            headers=headers,
        )
        assert r.status_code == 409

        r = client.patch(
            "/api/v1/users/update-account", json={"fullName": "Vera"}, headers=headers
        )
        assert r.status_code == 400


def test_update_avatar_without_file_does_not_mutate() -> None:
    with TestClient(app) as client:
        user = register_user(client, username="xavier")
        headers = login_user(client, username="xavier")
        store: UserStore = app.state.user_store
        before = store.get_user(user["id"])

        r = client.patch("/api/v1/users/update-avatar", headers=headers)
        assert r.status_code == 400
        assert r.json()["message"] == "Avatar file is missing"
        assert store.get_user(user["id"]) == before

        r = client.patch("/api/v1/users/update-cover-image", headers=headers)
        assert r.status_code == 400
        assert store.get_user(user["id"]) == before


def test_update_avatar_and_cover_image(fake_uploader: FakeUploader) -> None:
    with TestClient(app) as client:
        user = register_user(client, username="yara")
        headers = login_user(client, username="yara")

        r = client.patch(
            "/api/v1/users/update-avatar",
            files={"avatar": image_file("new-avatar.png")},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        assert r.json()["data"]["avatar"] != user["avatar"]

        r = client.patch(
            "/api/v1/users/update-cover-image",
            files={"coverImage": image_file("cover.png")},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        assert r.json()["data"]["coverImage"].startswith("https://media.test/coverImage_")
        assert len(fake_uploader.uploaded) == 3
    assert list(get_settings().resolved_temp_dir().iterdir()) == []


def test_update_avatar_upload_failure(fake_uploader: FakeUploader) -> None:
    with TestClient(app) as client:
        user = register_user(client, username="zack")
        headers = login_user(client, username="zack")
        store: UserStore = app.state.user_store
        before = store.get_user(user["id"])

        fake_uploader.fail = True
        r = client.patch(
            "/api/v1/users/update-avatar",
            files={"avatar": image_file()},
            headers=headers,
        )
        assert r.status_code == 500
        assert r.json()["message"] == "Error while uploading avatar"
        assert store.get_user(user["id"]) == before
    assert list(get_settings().resolved_temp_dir().iterdir()) == []
