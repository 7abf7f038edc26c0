from fastapi.testclient import TestClient

from tests.utils.auth import TEST_PASSWORD


def test_register_moderator(client: TestClient):
    response = client.post(
        "/api/v1/auth/moderators/register",
        json={"name": "Chair", "email": "chair@example.com", "password": "s3cret!"},
    )
    assert response.status_code == 201
    content = response.json()
    assert content["email"] == "chair@example.com"
    assert "password" not in content
    assert "hashed_password" not in content


def test_register_duplicate_email(client: TestClient, moderator):
    response = client.post(
        "/api/v1/auth/moderators/register",
        json={"name": "Copy", "email": moderator.email, "password": "whatever"},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already exists"


def test_login_returns_token_for_new_session(client: TestClient, moderator):
    response = client.post(
        "/api/v1/auth/moderators/login",
        json={"email": moderator.email, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    content = response.json()
    assert content["token_type"] == "bearer"
    assert content["moderator"]["id"] == moderator.id

    headers = {"Authorization": f"Bearer {content['access_token']}"}
    me = client.get("/api/v1/auth/moderators/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["email"] == moderator.email


def test_login_failures_share_one_message(client: TestClient, moderator):
    wrong_password = client.post(
        "/api/v1/auth/moderators/login",
        json={"email": moderator.email, "password": "nope"},
    )
    unknown_email = client.post(
        "/api/v1/auth/moderators/login",
        json={"email": "ghost@example.com", "password": TEST_PASSWORD},
    )
    for response in (wrong_password, unknown_email):
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"


def test_logout_invalidates_token(client: TestClient, moderator_headers):
    assert client.get("/api/v1/auth/moderators/me", headers=moderator_headers).status_code == 200

    response = client.post("/api/v1/auth/moderators/logout", headers=moderator_headers)
    assert response.status_code == 204

    assert client.get("/api/v1/auth/moderators/me", headers=moderator_headers).status_code == 401


def test_garbage_token_is_rejected(client: TestClient):
    response = client.get(
        "/api/v1/auth/moderators/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
