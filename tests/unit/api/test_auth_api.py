"""HTTP tests for sign-in, sign-out and identity lookup."""

from __future__ import annotations


def bearer(secret: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}


def test_health(api):
    response = api.client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-Id"]


def test_me_with_bearer(api):
    response = api.client.get("/api/auth/me", headers=bearer(api.secrets["writer"]))

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "writer"
    assert body["kind"] == "PERSISTENT"
    assert body["routes"] == [{"path": "/releases", "permission": "WRITE"}]
    assert "secret" not in body
    assert "secret_hash" not in body


def test_me_without_token(api):
    response = api.client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


def test_me_with_invalid_token(api):
    response = api.client.get("/api/auth/me", headers=bearer("wrong"))

    assert response.status_code == 401


def test_error_envelope_echoes_request_id(api):
    response = api.client.get("/api/auth/me", headers={"X-Request-Id": "req-1"})

    assert response.headers["X-Request-Id"] == "req-1"
    assert response.json()["error"]["request_id"] == "req-1"


def test_signin_sets_cookie_and_signout_clears_it(api):
    response = api.client.post(
        "/api/auth/signin", headers=bearer(api.secrets["manager"])
    )

    assert response.status_code == 200
    assert response.json()["permissions"] == ["MANAGER"]
    assert api.client.cookies.get("depot_session") == api.secrets["manager"]
    assert "httponly" in response.headers["set-cookie"].lower()

    # Cookie alone authenticates
    me = api.client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["name"] == "admin"

    signout = api.client.post("/api/auth/signout")
    assert signout.status_code == 200
    assert api.client.cookies.get("depot_session") is None
    assert api.client.get("/api/auth/me").status_code == 401


def test_signin_requires_bearer(api):
    assert api.client.post("/api/auth/signin").status_code == 401


def test_signin_rejects_invalid_secret(api):
    response = api.client.post("/api/auth/signin", headers=bearer("wrong"))

    assert response.status_code == 401
    assert "depot_session" not in response.headers.get("set-cookie", "")


def test_signout_without_session(api):
    response = api.client.post("/api/auth/signout")

    assert response.status_code == 401
