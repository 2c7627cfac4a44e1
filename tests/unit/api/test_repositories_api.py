"""HTTP tests for repository listing."""

from __future__ import annotations

import pytest


def bearer(secret: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}


def place(api, relative: str, content: bytes = b"x") -> None:
    target = api.storage_root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


def test_list_repositories(api):
    place(api, "releases/dev/lib/1.0/lib-1.0.jar", b"abc")
    place(api, "releases/a.txt")

    response = api.client.get("/api/repositories")

    assert response.status_code == 200
    body = response.json()
    assert [repo["name"] for repo in body] == ["releases", "snapshots"]
    releases = body[0]
    assert releases["path"] == "/releases"
    assert [node["name"] for node in releases["tree"]] == ["a.txt", "dev"]
    jar = releases["tree"][1]["children"][0]["children"][0]["children"][0]
    assert jar == {
        "type": "file",
        "name": "lib-1.0.jar",
        "path": "/releases/dev/lib/1.0/lib-1.0.jar",
        "size": 3,
        "version": "1.0",
        "children": None,
    }
    assert body[1]["tree"] == []


def test_repository_tree(api):
    place(api, "snapshots/b.txt")
    place(api, "snapshots/a.txt")

    response = api.client.get("/api/repositories/snapshots/tree")

    assert response.status_code == 200
    assert [node["path"] for node in response.json()] == [
        "/snapshots/a.txt",
        "/snapshots/b.txt",
    ]


def test_repository_tree_escape_is_not_found(api):
    response = api.client.get("/api/repositories/../tree")
    assert response.status_code == 404


class TestPrivateListing:
    @pytest.fixture
    def public_read(self) -> bool:
        return False

    def test_anonymous_unauthorized(self, api):
        assert api.client.get("/api/repositories").status_code == 401

    def test_filtered_by_grants(self, api):
        response = api.client.get(
            "/api/repositories", headers=bearer(api.secrets["reader"])
        )

        assert response.status_code == 200
        assert [repo["name"] for repo in response.json()] == ["releases"]

    def test_manager_sees_everything(self, api):
        response = api.client.get(
            "/api/repositories", headers=bearer(api.secrets["manager"])
        )
        assert [repo["name"] for repo in response.json()] == ["releases", "snapshots"]

    def test_tree_requires_grant(self, api):
        headers = bearer(api.secrets["reader"])

        assert api.client.get("/api/repositories/releases/tree", headers=headers).status_code == 200
        assert api.client.get("/api/repositories/snapshots/tree", headers=headers).status_code == 403


def test_unknown_repository_tree_is_not_found(api):
    assert api.client.get("/api/repositories/missing/tree").status_code == 404


class TestRepositoryManagement:
    def test_manager_creates_repository(self, api):
        response = api.client.post(
            "/api/repositories",
            json={"name": "thirdparty"},
            headers=bearer(api.secrets["manager"]),
        )

        assert response.status_code == 201
        assert response.json() == {"name": "thirdparty", "path": "/thirdparty", "tree": []}
        assert (api.storage_root / "thirdparty").is_dir()
        listed = api.client.get("/api/repositories").json()
        assert [repo["name"] for repo in listed] == ["releases", "snapshots", "thirdparty"]

    def test_create_existing_repository_conflicts(self, api):
        response = api.client.post(
            "/api/repositories",
            json={"name": "releases"},
            headers=bearer(api.secrets["manager"]),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "name_conflict"

    @pytest.mark.parametrize("name", ["..", "a/b", ""])
    def test_create_rejects_malformed_name(self, api, name):
        response = api.client.post(
            "/api/repositories",
            json={"name": name},
            headers=bearer(api.secrets["manager"]),
        )

        assert response.status_code == 400
        assert not (api.storage_root.parent / "a").exists()

    def test_writer_cannot_create(self, api):
        response = api.client.post(
            "/api/repositories",
            json={"name": "thirdparty"},
            headers=bearer(api.secrets["writer"]),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "insufficient_scope"
        assert not (api.storage_root / "thirdparty").exists()

    def test_anonymous_cannot_create(self, api):
        response = api.client.post("/api/repositories", json={"name": "thirdparty"})
        assert response.status_code == 401

    def test_manager_removes_repository(self, api):
        place(api, "snapshots/dev/lib/1.0-SNAPSHOT/lib-1.0-SNAPSHOT.jar")

        response = api.client.delete(
            "/api/repositories/snapshots", headers=bearer(api.secrets["manager"])
        )

        assert response.status_code == 204
        assert not (api.storage_root / "snapshots").exists()
        assert api.client.get("/api/repositories/snapshots/tree").status_code == 404

    def test_remove_missing_repository_not_found(self, api):
        response = api.client.delete(
            "/api/repositories/missing", headers=bearer(api.secrets["manager"])
        )
        assert response.status_code == 404

    def test_writer_cannot_remove(self, api):
        response = api.client.delete(
            "/api/repositories/releases", headers=bearer(api.secrets["writer"])
        )

        assert response.status_code == 403
        assert (api.storage_root / "releases").is_dir()
