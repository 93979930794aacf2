import httpx
import pytest
from fastapi.testclient import TestClient

from ado_browser.infrastructure.ado_client import AzureDevOpsClient
from ado_browser.web.api import app
from tests.application.fakes import blob
from tests.conftest import REPO_ID

REPO = f"/api/projects/web/repos/{REPO_ID}"


@pytest.fixture
def client(fake_ado):
    app.state.ado_client = fake_ado
    with TestClient(app) as c:
        yield c
    app.state.ado_client = None


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_injected_client_not_closed_on_shutdown(fake_ado):
    app.state.ado_client = fake_ado
    with TestClient(app):
        pass
    assert fake_ado.closed is False
    app.state.ado_client = None


class TestProjectsAndRepos:
    def test_list_projects(self, client):
        resp = client.get("/api/projects")
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json()] == ["web"]

    def test_get_project(self, client):
        assert client.get("/api/projects/web").json()["id"] == "p-1"

    def test_unknown_project_is_404(self, client):
        resp = client.get("/api/projects/nope")
        assert resp.status_code == 404
        assert resp.json()["upstream_status"] == 404

    def test_list_repositories(self, client):
        data = client.get("/api/projects/web/repos").json()
        assert data[0]["default_branch"] == "refs/heads/main"

    def test_get_repository(self, client):
        assert client.get(REPO).json()["name"] == "road-api"


class TestBranches:
    def test_list(self, client):
        data = client.get(f"{REPO}/branches").json()
        assert [b["short_name"] for b in data] == ["main", "feature/login"]

    def test_get_with_slash_in_name(self, client):
        resp = client.get(f"{REPO}/branches/feature/login")
        assert resp.status_code == 200
        assert resp.json()["creator_name"] == "Bob"

    def test_missing_branch(self, client):
        resp = client.get(f"{REPO}/branches/nope")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Branch 'nope' not found"


class TestCommits:
    def test_list(self, client):
        data = client.get(f"{REPO}/commits", params={"top": 1}).json()
        assert [c["commit_id"] for c in data] == ["c1"]
        assert data[0]["author"]["name"] == "Alice"

    def test_top_out_of_range(self, client):
        assert client.get(f"{REPO}/commits", params={"top": 0}).status_code == 422

    def test_get(self, client):
        assert client.get(f"{REPO}/commits/c0").json()["parents"] == []

    def test_changes(self, client):
        data = client.get(f"{REPO}/commits/c0/changes").json()
        assert data["commit_id"] == "c0"
        assert data["change_counts"] == {"Add": 2}
        assert data["changes"][1]["item"]["path"] == "/README.md"


class TestTreeAndFile:
    def test_root_tree(self, client):
        data = client.get(f"{REPO}/commits/c1/tree").json()
        assert data["tree_id"] == "t0"
        assert [(e["name"], e["object_type"]) for e in data["entries"]] == [
            ("src", "tree"), ("README.md", "blob"),
        ]

    def test_nested_tree(self, client):
        data = client.get(f"{REPO}/commits/c1/tree", params={"path": "src/lib"}).json()
        assert data["entries"][0]["size"] == 6

    def test_file(self, client):
        resp = client.get(f"{REPO}/commits/c1/file", params={"path": "src/main.txt"})
        assert resp.status_code == 200
        assert resp.json() == {"commit_id": "c1", "path": "src/main.txt", "content": "hello\nworld\n"}

    def test_file_requires_path(self, client):
        assert client.get(f"{REPO}/commits/c1/file").status_code == 422

    def test_directory_is_404(self, client):
        resp = client.get(f"{REPO}/commits/c1/file", params={"path": "src"})
        assert resp.status_code == 404

    def test_missing_segment_is_404(self, client):
        resp = client.get(f"{REPO}/commits/c1/file", params={"path": "missing/main.txt"})
        assert resp.status_code == 404
        assert "missing" in resp.json()["detail"]

    def test_file_mid_path_is_422(self, client):
        resp = client.get(f"{REPO}/commits/c1/file", params={"path": "README.md/x"})
        assert resp.status_code == 422

    def test_commit_without_tree_is_502(self, client, fake_ado):
        fake_ado._commit_trees["c8"] = ""
        resp = client.get(f"{REPO}/commits/c8/file", params={"path": "a.txt"})
        assert resp.status_code == 502
        assert "valid tree ID" in resp.json()["detail"]

    def test_upstream_failure_is_502(self, client, fake_ado):
        fake_ado._commit_trees["c9"] = "t-missing"
        resp = client.get(f"{REPO}/commits/c9/file", params={"path": "a.txt"})
        assert resp.status_code == 502
        assert resp.json()["upstream_status"] == 500

    def test_blob_without_content_url_is_502(self, client, fake_ado):
        fake_ado._trees["t0"].append(blob("LICENSE", ""))
        resp = client.get(f"{REPO}/commits/c1/file", params={"path": "LICENSE"})
        assert resp.status_code == 502
        assert "no content URL" in resp.json()["detail"]


class TestDiff:
    def test_edit(self, client):
        data = client.get(f"{REPO}/commits/c1/diff", params={"path": "/src/main.txt"}).json()
        assert data["added_count"] == 1
        assert data["deleted_count"] == 1
        assert data["lines"][1]["kind"] == "replace"
        assert data["lines"][1]["old_text"] == "there"

    def test_unchanged_path(self, client):
        resp = client.get(f"{REPO}/commits/c1/diff", params={"path": "README.md"})
        assert resp.status_code == 404

    def test_blank_path_is_400(self, client):
        resp = client.get(f"{REPO}/commits/c1/diff", params={"path": " "})
        assert resp.status_code == 400


class TestPullRequests:
    def test_filter_by_status(self, client):
        data = client.get(f"{REPO}/pullrequests", params={"status": "active"}).json()
        assert [pr["pull_request_id"] for pr in data] == [42]

    def test_all(self, client):
        assert len(client.get(f"{REPO}/pullrequests").json()) == 2

    def test_get(self, client):
        assert client.get(f"{REPO}/pullrequests/41").json()["status"] == "completed"


class TestPipelines:
    def test_list(self, client):
        assert client.get("/api/projects/web/pipelines").json()[0]["name"] == "road-api-ci"

    def test_get(self, client):
        assert client.get("/api/projects/web/pipelines/7").json()["folder"] == "\\ci"

    def test_runs(self, client):
        data = client.get("/api/projects/web/pipelines/7/runs", params={"top": 2}).json()
        assert [r["id"] for r in data] == [103, 102]
        assert data[0]["finished_date"] is None

    def test_summary(self, client):
        data = client.get("/api/projects/web/pipelines/7/summary").json()
        assert data["total_runs"] == 3
        assert data["result_counts"] == {"inProgress": 1, "failed": 1, "succeeded": 1}

    def test_run(self, client):
        assert client.get("/api/projects/web/pipelines/7/runs/101").json()["result"] == "succeeded"

    def test_missing_run(self, client):
        assert client.get("/api/projects/web/pipelines/7/runs/999").status_code == 404

    def test_artifacts(self, client):
        data = client.get("/api/projects/web/pipelines/7/runs/101/artifacts").json()
        assert data == [{
            "name": "drop",
            "signed_content_url": "https://ado/signed/drop",
            "download_url": "https://ado/artifacts/drop",
        }]


def test_null_fields_from_upstream_serialize():
    def handler(request):
        return httpx.Response(200, json={"value": [{
            "id": "p", "name": "web", "description": None, "url": None,
            "state": None, "visibility": None, "lastUpdateTime": None,
        }]})

    app.state.ado_client = AzureDevOpsClient("contoso", "p", transport=httpx.MockTransport(handler))
    with TestClient(app) as c:
        resp = c.get("/api/projects")
    app.state.ado_client = None
    assert resp.status_code == 200
    assert resp.json()[0]["description"] == ""
