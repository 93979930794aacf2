from datetime import datetime, timezone

import pytest

from ado_browser.domain.models import (
    Branch,
    CommitChanges,
    GitChange,
    GitCommit,
    GitItem,
    GitRepository,
    GitUserDate,
    PipelineArtifact,
    PipelineDefinition,
    PipelineRun,
    Project,
    PullRequest,
    RepositoryRef,
)
from tests.application.fakes import FakeAzureDevOps, blob, tree

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
REPO_ID = "7c9a1f2e-1234-4d5e-9abc-0f1122334455"


def make_user(name: str = "Alice", email: str = "alice@contoso.com") -> GitUserDate:
    return GitUserDate(name=name, email=email, date=NOW)


def make_commit(commit_id: str, tree_id: str, parents: list[str], comment: str) -> GitCommit:
    return GitCommit(
        commit_id=commit_id,
        tree_id=tree_id,
        author=make_user(),
        committer=make_user(),
        comment=comment,
        url=f"https://dev.azure.com/contoso/_apis/git/commits/{commit_id}",
        remote_url=f"https://dev.azure.com/contoso/web/_git/road-api/commit/{commit_id}",
        parents=parents,
    )


def make_change(change_type: str, path: str, object_id: str, original_object_id: str = "",
                object_type: str = "blob", original_path: str = "") -> GitChange:
    return GitChange(
        change_type=change_type,
        item=GitItem(
            object_id=object_id,
            original_object_id=original_object_id,
            object_type=object_type,
            commit_id="c1",
            path=path,
            url="",
        ),
        original_path=original_path,
    )


@pytest.fixture
def repo_ref() -> RepositoryRef:
    return RepositoryRef("contoso", "web", REPO_ID)


@pytest.fixture
def fake_ado() -> FakeAzureDevOps:
    """An organization with one repository, two commits, and one pipeline.

    Commit c0 (root):   src/main.txt, README.md
    Commit c1 (c0 ->):  src/main.txt edited, src/lib/util.py added
    """
    return FakeAzureDevOps(
        commit_trees={"c1": "t0", "c0": "t0-old"},
        trees={
            "t0": [tree("src", "t1"), blob("README.md", "U-readme")],
            "t1": [blob("main.txt", "U"), tree("lib", "t2")],
            "t2": [blob("util.py", "U-util", size=6)],
            "t0-old": [tree("src", "t1-old"), blob("README.md", "U-readme")],
            "t1-old": [blob("main.txt", "U-old")],
        },
        blobs={
            "U": "hello\nworld\n",
            "U-old": "hello\nthere\n",
            "U-readme": "# Road API\n",
            "U-util": "x = 1\n",
        },
        projects=[
            Project("p-1", "web", "Web apps", "https://dev.azure.com/contoso/_apis/projects/p-1",
                    "wellFormed", "private", NOW),
        ],
        repositories=[
            GitRepository(REPO_ID, "road-api", "https://dev.azure.com/contoso/_apis/git/repositories/r",
                          "refs/heads/main", "https://contoso@dev.azure.com/contoso/web/_git/road-api",
                          "git@ssh.dev.azure.com:v3/contoso/web/road-api",
                          "https://dev.azure.com/contoso/web/_git/road-api"),
        ],
        commits=[
            make_commit("c1", "t0", ["c0"], "Update main\n\nand add util"),
            make_commit("c0", "t0-old", [], "Initial commit"),
        ],
        changes={
            "c1": CommitChanges(
                change_counts={"Edit": 1, "Add": 2},
                changes=[
                    make_change("edit", "/src/main.txt", "oid-main", "oid-main-old"),
                    make_change("add", "/src/lib", "t2", object_type="tree"),
                    make_change("add", "/src/lib/util.py", "oid-util"),
                ],
            ),
            "c0": CommitChanges(change_counts={}, changes=[
                make_change("add", "/src/main.txt", "oid-main-old"),
                make_change("add", "/README.md", "oid-readme"),
            ]),
        },
        branches=[
            Branch("refs/heads/main", "c1" * 20, "Alice", "alice@contoso.com", "https://ado/refs/main"),
            Branch("refs/heads/feature/login", "c0" * 20, "Bob", "bob@contoso.com", "https://ado/refs/f"),
        ],
        pull_requests=[
            PullRequest(42, "active", "Add login", "Adds the login page", "Bob", NOW,
                        "refs/heads/feature/login", "refs/heads/main", "https://ado/pr/42"),
            PullRequest(41, "completed", "Bootstrap", "", "Alice", NOW,
                        "refs/heads/init", "refs/heads/main", "https://ado/pr/41"),
        ],
        pipelines=[PipelineDefinition(7, "road-api-ci", "https://ado/pipelines/7", "\\ci", 3)],
        runs={
            7: [
                PipelineRun(103, "20240601.3", "inProgress", "", "https://ado/runs/103", NOW, None),
                PipelineRun(102, "20240601.2", "completed", "failed", "https://ado/runs/102", NOW, NOW),
                PipelineRun(101, "20240601.1", "completed", "succeeded", "https://ado/runs/101", NOW, NOW),
            ],
        },
        artifacts={
            101: [PipelineArtifact("drop", "https://ado/signed/drop", "https://ado/artifacts/drop")],
        },
    )
