from ado_browser.domain.errors import UpstreamUnavailableError
from ado_browser.domain.models import (
    Branch,
    CommitChanges,
    CommitMetadata,
    GitCommit,
    GitRepository,
    ObjectType,
    PipelineArtifact,
    PipelineDefinition,
    PipelineRun,
    Project,
    PullRequest,
    RepositoryRef,
    TreeEntry,
    TreeListing,
)


def tree(name: str, object_id: str) -> TreeEntry:
    return TreeEntry(name, object_id, ObjectType.TREE, f"https://ado/trees/{object_id}")


def blob(name: str, content_url: str, object_id: str | None = None, size: int = 0) -> TreeEntry:
    return TreeEntry(name, object_id or f"oid-{name}", ObjectType.BLOB, content_url, size)


class FakeTreeSource:
    """Plain stub implementing the TreeObjectSource protocol.

    Every fetch is appended to ``calls`` as (kind, key) so tests can assert
    on the exact request sequence.
    """

    def __init__(
        self,
        commit_trees: dict[str, str] | None = None,
        trees: dict[str, list[TreeEntry]] | None = None,
        blobs: dict[str, str] | None = None,
    ) -> None:
        self._commit_trees = commit_trees or {}
        self._trees = trees or {}
        self._blobs = blobs or {}
        self.calls: list[tuple[str, str]] = []

    def fetch_commit_metadata(self, repo: RepositoryRef, commit_id: str) -> CommitMetadata:
        self.calls.append(("commit", commit_id))
        if commit_id not in self._commit_trees:
            raise UpstreamUnavailableError(
                f"Failed to retrieve commit '{commit_id}' metadata. Status code: 404",
                status_code=404,
            )
        return CommitMetadata(tree_id=self._commit_trees[commit_id])

    def fetch_tree_listing(self, repo: RepositoryRef, tree_id: str) -> TreeListing:
        self.calls.append(("tree", tree_id))
        if tree_id not in self._trees:
            raise UpstreamUnavailableError(
                f"Failed to retrieve tree structure for treeId '{tree_id}'. Status code: 500",
                status_code=500,
            )
        return TreeListing(tree_id=tree_id, entries=list(self._trees[tree_id]))

    def fetch_blob_content(self, content_url: str) -> str:
        self.calls.append(("blob", content_url))
        if content_url not in self._blobs:
            raise UpstreamUnavailableError(
                f"Failed to retrieve blob content at '{content_url}'. Status code: 500",
                status_code=500,
            )
        return self._blobs[content_url]


class FakeAzureDevOps(FakeTreeSource):
    """Plain stub implementing the AzureDevOpsReader protocol."""

    organization = "contoso"

    def __init__(
        self,
        commit_trees: dict[str, str] | None = None,
        trees: dict[str, list[TreeEntry]] | None = None,
        blobs: dict[str, str] | None = None,
        projects: list[Project] | None = None,
        repositories: list[GitRepository] | None = None,
        commits: list[GitCommit] | None = None,
        changes: dict[str, CommitChanges] | None = None,
        branches: list[Branch] | None = None,
        pull_requests: list[PullRequest] | None = None,
        pipelines: list[PipelineDefinition] | None = None,
        runs: dict[int, list[PipelineRun]] | None = None,
        artifacts: dict[int, list[PipelineArtifact]] | None = None,
    ) -> None:
        super().__init__(commit_trees, trees, blobs)
        self._projects = projects or []
        self._repositories = repositories or []
        self._commits = commits or []
        self._changes = changes or {}
        self._branches = branches or []
        self._pull_requests = pull_requests or []
        self._pipelines = pipelines or []
        self._runs = runs or {}
        self._artifacts = artifacts or {}
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self.closed = True

    @staticmethod
    def _missing(what: str):
        return UpstreamUnavailableError(
            f"Failed to retrieve {what}. Status code: 404", status_code=404
        )

    def list_projects(self) -> list[Project]:
        return list(self._projects)

    def get_project(self, project: str) -> Project:
        for p in self._projects:
            if project in (p.id, p.name):
                return p
        raise self._missing(f"project '{project}'")

    def list_repositories(self, project: str) -> list[GitRepository]:
        return list(self._repositories)

    def get_repository(self, project: str, repository_id: str) -> GitRepository:
        for r in self._repositories:
            if r.id == repository_id:
                return r
        raise self._missing(f"repository '{repository_id}'")

    def list_pull_requests(
        self, project: str, repository_id: str, status: str | None = None
    ) -> list[PullRequest]:
        if not status or status == "all":
            return list(self._pull_requests)
        return [pr for pr in self._pull_requests if pr.status == status]

    def get_pull_request(
        self, project: str, repository_id: str, pull_request_id: int
    ) -> PullRequest:
        for pr in self._pull_requests:
            if pr.pull_request_id == pull_request_id:
                return pr
        raise self._missing(f"pull request '{pull_request_id}'")

    def list_commits(
        self, project: str, repository_id: str, branch: str | None = None, top: int = 100
    ) -> list[GitCommit]:
        return self._commits[:top]

    def get_commit(self, project: str, repository_id: str, commit_id: str) -> GitCommit:
        for c in self._commits:
            if c.commit_id == commit_id:
                return c
        raise self._missing(f"commit '{commit_id}'")

    def get_commit_changes(self, repo: RepositoryRef, commit_id: str) -> CommitChanges:
        if commit_id not in self._changes:
            raise self._missing(f"changes for commit '{commit_id}'")
        return self._changes[commit_id]

    def list_branches(self, project: str, repository_id: str) -> list[Branch]:
        return list(self._branches)

    def get_branch(self, project: str, repository_id: str, name: str) -> Branch | None:
        for b in self._branches:
            if b.short_name.lower() == name.removeprefix("refs/heads/").lower():
                return b
        return None

    def list_pipelines(self, project: str) -> list[PipelineDefinition]:
        return list(self._pipelines)

    def get_pipeline(self, project: str, pipeline_id: int) -> PipelineDefinition:
        for p in self._pipelines:
            if p.id == pipeline_id:
                return p
        raise self._missing(f"pipeline definition '{pipeline_id}'")

    def list_pipeline_runs(
        self, project: str, pipeline_id: int, top: int = 100
    ) -> list[PipelineRun]:
        return self._runs.get(pipeline_id, [])[:top]

    def get_pipeline_run(self, project: str, pipeline_id: int, run_id: int) -> PipelineRun:
        for r in self._runs.get(pipeline_id, []):
            if r.id == run_id:
                return r
        raise self._missing(f"pipeline run '{run_id}'")

    def list_pipeline_artifacts(
        self, project: str, pipeline_id: int, run_id: int
    ) -> list[PipelineArtifact]:
        return self._artifacts.get(run_id, [])
