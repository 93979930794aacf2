from __future__ import annotations

from typing import Protocol

from ado_browser.domain.models import (
    Branch,
    CommitChanges,
    CommitMetadata,
    GitCommit,
    GitRepository,
    PipelineArtifact,
    PipelineDefinition,
    PipelineRun,
    Project,
    PullRequest,
    RepositoryRef,
    TreeListing,
)


class TreeObjectSource(Protocol):
    """The three fetches needed to walk a commit's tree."""

    def fetch_commit_metadata(self, repo: RepositoryRef, commit_id: str) -> CommitMetadata: ...

    def fetch_tree_listing(self, repo: RepositoryRef, tree_id: str) -> TreeListing: ...

    def fetch_blob_content(self, content_url: str) -> str: ...


class AzureDevOpsReader(TreeObjectSource, Protocol):
    @property
    def organization(self) -> str: ...

    def list_projects(self) -> list[Project]: ...

    def get_project(self, project: str) -> Project: ...

    def list_repositories(self, project: str) -> list[GitRepository]: ...

    def get_repository(self, project: str, repository_id: str) -> GitRepository: ...

    def list_pull_requests(
        self, project: str, repository_id: str, status: str | None = None
    ) -> list[PullRequest]: ...

    def get_pull_request(
        self, project: str, repository_id: str, pull_request_id: int
    ) -> PullRequest: ...

    def list_commits(
        self, project: str, repository_id: str, branch: str | None = None, top: int = 100
    ) -> list[GitCommit]: ...

    def get_commit(self, project: str, repository_id: str, commit_id: str) -> GitCommit: ...

    def get_commit_changes(self, repo: RepositoryRef, commit_id: str) -> CommitChanges: ...

    def list_branches(self, project: str, repository_id: str) -> list[Branch]: ...

    def get_branch(self, project: str, repository_id: str, name: str) -> Branch | None: ...

    def list_pipelines(self, project: str) -> list[PipelineDefinition]: ...

    def get_pipeline(self, project: str, pipeline_id: int) -> PipelineDefinition: ...

    def list_pipeline_runs(
        self, project: str, pipeline_id: int, top: int = 100
    ) -> list[PipelineRun]: ...

    def get_pipeline_run(self, project: str, pipeline_id: int, run_id: int) -> PipelineRun: ...

    def list_pipeline_artifacts(
        self, project: str, pipeline_id: int, run_id: int
    ) -> list[PipelineArtifact]: ...
