from __future__ import annotations

import dataclasses
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ado_browser.application.use_cases import (
    diff_commit_file,
    get_commit_changes,
    list_directory,
    resolve_file_content,
    summarize_pipeline_runs,
)
from ado_browser.domain.errors import (
    InvalidArgumentError,
    InvalidCommitMetadataError,
    NotFoundError,
    UnexpectedObjectTypeError,
    UpstreamUnavailableError,
)
from ado_browser.domain.models import RepositoryRef
from ado_browser.domain.ports import AzureDevOpsReader
from ado_browser.infrastructure.ado_client import AzureDevOpsClient
from ado_browser.web.models import (
    ArtifactRow,
    BranchRow,
    CommitChangesOut,
    CommitRow,
    FileContent,
    FileDiffOut,
    PipelineRow,
    PipelineRunRow,
    PipelineRunSummary,
    ProjectRow,
    PullRequestRow,
    RepositoryRow,
    TreeListingOut,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    injected = getattr(app.state, "ado_client", None)
    if injected is None:
        app.state.ado_client = AzureDevOpsClient.from_settings()
    yield
    if injected is None:
        app.state.ado_client.close()
        app.state.ado_client = None


app = FastAPI(title="ado-browser", lifespan=lifespan)


def _client() -> AzureDevOpsReader:
    return app.state.ado_client


def _repo(project: str, repo_id: str) -> RepositoryRef:
    return RepositoryRef(_client().organization, project, repo_id)


def _row(model, record):
    return model(**dataclasses.asdict(record))


# Domain error -> HTTP status
_ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (InvalidArgumentError, 400),
    (NotFoundError, 404),
    (UnexpectedObjectTypeError, 422),
    (InvalidCommitMetadataError, 502),
]


def _make_error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


for _exc_type, _status in _ERROR_STATUS:
    app.add_exception_handler(_exc_type, _make_error_handler(_status))


@app.exception_handler(UpstreamUnavailableError)
async def _upstream_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    status = 404 if exc.status_code == 404 else 502
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "upstream_status": exc.status_code},
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}


# ── Projects & repositories ─────────────────────────────────────────

@app.get("/api/projects", response_model=list[ProjectRow])
def list_projects():
    return [_row(ProjectRow, p) for p in _client().list_projects()]


@app.get("/api/projects/{project}", response_model=ProjectRow)
def get_project(project: str):
    return _row(ProjectRow, _client().get_project(project))


@app.get("/api/projects/{project}/repos", response_model=list[RepositoryRow])
def list_repositories(project: str):
    return [_row(RepositoryRow, r) for r in _client().list_repositories(project)]


@app.get("/api/projects/{project}/repos/{repo_id}", response_model=RepositoryRow)
def get_repository(project: str, repo_id: str):
    return _row(RepositoryRow, _client().get_repository(project, repo_id))


# ── Branches ────────────────────────────────────────────────────────

def _branch_row(branch) -> BranchRow:
    return BranchRow(**dataclasses.asdict(branch), short_name=branch.short_name)


@app.get("/api/projects/{project}/repos/{repo_id}/branches", response_model=list[BranchRow])
def list_branches(project: str, repo_id: str):
    return [_branch_row(b) for b in _client().list_branches(project, repo_id)]


@app.get("/api/projects/{project}/repos/{repo_id}/branches/{name:path}", response_model=BranchRow)
def get_branch(project: str, repo_id: str, name: str):
    branch = _client().get_branch(project, repo_id, name)
    if branch is None:
        raise HTTPException(status_code=404, detail=f"Branch '{name}' not found")
    return _branch_row(branch)


# ── Commits ─────────────────────────────────────────────────────────

@app.get("/api/projects/{project}/repos/{repo_id}/commits", response_model=list[CommitRow])
def list_commits(
    project: str,
    repo_id: str,
    branch: str | None = Query(None, description="Branch name to list commits from"),
    top: int = Query(100, ge=1, le=1000, description="Maximum number of commits"),
):
    commits = _client().list_commits(project, repo_id, branch=branch, top=top)
    return [_row(CommitRow, c) for c in commits]


@app.get(
    "/api/projects/{project}/repos/{repo_id}/commits/{commit_id}",
    response_model=CommitRow,
)
def get_commit(project: str, repo_id: str, commit_id: str):
    return _row(CommitRow, _client().get_commit(project, repo_id, commit_id))


@app.get(
    "/api/projects/{project}/repos/{repo_id}/commits/{commit_id}/changes",
    response_model=CommitChangesOut,
)
def get_changes(project: str, repo_id: str, commit_id: str):
    result = get_commit_changes(_client(), _repo(project, repo_id), commit_id)
    return CommitChangesOut(commit_id=commit_id, **dataclasses.asdict(result))


@app.get(
    "/api/projects/{project}/repos/{repo_id}/commits/{commit_id}/tree",
    response_model=TreeListingOut,
)
def get_tree(
    project: str,
    repo_id: str,
    commit_id: str,
    path: str = Query("", description="Directory path; repository root when empty"),
):
    listing = list_directory(_client(), _repo(project, repo_id), commit_id, path)
    return TreeListingOut(commit_id=commit_id, path=path, **dataclasses.asdict(listing))


@app.get(
    "/api/projects/{project}/repos/{repo_id}/commits/{commit_id}/file",
    response_model=FileContent,
)
def get_file(
    project: str,
    repo_id: str,
    commit_id: str,
    path: str = Query(..., description="Repository-relative file path"),
):
    content = resolve_file_content(_client(), _repo(project, repo_id), commit_id, path)
    return FileContent(commit_id=commit_id, path=path, content=content)


@app.get(
    "/api/projects/{project}/repos/{repo_id}/commits/{commit_id}/diff",
    response_model=FileDiffOut,
)
def get_diff(
    project: str,
    repo_id: str,
    commit_id: str,
    path: str = Query(..., description="Path of a file changed by the commit"),
):
    diff = diff_commit_file(_client(), _repo(project, repo_id), commit_id, path)
    return FileDiffOut(
        commit_id=commit_id,
        added_count=diff.added_count,
        deleted_count=diff.deleted_count,
        **dataclasses.asdict(diff),
    )


# ── Pull requests ───────────────────────────────────────────────────

@app.get(
    "/api/projects/{project}/repos/{repo_id}/pullrequests",
    response_model=list[PullRequestRow],
)
def list_pull_requests(
    project: str,
    repo_id: str,
    status: str | None = Query(None, description="active, completed, abandoned or all"),
):
    prs = _client().list_pull_requests(project, repo_id, status=status)
    return [_row(PullRequestRow, pr) for pr in prs]


@app.get(
    "/api/projects/{project}/repos/{repo_id}/pullrequests/{pr_id}",
    response_model=PullRequestRow,
)
def get_pull_request(project: str, repo_id: str, pr_id: int):
    return _row(PullRequestRow, _client().get_pull_request(project, repo_id, pr_id))


# ── Pipelines ───────────────────────────────────────────────────────

@app.get("/api/projects/{project}/pipelines", response_model=list[PipelineRow])
def list_pipelines(project: str):
    return [_row(PipelineRow, p) for p in _client().list_pipelines(project)]


@app.get("/api/projects/{project}/pipelines/{pipeline_id}", response_model=PipelineRow)
def get_pipeline(project: str, pipeline_id: int):
    return _row(PipelineRow, _client().get_pipeline(project, pipeline_id))


@app.get(
    "/api/projects/{project}/pipelines/{pipeline_id}/runs",
    response_model=list[PipelineRunRow],
)
def list_pipeline_runs(
    project: str,
    pipeline_id: int,
    top: int = Query(100, ge=1, le=1000, description="Maximum number of runs"),
):
    runs = _client().list_pipeline_runs(project, pipeline_id, top=top)
    return [_row(PipelineRunRow, r) for r in runs]


@app.get(
    "/api/projects/{project}/pipelines/{pipeline_id}/summary",
    response_model=PipelineRunSummary,
)
def get_pipeline_summary(
    project: str,
    pipeline_id: int,
    top: int = Query(100, ge=1, le=1000, description="Number of recent runs to count"),
):
    runs = _client().list_pipeline_runs(project, pipeline_id, top=top)
    return PipelineRunSummary(
        pipeline_id=pipeline_id,
        total_runs=len(runs),
        result_counts=summarize_pipeline_runs(runs),
    )


@app.get(
    "/api/projects/{project}/pipelines/{pipeline_id}/runs/{run_id}",
    response_model=PipelineRunRow,
)
def get_pipeline_run(project: str, pipeline_id: int, run_id: int):
    return _row(PipelineRunRow, _client().get_pipeline_run(project, pipeline_id, run_id))


@app.get(
    "/api/projects/{project}/pipelines/{pipeline_id}/runs/{run_id}/artifacts",
    response_model=list[ArtifactRow],
)
def list_pipeline_artifacts(project: str, pipeline_id: int, run_id: int):
    artifacts = _client().list_pipeline_artifacts(project, pipeline_id, run_id)
    return [_row(ArtifactRow, a) for a in artifacts]
