"""Azure DevOps REST client (api-version pinned) returning domain records."""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from ado_browser.config import Settings, get_settings
from ado_browser.domain.errors import (
    InvalidArgumentError,
    UpstreamUnavailableError,
    require_non_blank,
    require_positive,
)
from ado_browser.domain.models import (
    Branch,
    CommitChanges,
    CommitMetadata,
    GitChange,
    GitCommit,
    GitItem,
    GitRepository,
    GitUserDate,
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

logger = logging.getLogger(__name__)

_HEADS_PREFIX = "refs/heads/"


def _q(value: str) -> str:
    return quote(str(value), safe="")


class AzureDevOpsClient:
    """Read-only client for one Azure DevOps organization.

    Every method issues a single GET. Non-success responses and transport
    errors are logged and raised as UpstreamUnavailableError; nothing is
    retried or cached.
    """

    def __init__(
        self,
        organization: str,
        pat: str,
        base_url: str = "https://dev.azure.com",
        api_version: str = "6.0",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        require_non_blank(organization=organization, pat=pat)
        self._organization = organization
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._http = httpx.Client(auth=("", pat), timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AzureDevOpsClient:
        settings = settings or get_settings()
        if not settings.ORGANIZATION or not settings.PAT:
            raise InvalidArgumentError(
                "Missing settings: AZURE_DEVOPS_ORGANIZATION / AZURE_DEVOPS_PAT"
            )
        return cls(
            organization=settings.ORGANIZATION,
            pat=settings.PAT,
            base_url=settings.BASE_URL,
            api_version=settings.API_VERSION,
            timeout=settings.TIMEOUT_SECONDS,
        )

    @property
    def organization(self) -> str:
        return self._organization

    def repo_ref(self, project: str, repository_id: str) -> RepositoryRef:
        return RepositoryRef(self._organization, project, repository_id)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> AzureDevOpsClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Transport ───────────────────────────────────────────────────

    def _org_url(self, organization: str | None = None) -> str:
        return f"{self._base_url}/{_q(organization or self._organization)}"

    def _project_url(self, project: str) -> str:
        return f"{self._org_url()}/{_q(project)}/_apis"

    def _repo_url(self, repo: RepositoryRef) -> str:
        return (
            f"{self._org_url(repo.organization)}/{_q(repo.project)}"
            f"/_apis/git/repositories/{_q(repo.repository_id)}"
        )

    def _get(
        self, url: str, what: str, params: Mapping[str, Any] | None = None,
        versioned: bool = True,
    ) -> httpx.Response:
        query = dict(params or {})
        if versioned:
            query["api-version"] = self._api_version
        try:
            resp = self._http.get(url, params=query)
        except httpx.HTTPError as e:
            logger.error("Failed to retrieve %s: %s", what, e)
            raise UpstreamUnavailableError(f"Failed to retrieve {what}: {e}") from e
        if not resp.is_success:
            logger.error(
                "Failed to retrieve %s. Status code: %s, details: %s",
                what, resp.status_code, resp.text,
            )
            raise UpstreamUnavailableError(
                f"Failed to retrieve {what}. Status code: {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    def _get_json(
        self, url: str, what: str, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        resp = self._get(url, what, params)
        try:
            data = resp.json()
        except ValueError as e:
            logger.error("Invalid JSON while retrieving %s: %s", what, e)
            raise UpstreamUnavailableError(f"Invalid JSON while retrieving {what}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"Unexpected payload while retrieving {what}")
        return data

    def _get_values(
        self, url: str, what: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """GET a collection and unwrap its {"count": n, "value": [...]} envelope."""
        return self._get_json(url, what, params).get("value") or []

    # ── Tree walking ────────────────────────────────────────────────

    def fetch_commit_metadata(self, repo: RepositoryRef, commit_id: str) -> CommitMetadata:
        data = self._get_json(
            f"{self._repo_url(repo)}/commits/{_q(commit_id)}",
            f"commit '{commit_id}' metadata",
        )
        return CommitMetadata(tree_id=data.get("treeId") or "")

    def fetch_tree_listing(self, repo: RepositoryRef, tree_id: str) -> TreeListing:
        data = self._get_json(
            f"{self._repo_url(repo)}/trees/{_q(tree_id)}",
            f"tree structure for treeId '{tree_id}'",
            params={"recursive": "false"},
        )
        return _parse_tree_listing(tree_id, data)

    def fetch_blob_content(self, content_url: str) -> str:
        require_non_blank(content_url=content_url)
        resp = self._get(
            content_url, f"blob content at '{content_url}'",
            params={"$format": "text"},
        )
        return resp.text

    # ── Projects ────────────────────────────────────────────────────

    def list_projects(self) -> list[Project]:
        values = self._get_values(f"{self._org_url()}/_apis/projects", "projects")
        return [_parse_project(p) for p in values]

    def get_project(self, project: str) -> Project:
        require_non_blank(project=project)
        data = self._get_json(
            f"{self._org_url()}/_apis/projects/{_q(project)}", f"project '{project}'"
        )
        return _parse_project(data)

    # ── Repositories ────────────────────────────────────────────────

    def list_repositories(self, project: str) -> list[GitRepository]:
        require_non_blank(project=project)
        values = self._get_values(
            f"{self._project_url(project)}/git/repositories",
            f"repositories for project '{project}'",
        )
        return [_parse_repository(r) for r in values]

    def get_repository(self, project: str, repository_id: str) -> GitRepository:
        require_non_blank(project=project, repository_id=repository_id)
        data = self._get_json(
            self._repo_url(self.repo_ref(project, repository_id)),
            f"repository '{repository_id}'",
        )
        return _parse_repository(data)

    # ── Pull requests ───────────────────────────────────────────────

    def list_pull_requests(
        self, project: str, repository_id: str, status: str | None = None
    ) -> list[PullRequest]:
        require_non_blank(project=project, repository_id=repository_id)
        params = {}
        if status and status.strip():
            params["searchCriteria.status"] = status
        values = self._get_values(
            f"{self._repo_url(self.repo_ref(project, repository_id))}/pullrequests",
            "pull requests", params,
        )
        return [_parse_pull_request(pr) for pr in values]

    def get_pull_request(
        self, project: str, repository_id: str, pull_request_id: int
    ) -> PullRequest:
        require_non_blank(project=project, repository_id=repository_id)
        require_positive(pull_request_id=pull_request_id)
        data = self._get_json(
            f"{self._repo_url(self.repo_ref(project, repository_id))}"
            f"/pullrequests/{pull_request_id}",
            f"pull request '{pull_request_id}'",
        )
        return _parse_pull_request(data)

    # ── Commits ─────────────────────────────────────────────────────

    def list_commits(
        self, project: str, repository_id: str, branch: str | None = None, top: int = 100
    ) -> list[GitCommit]:
        require_non_blank(project=project, repository_id=repository_id)
        require_positive(top=top)
        params: dict[str, Any] = {"$top": top}
        if branch and branch.strip():
            params["searchCriteria.itemVersion.version"] = branch.removeprefix(_HEADS_PREFIX)
        values = self._get_values(
            f"{self._repo_url(self.repo_ref(project, repository_id))}/commits",
            "commits", params,
        )
        return [_parse_commit(c) for c in values]

    def get_commit(self, project: str, repository_id: str, commit_id: str) -> GitCommit:
        require_non_blank(project=project, repository_id=repository_id, commit_id=commit_id)
        data = self._get_json(
            f"{self._repo_url(self.repo_ref(project, repository_id))}/commits/{_q(commit_id)}",
            f"commit '{commit_id}'",
        )
        return _parse_commit(data)

    def get_commit_changes(self, repo: RepositoryRef, commit_id: str) -> CommitChanges:
        require_non_blank(
            organization=repo.organization, project=repo.project,
            repository_id=repo.repository_id, commit_id=commit_id,
        )
        data = self._get_json(
            f"{self._repo_url(repo)}/commits/{_q(commit_id)}/changes",
            f"changes for commit '{commit_id}'",
        )
        return _parse_commit_changes(repo, data)

    # ── Branches ────────────────────────────────────────────────────

    def list_branches(self, project: str, repository_id: str) -> list[Branch]:
        require_non_blank(project=project, repository_id=repository_id)
        values = self._get_values(
            f"{self._repo_url(self.repo_ref(project, repository_id))}/refs",
            "branches", {"filter": "heads/"},
        )
        return [_parse_branch(b) for b in values]

    def get_branch(self, project: str, repository_id: str, name: str) -> Branch | None:
        """Look up one branch by full ref or short name; None when absent."""
        require_non_blank(project=project, repository_id=repository_id, name=name)
        short = name.removeprefix(_HEADS_PREFIX)
        values = self._get_values(
            f"{self._repo_url(self.repo_ref(project, repository_id))}/refs",
            f"branch '{name}'", {"filter": f"heads/{short}"},
        )
        wanted = short.casefold()
        for b in values:
            branch = _parse_branch(b)
            if branch.short_name.casefold() == wanted:
                return branch
        return None

    # ── Pipelines ───────────────────────────────────────────────────

    def list_pipelines(self, project: str) -> list[PipelineDefinition]:
        require_non_blank(project=project)
        values = self._get_values(
            f"{self._project_url(project)}/pipelines", "pipeline definitions"
        )
        return [_parse_pipeline(p) for p in values]

    def get_pipeline(self, project: str, pipeline_id: int) -> PipelineDefinition:
        require_non_blank(project=project)
        require_positive(pipeline_id=pipeline_id)
        data = self._get_json(
            f"{self._project_url(project)}/pipelines/{pipeline_id}",
            f"pipeline definition '{pipeline_id}'",
        )
        return _parse_pipeline(data)

    def list_pipeline_runs(
        self, project: str, pipeline_id: int, top: int = 100
    ) -> list[PipelineRun]:
        require_non_blank(project=project)
        require_positive(pipeline_id=pipeline_id, top=top)
        values = self._get_values(
            f"{self._project_url(project)}/pipelines/{pipeline_id}/runs",
            "pipeline runs", {"$top": top},
        )
        # The runs endpoint ignores $top on some server versions.
        return [_parse_run(r) for r in values[:top]]

    def get_pipeline_run(self, project: str, pipeline_id: int, run_id: int) -> PipelineRun:
        require_non_blank(project=project)
        require_positive(pipeline_id=pipeline_id, run_id=run_id)
        data = self._get_json(
            f"{self._project_url(project)}/pipelines/{pipeline_id}/runs/{run_id}",
            f"pipeline run '{run_id}'",
        )
        return _parse_run(data)

    def list_pipeline_artifacts(
        self, project: str, pipeline_id: int, run_id: int
    ) -> list[PipelineArtifact]:
        require_non_blank(project=project)
        require_positive(pipeline_id=pipeline_id, run_id=run_id)
        values = self._get_values(
            f"{self._project_url(project)}/pipelines/{pipeline_id}/runs/{run_id}/artifacts",
            "pipeline artifacts",
        )
        return [_parse_artifact(a) for a in values]


# ── Parsing ─────────────────────────────────────────────────────────

_FRACTION = re.compile(r"\.(\d+)")


def _parse_datetime(value: str | None) -> datetime | None:
    """Parse an Azure DevOps timestamp such as 2024-05-01T10:11:12.1234567Z."""
    if not value:
        return None
    # .NET emits 0-7 fractional digits; fromisoformat wants exactly 6
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


def _parse_tree_listing(tree_id: str, data: Mapping[str, Any]) -> TreeListing:
    entries: list[TreeEntry] = []
    for e in data.get("treeEntries") or []:
        raw_type = e.get("gitObjectType") or ""
        try:
            object_type = ObjectType(raw_type)
        except ValueError:
            # submodules ("commit") and anything else are not browsable
            logger.debug("Skipping %r entry %r in tree %s", raw_type, e.get("relativePath"), tree_id)
            continue
        entries.append(
            TreeEntry(
                name=e.get("relativePath") or "",
                object_id=e.get("objectId") or "",
                object_type=object_type,
                content_url=e.get("url") or "",
                size=int(e.get("size") or 0),
            )
        )
    return TreeListing(tree_id=tree_id, entries=entries)


def _parse_project(d: Mapping[str, Any]) -> Project:
    return Project(
        id=d.get("id") or "",
        name=d.get("name") or "",
        description=d.get("description") or "",
        url=d.get("url") or "",
        state=d.get("state") or "",
        visibility=d.get("visibility") or "",
        last_update_time=_parse_datetime(d.get("lastUpdateTime")),
    )


def _parse_repository(d: Mapping[str, Any]) -> GitRepository:
    return GitRepository(
        id=d.get("id") or "",
        name=d.get("name") or "",
        url=d.get("url") or "",
        default_branch=d.get("defaultBranch") or "",
        remote_url=d.get("remoteUrl") or "",
        ssh_url=d.get("sshUrl") or "",
        web_url=d.get("webUrl") or "",
    )


def _parse_user_date(d: Mapping[str, Any] | None) -> GitUserDate:
    d = d or {}
    return GitUserDate(
        name=d.get("name") or "",
        email=d.get("email") or "",
        date=_parse_datetime(d.get("date")),
    )


def _parse_commit(d: Mapping[str, Any]) -> GitCommit:
    return GitCommit(
        commit_id=d.get("commitId") or "",
        tree_id=d.get("treeId") or "",
        author=_parse_user_date(d.get("author")),
        committer=_parse_user_date(d.get("committer")),
        comment=d.get("comment") or "",
        url=d.get("url") or "",
        remote_url=d.get("remoteUrl") or "",
        parents=list(d.get("parents") or []),
    )


def _parse_commit_changes(repo: RepositoryRef, d: Mapping[str, Any]) -> CommitChanges:
    changes: list[GitChange] = []
    for c in d.get("changes") or []:
        raw = c.get("item") or {}
        item = GitItem(
            object_id=raw.get("objectId") or "",
            original_object_id=raw.get("originalObjectId") or "",
            object_type=raw.get("gitObjectType") or "",
            commit_id=raw.get("commitId") or "",
            path=raw.get("path") or "",
            url="",
        )
        # the API url points at the object; the UI wants the web compare page
        item = replace(item, url=item.diff_url(repo) or "")
        changes.append(
            GitChange(
                change_type=c.get("changeType") or "",
                item=item,
                original_path=c.get("sourceServerItem") or "",
            )
        )
    counts = {str(k): int(v) for k, v in (d.get("changeCounts") or {}).items()}
    return CommitChanges(change_counts=counts, changes=changes)


def _parse_branch(d: Mapping[str, Any]) -> Branch:
    creator = d.get("creator") or {}
    return Branch(
        name=d.get("name") or "",
        object_id=d.get("objectId") or "",
        creator_name=creator.get("displayName") or "",
        creator_unique_name=creator.get("uniqueName") or "",
        url=d.get("url") or "",
    )


def _parse_pull_request(d: Mapping[str, Any]) -> PullRequest:
    return PullRequest(
        pull_request_id=int(d.get("pullRequestId") or 0),
        status=d.get("status") or "",
        title=d.get("title") or "",
        description=d.get("description") or "",
        created_by=(d.get("createdBy") or {}).get("displayName") or "",
        creation_date=_parse_datetime(d.get("creationDate")),
        source_ref_name=d.get("sourceRefName") or "",
        target_ref_name=d.get("targetRefName") or "",
        url=d.get("url") or "",
    )


def _parse_pipeline(d: Mapping[str, Any]) -> PipelineDefinition:
    return PipelineDefinition(
        id=int(d.get("id") or 0),
        name=d.get("name") or "",
        url=d.get("url") or "",
        folder=d.get("folder") or "",
        revision=int(d.get("revision") or 0),
    )


def _parse_run(d: Mapping[str, Any]) -> PipelineRun:
    return PipelineRun(
        id=int(d.get("id") or 0),
        name=d.get("name") or "",
        state=d.get("state") or "",
        result=d.get("result") or "",
        url=d.get("url") or "",
        created_date=_parse_datetime(d.get("createdDate")),
        finished_date=_parse_datetime(d.get("finishedDate")),
    )


def _parse_artifact(d: Mapping[str, Any]) -> PipelineArtifact:
    return PipelineArtifact(
        name=d.get("name") or "",
        signed_content_url=(d.get("signedContent") or {}).get("url") or "",
        download_url=d.get("url") or "",
    )
