from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from urllib.parse import quote

WEB_BASE_URL = "https://dev.azure.com"


@dataclass(frozen=True)
class RepositoryRef:
    """Locates one Git repository: organization / project / repository id."""

    organization: str
    project: str
    repository_id: str


@dataclass(frozen=True)
class CommitMetadata:
    tree_id: str  # handle to the commit's root tree


class ObjectType(Enum):
    TREE = "tree"
    BLOB = "blob"


@dataclass(frozen=True)
class TreeEntry:
    """One child of a tree object."""

    name: str  # single path segment
    object_id: str
    object_type: ObjectType
    content_url: str  # only meaningful for blobs
    size: int = 0


@dataclass(frozen=True)
class TreeListing:
    tree_id: str
    entries: list[TreeEntry]  # upstream order

    def find(self, name: str) -> TreeEntry | None:
        """First entry whose name matches *name* case-insensitively."""
        wanted = name.casefold()
        for entry in self.entries:
            if entry.name.casefold() == wanted:
                return entry
        return None


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: str
    url: str
    state: str
    visibility: str
    last_update_time: datetime | None


@dataclass(frozen=True)
class GitRepository:
    id: str
    name: str
    url: str
    default_branch: str
    remote_url: str
    ssh_url: str
    web_url: str


@dataclass(frozen=True)
class GitUserDate:
    """Author or committer stamp on a commit."""

    name: str
    email: str
    date: datetime | None


@dataclass(frozen=True)
class GitCommit:
    commit_id: str
    tree_id: str
    author: GitUserDate
    committer: GitUserDate
    comment: str
    url: str
    remote_url: str
    parents: list[str]


@dataclass(frozen=True)
class GitItem:
    object_id: str
    original_object_id: str
    object_type: str
    commit_id: str
    path: str
    url: str

    def diff_url(self, repo: RepositoryRef) -> str | None:
        """Web compare link between the original and new object, if both exist."""
        if not self.original_object_id or not self.object_id:
            return None
        return (
            f"{WEB_BASE_URL}/{repo.organization}/{repo.project}"
            f"/_git/{repo.repository_id}"
            f"?path={quote(self.path, safe='')}"
            f"&version=GC{quote(self.original_object_id, safe='')}"
            f"&version=GC{quote(self.object_id, safe='')}"
        )


@dataclass(frozen=True)
class GitChange:
    change_type: str  # e.g. "add", "edit", "delete", "rename, edit"
    item: GitItem
    original_path: str = ""  # set for renames


@dataclass(frozen=True)
class CommitChanges:
    change_counts: dict[str, int]  # keyed by change type, e.g. {"Edit": 2}
    changes: list[GitChange]


@dataclass(frozen=True)
class Branch:
    name: str  # full ref name, e.g. refs/heads/main
    object_id: str
    creator_name: str
    creator_unique_name: str
    url: str

    @property
    def short_name(self) -> str:
        prefix = "refs/heads/"
        if self.name.startswith(prefix):
            return self.name[len(prefix):]
        return self.name


@dataclass(frozen=True)
class PullRequest:
    pull_request_id: int
    status: str  # active, completed, abandoned
    title: str
    description: str
    created_by: str
    creation_date: datetime | None
    source_ref_name: str
    target_ref_name: str
    url: str


@dataclass(frozen=True)
class PipelineDefinition:
    id: int
    name: str
    url: str
    folder: str
    revision: int


@dataclass(frozen=True)
class PipelineRun:
    id: int
    name: str
    state: str  # inProgress, completed, ...
    result: str  # succeeded, failed, canceled; empty while running
    url: str
    created_date: datetime | None
    finished_date: datetime | None


@dataclass(frozen=True)
class PipelineArtifact:
    name: str
    signed_content_url: str
    download_url: str


@dataclass(frozen=True)
class DiffLine:
    """One row of a side-by-side diff. Missing sides have number None."""

    kind: str  # equal, insert, delete, replace
    old_number: int | None
    old_text: str
    new_number: int | None
    new_text: str


@dataclass(frozen=True)
class FileDiff:
    path: str
    change_type: str
    old_object_id: str
    new_object_id: str
    lines: list[DiffLine]

    @property
    def added_count(self) -> int:
        return sum(1 for line in self.lines if line.new_number is not None and line.kind != "equal")

    @property
    def deleted_count(self) -> int:
        return sum(1 for line in self.lines if line.old_number is not None and line.kind != "equal")
