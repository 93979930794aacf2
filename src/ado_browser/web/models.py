from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ado_browser.domain.models import ObjectType


class ProjectRow(BaseModel):
    id: str
    name: str
    description: str
    url: str
    state: str
    visibility: str
    last_update_time: datetime | None


class RepositoryRow(BaseModel):
    id: str
    name: str
    url: str
    default_branch: str
    remote_url: str
    ssh_url: str
    web_url: str


class UserStamp(BaseModel):
    name: str
    email: str
    date: datetime | None


class CommitRow(BaseModel):
    commit_id: str
    tree_id: str
    author: UserStamp
    committer: UserStamp
    comment: str
    url: str
    remote_url: str
    parents: list[str]


class ChangeItem(BaseModel):
    object_id: str
    original_object_id: str
    object_type: str
    commit_id: str
    path: str
    url: str  # web compare link, empty when not applicable


class ChangeRow(BaseModel):
    change_type: str
    item: ChangeItem
    original_path: str = ""


class CommitChangesOut(BaseModel):
    commit_id: str
    change_counts: dict[str, int]
    changes: list[ChangeRow]


class TreeEntryRow(BaseModel):
    name: str
    object_id: str
    object_type: ObjectType
    content_url: str
    size: int


class TreeListingOut(BaseModel):
    commit_id: str
    path: str
    tree_id: str
    entries: list[TreeEntryRow]


class FileContent(BaseModel):
    commit_id: str
    path: str
    content: str


class DiffLineRow(BaseModel):
    kind: str
    old_number: int | None
    old_text: str
    new_number: int | None
    new_text: str


class FileDiffOut(BaseModel):
    commit_id: str
    path: str
    change_type: str
    old_object_id: str
    new_object_id: str
    added_count: int
    deleted_count: int
    lines: list[DiffLineRow]


class BranchRow(BaseModel):
    name: str
    short_name: str
    object_id: str
    creator_name: str
    creator_unique_name: str
    url: str


class PullRequestRow(BaseModel):
    pull_request_id: int
    status: str
    title: str
    description: str
    created_by: str
    creation_date: datetime | None
    source_ref_name: str
    target_ref_name: str
    url: str


class PipelineRow(BaseModel):
    id: int
    name: str
    url: str
    folder: str
    revision: int


class PipelineRunRow(BaseModel):
    id: int
    name: str
    state: str
    result: str
    url: str
    created_date: datetime | None
    finished_date: datetime | None


class PipelineRunSummary(BaseModel):
    pipeline_id: int
    total_runs: int
    result_counts: dict[str, int]


class ArtifactRow(BaseModel):
    name: str
    signed_content_url: str
    download_url: str
