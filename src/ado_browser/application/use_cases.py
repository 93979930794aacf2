import difflib
import logging
import re
from collections import Counter
from itertools import zip_longest

from ado_browser.domain.errors import (
    InvalidCommitMetadataError,
    NotFoundError,
    UnexpectedObjectTypeError,
    UpstreamUnavailableError,
    require_non_blank,
)
from ado_browser.domain.models import (
    CommitChanges,
    DiffLine,
    FileDiff,
    GitChange,
    ObjectType,
    PipelineRun,
    RepositoryRef,
    TreeListing,
)
from ado_browser.domain.ports import AzureDevOpsReader, TreeObjectSource

logger = logging.getLogger(__name__)


_GUID = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def resolve_repository_id(reader: AzureDevOpsReader, project: str, repo_key: str) -> str:
    """Accept a repository GUID or name and return the GUID."""
    require_non_blank(project=project, repository=repo_key)
    if _GUID.fullmatch(repo_key):
        return repo_key
    wanted = repo_key.casefold()
    for repo in reader.list_repositories(project):
        if repo.name.casefold() == wanted:
            return repo.id
    raise NotFoundError(f"Could not find repository '{repo_key}' in project '{project}'")


def split_path(path: str | None) -> list[str]:
    """Split a repository path on '/', dropping empty segments."""
    return [segment for segment in (path or "").split("/") if segment]


def _validate_ref(repo: RepositoryRef, commit_id: str) -> None:
    require_non_blank(
        organization=repo.organization,
        project=repo.project,
        repository_id=repo.repository_id,
        commit_id=commit_id,
    )


def _root_tree_id(source: TreeObjectSource, repo: RepositoryRef, commit_id: str) -> str:
    metadata = source.fetch_commit_metadata(repo, commit_id)
    if metadata is None or not (metadata.tree_id or "").strip():
        raise InvalidCommitMetadataError(commit_id)
    return metadata.tree_id


def resolve_file_content(
    source: TreeObjectSource, repo: RepositoryRef, commit_id: str, path: str,
) -> str:
    """Return the content of the file at *path* inside *commit_id*.

    Walks the commit's tree one path segment per listing fetch, matching
    entry names case-insensitively. Every level is fetched fresh from the
    root; any failure aborts the whole resolution.
    """
    _validate_ref(repo, commit_id)
    tree_id = _root_tree_id(source, repo, commit_id)

    segments = split_path(path)
    if not segments:
        raise NotFoundError(
            f"No file path given for commit '{commit_id}'",
            commit_id=commit_id, path=path,
        )

    last = len(segments) - 1
    for index, segment in enumerate(segments):
        listing = source.fetch_tree_listing(repo, tree_id)
        entry = listing.find(segment)
        if entry is None:
            raise NotFoundError(
                f"'{segment}' was not found in path '{path}' at commit '{commit_id}'",
                commit_id=commit_id, path=path, segment=segment,
            )
        if entry.object_type is ObjectType.TREE:
            tree_id = entry.object_id
            continue
        if index != last:
            raise UnexpectedObjectTypeError(commit_id, path, segment)
        if not entry.content_url:
            raise UpstreamUnavailableError(
                f"Tree entry '{segment}' in path '{path}' at commit '{commit_id}' "
                "has no content URL",
                commit_id=commit_id, path=path, segment=segment,
            )
        logger.debug("Resolved '%s' at commit %s to blob %s", path, commit_id, entry.object_id)
        return source.fetch_blob_content(entry.content_url)

    raise NotFoundError(
        f"'{path}' is a directory, not a file, at commit '{commit_id}'",
        commit_id=commit_id, path=path,
    )


def list_directory(
    source: TreeObjectSource, repo: RepositoryRef, commit_id: str, path: str = "",
) -> TreeListing:
    """Return the listing of the directory at *path* (root when empty)."""
    _validate_ref(repo, commit_id)
    listing = source.fetch_tree_listing(repo, _root_tree_id(source, repo, commit_id))
    for segment in split_path(path):
        entry = listing.find(segment)
        if entry is None:
            raise NotFoundError(
                f"'{segment}' was not found in path '{path}' at commit '{commit_id}'",
                commit_id=commit_id, path=path, segment=segment,
            )
        if entry.object_type is ObjectType.BLOB:
            raise UnexpectedObjectTypeError(commit_id, path, segment)
        listing = source.fetch_tree_listing(repo, entry.object_id)
    return listing


def get_commit_changes(
    reader: AzureDevOpsReader, repo: RepositoryRef, commit_id: str,
) -> CommitChanges:
    """Commit changes with per-type counts, tallied locally when upstream omits them."""
    result = reader.get_commit_changes(repo, commit_id)
    if result.change_counts or not result.changes:
        return result
    counts = Counter(c.change_type.title() for c in result.changes)
    return CommitChanges(change_counts=dict(counts), changes=result.changes)


def _same_path(a: str, b: str) -> bool:
    return [s.casefold() for s in split_path(a)] == [s.casefold() for s in split_path(b)]


def _find_change(changes: CommitChanges, path: str) -> GitChange | None:
    for change in changes.changes:
        if _same_path(change.item.path, path):
            return change
    return None


def build_side_by_side(old_text: str, new_text: str) -> list[DiffLine]:
    """Pair old and new lines into side-by-side rows using difflib opcodes."""
    old_lines = old_text.splitlines()
    new_lines = new_text.splitlines()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    rows: list[DiffLine] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                rows.append(DiffLine(
                    "equal", i1 + offset + 1, old_lines[i1 + offset],
                    j1 + offset + 1, new_lines[j1 + offset],
                ))
        elif tag == "delete":
            for i in range(i1, i2):
                rows.append(DiffLine("delete", i + 1, old_lines[i], None, ""))
        elif tag == "insert":
            for j in range(j1, j2):
                rows.append(DiffLine("insert", None, "", j + 1, new_lines[j]))
        else:
            for i, j in zip_longest(range(i1, i2), range(j1, j2)):
                rows.append(DiffLine(
                    "replace",
                    i + 1 if i is not None else None,
                    old_lines[i] if i is not None else "",
                    j + 1 if j is not None else None,
                    new_lines[j] if j is not None else "",
                ))
    return rows


def diff_commit_file(
    reader: AzureDevOpsReader, repo: RepositoryRef, commit_id: str, path: str,
) -> FileDiff:
    """Side-by-side diff of *path* between the commit's first parent and the commit."""
    _validate_ref(repo, commit_id)
    require_non_blank(path=path)

    change = _find_change(reader.get_commit_changes(repo, commit_id), path)
    if change is None:
        raise NotFoundError(
            f"Commit '{commit_id}' does not change '{path}'",
            commit_id=commit_id, path=path,
        )
    if change.item.object_type == ObjectType.TREE.value:
        raise NotFoundError(
            f"'{path}' is a directory, not a file, at commit '{commit_id}'",
            commit_id=commit_id, path=path,
        )

    change_type = change.change_type.lower()
    if "delete" in change_type:
        new_text = ""
    else:
        new_text = resolve_file_content(reader, repo, commit_id, change.item.path)

    commit = reader.get_commit(repo.project, repo.repository_id, commit_id)
    if "add" in change_type or not commit.parents:
        old_text = ""
    else:
        old_path = change.original_path or change.item.path
        old_text = resolve_file_content(reader, repo, commit.parents[0], old_path)

    return FileDiff(
        path=change.item.path,
        change_type=change.change_type,
        old_object_id=change.item.original_object_id,
        new_object_id=change.item.object_id,
        lines=build_side_by_side(old_text, new_text),
    )


def summarize_pipeline_runs(runs: list[PipelineRun]) -> dict[str, int]:
    """Count runs by result; unfinished runs are counted by their state."""
    counts: Counter[str] = Counter()
    for run in runs:
        counts[run.result or run.state or "unknown"] += 1
    return dict(counts.most_common())
