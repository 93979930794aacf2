import argparse
import logging
import sys

from ado_browser.application.use_cases import (
    get_commit_changes,
    list_directory,
    resolve_file_content,
    resolve_repository_id,
)
from ado_browser.domain.errors import AzureDevOpsError
from ado_browser.domain.models import ObjectType, RepositoryRef
from ado_browser.infrastructure.ado_client import AzureDevOpsClient


def _positive_int(value: str) -> int:
    """Parse a strictly positive integer argument."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive number, got {number}")
    return number


def _error_exit(msg: str) -> None:
    """Print error message to stderr and exit with code 1."""
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def _make_client() -> AzureDevOpsClient:
    return AzureDevOpsClient.from_settings()


def _fmt_date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def _print_table(rows, columns, limit=50, max_text=60, suffix="rows") -> None:
    """Generic table printer.

    Args:
        rows: list of objects to print.
        columns: list of (header, format_spec, value_fn) tuples.
            - header: column header string
            - format_spec: value format string like ">6" or "<10".
              Use None for a free-text column (width auto-computed, capped
              at max_text).
            - value_fn: callable(row) -> value to format.
        limit: max rows to print.
        suffix: word used in "... and N more {suffix}" message.
    """
    if not rows:
        return

    widths = {}
    for i, (header, fmt_spec, value_fn) in enumerate(columns):
        if fmt_spec is None:
            longest = max(len(str(value_fn(r))) for r in rows)
            widths[i] = min(max(longest, len(header)), max_text)

    parts = []
    for i, (header, fmt_spec, _value_fn) in enumerate(columns):
        if fmt_spec is None:
            parts.append(f"{header:<{widths[i]}}")
        else:
            parts.append(f"{header:{fmt_spec.rstrip('d')}}")
    header_line = "  ".join(parts)
    print(header_line)
    print("-" * len(header_line))

    for r in rows[:limit]:
        parts = []
        for i, (_header, fmt_spec, value_fn) in enumerate(columns):
            value = value_fn(r)
            if fmt_spec is None:
                text = str(value).replace("\n", " ")
                if len(text) > widths[i]:
                    text = text[: widths[i] - 3] + "..."
                parts.append(f"{text:<{widths[i]}}")
            else:
                parts.append(f"{value:{fmt_spec}}")
        print("  ".join(parts).rstrip())

    if len(rows) > limit:
        print(f"  ... and {len(rows) - limit} more {suffix}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="ado-browser",
        description="Browse Azure DevOps repositories, pull requests and pipelines",
    )
    parser.add_argument(
        "project", nargs="?", default=None,
        help="Azure DevOps project name or id",
    )
    parser.add_argument(
        "repo", nargs="?", default=None,
        help="Repository name or GUID",
    )
    parser.add_argument(
        "--projects",
        action="store_true",
        help="List projects in the organization, then exit",
    )
    parser.add_argument(
        "--repos",
        action="store_true",
        help="List repositories in PROJECT",
    )
    parser.add_argument(
        "--branches",
        action="store_true",
        help="List branches of REPO",
    )
    parser.add_argument(
        "--commits",
        action="store_true",
        help="List recent commits of REPO",
    )
    parser.add_argument(
        "--branch",
        metavar="NAME",
        help="Branch for --commits (default: repository default branch)",
    )
    parser.add_argument(
        "--top",
        type=_positive_int,
        default=20,
        metavar="N",
        help="Maximum commits or runs to list (default: 20)",
    )
    parser.add_argument(
        "--pull-requests",
        dest="pull_requests",
        action="store_true",
        help="List pull requests of REPO",
    )
    parser.add_argument(
        "--status",
        default="active",
        help="Pull request status filter: active, completed, abandoned, all (default: active)",
    )
    parser.add_argument(
        "--pipelines",
        action="store_true",
        help="List pipeline definitions in PROJECT",
    )
    parser.add_argument(
        "--runs",
        type=_positive_int,
        metavar="PIPELINE_ID",
        help="List runs of a pipeline in PROJECT",
    )
    parser.add_argument(
        "--changes",
        metavar="COMMIT",
        help="List files changed by COMMIT",
    )
    parser.add_argument(
        "--ls",
        metavar="PATH",
        help="List a directory at --at COMMIT ('/' for the root)",
    )
    parser.add_argument(
        "--cat",
        metavar="PATH",
        help="Print a file's content at --at COMMIT",
    )
    parser.add_argument(
        "--at",
        metavar="COMMIT",
        help="Commit id for --ls / --cat",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Launch the web dashboard",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        metavar="PORT",
        help="API port for --serve (Streamlit uses PORT+1, default: 8000)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Handle --serve early (no project required)
    if args.serve:
        from ado_browser.web.server import launch

        launch(api_port=args.port)
        return

    if (args.ls or args.cat) and not args.at:
        _error_exit("--ls/--cat require --at COMMIT")

    try:
        client = _make_client()
    except AzureDevOpsError as e:
        _error_exit(str(e))

    try:
        with client:
            _dispatch(client, args)
    except AzureDevOpsError as e:
        _error_exit(str(e))


def _dispatch(client, args) -> None:
    if args.projects:
        _print_projects(client.list_projects())
        return

    if args.project is None:
        _error_exit("project is required")

    if args.repos:
        _print_repositories(client.list_repositories(args.project))
        return
    if args.pipelines:
        _print_pipelines(client.list_pipelines(args.project))
        return
    if args.runs:
        _print_runs(client.list_pipeline_runs(args.project, args.runs, top=args.top))
        return

    if args.repo is None:
        _error_exit("repo is required")

    repo_id = resolve_repository_id(client, args.project, args.repo)
    ref = RepositoryRef(client.organization, args.project, repo_id)

    if args.branches:
        _print_branches(client.list_branches(args.project, repo_id))
    elif args.commits:
        _print_commits(client.list_commits(args.project, repo_id, branch=args.branch, top=args.top))
    elif args.pull_requests:
        _print_pull_requests(client.list_pull_requests(args.project, repo_id, status=args.status))
    elif args.changes:
        _print_changes(get_commit_changes(client, ref, args.changes))
    elif args.ls:
        _print_listing(list_directory(client, ref, args.at, args.ls))
    elif args.cat:
        sys.stdout.write(resolve_file_content(client, ref, args.at, args.cat))
    else:
        _print_repository(client.get_repository(args.project, repo_id))


def _print_projects(projects) -> None:
    if not projects:
        print("No projects found.")
        return
    _print_table(
        projects,
        [
            ("Project", None, lambda p: p.name),
            ("Visibility", "<10", lambda p: p.visibility),
            ("Updated", "<16", lambda p: _fmt_date(p.last_update_time)),
        ],
        suffix="projects",
    )


def _print_repositories(repos) -> None:
    if not repos:
        print("No repositories found.")
        return
    _print_table(
        repos,
        [
            ("Repository", None, lambda r: r.name),
            ("Default Branch", None, lambda r: r.default_branch.removeprefix("refs/heads/")),
            ("Id", "<36", lambda r: r.id),
        ],
        suffix="repositories",
    )


def _print_repository(repo) -> None:
    print(f"Repository:     {repo.name}")
    print(f"Id:             {repo.id}")
    print(f"Default branch: {repo.default_branch.removeprefix('refs/heads/')}")
    print(f"Clone (https):  {repo.remote_url}")
    print(f"Clone (ssh):    {repo.ssh_url}")
    print(f"Web:            {repo.web_url}")


def _print_branches(branches) -> None:
    if not branches:
        print("No branches found.")
        return
    _print_table(
        branches,
        [
            ("Branch", None, lambda b: b.short_name),
            ("Head", "<8", lambda b: b.object_id[:8]),
            ("Creator", None, lambda b: b.creator_name),
        ],
        suffix="branches",
    )


def _print_commits(commits) -> None:
    if not commits:
        print("No commits found.")
        return
    _print_table(
        commits,
        [
            ("Commit", "<8", lambda c: c.commit_id[:8]),
            ("Date", "<16", lambda c: _fmt_date(c.author.date)),
            ("Author", None, lambda c: c.author.name),
            ("Comment", None, lambda c: c.comment.splitlines()[0] if c.comment else ""),
        ],
        suffix="commits",
    )


def _print_pull_requests(prs) -> None:
    if not prs:
        print("No pull requests found.")
        return
    _print_table(
        prs,
        [
            ("ID", ">6", lambda pr: pr.pull_request_id),
            ("Status", "<10", lambda pr: pr.status),
            ("Author", None, lambda pr: pr.created_by),
            ("Title", None, lambda pr: pr.title),
            ("Source", None, lambda pr: pr.source_ref_name.removeprefix("refs/heads/")),
        ],
        suffix="pull requests",
    )


def _print_changes(result) -> None:
    if not result.changes:
        print("No changes in this commit.")
        return
    counts = ", ".join(f"{k}: {v}" for k, v in result.change_counts.items())
    print(f"--- Changes ({counts}) ---\n")
    _print_table(
        result.changes,
        [
            ("Change", "<12", lambda c: c.change_type),
            ("Path", None, lambda c: c.item.path),
        ],
        limit=200,
        max_text=100,
        suffix="changes",
    )


def _print_listing(listing) -> None:
    if not listing.entries:
        print("Empty directory.")
        return
    entries = sorted(
        listing.entries,
        key=lambda e: (e.object_type is not ObjectType.TREE, e.name.lower()),
    )
    _print_table(
        entries,
        [
            ("Name", None, lambda e: e.name + ("/" if e.object_type is ObjectType.TREE else "")),
            ("Size", ">10", lambda e: e.size if e.object_type is ObjectType.BLOB else ""),
        ],
        limit=500,
        suffix="entries",
    )


def _print_pipelines(pipelines) -> None:
    if not pipelines:
        print("No pipelines found.")
        return
    _print_table(
        pipelines,
        [
            ("ID", ">6", lambda p: p.id),
            ("Pipeline", None, lambda p: p.name),
            ("Folder", None, lambda p: p.folder),
        ],
        suffix="pipelines",
    )


def _print_runs(runs) -> None:
    if not runs:
        print("No runs found.")
        return
    _print_table(
        runs,
        [
            ("Run", ">8", lambda r: r.id),
            ("Name", None, lambda r: r.name),
            ("State", "<11", lambda r: r.state),
            ("Result", "<18", lambda r: r.result),
            ("Created", "<16", lambda r: _fmt_date(r.created_date)),
        ],
        suffix="runs",
    )
