"""Streamlit dashboard for ado-browser, backed by the FastAPI API."""
from __future__ import annotations

import sys
from urllib.parse import quote

import httpx
import plotly.graph_objects as go
import streamlit as st

# ── Configuration ───────────────────────────────────────────────────

API_URL = "http://localhost:8000"
for arg in sys.argv:
    if arg.startswith("--api-url="):
        API_URL = arg.split("=", 1)[1]

st.set_page_config(page_title="ado-browser", layout="wide")

_RESULT_COLORS = {
    "succeeded": "#51cf66",
    "partiallySucceeded": "#ffd43b",
    "failed": "#ff6b6b",
    "canceled": "#adb5bd",
    "inProgress": "#748ffc",
}


# ── Data Fetching ───────────────────────────────────────────────────

@st.cache_data(ttl=60)
def fetch(
    endpoint: str, params: dict | None = None, missing: tuple[int, ...] = (404,),
) -> list | dict | None:
    """GET an API endpoint. Statuses in *missing* return None without an error banner."""
    try:
        resp = httpx.get(f"{API_URL}{endpoint}", params=params, timeout=60)
        if resp.status_code in missing:
            return None
        if resp.status_code >= 400:
            st.error(f"{endpoint}: {_error_detail(resp)}")
            return None
        return resp.json()
    except httpx.ConnectError:
        st.error(f"Cannot connect to API at {API_URL}. Is the server running?")
        st.stop()


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("detail", resp.text))
    return resp.text


def _seg(value) -> str:
    return quote(str(value), safe="")


def _short_ref(ref: str) -> str:
    return ref.removeprefix("refs/heads/")


def _pipeline_label(p: dict) -> str:
    folder = (p["folder"] or "").strip("\\")
    return f"{folder}\\{p['name']}" if folder else p["name"]


# ── Sidebar ─────────────────────────────────────────────────────────

st.sidebar.title("ado-browser")

projects = fetch("/api/projects") or []
if not projects:
    st.sidebar.warning("No projects found. Check AZURE_DEVOPS_ORGANIZATION and AZURE_DEVOPS_PAT.")
    st.stop()

project = st.sidebar.selectbox(
    "Project", [p["name"] for p in projects],
)
project_base = f"/api/projects/{_seg(project)}"

repos = fetch(f"{project_base}/repos") or []
repo = None
if repos:
    repo_idx = st.sidebar.selectbox(
        "Repository", range(len(repos)), format_func=lambda i: repos[i]["name"]
    )
    repo = repos[repo_idx]
else:
    st.sidebar.info("No repositories in this project.")

branch = None
repo_base = None
if repo:
    repo_base = f"{project_base}/repos/{_seg(repo['id'])}"
    branches = fetch(f"{repo_base}/branches") or []
    branch_names = [b["short_name"] for b in branches]
    default = _short_ref(repo.get("default_branch") or "")
    if branch_names:
        branch = st.sidebar.selectbox(
            "Branch", branch_names,
            index=branch_names.index(default) if default in branch_names else 0,
        )

top = st.sidebar.slider("Commits / runs to load", 10, 500, 100, step=10)


# ── Tab Layout ──────────────────────────────────────────────────────

tab_names = ["Commits", "Files", "Branches", "Pull Requests", "Pipelines"]
tabs = st.tabs(tab_names)


def _commit_label(c: dict) -> str:
    first_line = (c["comment"] or "").splitlines()[0] if c["comment"] else ""
    return f"{c['commit_id'][:8]}  {c['author']['name']}: {first_line[:60]}"


commits: list = []
if repo_base:
    commits = fetch(f"{repo_base}/commits", params={"branch": branch, "top": top}) or []

# ── Tab 1: Commits ──────────────────────────────────────────────────

with tabs[0]:
    st.header("Commits")
    if not repo_base:
        st.info("Select a repository.")
    elif not commits:
        st.info("No commits on this branch.")
    else:
        st.dataframe(
            [
                {
                    "Commit": c["commit_id"][:8],
                    "Author": c["author"]["name"],
                    "Date": str(c["author"]["date"])[:19],
                    "Comment": c["comment"],
                }
                for c in commits
            ],
            use_container_width=True,
        )

        commit_idx = st.selectbox(
            "Commit", range(len(commits)), format_func=lambda i: _commit_label(commits[i])
        )
        commit = commits[commit_idx]
        changes = fetch(f"{repo_base}/commits/{_seg(commit['commit_id'])}/changes")

        if changes:
            counts = changes["change_counts"]
            if counts:
                cols = st.columns(len(counts))
                for col, (kind, n) in zip(cols, counts.items()):
                    col.metric(kind, n)

            files = [c for c in changes["changes"] if c["item"]["object_type"] == "blob"]
            st.dataframe(
                [
                    {
                        "Change": c["change_type"],
                        "Path": c["item"]["path"],
                        "Compare": c["item"]["url"],
                    }
                    for c in files
                ],
                use_container_width=True,
            )

            if files:
                file_idx = st.selectbox(
                    "Show diff for", range(len(files)),
                    format_func=lambda i: f"{files[i]['change_type']:<8} {files[i]['item']['path']}",
                )
                diff = fetch(
                    f"{repo_base}/commits/{_seg(commit['commit_id'])}/diff",
                    params={"path": files[file_idx]["item"]["path"]},
                )
                if diff:
                    d1, d2 = st.columns(2)
                    d1.metric("Added lines", diff["added_count"])
                    d2.metric("Deleted lines", diff["deleted_count"])
                    only_changes = st.checkbox("Only changed lines", value=True)
                    rows = [
                        line for line in diff["lines"]
                        if not only_changes or line["kind"] != "equal"
                    ]
                    st.dataframe(
                        [
                            {
                                "": {"equal": " ", "insert": "+", "delete": "-", "replace": "~"}[line["kind"]],
                                "Old #": line["old_number"],
                                "Old": line["old_text"],
                                "New #": line["new_number"],
                                "New": line["new_text"],
                            }
                            for line in rows
                        ],
                        use_container_width=True,
                        height=600,
                    )
        else:
            st.info("No change data.")

# ── Tab 2: Files ────────────────────────────────────────────────────

with tabs[1]:
    st.header("Files")
    if not repo_base or not commits:
        st.info("Select a repository and branch with commits.")
    else:
        file_commit_idx = st.selectbox(
            "At commit", range(len(commits)),
            format_func=lambda i: _commit_label(commits[i]), key="files_commit",
        )
        commit_id = commits[file_commit_idx]["commit_id"]
        directory = st.text_input("Directory", value="", placeholder="src/app")

        listing = fetch(
            f"{repo_base}/commits/{_seg(commit_id)}/tree", params={"path": directory},
            missing=(404, 422),
        )
        if listing is None:
            st.warning(f"'{directory}' is not a directory at this commit.")
        else:
            entries = sorted(
                listing["entries"], key=lambda e: (e["object_type"] != "tree", e["name"].lower())
            )
            st.dataframe(
                [
                    {
                        "Name": e["name"] + ("/" if e["object_type"] == "tree" else ""),
                        "Type": e["object_type"],
                        "Size": e["size"] if e["object_type"] == "blob" else None,
                    }
                    for e in entries
                ],
                use_container_width=True,
            )
            blobs = [e["name"] for e in entries if e["object_type"] == "blob"]
            if blobs:
                selected = st.selectbox("View file", blobs)
                file_path = "/".join(p for p in (directory.strip("/"), selected) if p)
                content = fetch(
                    f"{repo_base}/commits/{_seg(commit_id)}/file", params={"path": file_path}
                )
                if content:
                    st.caption(file_path)
                    st.code(content["content"], language=None)

# ── Tab 3: Branches ─────────────────────────────────────────────────

with tabs[2]:
    st.header("Branches")
    if not repo_base:
        st.info("Select a repository.")
    else:
        branch_rows = fetch(f"{repo_base}/branches") or []
        if branch_rows:
            st.dataframe(
                [
                    {
                        "Branch": b["short_name"],
                        "Head": b["object_id"][:8],
                        "Creator": b["creator_name"],
                    }
                    for b in branch_rows
                ],
                use_container_width=True,
            )
        else:
            st.info("No branches.")

# ── Tab 4: Pull Requests ────────────────────────────────────────────

with tabs[3]:
    st.header("Pull Requests")
    if not repo_base:
        st.info("Select a repository.")
    else:
        status = st.radio(
            "Status", ["active", "completed", "abandoned", "all"], horizontal=True
        )
        prs = fetch(f"{repo_base}/pullrequests", params={"status": status}) or []
        if prs:
            st.dataframe(
                [
                    {
                        "ID": pr["pull_request_id"],
                        "Title": pr["title"],
                        "Status": pr["status"],
                        "Author": pr["created_by"],
                        "Created": str(pr["creation_date"])[:19],
                        "Source": _short_ref(pr["source_ref_name"]),
                        "Target": _short_ref(pr["target_ref_name"]),
                    }
                    for pr in prs
                ],
                use_container_width=True,
            )
            pr_idx = st.selectbox(
                "Details", range(len(prs)),
                format_func=lambda i: f"#{prs[i]['pull_request_id']} {prs[i]['title']}",
            )
            st.markdown(prs[pr_idx]["description"] or "_No description._")
        else:
            st.info(f"No {status} pull requests.")

# ── Tab 5: Pipelines ────────────────────────────────────────────────

with tabs[4]:
    st.header("Pipelines")
    pipelines = fetch(f"{project_base}/pipelines") or []
    if not pipelines:
        st.info("No pipelines in this project.")
    else:
        pipe_idx = st.selectbox(
            "Pipeline", range(len(pipelines)),
            format_func=lambda i: _pipeline_label(pipelines[i]),
        )
        pipeline_id = pipelines[pipe_idx]["id"]
        pipe_base = f"{project_base}/pipelines/{pipeline_id}"

        summary = fetch(f"{pipe_base}/summary", params={"top": top})
        runs = fetch(f"{pipe_base}/runs", params={"top": top}) or []

        if summary and summary["result_counts"]:
            labels = list(summary["result_counts"].keys())
            fig = go.Figure(go.Bar(
                x=labels,
                y=[summary["result_counts"][k] for k in labels],
                marker_color=[_RESULT_COLORS.get(k, "#1f77b4") for k in labels],
            ))
            fig.update_layout(
                title=f"Last {summary['total_runs']} Runs by Result",
                yaxis_title="Runs",
                height=350,
            )
            st.plotly_chart(fig, use_container_width=True)

        if runs:
            st.dataframe(
                [
                    {
                        "Run": r["id"],
                        "Name": r["name"],
                        "State": r["state"],
                        "Result": r["result"],
                        "Created": str(r["created_date"])[:19],
                        "Finished": str(r["finished_date"])[:19] if r["finished_date"] else "",
                    }
                    for r in runs
                ],
                use_container_width=True,
            )
            run_idx = st.selectbox(
                "Artifacts for run", range(len(runs)),
                format_func=lambda i: f"{runs[i]['name']} ({runs[i]['result'] or runs[i]['state']})",
            )
            artifacts = fetch(f"{pipe_base}/runs/{runs[run_idx]['id']}/artifacts") or []
            if artifacts:
                for a in artifacts:
                    link = a["signed_content_url"] or a["download_url"]
                    st.markdown(f"- [{a['name']}]({link})" if link else f"- {a['name']}")
            else:
                st.info("No artifacts for this run.")
        else:
            st.info("No runs for this pipeline.")
