"""Deep code research report: code findings, commit history, and a JSON summary."""

from __future__ import annotations

import json
from collections import Counter
from typing import Any

from sourcegraph_mcp.formatting.common import escape_markdown, format_datetime, parse_timestamp
from sourcegraph_mcp.formatting.search import group_by_repository

MAX_MATCHES_PER_FILE = 5
MAX_SNIPPETS_PER_FILE = 3
TOP_N = 5


def _file_matches(results: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [
        item for item in (results or {}).get("results") or []
        if item and item.get("__typename") == "FileMatch"
    ]


def _commit_matches(results: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [
        item for item in (results or {}).get("results") or []
        if item and item.get("__typename") == "CommitSearchResult" and item.get("commit")
    ]


def _author_name(commit: dict[str, Any]) -> str:
    person = (commit.get("author") or {}).get("person") or {}
    return person.get("name") or "Unknown"


def _code_sections(file_results: dict[str, Any], files: list[dict[str, Any]]) -> list[str]:
    if not files:
        return ["### Code Findings\nNo code matches found.\n\n"]

    sections = [
        "### Code Findings\n",
        f"Found {file_results.get('matchCount', len(files))} code matches.\n\n",
    ]
    for i, (repo, repo_files) in enumerate(group_by_repository(files).items(), 1):
        sections.append(f"{i}. **{repo}**:\n\n")
        for item in repo_files:
            matches = item.get("lineMatches") or []
            sections.append(f"   * **{item['file']['path']}**:\n")
            for match in matches[:MAX_MATCHES_PER_FILE]:
                preview = escape_markdown(match.get("preview") or "")
                sections.append(f"     Line {match.get('lineNumber')}: `{preview}`\n")
            if len(matches) > MAX_MATCHES_PER_FILE:
                sections.append(f"     ... and {len(matches) - MAX_MATCHES_PER_FILE} more matches\n")
            sections.append("\n")

    extensions: Counter = Counter()
    directories: Counter = Counter()
    for item in files:
        path = item["file"]["path"]
        if "." in path.rsplit("/", 1)[-1]:
            extensions[path.rsplit(".", 1)[-1].lower()] += 1
        if "/" in path:
            directories[path.rsplit("/", 1)[0]] += 1

    sections.append("### Code Patterns & Insights\n")
    sections.append("- Key files containing this functionality:\n")
    key_files = [item for item in files if len(item.get("lineMatches") or []) > 2][:TOP_N]
    for item in key_files:
        sections.append(f"  - `{item['file']['path']}` ({len(item['lineMatches'])} matches)\n")

    sections.append("\n- File type distribution:\n")
    for ext, count in extensions.most_common():
        if count > 1:
            sections.append(f"  - {ext}: {count} files\n")

    sections.append("\n- Key directories:\n")
    for directory, count in directories.most_common(TOP_N):
        if count > 1:
            sections.append(f"  - {directory}/: {count} files\n")
    return sections


def _commit_sections(commit_results: dict[str, Any], commits: list[dict[str, Any]]) -> list[str]:
    if not commits:
        return ["\n### Related Commits\nNo related commits found.\n"]

    sections = [
        "\n### Related Commits\n",
        f"Found {commit_results.get('matchCount', len(commits))} related commits.\n\n",
    ]
    for i, (repo, repo_commits) in enumerate(group_by_repository(commits).items(), 1):
        sections.append(f"{i}. **{repo}**:\n\n")
        for item in repo_commits:
            commit = item["commit"]
            sections.append(f"   * Commit {(commit.get('oid') or '')[:7]} by {_author_name(commit)}\n")
            sections.append(f"     Date: {format_datetime((commit.get('author') or {}).get('date'))}\n")
            sections.append(f"     Message: {escape_markdown((commit.get('message') or '').strip())}\n\n")

    authors = Counter(_author_name(item["commit"]) for item in commits)
    months: Counter = Counter()
    for item in commits:
        parsed = parse_timestamp((item["commit"].get("author") or {}).get("date"))
        if parsed is not None:
            months[(parsed.year, parsed.month)] += 1

    sections.append("### Development Insights\n")
    sections.append("- Main contributors:\n")
    for author, count in authors.most_common(TOP_N):
        sections.append(f"  - {author}: {count} commits\n")

    sections.append("\n- Development timeline:\n")
    for (year, month), count in sorted(months.items()):
        label = parse_timestamp(f"{year:04d}-{month:02d}-01").strftime("%b %Y")
        sections.append(f"  - {label}: {count} commits\n")
    return sections


def format_research_report(
    query: str,
    file_results: dict[str, Any] | None,
    commit_results: dict[str, Any] | None,
    language: str | None = None,
    repo: str | None = None,
) -> str:
    """Render file and commit search results as a research report.

    The markdown is followed by a fenced JSON block carrying the same findings
    in structured form for agents.
    """
    file_results = file_results or {}
    commit_results = commit_results or {}
    files = _file_matches(file_results)
    commits = _commit_matches(commit_results)

    sections = [f"## Deep Code Research: {query}\n\n"]
    sections.extend(_code_sections(file_results, files))
    sections.extend(_commit_sections(commit_results, commits))

    structured = {
        "query": query,
        "repo": repo or "all repositories",
        "language": language or "all languages",
        "summary": {
            "codeMatchCount": file_results.get("matchCount", 0) if files else 0,
            "commitMatchCount": commit_results.get("matchCount", 0) if commits else 0,
            "repositoriesFound": len(group_by_repository(files)),
        },
        "codeFindings": [
            {
                "repository": item["repository"]["name"],
                "path": item["file"]["path"],
                "matchCount": len(item.get("lineMatches") or []),
                "snippets": [
                    {"lineNumber": m.get("lineNumber"), "code": m.get("preview")}
                    for m in (item.get("lineMatches") or [])[:MAX_SNIPPETS_PER_FILE]
                ],
            }
            for item in files
        ],
        "commits": [
            {
                "repository": (item["commit"].get("repository") or {}).get("name"),
                "id": (item["commit"].get("oid") or "")[:7],
                "message": (item["commit"].get("message") or "").strip(),
                "author": _author_name(item["commit"]),
                "date": (item["commit"].get("author") or {}).get("date"),
            }
            for item in commits
        ],
    }

    return (
        "".join(sections)
        + "\n\n---\n\n## Structured Data (JSON)\n```json\n"
        + json.dumps(structured, indent=2)
        + "\n```\n"
    )
