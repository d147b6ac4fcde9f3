"""Markdown rendering of Sourcegraph search results."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.formatting.common import escape_markdown, first_line, format_datetime

MAX_HUNKS_PER_FILE = 2
MAX_LINES_PER_HUNK = 5


def _repository_of(item: dict[str, Any]) -> str:
    if item.get("repository"):
        return item["repository"].get("name") or "unknown"
    commit = item.get("commit") or {}
    return (commit.get("repository") or {}).get("name") or "unknown"


def group_by_repository(items: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for item in items:
        groups[_repository_of(item)].append(item)
    return dict(groups)


def _format_file_match(item: dict[str, Any]) -> list[str]:
    path = (item.get("file") or {}).get("path", "unknown")
    lines = [f"   * **{path}**:\n"]
    for match in item.get("lineMatches") or []:
        preview = escape_markdown((match.get("preview") or "").strip())
        lines.append(f"     Line {match.get('lineNumber', 0)}: `{preview}`\n")
    lines.append("\n")
    return lines


def _format_commit(item: dict[str, Any]) -> list[str]:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    person = author.get("person") or {}
    oid = (commit.get("oid") or "")[:7]
    return [
        f"   * Commit {oid} by {person.get('name') or 'Unknown'}\n",
        f"     Date: {format_datetime(author.get('date'))}\n",
        f"     Message: {escape_markdown(first_line(commit.get('message')))}\n\n",
    ]


def _format_diff(item: dict[str, Any]) -> list[str]:
    lines = _format_commit(item)
    file_diffs = (item.get("diff") or {}).get("fileDiffs") or []
    for file_diff in file_diffs:
        path = file_diff.get("newPath") or file_diff.get("oldPath") or "unknown"
        lines.append(f"     **File: {path}**\n")
        hunks = file_diff.get("hunks") or []
        for hunk in hunks[:MAX_HUNKS_PER_FILE]:
            body_lines = (hunk.get("body") or "").split("\n")
            lines.append("     ```diff\n")
            for body_line in body_lines[:MAX_LINES_PER_HUNK]:
                lines.append(f"     {body_line}\n")
            if len(body_lines) > MAX_LINES_PER_HUNK:
                lines.append("       ... (more lines)\n")
            lines.append("     ```\n")
        if len(hunks) > MAX_HUNKS_PER_FILE:
            lines.append(f"     ... ({len(hunks) - MAX_HUNKS_PER_FILE} more change sections)\n")
    lines.append("\n")
    return lines


def format_search_results(
    results: dict[str, Any],
    query: str,
    search_type: SearchType = SearchType.FILE,
) -> str:
    """Render the ``search.results`` object as markdown grouped by repository.

    Args:
        results: ``search.results`` from the GraphQL response.
        query: The query that produced the results.
        search_type: Decides whether items are rendered as file, commit or diff matches.

    Returns:
        Markdown text.
    """
    items = [item for item in (results or {}).get("results") or [] if item]
    if not items:
        return f'No matches found for "{query}" with type:{search_type.value}.'

    groups = group_by_repository(items)
    match_count = results.get("matchCount", len(items))

    sections = [
        f'Your search for "{query}" found {match_count} matches '
        f"across {len(groups)} repositories.\n\n"
    ]

    for i, (repo, repo_items) in enumerate(groups.items(), 1):
        sections.append(f"{i}. **{repo} repo**:\n\n")
        for item in repo_items:
            typename = item.get("__typename")
            if typename == "FileMatch":
                sections.extend(_format_file_match(item))
            elif search_type == SearchType.DIFF:
                sections.extend(_format_diff(item))
            elif typename == "CommitSearchResult":
                sections.extend(_format_commit(item))

    return "".join(sections).rstrip() + "\n"
