"""Markdown rendering for file content and blame."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

from sourcegraph_mcp.formatting.common import first_line, format_date, format_file_size, truncate

BLAME_MESSAGE_LIMIT = 50


def format_file_content(blob: dict[str, Any] | None, repository: str, path: str, revision: str | None) -> str:
    if not blob:
        return f"File not found: {repository}:{path}"

    if blob.get("binary"):
        return (
            f"The file {path} is a binary file "
            f"({format_file_size(blob.get('byteSize'))}) and cannot be displayed."
        )

    extension = PurePosixPath(path).suffix.lstrip(".")
    return (
        f"## File Content: {repository}:{path} @ {revision or 'HEAD'}\n\n"
        f"File size: {format_file_size(blob.get('byteSize'))}\n\n"
        f"```{extension}\n{blob.get('content') or ''}\n```\n"
    )


def format_file_blame(blob: dict[str, Any] | None, repository: str, path: str) -> str:
    hunks = (blob or {}).get("blame")
    if not hunks:
        return f"No blame information found for {repository}:{path}"

    sections = [
        f"## Blame for {repository}:{path}\n\n",
        "| Lines | Author | Date | Commit | Message |\n",
        "|-------|--------|------|--------|---------|\n",
    ]
    for hunk in hunks:
        commit = hunk.get("commit") or {}
        oid = commit.get("abbrevOid") or (commit.get("oid") or "")[:7]
        message = truncate(first_line(hunk.get("message") or commit.get("message")), BLAME_MESSAGE_LIMIT)
        message = message.replace("|", "\\|")
        sections.append(
            f"| {hunk.get('startLine')}-{hunk.get('endLine')} "
            f"| {hunk.get('author') or 'Unknown'} "
            f"| {format_date(hunk.get('date'))} "
            f"| {oid} "
            f"| {message} |\n"
        )
    return "".join(sections)
