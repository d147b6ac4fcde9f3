"""Markdown rendering for code-intelligence (LSIF) lookups."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from sourcegraph_mcp.formatting.common import escape_markdown

NO_LSIF_SUFFIX = "or LSIF data not available for this file. LSIF data requires prior indexing."

SYMBOL_ICONS = {
    "File": "📄",
    "Module": "📦",
    "Namespace": "🔠",
    "Package": "📦",
    "Class": "🔶",
    "Method": "🔹",
    "Property": "🔸",
    "Field": "🔸",
    "Constructor": "🏗️",
    "Enum": "🔢",
    "Interface": "🔷",
    "Function": "⚙️",
    "Variable": "📌",
    "Constant": "🔒",
    "EnumMember": "🔹",
    "Struct": "🏛️",
    "Event": "⚡",
    "TypeParameter": "🅃",
}


def _location(node: dict[str, Any]) -> tuple[str, str]:
    resource = node.get("resource") or {}
    return (resource.get("repository") or {}).get("name", "unknown"), resource.get("path", "unknown")


def _start(node: dict[str, Any]) -> tuple[int, int]:
    start = (node.get("range") or {}).get("start") or {}
    return start.get("line", 0), start.get("character", 0)


def format_definitions(lsif: dict[str, Any] | None) -> str:
    definitions = (lsif or {}).get("definitions")
    if not definitions or definitions.get("nodes") is None:
        return f"No definitions found {NO_LSIF_SUFFIX}"

    nodes = definitions["nodes"]
    if not nodes:
        return "No definitions found for this symbol."

    sections = [f"## Definitions Found ({len(nodes)})\n\n"]
    for i, node in enumerate(nodes, 1):
        repo, path = _location(node)
        line, character = _start(node)
        sections.append(f"### Definition {i}\n")
        sections.append(f"**Location:** {repo} - {path}:{line + 1}:{character + 1}\n\n")
    return "".join(sections)


def _format_grouped_locations(
    connection: dict[str, Any] | None,
    noun: str,
    heading: str,
    empty_message: str,
    params: dict[str, Any],
) -> str:
    if not connection or connection.get("nodes") is None:
        return f"No {noun} found {NO_LSIF_SUFFIX}"

    nodes = connection["nodes"]
    if not nodes:
        return empty_message

    total = connection.get("totalCount", len(nodes))
    position = f"{params['repository']}:{params['path']}:{params['line'] + 1}:{params['character'] + 1}"
    sections = [f"## {noun.capitalize()} Found ({total})\n\n", f"{heading} at {position}\n\n"]

    grouped: dict[str, dict[str, list]] = defaultdict(lambda: defaultdict(list))
    for node in nodes:
        repo, path = _location(node)
        grouped[repo][path].append(node)

    for repo, files in grouped.items():
        sections.append(f"### Repository: {repo}\n\n")
        for path, file_nodes in files.items():
            sections.append(f"#### File: {path}\n\n")
            for node in file_nodes:
                line, _ = _start(node)
                preview = (node.get("preview") or "(no preview available)").strip()
                sections.append(f"Line {line + 1}: `{escape_markdown(preview)}`\n\n")

    if (connection.get("pageInfo") or {}).get("hasNextPage"):
        sections.append(
            f"\n> Note: There are more {noun} available. "
            f"This result is limited to showing {len(nodes)} {noun}.\n"
        )
    return "".join(sections)


def format_references(lsif: dict[str, Any] | None, params: dict[str, Any]) -> str:
    return _format_grouped_locations(
        (lsif or {}).get("references"),
        "references",
        "References to symbol",
        "No references found for this symbol.",
        params,
    )


def format_implementations(lsif: dict[str, Any] | None, params: dict[str, Any]) -> str:
    return _format_grouped_locations(
        (lsif or {}).get("implementations"),
        "implementations",
        "Implementations of interface/class",
        "No implementations found for this interface/abstract class.",
        params,
    )


def format_hover(lsif: dict[str, Any] | None) -> str:
    hover = (lsif or {}).get("hover")
    if not hover:
        return "No hover documentation found or LSIF data not available for this file."

    sections = ["## Hover Documentation\n\n"]
    text = (hover.get("markdown") or {}).get("text")
    if text:
        sections.append(f"{text}\n\n")
    else:
        sections.append("No documentation available for this symbol.\n\n")

    hover_range = hover.get("range")
    if hover_range:
        start, end = hover_range["start"], hover_range["end"]
        sections.append(
            f"**Symbol Range:** Line {start['line'] + 1}:{start['character'] + 1} "
            f"to {end['line'] + 1}:{end['character'] + 1}\n"
        )
    return "".join(sections)


def _format_symbols(symbols: list[dict[str, Any]], indent: int = 0) -> list[str]:
    lines = []
    for symbol in symbols:
        kind = symbol.get("kind") or "Unknown"
        icon = SYMBOL_ICONS.get(kind, "•")
        start = ((symbol.get("range") or {}).get("start") or {}).get("line")
        line = start + 1 if start is not None else "?"
        lines.append(f"{'  ' * indent}{icon} **{symbol.get('name')}** ({kind}, line {line})\n")
        lines.extend(_format_symbols(symbol.get("children") or [], indent + 1))
    return lines


def format_document_symbols(lsif: dict[str, Any] | None, repository: str, path: str) -> str:
    symbols = ((lsif or {}).get("documentSymbols") or {}).get("nodes")
    if not symbols:
        return "No symbols found or LSIF data not available for this file."
    return f"## Symbols in {repository}:{path}\n\n" + "".join(_format_symbols(symbols))
