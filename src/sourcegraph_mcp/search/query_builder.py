"""Sourcegraph query string construction.

Every function here is pure: the same input always yields the same query.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from sourcegraph_mcp.core.types import SearchType

DEFAULT_RESULT_COUNT = 20
DEFAULT_REPO_HOST = "github.com"

TYPE_CLAUSE = re.compile(r"(?<!\S)type:(\S+)", re.IGNORECASE)
COUNT_CLAUSE = re.compile(r"(?<!\S)count:\S+", re.IGNORECASE)
AUTHOR_CLAUSE = re.compile(r"(?<!\S)author:(\S+)", re.IGNORECASE)
AFTER_CLAUSE = re.compile(r"(?<!\S)after:(\S+)", re.IGNORECASE)
REPO_CLAUSE = re.compile(r"(?<!\S)repo:(\S+)", re.IGNORECASE)
LANG_CLAUSE = re.compile(r"(?<!\S)lang:(\S+)", re.IGNORECASE)


@dataclass
class QueryAnalysis:
    """Filter clauses found in a Sourcegraph query."""
    query: str
    search_type: SearchType | None = None
    terms: str = ""
    author: str | None = None
    after: str | None = None
    language: str | None = None
    repos: list[str] = field(default_factory=list)


def has_type_clause(query: str) -> bool:
    return TYPE_CLAUSE.search(query or "") is not None


def has_count_clause(query: str) -> bool:
    return COUNT_CLAUSE.search(query or "") is not None


def detect_search_type(query: str, default: SearchType = SearchType.FILE) -> SearchType:
    """Return the search type named by the query's ``type:`` clause.

    Unknown types (e.g. ``type:symbol``) fall back to ``default``.
    """
    match = TYPE_CLAUSE.search(query or "")
    if not match:
        return default
    return SearchType.from_value(match.group(1), default)


def build_repo_filter(repo: str, default_host: str = DEFAULT_REPO_HOST) -> str:
    """Build an anchored ``repo:`` filter for a repository name.

    ``owner/name`` is assumed to live on ``default_host``; a name that already
    carries a host (``gitlab.com/owner/name``) keeps it.
    """
    repo = repo.strip().strip("/")
    first, _, rest = repo.partition("/")
    if "." in first and rest:
        host, path = first, rest
    else:
        host, path = default_host, repo
    escaped_host = host.replace(".", "\\.")
    return f"repo:^{escaped_host}/{path}$"


def parse_repo_list(repos: str | list[str] | None) -> list[str]:
    if not repos:
        return []
    if isinstance(repos, str):
        repos = repos.split(",")
    return [r.strip() for r in repos if r and r.strip()]


def build_search_query(
    text: str = "",
    search_type: SearchType | str = SearchType.FILE,
    *,
    author: str | None = None,
    message: str | None = None,
    after: str | None = None,
    repos: list[str] | None = None,
    count: int | str | None = DEFAULT_RESULT_COUNT,
) -> str:
    """Build a Sourcegraph query from free text and optional filters.

    Args:
        text: Free-text query, may already contain filter clauses.
        search_type: Result type; only appended when ``text`` has no ``type:``.
        author: Optional ``author:`` filter.
        message: Optional ``message:`` filter.
        after: Optional ``after:`` date filter, passed through verbatim.
        repos: Repository names turned into anchored ``repo:`` filters.
        count: Result count; only appended when ``text`` has no ``count:``.
            ``None`` disables the count directive.

    Returns:
        The assembled query string.

    Examples:
        >>> build_search_query("foo", "file")
        'foo type:file count:20'
        >>> build_search_query(search_type="commit", author="jane", after="2023-01-01")
        'type:commit author:jane after:2023-01-01 count:20'
    """
    text = (text or "").strip()
    type_value = search_type.value if isinstance(search_type, SearchType) else str(search_type)

    parts = [text]
    if not has_type_clause(text):
        parts.append(f"type:{type_value}")
    if author:
        parts.append(f"author:{author}")
    if message:
        parts.append(f"message:{message}")
    if after:
        parts.append(f"after:{after}")
    for repo in repos or []:
        parts.append(build_repo_filter(repo))
    if count is not None and not has_count_clause(text):
        parts.append(f"count:{count}")

    return " ".join(part for part in parts if part)


def build_exploit_query(cve_id: str, count: int = DEFAULT_RESULT_COUNT) -> str:
    cve_id = cve_id.strip()
    text = f'({cve_id} OR "{cve_id}") (poc OR exploit OR proof-of-concept)'
    return build_search_query(text, SearchType.FILE, count=count)


def build_vendor_advisory_query(vendor: str, product: str, count: int = DEFAULT_RESULT_COUNT) -> str:
    text = f'"{vendor.strip()}" "{product.strip()}" (security OR advisory OR vulnerability OR CVE)'
    return build_search_query(text, SearchType.FILE, count=count)


def build_research_repo_filter(repo: str) -> str:
    """Repo filter used by deep research.

    A bare organisation matches every repository under it, ``owner/name``
    matches exactly on GitHub, anything else is passed through as a pattern.
    """
    repo = repo.strip()
    if "/" not in repo:
        return f"repo:^github\\.com/{repo}/"
    if "." not in repo:
        return f"repo:^github\\.com/{repo}$"
    return f"repo:{repo}"


def build_research_query(
    text: str,
    search_type: SearchType = SearchType.FILE,
    language: str | None = None,
    repo: str | None = None,
    count: int = DEFAULT_RESULT_COUNT,
) -> str:
    parts = [text.strip()]
    if repo:
        parts.append(build_research_repo_filter(repo))
    if language:
        parts.append(f"lang:{language}")
    return build_search_query(" ".join(p for p in parts if p), search_type, count=count)


def parse_query(query: str) -> QueryAnalysis:
    """Split a Sourcegraph query into its filter clauses and remaining terms."""
    query = (query or "").strip()
    type_match = TYPE_CLAUSE.search(query)
    author_match = AUTHOR_CLAUSE.search(query)
    after_match = AFTER_CLAUSE.search(query)
    lang_match = LANG_CLAUSE.search(query)

    terms = query
    for pattern in (TYPE_CLAUSE, AUTHOR_CLAUSE, AFTER_CLAUSE, LANG_CLAUSE, REPO_CLAUSE, COUNT_CLAUSE):
        terms = pattern.sub("", terms)

    return QueryAnalysis(
        query=query,
        search_type=SearchType.from_value(type_match.group(1)) if type_match else None,
        terms=" ".join(terms.split()),
        author=author_match.group(1) if author_match else None,
        after=after_match.group(1) if after_match else None,
        language=lang_match.group(1) if lang_match else None,
        repos=REPO_CLAUSE.findall(query),
    )
