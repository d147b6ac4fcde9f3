"""Markdown rendering for vulnerability lookups."""

from __future__ import annotations

from collections import Counter
from typing import Any

from sourcegraph_mcp.formatting.common import format_date

SEVERITY_ORDER = ("critical", "high", "moderate", "medium", "low", "unknown")
SEVERITY_LABELS = {
    "critical": "⚠️ Critical",
    "high": "🔴 High",
    "moderate": "🟠 Moderate",
    "medium": "🟠 Medium",
    "low": "🟢 Low",
}


def format_severity(severity: str | None) -> str:
    if not severity:
        return "Unknown"
    return SEVERITY_LABELS.get(severity.lower(), severity.capitalize())


def _format_vulnerability_details(vuln: dict[str, Any], include_published: bool) -> list[str]:
    sections = [f"**Severity:** {format_severity(vuln.get('severity'))}\n\n"]
    if vuln.get("summary"):
        sections.append(f"**Summary:** {vuln['summary']}\n\n")
    if vuln.get("affectedVersions"):
        sections.append(f"**Affected Versions:** {', '.join(vuln['affectedVersions'])}\n\n")
    if vuln.get("fixedVersions"):
        sections.append(f"**Fixed Versions:** {', '.join(vuln['fixedVersions'])}\n\n")
    if include_published and vuln.get("published"):
        sections.append(f"**Published:** {format_date(vuln['published'])}\n\n")
    if vuln.get("references"):
        sections.append("**References:**\n")
        for ref in vuln["references"]:
            sections.append(f"- [{ref.get('type') or 'Link'}]({ref.get('url')})\n")
        sections.append("\n")
    return sections


def format_cve_results(
    vulnerabilities: dict[str, Any] | None,
    cve_id: str | None = None,
    package: str | None = None,
    repository: str | None = None,
) -> str:
    nodes = (vulnerabilities or {}).get("nodes")
    if nodes is None:
        return "No vulnerability data found."
    if not nodes:
        return "No vulnerabilities found matching the criteria."

    criteria = []
    if cve_id:
        criteria.append(f"CVE ID: {cve_id}")
    if package:
        criteria.append(f"Package: {package}")
    if repository:
        criteria.append(f"Repository: {repository}")

    sections = [f"## Vulnerabilities Found ({vulnerabilities.get('totalCount', len(nodes))})\n\n"]
    if criteria:
        sections.append(f"Search criteria: {', '.join(criteria)}\n\n")

    for i, vuln in enumerate(nodes, 1):
        pkg = vuln.get("package") or {}
        sections.append(
            f"### {i}. {vuln.get('id')} - {pkg.get('name') or 'Unknown'} "
            f"({pkg.get('ecosystem') or 'Unknown'})\n\n"
        )
        sections.extend(_format_vulnerability_details(vuln, include_published=True))
        if vuln.get("details"):
            sections.append(f"**Details:**\n{vuln['details']}\n\n")
        if i < len(nodes):
            sections.append("---\n\n")

    return "".join(sections)


def format_package_vulnerabilities(
    vulnerabilities: dict[str, Any] | None,
    package: str,
    version: str | None = None,
) -> str:
    nodes = (vulnerabilities or {}).get("nodes")
    if nodes is None:
        return "No vulnerability data found."
    if not nodes:
        suffix = f" version {version}" if version else ""
        return f"No vulnerabilities found for package {package}{suffix}."

    title = f"{package} v{version}" if version else package
    sections = [
        f"## Security Vulnerabilities for {title}\n\n",
        f"Found {vulnerabilities.get('totalCount', len(nodes))} vulnerabilities\n\n",
        "**Severity Summary:**\n",
    ]

    counts = Counter((vuln.get("severity") or "unknown").lower() for vuln in nodes)
    for severity in SEVERITY_ORDER:
        if counts.get(severity):
            sections.append(f"- {format_severity(severity)}: {counts[severity]}\n")
    sections.append("\n")

    for i, vuln in enumerate(nodes, 1):
        sections.append(f"### {i}. {vuln.get('id')}\n\n")
        sections.extend(_format_vulnerability_details(vuln, include_published=False))
        if i < len(nodes):
            sections.append("---\n\n")

    return "".join(sections)
