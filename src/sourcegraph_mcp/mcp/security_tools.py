"""Vulnerability lookup and security search tools."""

from __future__ import annotations

import logging

from pydantic import Field, model_validator

from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.formatting import (
    format_cve_results,
    format_package_vulnerabilities,
    format_search_results,
)
from sourcegraph_mcp.mcp.base import ClientFactory, Tool, ToolInput, ToolResult, error_result
from sourcegraph_mcp.search import graphql
from sourcegraph_mcp.search.query_builder import (
    DEFAULT_RESULT_COUNT,
    build_exploit_query,
    build_vendor_advisory_query,
)

logger = logging.getLogger(__name__)

VULNERABILITY_LIMIT = 50


class CVELookupInput(ToolInput):
    cve_id: str | None = Field(default=None, alias="cveId", description="CVE identifier, e.g. CVE-2021-44228")
    package: str | None = Field(default=None, description="Package name")
    repository: str | None = Field(default=None, description="Repository name")

    @model_validator(mode="after")
    def require_criteria(self) -> "CVELookupInput":
        if not (self.cve_id or self.package or self.repository):
            raise ValueError("At least one of cveId, package, or repository must be provided")
        return self


class PackageVulnerabilityInput(ToolInput):
    package: str = Field(description="Package name, e.g. 'lodash'")
    version: str | None = Field(default=None, description="Only report vulnerabilities affecting this version")


class ExploitSearchInput(ToolInput):
    cve_id: str = Field(alias="cveId", description="CVE identifier to look for exploits of")


class VendorAdvisoryInput(ToolInput):
    vendor: str = Field(description="Vendor name, e.g. 'Apache'")
    product: str = Field(description="Product name, e.g. 'Log4j'")


def create_cve_lookup_tool(client_factory: ClientFactory) -> Tool:
    async def lookup_cve(params: CVELookupInput) -> ToolResult:
        logger.info(f"[Tool:lookup-cve] cve={params.cve_id} package={params.package} repo={params.repository}")
        try:
            async with client_factory() as client:
                vulnerabilities = await client.vulnerabilities(
                    graphql.CVE_LOOKUP_QUERY,
                    {
                        "cveId": params.cve_id,
                        "package": params.package,
                        "repository": params.repository,
                        "limit": VULNERABILITY_LIMIT,
                    },
                )
            return ToolResult(
                text=format_cve_results(
                    vulnerabilities,
                    cve_id=params.cve_id,
                    package=params.package,
                    repository=params.repository,
                )
            )
        except Exception as e:
            return error_result("lookup-cve", "looking up vulnerabilities", e)

    return Tool(
        name="lookup-cve",
        description="Look up vulnerabilities by CVE identifier, package, or repository.",
        input_model=CVELookupInput,
        handler=lookup_cve,
    )


def create_package_vulnerability_tool(client_factory: ClientFactory) -> Tool:
    async def lookup_package_vulnerability(params: PackageVulnerabilityInput) -> ToolResult:
        try:
            async with client_factory() as client:
                vulnerabilities = await client.vulnerabilities(
                    graphql.PACKAGE_VULNERABILITY_QUERY,
                    {
                        "package": params.package,
                        "version": params.version,
                        "limit": VULNERABILITY_LIMIT,
                    },
                )
            return ToolResult(
                text=format_package_vulnerabilities(vulnerabilities, params.package, params.version)
            )
        except Exception as e:
            return error_result("lookup-package-vulnerability", "looking up package vulnerabilities", e)

    return Tool(
        name="lookup-package-vulnerability",
        description="List known vulnerabilities for a package, optionally for one version.",
        input_model=PackageVulnerabilityInput,
        handler=lookup_package_vulnerability,
    )


def create_exploit_search_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    async def search_exploits(params: ExploitSearchInput) -> ToolResult:
        query = build_exploit_query(params.cve_id, count=result_count)
        try:
            async with client_factory() as client:
                results = await client.search(query, SearchType.FILE)
        except Exception as e:
            return error_result("search-exploits", "searching for exploits", e)

        header = f"## Exploit Search Results for {params.cve_id}\n\nSearched for: {query}\n\n"
        return ToolResult(text=header + format_search_results(results, query, SearchType.FILE))

    return Tool(
        name="search-exploits",
        description="Search public code for proof-of-concept exploits of a CVE.",
        input_model=ExploitSearchInput,
        handler=search_exploits,
    )


def create_vendor_advisory_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    async def find_vendor_advisory(params: VendorAdvisoryInput) -> ToolResult:
        query = build_vendor_advisory_query(params.vendor, params.product, count=result_count)
        try:
            async with client_factory() as client:
                results = await client.search(query, SearchType.FILE)
        except Exception as e:
            return error_result("find-vendor-advisory", "searching vendor advisories", e)

        header = (
            f"## Security Advisories for {params.vendor} {params.product}\n\n"
            f"Searched for: {query}\n\n"
        )
        return ToolResult(text=header + format_search_results(results, query, SearchType.FILE))

    return Tool(
        name="find-vendor-advisory",
        description="Search for security advisories published for a vendor's product.",
        input_model=VendorAdvisoryInput,
        handler=find_vendor_advisory,
    )
