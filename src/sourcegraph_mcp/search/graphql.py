"""GraphQL documents sent to the Sourcegraph API."""

from sourcegraph_mcp.core.types import SearchType

FILE_SEARCH_QUERY = """
query FileSearch($query: String!) {
  search(query: $query, version: V3) {
    results {
      matchCount
      results {
        __typename
        ... on FileMatch {
          repository { name }
          file { path }
          lineMatches { lineNumber preview }
        }
      }
    }
  }
}
"""

COMMIT_SEARCH_QUERY = """
query CommitSearch($query: String!) {
  search(query: $query, version: V3) {
    results {
      matchCount
      results {
        __typename
        ... on CommitSearchResult {
          commit {
            oid
            message
            author { person { name email } date }
            repository { name }
          }
        }
      }
    }
  }
}
"""

DIFF_SEARCH_QUERY = """
query DiffSearch($query: String!) {
  search(query: $query, version: V3) {
    results {
      matchCount
      results {
        __typename
        ... on CommitSearchResult {
          commit {
            oid
            message
            author { person { name email } date }
            repository { name }
          }
          diff {
            fileDiffs {
              oldPath
              newPath
              hunks {
                body
                oldRange { start lines }
                newRange { start lines }
              }
            }
          }
        }
      }
    }
  }
}
"""

SEARCH_QUERIES = {
    SearchType.FILE: FILE_SEARCH_QUERY,
    SearchType.COMMIT: COMMIT_SEARCH_QUERY,
    SearchType.DIFF: DIFF_SEARCH_QUERY,
}

CURRENT_USER_QUERY = """
query CurrentUser {
  currentUser { username }
}
"""

DEFINITIONS_QUERY = """
query Definitions($repository: String!, $path: String!, $line: Int!, $character: Int!) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        lsif {
          definitions(line: $line, character: $character) {
            nodes {
              resource { path repository { name } }
              range { start { line character } end { line character } }
            }
          }
        }
      }
    }
  }
}
"""

REFERENCES_QUERY = """
query References($repository: String!, $path: String!, $line: Int!, $character: Int!, $first: Int) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        lsif {
          references(line: $line, character: $character, first: $first) {
            nodes {
              resource { path repository { name } }
              range { start { line character } end { line character } }
              preview
            }
            pageInfo { hasNextPage endCursor }
            totalCount
          }
        }
      }
    }
  }
}
"""

IMPLEMENTATIONS_QUERY = """
query Implementations($repository: String!, $path: String!, $line: Int!, $character: Int!, $first: Int) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        lsif {
          implementations(line: $line, character: $character, first: $first) {
            nodes {
              resource { path repository { name } }
              range { start { line character } end { line character } }
            }
            pageInfo { hasNextPage endCursor }
            totalCount
          }
        }
      }
    }
  }
}
"""

HOVER_QUERY = """
query Hover($repository: String!, $path: String!, $line: Int!, $character: Int!) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        lsif {
          hover(line: $line, character: $character) {
            markdown { text }
            range { start { line character } end { line character } }
          }
        }
      }
    }
  }
}
"""

DOCUMENT_SYMBOLS_QUERY = """
query DocumentSymbols($repository: String!, $path: String!) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        lsif {
          documentSymbols {
            nodes {
              name
              kind
              range { start { line character } end { line character } }
              children {
                name
                kind
                range { start { line character } end { line character } }
                children {
                  name
                  kind
                  range { start { line character } end { line character } }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

FILE_CONTENT_QUERY = """
query FileContent($repository: String!, $path: String!, $revision: String) {
  repository(name: $repository) {
    commit(rev: $revision, default: "HEAD") {
      blob(path: $path) {
        content
        byteSize
        binary
      }
    }
  }
}
"""

FILE_BLAME_QUERY = """
query FileBlame($repository: String!, $path: String!, $startLine: Int!, $endLine: Int!) {
  repository(name: $repository) {
    commit(rev: "HEAD") {
      blob(path: $path) {
        blame(startLine: $startLine, endLine: $endLine) {
          startLine
          endLine
          author
          email
          date
          message
          commit {
            oid
            abbrevOid
            message
            author { person { name email } date }
          }
        }
      }
    }
  }
}
"""

VULNERABILITY_FIELDS = """
  nodes {
    id
    type
    severity
    summary
    details
    published
    package { name ecosystem }
    affectedVersions
    fixedVersions
    references { url type }
  }
  totalCount
"""

CVE_LOOKUP_QUERY = """
query CVELookup($cveId: String, $package: String, $repository: String, $limit: Int!) {
  vulnerabilities(first: $limit, cve: $cveId, package: $package, repository: $repository) {
%s
  }
}
""" % VULNERABILITY_FIELDS

PACKAGE_VULNERABILITY_QUERY = """
query PackageVulnerability($package: String!, $version: String, $limit: Int!) {
  vulnerabilities(first: $limit, package: $package, version: $version) {
%s
  }
}
""" % VULNERABILITY_FIELDS
