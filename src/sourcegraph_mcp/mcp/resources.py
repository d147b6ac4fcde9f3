"""Static MCP resources and prompts."""

from __future__ import annotations

import re
from typing import Any

from sourcegraph_mcp.core.errors import SourcegraphMCPError

HELLO_URI = "hello://sourcegraph"
GREETING_URI_TEMPLATE = "greeting://{name}"
GREETING_PATTERN = re.compile(r"^greeting://(?P<name>[^/?#]+)$")
ASSISTANT_PROMPT = "sourcegraph-assistant"


class ResourceNotFoundError(SourcegraphMCPError):
    pass


class PromptNotFoundError(SourcegraphMCPError):
    pass


def list_resources() -> list[dict[str, Any]]:
    return [
        {
            "uri": HELLO_URI,
            "name": "hello",
            "description": "Greeting from the Sourcegraph MCP server",
            "mimeType": "text/plain",
        }
    ]


def list_resource_templates() -> list[dict[str, Any]]:
    return [
        {
            "uriTemplate": GREETING_URI_TEMPLATE,
            "name": "greeting",
            "description": "Personalised greeting",
            "mimeType": "text/plain",
        }
    ]


def read_resource(uri: str) -> dict[str, Any]:
    if uri == HELLO_URI:
        text = "Hello from Sourcegraph MCP Server! Ready to search code repositories."
    else:
        match = GREETING_PATTERN.match(uri or "")
        if not match:
            raise ResourceNotFoundError(f"Resource not found: {uri}")
        text = f"Hello, {match.group('name')}! Welcome to the Sourcegraph MCP Server."

    return {"contents": [{"uri": uri, "mimeType": "text/plain", "text": text}]}


def list_prompts() -> list[dict[str, Any]]:
    return [
        {
            "name": ASSISTANT_PROMPT,
            "description": "A prompt that introduces Sourcegraph search capabilities",
            "arguments": [],
        }
    ]


def get_prompt(name: str) -> dict[str, Any]:
    if name != ASSISTANT_PROMPT:
        raise PromptNotFoundError(f"Prompt not found: {name}")
    return {
        "description": "A prompt that introduces Sourcegraph search capabilities",
        "messages": [
            {
                "role": "assistant",
                "content": {
                    "type": "text",
                    "text": (
                        "I'm a Sourcegraph assistant that can help you search through code "
                        "repositories. You can ask me to search for code, commits, or diffs."
                    ),
                },
            }
        ],
    }
