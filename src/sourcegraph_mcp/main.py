import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REQUIRED_ENV = ["SOURCEGRAPH_URL", "SOURCEGRAPH_TOKEN"]
OPTIONAL_ENV = [
    "PORT",
    "MCP_PORT",
    "ROUTING_MODE",
    "LLM_PROVIDER",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
]
SECRET_ENV = {"SOURCEGRAPH_TOKEN", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"}


def configure_logging(level: str = "INFO") -> None:
    # stderr only: stdout carries the STDIO protocol stream
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Sourcegraph MCP - Sourcegraph code search as MCP tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sourcegraph-mcp serve                          Start the HTTP/SSE MCP server
  sourcegraph-mcp serve --transport stdio        Start the STDIO MCP server
  sourcegraph-mcp serve --routing strict         Require a sessionId on every message
  sourcegraph-mcp api                            Start the REST search API
  sourcegraph-mcp search "useState" --type file  Run a search
  sourcegraph-mcp search "commits by jane" -n    Run a natural language search
  sourcegraph-mcp translate "find auth code"     Show a query translation
  sourcegraph-mcp test-connection                Check Sourcegraph credentials
  sourcegraph-mcp check-env                      Show environment variable status
  sourcegraph-mcp settings                       Show current configuration
""",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the MCP server")
    serve_parser.add_argument(
        "--transport", "-t", choices=["http", "stdio"], default="http",
        help="Transport to serve (default: http)",
    )
    serve_parser.add_argument("--host", help="Bind address (default: MCP_HOST)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port (default: MCP_PORT)")
    serve_parser.add_argument(
        "--routing", choices=["strict", "lenient"],
        help="Session routing mode (default: ROUTING_MODE)",
    )

    api_parser = subparsers.add_parser("api", help="Start the REST search API")
    api_parser.add_argument("--host", help="Bind address (default: MCP_HOST)")
    api_parser.add_argument("--port", "-p", type=int, help="Port (default: PORT)")

    search_parser = subparsers.add_parser("search", help="Search Sourcegraph")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "--type", "-t", choices=["file", "commit", "diff"], default="file", help="Result type"
    )
    search_parser.add_argument(
        "--natural", "-n", action="store_true",
        help="Treat the query as plain English and translate it first",
    )

    translate_parser = subparsers.add_parser("translate", help="Translate plain English to a query")
    translate_parser.add_argument("text", help="Natural language search request")

    subparsers.add_parser("test-connection", help="Check Sourcegraph connectivity")

    subparsers.add_parser("check-env", help="Show environment variable status")

    subparsers.add_parser("settings", help="Show current configuration")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)
    elif args.command == "serve":
        run_serve(args.transport, args.host, args.port, args.routing)
    elif args.command == "api":
        run_api(args.host, args.port)
    elif args.command == "search":
        asyncio.run(run_search(args.query, args.type, args.natural))
    elif args.command == "translate":
        asyncio.run(run_translate(args.text))
    elif args.command == "test-connection":
        asyncio.run(run_tool("test-connection"))
    elif args.command == "check-env":
        run_check_env()
    elif args.command == "settings":
        run_settings()
    else:
        parser.print_help()


def _load_settings(**server_overrides):
    from pydantic import ValidationError
    from rich.console import Console

    from sourcegraph_mcp.config import ServerSettings, Settings

    try:
        settings = Settings()
        if server_overrides:
            values = settings.server.model_dump()
            values.update({k: v for k, v in server_overrides.items() if v is not None})
            settings = settings.model_copy(update={"server": ServerSettings(**values)})
    except ValidationError as e:
        Console(stderr=True).print(f"[red]Invalid configuration:[/red]\n{e}")
        sys.exit(1)
    return settings


def run_serve(
    transport: str,
    host: str | None = None,
    port: int | None = None,
    routing: str | None = None,
):
    settings = _load_settings(routing_mode=routing, mcp_host=host, mcp_port=port)
    configure_logging(settings.server.log_level)

    from sourcegraph_mcp.mcp import MCPServer

    server = MCPServer(settings=settings)

    if transport == "stdio":
        asyncio.run(server.run_stdio())
        return

    from sourcegraph_mcp.transport import create_app, serve

    app = create_app(server, settings)
    serve(app, settings.server.mcp_host, settings.server.mcp_port, settings.server.log_level)


def run_api(host: str | None = None, port: int | None = None):
    settings = _load_settings(mcp_host=host, port=port)
    configure_logging(settings.server.log_level)

    from sourcegraph_mcp.api import create_api_app
    from sourcegraph_mcp.mcp import MCPServer
    from sourcegraph_mcp.transport import serve

    app = create_api_app(MCPServer(settings=settings))
    serve(app, settings.server.mcp_host, settings.server.port, settings.server.log_level)


async def run_search(query: str, search_type: str, natural: bool = False):
    if natural:
        await run_tool("natural-search", {"query": query})
    else:
        await run_tool("search-code", {"query": query, "type": search_type})


async def run_tool(name: str, arguments: dict | None = None):
    from rich.console import Console
    from rich.markdown import Markdown

    from sourcegraph_mcp.mcp import MCPServer

    console = Console()
    settings = _load_settings()
    configure_logging("WARNING")

    server = MCPServer(settings=settings)
    try:
        with console.status(f"Running {name}..."):
            result = await server.invoke(name, arguments or {})
    finally:
        await server.aclose()

    if result.is_error:
        console.print(f"[red]{result.text}[/red]")
        sys.exit(1)

    console.print(Markdown(result.text))


async def run_translate(text: str):
    from rich.console import Console
    from rich.table import Table

    from sourcegraph_mcp.mcp import MCPServer
    from sourcegraph_mcp.search.query_builder import build_search_query, parse_query

    console = Console()
    settings = _load_settings()
    configure_logging("WARNING")

    server = MCPServer(settings=settings)
    try:
        translated = await server.translator.translate(text)
    finally:
        await server.aclose()
    analysis = parse_query(translated)

    table = Table(title="Translation", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Input", text)
    table.add_row("Translated", translated)
    table.add_row(
        "Final Query",
        build_search_query(translated, analysis.search_type or "file", count=settings.search_result_count),
    )
    table.add_row("Type", analysis.search_type.value if analysis.search_type else "file (default)")
    table.add_row("Terms", analysis.terms or "-")
    table.add_row("Author", analysis.author or "-")
    table.add_row("After", analysis.after or "-")
    table.add_row("Repositories", ", ".join(analysis.repos) or "-")

    console.print(table)


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


def run_check_env():
    import os

    from rich.console import Console
    from rich.table import Table

    console = Console()

    table = Table(title="Environment")
    table.add_column("Variable", style="cyan")
    table.add_column("Required")
    table.add_column("Value")

    missing = []
    for name in REQUIRED_ENV + OPTIONAL_ENV:
        value = os.environ.get(name, "")
        required = name in REQUIRED_ENV
        if not value:
            shown = "[red]not set[/red]" if required else "[dim]not set[/dim]"
            if required:
                missing.append(name)
        elif name in SECRET_ENV:
            shown = f"[green]{_mask(value)}[/green]"
        else:
            shown = f"[green]{value}[/green]"
        table.add_row(name, "yes" if required else "no", shown)

    console.print(table)

    if missing:
        console.print(f"\n[red]Missing required variables: {', '.join(missing)}[/red]")
        sys.exit(1)
    console.print("\n[green]All required variables are set.[/green]")


def run_settings():
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table

    console = Console()
    settings = _load_settings()

    sg_table = Table(title="Sourcegraph Configuration", show_header=False)
    sg_table.add_column("Setting", style="cyan")
    sg_table.add_column("Value", style="green")

    sg_table.add_row("URL", settings.sourcegraph.sourcegraph_url or "[red]not set[/red]")
    token_status = "[green]set[/green]" if settings.sourcegraph_token else "[red]not set[/red]"
    sg_table.add_row("Token", token_status)
    sg_table.add_row("Timeout", f"{settings.sourcegraph.sourcegraph_timeout}s")
    sg_table.add_row("Result Count", str(settings.search_result_count))

    console.print(sg_table)
    console.print()

    ai_table = Table(title="Natural Language Translation", show_header=False)
    ai_table.add_column("Setting", style="cyan")
    ai_table.add_column("Value", style="green")

    ai_table.add_row("LLM Provider", settings.ai.llm_provider)
    ai_table.add_row("LLM Model", settings.llm_model)
    ai_table.add_row("Temperature", str(settings.ai.llm_temperature))
    ai_table.add_row("Timeout", f"{settings.ai.llm_timeout}s")

    openai_key = settings.ai.openai_api_key.get_secret_value()
    ai_table.add_row("OpenAI API Key", "[green]set[/green]" if openai_key else "[red]not set[/red]")

    anthropic_key = settings.ai.anthropic_api_key.get_secret_value()
    ai_table.add_row("Anthropic API Key", "[green]set[/green]" if anthropic_key else "[red]not set[/red]")

    console.print(ai_table)
    console.print()

    server = settings.server
    console.print(
        Panel(
            f"[cyan]MCP:[/cyan] {server.mcp_host}:{server.mcp_port}\n"
            f"[cyan]REST API:[/cyan] {server.mcp_host}:{server.port}\n"
            f"[cyan]Routing:[/cyan] {server.routing_mode.value}\n"
            f"[cyan]Session Idle Timeout:[/cyan] {server.session_idle_timeout}s "
            f"(sweep every {server.session_sweep_interval}s)\n"
            f"[cyan]Log Level:[/cyan] {server.log_level}",
            title="Server Configuration",
            border_style="dim",
        )
    )


if __name__ == "__main__":
    main()
