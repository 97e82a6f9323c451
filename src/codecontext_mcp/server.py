"""MCP server for codecontext-mcp."""

import asyncio
import json
import logging
import os
import sys
from typing import Optional

from mcp.server import Server
from mcp.types import Tool, TextContent

from .parser.logger import ParserLogger, configure_logging
from .parser.manager import ManagerBuilder, ParserManager
from .tools.list_languages import list_languages
from .tools.classify_file import classify_file
from .tools.get_file_outline import get_file_outline
from .tools.get_file_features import get_file_features


PROFILES = {
    "production": ManagerBuilder.for_production,
    "development": ManagerBuilder.for_development,
    "testing": ManagerBuilder.for_testing,
}

logger = logging.getLogger(__name__)

# Create server
server = Server("codecontext-mcp")

_manager: Optional[ParserManager] = None


def get_manager() -> ParserManager:
    """Build the shared manager on first use.

    CODECONTEXT_PROFILE selects the config preset (production by default);
    CODECONTEXT_PROJECT_ROOT anchors relative file paths.
    """
    global _manager
    if _manager is None:
        profile = os.environ.get("CODECONTEXT_PROFILE", "production")
        builder = PROFILES.get(profile, ManagerBuilder.for_production)()
        builder.with_logger(ParserLogger())
        project_root = os.environ.get("CODECONTEXT_PROJECT_ROOT")
        if project_root:
            builder.with_project_root(project_root)
        _manager = builder.build()
    return _manager


_FILE_ARGUMENTS = {
    "file_path": {
        "type": "string",
        "description": "Path to the source file (relative paths resolve against CODECONTEXT_PROJECT_ROOT)"
    },
    "content": {
        "type": "string",
        "description": "Optional source text to parse instead of reading the file"
    },
    "language": {
        "type": "string",
        "description": "Optional language override",
        "enum": ["cpp", "dart", "swift"]
    },
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="list_languages",
            description="List the supported languages and the file extensions mapped to each.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="classify_file",
            description="Classify a file path by language, with generated-file and test-file heuristics.",
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": _FILE_ARGUMENTS["file_path"],
                },
                "required": ["file_path"]
            }
        ),
        Tool(
            name="get_file_outline",
            description="Parse a C++, Dart or Swift file and return its symbols (classes, functions, methods, variables, ...) nested by containment, with kinds, visibility and signatures.",
            inputSchema={
                "type": "object",
                "properties": dict(_FILE_ARGUMENTS),
                "required": ["file_path"]
            }
        ),
        Tool(
            name="get_file_features",
            description="Parse a file and return the detected language features: C++ feature flags, Dart async and Flutter analysis, Swift framework flags and feature counts.",
            inputSchema={
                "type": "object",
                "properties": dict(_FILE_ARGUMENTS),
                "required": ["file_path"]
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        manager = get_manager()
        if name == "list_languages":
            result = list_languages(manager=manager)
        elif name == "classify_file":
            result = classify_file(
                file_path=arguments["file_path"],
                manager=manager
            )
        elif name == "get_file_outline":
            result = get_file_outline(
                file_path=arguments["file_path"],
                content=arguments.get("content"),
                language=arguments.get("language"),
                manager=manager
            )
        elif name == "get_file_features":
            result = get_file_features(
                file_path=arguments["file_path"],
                content=arguments.get("content"),
                language=arguments.get("language"),
                manager=manager
            )
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except Exception as e:
        logger.exception("tool %s failed", name)
        return [TextContent(type="text", text=json.dumps({"error": str(e)}, indent=2))]


async def run_server():
    """Run the MCP server."""
    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def main():
    """Main entry point."""
    # stdout carries the protocol
    logging.basicConfig(stream=sys.stderr, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    configure_logging(get_manager().config.logging)
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
