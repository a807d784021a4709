"""MCP server implementation for Lineage."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from lineage.core.exceptions import LineageError
from lineage.core.models import Project, file_key
from lineage.core.storage import ProjectRepository, get_default_db_path
from lineage.languages import ParsedUnit

server = Server("lineage")


def _get_store() -> ProjectRepository:
    """Get the store for the current directory."""
    db_path = get_default_db_path(Path.cwd())
    if not db_path.exists():
        raise FileNotFoundError(
            f"No lineage store found. Run 'lineage process' first.\nExpected: {db_path}"
        )
    return ProjectRepository(db_path)


def _project_to_dict(project: Project) -> dict[str, Any]:
    """Convert a Project to a JSON-serializable dict."""
    return {
        "name": project.name,
        "uri": project.descriptor.uri,
        "parser": project.descriptor.parser,
        "tracked_files": len(project.snapshot),
        "revisions": [
            {
                "commit_id": revision.commit_id,
                "changed_files": [
                    {
                        "path": f.path,
                        "change_type": f.change_type.value,
                        "parsed": f.fingerprint is not None,
                    }
                    for f in revision.changed_files
                ],
            }
            for revision in project.revisions
        ],
    }


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="lineage_projects",
            description="List the repositories whose history has been processed.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="lineage_revisions",
            description=(
                "Show the revisions of a processed repository, newest first. "
                "Each revision lists the tracked files the commit changed and how."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Project name",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of revisions to return (default: 50)",
                        "default": 50,
                    },
                },
                "required": ["name"],
            },
        ),
        Tool(
            name="lineage_calls",
            description=(
                "Show the method invocations of a changed file at a commit, "
                "grouped by the function or method that contains them."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Project name"},
                    "commit": {"type": "string", "description": "Commit id"},
                    "path": {"type": "string", "description": "File path in the repository"},
                },
                "required": ["name", "commit", "path"],
            },
        ),
        Tool(
            name="lineage_stats",
            description="Get statistics about the processed repositories.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "lineage_projects":
            result = _handle_projects()
        elif name == "lineage_revisions":
            result = _handle_revisions(arguments["name"], arguments.get("limit", 50))
        elif name == "lineage_calls":
            result = _handle_calls(arguments["name"], arguments["commit"], arguments["path"])
        elif name == "lineage_stats":
            result = _handle_stats()
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except (FileNotFoundError, LineageError, KeyError) as e:
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


def _handle_projects() -> dict[str, Any]:
    """Handle lineage_projects tool."""
    with _get_store() as store:
        return {
            "results": [
                {
                    "name": s.name,
                    "uri": s.uri,
                    "parser": s.parser,
                    "revisions": s.revisions,
                    "processed_at": s.processed_at,
                }
                for s in store.projects.summaries()
            ]
        }


def _handle_revisions(name: str, limit: int) -> dict[str, Any]:
    """Handle lineage_revisions tool."""
    with _get_store() as store:
        project = store.projects.get(name)

    result = _project_to_dict(project)
    result["total_revisions"] = len(result["revisions"])
    result["revisions"] = result["revisions"][:limit]
    return result


def _handle_calls(name: str, commit: str, path: str) -> dict[str, Any]:
    """Handle lineage_calls tool."""
    with _get_store() as store:
        content = store.contents.get(file_key(name, commit), path)

    if content is None:
        return {"error": f"No parsed content for {path} at {commit}", "results": []}

    unit = ParsedUnit.from_json(content.payload)
    return {
        "fingerprint": content.fingerprint,
        "results": [
            {
                "method": method.qualified_name,
                "line": method.line,
                "calls": [
                    {
                        "method": call.method,
                        "receiver": call.receiver,
                        "signature": call.signature,
                        "arguments": [a.text for a in call.arguments],
                        "line": call.line,
                    }
                    for call in method.invocations
                ],
            }
            for method in unit.methods
        ],
    }


def _handle_stats() -> dict[str, Any]:
    """Handle lineage_stats tool."""
    with _get_store() as store:
        stats = store.get_stats()
    return {
        "projects": stats["projects"],
        "revisions": stats["revisions"],
        "changed_files": stats["changed_files"],
        "contents": stats["contents"],
        "last_processed": str(stats["last_processed"]) if stats["last_processed"] else None,
    }


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
