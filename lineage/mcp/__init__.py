"""
MCP server for Lineage.

Exposes processed repository histories to LLMs via the Model Context Protocol.

Tools:
    - lineage_projects: List processed repositories
    - lineage_revisions: Revisions of a repository, newest first
    - lineage_calls: Method invocations of a changed file at a commit
    - lineage_stats: Get store statistics

Usage:
    Run: lineage-mcp
"""

import asyncio

from lineage.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
