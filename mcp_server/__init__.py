"""MCP server exposing Web Game Builder tools.

This module implements the Model Context Protocol (MCP) server that
exposes the core webgame_builder functionality to AI tools and
external systems.

MCP tools:
- Never raise; failures come back as structured errors with codes
- Map directly to the build service used by the HTTP API
"""

from mcp_server.server import mcp

__all__ = ["mcp"]
