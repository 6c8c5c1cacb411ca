"""
Tools components for devserver-mcp.

This package provides the handlers behind the MCP tools.
"""

from .server_tools import ServerTools

__all__ = [
    'ServerTools',
]
