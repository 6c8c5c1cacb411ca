"""
devserver-mcp - An MCP server for local development-server processes.

This package lets an MCP client:
- List running development servers and the ports they listen on
- Look up the process behind a port
- Start, stop and restart server processes
"""

__version__ = "0.1.0"
__author__ = "devserver-mcp contributors"

__all__ = [
    '__version__',
]
