#!/usr/bin/env python3
"""
devserver-mcp - Main entry point for python -m devserver_mcp
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .installer import (
    DEFAULT_SERVER_NAME,
    default_config_file,
    default_server_entry,
    ensure_server_entry,
    remove_server_entry,
)
from .utils.config import load_config
from .utils.errors import DevServerError
from .utils.logging import MODE_ENV_VAR, is_stdio_mode, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devserver-mcp",
        description="MCP server for managing local development servers",
    )
    parser.add_argument("--version", action="version", version=f"devserver-mcp {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the MCP server (default)")
    serve.add_argument("--config", type=str, help="Config file path")
    serve.add_argument("--debug", action="store_true", help="Enable debug mode")
    serve.add_argument("--transport", choices=["stdio", "sse", "http"],
                       help="Transport type (defaults to mcp.transport from config)")
    serve.add_argument("--port", type=int, help="Port for network transports (defaults to mcp.port)")

    for name, help_text in (("install", "Register this server in the MCP host config"),
                            ("uninstall", "Remove this server from the MCP host config")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--config-file", type=Path, help="Host config file (defaults to Claude Desktop)")
        sub.add_argument("--name", default=DEFAULT_SERVER_NAME, help="Server entry name")

    return parser


def _set_stdio_mode(enabled: bool) -> None:
    # stdout carries JSON-RPC in stdio mode
    if enabled:
        os.environ[MODE_ENV_VAR] = "stdio"
    else:
        os.environ.pop(MODE_ENV_VAR, None)


def serve(args: argparse.Namespace) -> int:
    if args.config:
        os.environ["DEVSERVER_CONFIG_PATH"] = args.config
    if args.debug:
        os.environ["DEVSERVER_DEBUG"] = "true"
    log_level = "DEBUG" if args.debug else "INFO"

    # Keep stdout quiet until the configured transport is known
    _set_stdio_mode(args.transport in (None, "stdio"))
    setup_logging("devserver-mcp", log_level=log_level)

    mcp_config = asyncio.run(load_config()).mcp
    transport = args.transport or mcp_config.transport
    if (transport == "stdio") != is_stdio_mode():
        _set_stdio_mode(transport == "stdio")
        setup_logging("devserver-mcp", log_level=log_level)

    from .server import run_server
    run_server(
        transport=transport,
        host=mcp_config.host,
        port=args.port or mcp_config.port,
    )
    return 0


def install(args: argparse.Namespace) -> int:
    setup_logging("devserver-mcp", enable_json=False)
    path = args.config_file or default_config_file()
    if ensure_server_entry(path, args.name, default_server_entry()):
        print(f"Added '{args.name}' to {path}")
        print("Restart your MCP client to load the server.")
    else:
        print(f"'{args.name}' is already configured in {path}")
    return 0


def uninstall(args: argparse.Namespace) -> int:
    setup_logging("devserver-mcp", enable_json=False)
    path = args.config_file or default_config_file()
    if remove_server_entry(path, args.name):
        print(f"Removed '{args.name}' from {path}")
    else:
        print(f"'{args.name}' is not configured in {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for python -m devserver_mcp"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        args = parser.parse_args(["serve", *(argv if argv is not None else sys.argv[1:])])

    handlers = {"serve": serve, "install": install, "uninstall": uninstall}
    try:
        return handlers[args.command](args)
    except KeyboardInterrupt:
        print("\ndevserver-mcp stopped by user", file=sys.stderr)
        return 0
    except DevServerError as e:
        print(f"devserver-mcp error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
