"""
devserver-mcp server - FastMCP implementation.

Exposes the process inventory and lifecycle operations as MCP tools:
- list_servers, get_server_info, get_server_by_port
- start_server, stop_server, restart_server
- list_processes
and the ``devserver://servers`` resource.
"""

import functools
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from . import __version__
from .inventory.detector import ProcessDetector
from .inventory.lifecycle import LifecycleController
from .inventory.sources import PsutilProcessSource, select_socket_source
from .tools.server_tools import ServerTools
from .utils.config import DevServerConfig, load_config
from .utils.errors import DevServerError
from .utils.logging import get_logger, setup_logging

logger = get_logger("devserver-mcp.server")


class ServerState:
    """Components shared by all tools for the lifetime of the server."""

    def __init__(self):
        self.config: Optional[DevServerConfig] = None
        self.detector: Optional[ProcessDetector] = None
        self.controller: Optional[LifecycleController] = None
        self.tools: Optional[ServerTools] = None
        self.initialized = False
        self._startup_time = datetime.now(timezone.utc)

    async def initialize(self, config_paths: Optional[List[str]] = None) -> None:
        """Load configuration and build the inventory components."""
        if self.initialized:
            logger.debug("server_already_initialized")
            return

        self.config = await load_config(config_paths)

        log_config = self.config.logging
        setup_logging(
            self.config.app_name,
            log_level="DEBUG" if self.config.debug else log_config.level,
            log_dir=log_config.directory,
            enable_json=log_config.format == "json",
            max_bytes=log_config.max_size,
            backup_count=log_config.backup_count,
            enable_sentry=log_config.enable_sentry,
            sentry_dsn=log_config.sentry_dsn,
        )

        self.build(self.config)
        self.initialized = True
        logger.info(
            "server_initialized",
            version=__version__,
            socket_source=self.detector.socket_source.name,
            pid=self.detector.own_pid,
        )

    def build(self, config: DevServerConfig) -> None:
        """Wire the detector, controller and tool handlers from a configuration."""
        process_source = PsutilProcessSource()
        socket_source = select_socket_source(
            config.inventory.socket_source,
            timeout=config.inventory.socket_timeout,
        )
        self.config = config
        self.detector = ProcessDetector(process_source, socket_source)
        self.controller = LifecycleController.from_config(self.detector, config.lifecycle)
        self.tools = ServerTools(self.detector, self.controller)

    async def cleanup(self) -> None:
        """Release components."""
        if self.detector is not None:
            self.detector.clear_cache()
        uptime = (datetime.now(timezone.utc) - self._startup_time).total_seconds()
        logger.info("server_stopped", uptime_seconds=round(uptime, 1))
        self.initialized = False


state = ServerState()


@asynccontextmanager
async def lifespan(app):
    """Initialize server state for the lifetime of the MCP session."""
    try:
        # DEVSERVER_CONFIG_PATH is honoured by load_config
        await state.initialize()
    except Exception as e:
        logger.error("server_initialization_failed", error=str(e), exc_info=True)
        raise

    try:
        yield
    finally:
        await state.cleanup()


mcp_server = FastMCP(
    name="devserver-mcp",
    instructions="""Local development-server management via MCP.

Tools for:
- Listing running development servers and their listening ports
- Finding the process behind a port
- Starting, stopping and restarting server processes
- Listing all processes, optionally filtered

Server lists are cached for 30 seconds; start/stop/restart clear the cache.""",
    lifespan=lifespan,
)


def require_initialized(func):
    """Decorator to ensure server state is built before a tool runs."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        if not state.initialized or state.tools is None:
            raise ToolError("[NOT_INITIALIZED] Server not initialized")
        return await func(*args, **kwargs)
    return wrapper


def report_errors(operation: str):
    """Decorator turning DevServerError into an MCP tool error with its code."""
    def decorator(func):

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except DevServerError as e:
                logger.warning(
                    "tool_failed",
                    tool=operation,
                    code=e.code,
                    error=e.message,
                )
                raise ToolError(str(e)) from e
        return wrapper
    return decorator


# ===== TOOLS =====

@mcp_server.tool()
@require_initialized
@report_errors("list_servers")
async def list_servers() -> Dict[str, Any]:
    """
    List running development servers.

    Returns every process that looks like a development server (node, python,
    java, nginx, vite...) with its pid, first listening port, CPU, memory and
    uptime. Results may be up to 30 seconds old; "cached" tells whether they
    came from the cache.
    """
    return await state.tools.list_servers()


@mcp_server.tool()
@require_initialized
@report_errors("get_server_info")
async def get_server_info(pid: int) -> Dict[str, Any]:
    """
    Get fresh details about one server process.

    Args:
        pid: Process ID
    """
    return await state.tools.get_server_info(pid)


@mcp_server.tool()
@require_initialized
@report_errors("get_server_by_port")
async def get_server_by_port(port: int) -> Dict[str, Any]:
    """
    Find the development server listening on a TCP port.

    Args:
        port: Port number (1-65535)
    """
    return await state.tools.get_server_by_port(port)


@mcp_server.tool()
@require_initialized
@report_errors("stop_server")
async def stop_server(pid: int) -> Dict[str, Any]:
    """
    Stop a server process and its children.

    Sends a graceful termination first and force-kills after a timeout.

    Args:
        pid: Process ID to stop
    """
    return await state.tools.stop_server(pid)


@mcp_server.tool()
@require_initialized
@report_errors("start_server")
async def start_server(
    command: str,
    args: Optional[List[str]] = None,
    cwd: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Start a server process in the background.

    The process is detached from this server. Success means it was spawned,
    not that it is serving yet.

    Args:
        command: Executable to run (resolved on PATH)
        args: Command arguments
        cwd: Working directory
    """
    return await state.tools.start_server(command, args, cwd)


@mcp_server.tool()
@require_initialized
@report_errors("restart_server")
async def restart_server(pid: int) -> Dict[str, Any]:
    """
    Restart a server process with the same command line and directory.

    If the old process stops but the new one cannot start, the error code is
    PARTIAL_FAILURE and nothing is running any more.

    Args:
        pid: Process ID to restart
    """
    return await state.tools.restart_server(pid)


@mcp_server.tool()
@require_initialized
@report_errors("list_processes")
async def list_processes(filter: Optional[str] = None) -> Dict[str, Any]:
    """
    List all readable processes.

    Args:
        filter: Case-insensitive text matched against process name and command line
    """
    return await state.tools.list_processes(filter)


# ===== RESOURCES =====

@mcp_server.resource("devserver://servers")
@require_initialized
async def servers_resource() -> str:
    """Current development servers as JSON."""
    return await state.tools.servers_resource()


def run_server(transport: str = "stdio", host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the MCP server until the client disconnects."""
    logger.info("server_starting", version=__version__, transport=transport)

    if transport == "stdio":
        mcp_server.run(show_banner=False)
    else:
        mcp_server.run(transport=transport, host=host or "127.0.0.1", port=port or 8000)


__all__ = [
    'mcp_server',
    'state',
    'ServerState',
    'run_server',
]
