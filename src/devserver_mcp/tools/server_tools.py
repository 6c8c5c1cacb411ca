"""
MCP tool handlers for development-server management.

Each handler validates its arguments, calls the detector or the lifecycle
controller and shapes a JSON-serializable result. Lifecycle errors are
raised to the caller unchanged.
"""

import json
from typing import Any, Dict, List, Optional

from ..inventory.detector import ProcessDetector
from ..inventory.lifecycle import LifecycleController
from ..utils.errors import ValidationError
from ..utils.logging import get_logger
from ..utils.validators import (
    validate_args,
    validate_command,
    validate_cwd,
    validate_pid,
    validate_port,
)


logger = get_logger("devserver-mcp.tools.servers")


class ServerTools:
    """
    Tool handlers backing the MCP surface.

    Provides:
    - list_servers / get_server_info / get_server_by_port: inventory queries
    - start_server / stop_server / restart_server: lifecycle operations
    - list_processes: unfiltered process table access
    """

    def __init__(self, detector: ProcessDetector, controller: LifecycleController):
        """Initialize tool handlers."""
        self.detector = detector
        self.controller = controller

    async def list_servers(self) -> Dict[str, Any]:
        """List detected development servers."""
        result = await self.detector.detect()
        response: Dict[str, Any] = {
            "status": "ok" if result.ok else "error",
            "count": len(result.servers),
            "servers": [server.to_dict() for server in result.servers],
            "cached": result.from_cache,
        }
        if not result.ok:
            response["error"] = result.error.to_dict()["error"]
        return response

    async def get_server_info(self, pid: Any) -> Dict[str, Any]:
        """Fresh information about one server process."""
        pid = validate_pid(pid)
        server = await self.detector.get_server_by_pid(pid)
        if server is None:
            return {"status": "not_found", "pid": pid}
        return {"status": "found", "server": server.to_dict()}

    async def get_server_by_port(self, port: Any) -> Dict[str, Any]:
        """Find the server listening on a port."""
        port = validate_port(port)
        server = await self.detector.get_server_by_port(port)
        if server is None:
            return {"status": "not_found", "port": port}
        return {"status": "found", "server": server.to_dict()}

    async def stop_server(self, pid: Any) -> Dict[str, Any]:
        """Stop a server process and its children."""
        pid = validate_pid(pid)
        await self.controller.stop_server(pid)
        return {
            "success": True,
            "pid": pid,
            "message": f"Server with PID {pid} stopped",
        }

    async def start_server(
        self,
        command: Any,
        args: Optional[List[str]] = None,
        cwd: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start a detached server process."""
        command = validate_command(command)
        args = validate_args(args)
        work_dir = validate_cwd(cwd)

        started = await self.controller.start_server(
            command, args, str(work_dir) if work_dir else None
        )
        display = " ".join([command, *args])
        return {
            "success": True,
            "pid": started["pid"],
            "command": display,
            "cwd": started["cwd"],
            "message": f"Started '{display}' with PID {started['pid']}",
        }

    async def restart_server(self, pid: Any) -> Dict[str, Any]:
        """Restart a server process with the same command line."""
        pid = validate_pid(pid)
        restarted = await self.controller.restart_server(pid)
        return {
            "success": True,
            "pid": restarted["pid"],
            "previous_pid": pid,
            "message": f"Server restarted: PID {pid} -> {restarted['pid']}",
        }

    async def list_processes(self, filter: Optional[str] = None) -> Dict[str, Any]:
        """List readable processes, optionally filtered by name or command."""
        if filter is not None and not isinstance(filter, str):
            raise ValidationError("filter", filter, "filter must be a string")

        records = await self.detector.list_processes(filter or None)
        logger.debug("processes_listed", count=len(records), filter=filter)
        return {
            "count": len(records),
            "processes": [record.to_dict() for record in records],
        }

    async def servers_resource(self) -> str:
        """Current server list as a JSON document."""
        return json.dumps(await self.list_servers(), indent=2)


__all__ = ['ServerTools']
