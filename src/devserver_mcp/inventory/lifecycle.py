"""
Lifecycle controller for development-server processes.

Starts, stops and restarts processes and keeps the detector's inventory
consistent: every successful mutation clears the cached server list. The
controller holds no record of the processes it started.
"""

import asyncio
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import psutil

from ..utils.config import LifecycleConfig
from ..utils.errors import (
    NotFoundError,
    PartialFailureError,
    ProtectedProcessError,
    SpawnError,
    TerminationError,
)
from ..utils.logging import get_logger
from .detector import ProcessDetector
from .sources import ProcessSource

logger = get_logger("devserver-mcp.inventory.lifecycle")


def _detach_options() -> Dict[str, Any]:
    """Spawn options that detach the child from this server."""
    if sys.platform == "win32":
        return {
            "creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP,
        }
    return {"start_new_session": True}


def _is_alive(proc: psutil.Process) -> bool:
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True


def _is_zombie(proc: psutil.Process) -> bool:
    try:
        return proc.status() == psutil.STATUS_ZOMBIE
    except psutil.AccessDenied:
        return False


def _reap(proc: psutil.Process) -> None:
    """Collect an exited process if it is our child; others belong to their parent."""
    try:
        proc.wait(timeout=0)
    except psutil.Error as e:
        logger.debug("zombie_not_reaped", pid=proc.pid, error=str(e))


class LifecycleController:
    """Start/stop/restart operations bound to one detector."""

    def __init__(
        self,
        detector: ProcessDetector,
        process_source: Optional[ProcessSource] = None,
        stop_timeout: float = 5.0,
        kill_timeout: float = 3.0,
        restart_delay: float = 1.0,
        refresh_after_mutation: bool = False,
        own_pid: Optional[int] = None,
    ):
        self.detector = detector
        self.process_source = process_source or detector.process_source
        self.stop_timeout = stop_timeout
        self.kill_timeout = kill_timeout
        self.restart_delay = restart_delay
        self.refresh_after_mutation = refresh_after_mutation
        self.own_pid = own_pid if own_pid is not None else detector.own_pid

    @classmethod
    def from_config(
        cls,
        detector: ProcessDetector,
        config: LifecycleConfig,
        process_source: Optional[ProcessSource] = None,
    ) -> "LifecycleController":
        """Build a controller from the lifecycle configuration section."""
        return cls(
            detector,
            process_source=process_source,
            stop_timeout=config.stop_timeout,
            kill_timeout=config.kill_timeout,
            restart_delay=config.restart_delay,
            refresh_after_mutation=config.refresh_after_mutation,
        )

    async def start_server(
        self,
        command: str,
        args: Optional[Sequence[str]] = None,
        cwd: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Spawn a detached process and return its pid immediately.

        Args:
            command: Executable name or path
            args: Command arguments
            cwd: Working directory (must exist)

        Returns:
            Dictionary with pid, resolved command, args and cwd

        Raises:
            SpawnError: If the directory or command is invalid or spawning fails
        """
        args = list(args or [])
        if not command or not command.strip():
            raise SpawnError("Command cannot be empty")

        work_dir: Optional[Path] = None
        if cwd:
            work_dir = Path(cwd).expanduser()
            if not work_dir.is_dir():
                raise SpawnError(f"Working directory does not exist: {cwd}")

        executable = self._resolve_command(command, work_dir)

        try:
            # A Popen handle does not kill its child when collected
            process = await asyncio.to_thread(
                subprocess.Popen,
                [executable, *args],
                cwd=str(work_dir) if work_dir else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **_detach_options(),
            )
        except OSError as e:
            raise SpawnError(f"Failed to start {command}: {e}", cause=e) from e

        logger.info(
            "server_started",
            pid=process.pid,
            command=executable,
            args=args,
            cwd=str(work_dir) if work_dir else None,
        )
        await self._invalidate()

        return {
            "pid": process.pid,
            "command": executable,
            "args": args,
            "cwd": str(work_dir) if work_dir else None,
        }

    async def stop_server(self, pid: int) -> bool:
        """
        Terminate a process and its children.

        Raises:
            ProtectedProcessError: If pid is this server's own process
            NotFoundError: If no such process exists or it has already exited
            TerminationError: If the process survives the kill or access is denied
        """
        if pid == self.own_pid:
            raise ProtectedProcessError(pid)

        try:
            proc = psutil.Process(pid)
            exited = _is_zombie(proc)
        except psutil.NoSuchProcess as e:
            raise NotFoundError(pid, cause=e) from e

        if exited:
            _reap(proc)
            logger.info("server_already_exited", pid=pid)
            self.detector.clear_cache()
            raise NotFoundError(pid)

        try:
            await asyncio.to_thread(self._terminate_tree, proc)
        except TerminationError:
            # Some children may already be gone
            self.detector.clear_cache()
            raise

        logger.info("server_stopped", pid=pid)
        await self._invalidate()
        return True

    async def restart_server(self, pid: int) -> Dict[str, Any]:
        """
        Stop a process and start it again with the same arguments and directory.

        Raises:
            NotFoundError: If the process does not exist or has already exited
            SpawnError: If its command line cannot be read (nothing was stopped)
            TerminationError: If the stop fails (the process keeps running)
            PartialFailureError: If the stop succeeded but the new start failed
        """
        if pid == self.own_pid:
            raise ProtectedProcessError(pid)

        record = await self.process_source.get_process(pid)
        if record is None or record.exited:
            raise NotFoundError(pid)
        if not record.argv:
            raise SpawnError(f"Cannot read the command line of process {pid}")

        argv: List[str] = list(record.argv)
        cwd = record.cwd

        await self.stop_server(pid)
        await asyncio.sleep(self.restart_delay)

        try:
            started = await self.start_server(argv[0], argv[1:], cwd)
        except SpawnError as e:
            logger.error("server_restart_partial_failure", pid=pid, error=e.message)
            raise PartialFailureError(pid, e) from e

        logger.info("server_restarted", previous_pid=pid, pid=started["pid"])
        return {**started, "previous_pid": pid}

    def _resolve_command(self, command: str, work_dir: Optional[Path]) -> str:
        candidate = Path(command).expanduser()
        # Relative paths like ./bin/dev are resolved against the target directory
        if work_dir is not None and not candidate.is_absolute() and len(candidate.parts) > 1:
            candidate = work_dir / candidate

        resolved = shutil.which(str(candidate))
        if resolved is None:
            raise SpawnError(f"Command not found or not executable: {command}")
        return resolved

    def _terminate_tree(self, proc: psutil.Process) -> None:
        pid = proc.pid
        try:
            children = proc.children(recursive=True)
        except psutil.NoSuchProcess:
            return
        except psutil.AccessDenied:
            children = []

        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            return
        except psutil.AccessDenied as e:
            raise TerminationError(pid, f"Access denied stopping process {pid}", cause=e) from e

        for child in children:
            try:
                child.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

        procs = [proc] + children
        _, alive = psutil.wait_procs(procs, timeout=self.stop_timeout)
        alive = [p for p in alive if _is_alive(p)]
        if not alive:
            return

        logger.warning("server_stop_escalating", pid=pid, survivors=[p.pid for p in alive])
        for survivor in alive:
            try:
                survivor.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                if survivor.pid == pid:
                    raise TerminationError(pid, f"Access denied killing process {pid}", cause=e) from e

        _, alive = psutil.wait_procs(alive, timeout=self.kill_timeout)
        if any(p.pid == pid and _is_alive(p) for p in alive):
            raise TerminationError(pid)

    async def _invalidate(self) -> None:
        self.detector.clear_cache()
        if self.refresh_after_mutation:
            await self.detector.detect()


__all__ = ['LifecycleController']
