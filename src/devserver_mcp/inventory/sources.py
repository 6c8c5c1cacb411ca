"""
OS adapters for the process inventory.

Two independent data sets feed the detector:
- the process table, read with psutil
- the listening-socket table, read with psutil or a platform tool
  (netstat on Windows, lsof on macOS, optionally ss on Linux)

The socket sources never raise: a missing port correlation degrades to
"no port known" instead of failing the whole detection pass.
"""

import asyncio
import re
import subprocess
import sys
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import psutil

from ..utils.errors import EnumerationError
from ..utils.logging import get_logger
from .models import ProcessRecord, ProcessState, SocketBinding

logger = get_logger("devserver-mcp.inventory.sources")

PROCESS_ATTRS = [
    'pid', 'name', 'cmdline', 'cpu_percent', 'memory_info',
    'status', 'create_time', 'username',
]


# ===== PROCESS SOURCE =====

class ProcessSource(ABC):
    """Reads raw process records from the OS."""

    @abstractmethod
    async def list_processes(self) -> List[ProcessRecord]:
        """Return every readable process; raises EnumerationError on failure."""

    @abstractmethod
    async def get_process(self, pid: int) -> Optional[ProcessRecord]:
        """Return a fresh record for pid, or None if it does not exist."""


def record_from_info(info: Dict[str, Any]) -> Optional[ProcessRecord]:
    """Build a ProcessRecord from a psutil info dict; None for unusable entries."""
    pid = info.get('pid')
    name = info.get('name')
    if not pid or not name:
        return None

    cmdline = info.get('cmdline') or []
    argv = tuple(str(arg) for arg in cmdline)
    command = " ".join(argv) if argv else name

    mem_info = info.get('memory_info')
    create_time = info.get('create_time')

    return ProcessRecord(
        pid=pid,
        name=name,
        command=command,
        argv=argv,
        cpu_percent=info.get('cpu_percent') or 0.0,
        memory_rss=mem_info.rss if mem_info else 0,
        status=ProcessState.from_status(info.get('status')).value,
        started_at=datetime.fromtimestamp(create_time, tz=timezone.utc) if create_time else None,
        username=info.get('username') or "unknown",
        cwd=info.get('cwd'),
    )


class PsutilProcessSource(ProcessSource):
    """Process table adapter backed by psutil.

    psutil calls block, so they run in a worker thread.
    """

    async def list_processes(self) -> List[ProcessRecord]:
        try:
            return await asyncio.to_thread(self._collect)
        except EnumerationError:
            raise
        except Exception as e:
            raise EnumerationError(f"Failed to read process table: {e}", cause=e) from e

    async def get_process(self, pid: int) -> Optional[ProcessRecord]:
        return await asyncio.to_thread(self._read_one, pid)

    def _collect(self) -> List[ProcessRecord]:
        records: List[ProcessRecord] = []
        for proc in psutil.process_iter(attrs=PROCESS_ATTRS):
            try:
                record = record_from_info(proc.info)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                # Died or locked down mid-iteration
                continue
            if record is not None:
                records.append(record)
        logger.debug("process_table_read", count=len(records))
        return records

    def _read_one(self, pid: int) -> Optional[ProcessRecord]:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                info = proc.as_dict(attrs=PROCESS_ATTRS + ['cwd'])
        except psutil.NoSuchProcess:
            return None
        return record_from_info(info)


# ===== SOCKET TABLE SOURCES =====

class SocketSource(ABC):
    """Reads (pid, port) pairs for listening TCP sockets."""

    name: str = "base"

    @abstractmethod
    async def list_listening_sockets(self) -> List[SocketBinding]:
        """Return LISTEN-state TCP bindings; an empty list on any failure."""


def port_from_address(address: str) -> Optional[int]:
    """
    Extract the port from a local socket address.

    Handles ``0.0.0.0:80``, ``*:80``, ``[::]:80``, ``:::80``,
    ``[::1]:3000`` and the BSD dotted forms ``*.80`` / ``127.0.0.1.80``.
    """
    address = address.strip()
    if not address:
        return None

    candidates = []
    if ':' in address:
        candidates.append(address.rsplit(':', 1)[1])
    if '.' in address:
        candidates.append(address.rsplit('.', 1)[1])

    for candidate in candidates:
        if candidate.isdigit():
            port = int(candidate)
            if 0 < port <= 65535:
                return port
    return None


def _unique(bindings: Iterable[SocketBinding]) -> List[SocketBinding]:
    """Drop duplicate bindings (IPv4 and IPv6 twins) keeping first-seen order."""
    seen = set()
    result = []
    for binding in bindings:
        if binding not in seen:
            seen.add(binding)
            result.append(binding)
    return result


def parse_netstat_output(output: str) -> List[SocketBinding]:
    """
    Parse ``netstat -ano`` (Windows) or ``netstat -tlnp`` (Linux) output.

    Windows: ``TCP  0.0.0.0:3000  0.0.0.0:0  LISTENING  1234``
    Linux:   ``tcp  0  0 0.0.0.0:3000  0.0.0.0:*  LISTEN  1234/node``
    """
    bindings = []
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 4 or not tokens[0].lower().startswith('tcp'):
            continue

        upper = [t.upper() for t in tokens]
        if 'LISTENING' in upper:
            state_index = upper.index('LISTENING')
        elif 'LISTEN' in upper:
            state_index = upper.index('LISTEN')
        else:
            continue

        local = next((t for t in tokens[1:state_index] if ':' in t), None)
        if local is None or state_index + 1 >= len(tokens):
            continue

        pid_token = tokens[state_index + 1].split('/', 1)[0]
        port = port_from_address(local)
        if port is None or not pid_token.isdigit() or int(pid_token) <= 0:
            continue
        bindings.append(SocketBinding(pid=int(pid_token), port=port))
    return _unique(bindings)


def parse_lsof_output(output: str) -> List[SocketBinding]:
    """
    Parse ``lsof -nP -iTCP -sTCP:LISTEN`` output.

    ``node  4321 me  23u  IPv6 0x1  0t0  TCP *:3000 (LISTEN)``
    """
    bindings = []
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 3 or tokens[0] == 'COMMAND' or tokens[-1] != '(LISTEN)':
            continue
        if not tokens[1].isdigit():
            continue
        port = port_from_address(tokens[-2])
        if port is None:
            continue
        bindings.append(SocketBinding(pid=int(tokens[1]), port=port))
    return _unique(bindings)


_SS_PID = re.compile(r'pid=(\d+)')


def parse_ss_output(output: str) -> List[SocketBinding]:
    """
    Parse ``ss -ltnp`` output (with or without the header line).

    ``LISTEN 0 511 0.0.0.0:3000 0.0.0.0:* users:(("node",pid=1234,fd=21))``
    """
    bindings = []
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 5 or tokens[0] != 'LISTEN':
            continue
        port = port_from_address(tokens[3])
        if port is None:
            continue
        for pid in _SS_PID.findall(line):
            bindings.append(SocketBinding(pid=int(pid), port=port))
    return _unique(bindings)


class PsutilSocketSource(SocketSource):
    """Socket table from psutil.net_connections."""

    name = "psutil"

    async def list_listening_sockets(self) -> List[SocketBinding]:
        try:
            return await asyncio.to_thread(self._collect)
        except Exception as e:
            logger.warning("socket_table_unavailable", source=self.name, error=str(e))
            return []

    def _collect(self) -> List[SocketBinding]:
        bindings = []
        for conn in psutil.net_connections(kind='tcp'):
            if conn.status != psutil.CONN_LISTEN or not conn.pid or not conn.laddr:
                continue
            bindings.append(SocketBinding(pid=conn.pid, port=conn.laddr.port))
        return _unique(bindings)


class CommandSocketSource(SocketSource):
    """Socket table read by running a platform tool and parsing its output."""

    command: Sequence[str] = ()

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def parse(self, output: str) -> List[SocketBinding]:
        raise NotImplementedError

    async def list_listening_sockets(self) -> List[SocketBinding]:
        try:
            output = await self._run()
            return self.parse(output)
        except FileNotFoundError:
            logger.warning("socket_tool_not_found", source=self.name, command=self.command[0])
        except asyncio.TimeoutError:
            logger.warning("socket_tool_timeout", source=self.name, timeout=self.timeout)
        except Exception as e:
            logger.warning("socket_table_unavailable", source=self.name, error=str(e))
        return []

    async def _run(self) -> str:
        process = await asyncio.create_subprocess_exec(
            *self.command,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        # lsof exits 1 when nothing is listening
        if process.returncode not in (0, 1):
            logger.debug("socket_tool_exit", source=self.name, returncode=process.returncode)
        return stdout.decode(errors='replace')


class NetstatSocketSource(CommandSocketSource):
    """Windows ``netstat -ano``."""

    name = "netstat"
    # -p TCP would hide the TCPv6 table; UDP rows are dropped by the parser
    command = ("netstat", "-ano")

    def parse(self, output: str) -> List[SocketBinding]:
        return parse_netstat_output(output)


class LsofSocketSource(CommandSocketSource):
    """macOS / BSD ``lsof``."""

    name = "lsof"
    command = ("lsof", "-nP", "-iTCP", "-sTCP:LISTEN")

    def parse(self, output: str) -> List[SocketBinding]:
        return parse_lsof_output(output)


class SsSocketSource(CommandSocketSource):
    """Linux iproute2 ``ss``."""

    name = "ss"
    command = ("ss", "-ltnpH")

    def parse(self, output: str) -> List[SocketBinding]:
        return parse_ss_output(output)


def select_socket_source(
    preference: str = "auto",
    platform: Optional[str] = None,
    timeout: float = 10.0,
) -> SocketSource:
    """
    Choose the socket table implementation for this host.

    Args:
        preference: auto, psutil, netstat, lsof or ss
        platform: sys.platform value to select for (defaults to the running one)
        timeout: Timeout for command based sources
    """
    platform = platform or sys.platform
    preference = preference.lower()

    if preference == "auto":
        if platform.startswith("win"):
            preference = "netstat"
        elif platform == "darwin":
            # net_connections needs root on macOS
            preference = "lsof"
        else:
            preference = "psutil"

    if preference == "psutil":
        source: SocketSource = PsutilSocketSource()
    elif preference == "netstat":
        source = NetstatSocketSource(timeout=timeout)
    elif preference == "lsof":
        source = LsofSocketSource(timeout=timeout)
    elif preference == "ss":
        source = SsSocketSource(timeout=timeout)
    else:
        raise ValueError(f"Unknown socket source: {preference}")

    logger.info("socket_source_selected", source=source.name, platform=platform)
    return source


__all__ = [
    'ProcessSource',
    'PsutilProcessSource',
    'SocketSource',
    'PsutilSocketSource',
    'CommandSocketSource',
    'NetstatSocketSource',
    'LsofSocketSource',
    'SsSocketSource',
    'select_socket_source',
    'record_from_info',
    'port_from_address',
    'parse_netstat_output',
    'parse_lsof_output',
    'parse_ss_output',
]
