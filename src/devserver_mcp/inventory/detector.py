"""
Process detector.

Builds the server inventory: reads the process table and the socket table
concurrently, keeps the records the classifier accepts, joins each with the
first listening port found for its pid and caches the result for a fixed
staleness window.
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..utils.errors import DevServerError, EnumerationError
from ..utils.logging import get_logger
from .cache import Clock, InventoryCache
from .classifier import is_server
from .models import ProcessRecord, ServerInfo, SocketBinding
from .sources import ProcessSource, SocketSource

logger = get_logger("devserver-mcp.inventory.detector")

ALL_SERVERS_KEY = "all servers"
STALENESS_WINDOW = 30.0  # seconds


@dataclass
class DetectionResult:
    """Outcome of one bulk detection."""
    servers: List[ServerInfo] = field(default_factory=list)
    error: Optional[DevServerError] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def first_port_by_pid(bindings: Iterable[SocketBinding]) -> Dict[int, int]:
    """Map each pid to the first port it was seen listening on."""
    ports: Dict[int, int] = {}
    for binding in bindings:
        ports.setdefault(binding.pid, binding.port)
    return ports


class ProcessDetector:
    """Answers inventory queries, caching the bulk server list."""

    def __init__(
        self,
        process_source: ProcessSource,
        socket_source: SocketSource,
        clock: Optional[Clock] = None,
        own_pid: Optional[int] = None,
    ):
        """
        Initialize detector.

        Args:
            process_source: Process table adapter
            socket_source: Listening socket adapter
            clock: Time source for cache expiry
            own_pid: PID never reported as a server (defaults to this process)
        """
        self.process_source = process_source
        self.socket_source = socket_source
        self.own_pid = own_pid if own_pid is not None else os.getpid()
        self._cache: InventoryCache[ServerInfo] = InventoryCache(STALENESS_WINDOW, clock=clock)
        self._lock = asyncio.Lock()

    @property
    def cache(self) -> InventoryCache[ServerInfo]:
        return self._cache

    async def detect(self) -> DetectionResult:
        """Return the server inventory, from cache when fresh."""
        async with self._lock:
            cached = self._cache.get(ALL_SERVERS_KEY)
            if cached is not None:
                logger.debug("servers_from_cache", count=len(cached))
                return DetectionResult(servers=list(cached), from_cache=True)

            try:
                records, bindings = await asyncio.gather(
                    self.process_source.list_processes(),
                    self.socket_source.list_listening_sockets(),
                )
                servers = self._join(records, bindings)
            except EnumerationError as e:
                logger.error("server_detection_failed", error=str(e))
                return DetectionResult(error=e)
            except Exception as e:
                logger.error("server_detection_failed", error=str(e), exc_info=True)
                return DetectionResult(
                    error=EnumerationError(f"Failed to detect servers: {e}", cause=e)
                )

            self._cache.set(ALL_SERVERS_KEY, servers)
            logger.info(
                "servers_detected",
                count=len(servers),
                with_port=sum(1 for s in servers if s.port),
            )
            return DetectionResult(servers=servers)

    async def detect_servers(self) -> List[ServerInfo]:
        """Server inventory; an empty list when detection fails."""
        return (await self.detect()).servers

    async def get_server_by_port(self, port: int) -> Optional[ServerInfo]:
        """First server in the inventory listening on port."""
        for server in await self.detect_servers():
            if server.port == port:
                return server
        return None

    async def get_server_by_pid(self, pid: int) -> Optional[ServerInfo]:
        """Fresh lookup of a single pid, bypassing the cache."""
        if pid == self.own_pid:
            return None

        record, bindings = await asyncio.gather(
            self.process_source.get_process(pid),
            self.socket_source.list_listening_sockets(),
        )
        if record is None or record.exited or not is_server(record):
            return None
        return ServerInfo.from_record(record, first_port_by_pid(bindings).get(pid))

    async def list_processes(self, filter: Optional[str] = None) -> List[ProcessRecord]:
        """Every readable process, optionally narrowed by a substring of name or command."""
        records = await self.process_source.list_processes()
        if filter:
            records = [r for r in records if r.matches(filter)]
        return records

    def clear_cache(self) -> None:
        """Drop the cached inventory."""
        self._cache.clear()
        logger.debug("inventory_cache_cleared")

    def _join(self, records: List[ProcessRecord], bindings: List[SocketBinding]) -> List[ServerInfo]:
        ports = first_port_by_pid(bindings)
        return [
            ServerInfo.from_record(record, ports.get(record.pid))
            for record in records
            if record.pid != self.own_pid and not record.exited and is_server(record)
        ]


__all__ = [
    'ProcessDetector',
    'DetectionResult',
    'ALL_SERVERS_KEY',
    'STALENESS_WINDOW',
    'first_port_by_pid',
]
