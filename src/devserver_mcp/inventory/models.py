"""
Data models for the process inventory.

All models are immutable snapshots: a new query produces new objects.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Tuple


class ProcessState(str, Enum):
    """Normalized process lifecycle states."""
    RUNNING = "running"
    SLEEPING = "sleeping"
    IDLE = "idle"
    STOPPED = "stopped"
    ZOMBIE = "zombie"
    UNKNOWN = "unknown"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "ProcessState":
        """Map an OS status string (psutil or ps style) to a state."""
        if not status:
            return cls.UNKNOWN
        status = status.lower()
        mapping = {
            "running": cls.RUNNING,
            "sleeping": cls.SLEEPING,
            "disk-sleep": cls.SLEEPING,
            "idle": cls.IDLE,
            "parked": cls.IDLE,
            "waking": cls.RUNNING,
            "stopped": cls.STOPPED,
            "tracing-stop": cls.STOPPED,
            "dead": cls.STOPPED,
            "zombie": cls.ZOMBIE,
        }
        return mapping.get(status, cls.UNKNOWN)


@dataclass(frozen=True)
class ProcessRecord:
    """Raw process information as read from the OS process table."""
    pid: int
    name: str
    command: str = ""
    argv: Tuple[str, ...] = ()
    cpu_percent: float = 0.0
    memory_rss: int = 0  # bytes
    status: str = ProcessState.UNKNOWN.value
    started_at: Optional[datetime] = None
    username: str = "unknown"
    cwd: Optional[str] = None

    @property
    def exited(self) -> bool:
        """Process has exited but has not been reaped by its parent."""
        return self.status == ProcessState.ZOMBIE.value

    def matches(self, text: str) -> bool:
        """Case-insensitive substring match on name or command line."""
        needle = text.lower()
        return needle in (self.name or "").lower() or needle in (self.command or "").lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "pid": self.pid,
            "name": self.name,
            "command": self.command,
            "cpu_percent": round(self.cpu_percent, 1),
            "memory_mb": round(self.memory_rss / (1024 * 1024), 1),
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "uptime": format_uptime(self.started_at),
            "user": self.username,
        }


@dataclass(frozen=True)
class SocketBinding:
    """One listening TCP socket owned by a process."""
    pid: int
    port: int


@dataclass(frozen=True)
class ServerInfo:
    """A process accepted by the classifier, joined with its first listening port."""
    pid: int
    name: str
    command: str
    cpu_percent: float
    memory_rss: int
    status: str
    started_at: Optional[datetime]
    username: str
    port: Optional[int] = None
    argv: Tuple[str, ...] = field(default=(), compare=False, repr=False)

    @classmethod
    def from_record(cls, record: ProcessRecord, port: Optional[int] = None) -> "ServerInfo":
        """Build a server snapshot from a process record."""
        return cls(
            pid=record.pid,
            name=record.name,
            command=record.command,
            cpu_percent=record.cpu_percent,
            memory_rss=record.memory_rss,
            status=record.status,
            started_at=record.started_at,
            username=record.username,
            port=port,
            argv=record.argv,
        )

    @property
    def url(self) -> Optional[str]:
        """Local URL for the server when its port is known."""
        return f"http://localhost:{self.port}" if self.port else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "pid": self.pid,
            "name": self.name,
            "command": self.command,
            "port": self.port,
            "url": self.url,
            "cpu_percent": round(self.cpu_percent, 1),
            "memory_mb": round(self.memory_rss / (1024 * 1024), 1),
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "uptime": format_uptime(self.started_at),
            "user": self.username,
        }


def format_uptime(started_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    """Render elapsed time since start as '2h 5m' or '7m'."""
    if started_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - started_at).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


__all__ = [
    'ProcessState',
    'ProcessRecord',
    'SocketBinding',
    'ServerInfo',
    'format_uptime',
]
