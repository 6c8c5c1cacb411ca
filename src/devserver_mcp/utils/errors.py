"""
Error handling framework for the devserver MCP server.

This module provides:
- A hierarchical exception taxonomy for inventory and lifecycle failures
- Error context preservation
- Structured error responses for tool results
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    SYSTEM = "system"
    PROCESS = "process"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class DevServerError(Exception):
    """Base exception for all devserver MCP errors."""

    code: str = "DEVSERVER_ERROR"
    default_message: str = "An error occurred in devserver-mcp"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "suggestions": self.get_suggestions(),
                "cause": str(self.cause) if self.cause else None,
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata,
                },
            }
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigurationError(DevServerError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Check DEVSERVER_* environment variables",
        ]


class ValidationError(DevServerError):
    """Input validation errors."""
    code = "VALIDATION_ERROR"
    default_message = "Validation error"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.WARNING

    def __init__(self, field: str, value: Any, constraint: str, **kwargs):
        self.field = field
        self.value = value
        self.constraint = constraint
        super().__init__(f"Validation failed for field '{field}': {constraint}", **kwargs)


# Inventory errors

class EnumerationError(DevServerError):
    """The process table or socket table could not be read."""
    code = "ENUMERATION_ERROR"
    default_message = "Failed to enumerate processes"
    category = ErrorCategory.SYSTEM


# Lifecycle errors

class ProcessError(DevServerError):
    """Base class for process lifecycle errors."""
    code = "PROCESS_ERROR"
    default_message = "Process operation failed"
    category = ErrorCategory.PROCESS


class NotFoundError(ProcessError):
    """No process with the referenced pid exists."""
    code = "NOT_FOUND"
    severity = ErrorSeverity.WARNING

    def __init__(self, pid: int, **kwargs):
        self.pid = pid
        super().__init__(f"Process with PID {pid} not found", **kwargs)


class SpawnError(ProcessError):
    """A process could not be started."""
    code = "SPAWN_ERROR"
    default_message = "Failed to start process"

    def get_suggestions(self) -> List[str]:
        return [
            "Check that the command is installed and on PATH",
            "Check that the working directory exists",
        ]


class TerminationError(ProcessError):
    """A process did not exit after being signalled."""
    code = "TERMINATION_ERROR"
    default_message = "Failed to stop process"

    def __init__(self, pid: int, message: Optional[str] = None, **kwargs):
        self.pid = pid
        super().__init__(message or f"Process {pid} could not be terminated", **kwargs)

    def get_suggestions(self) -> List[str]:
        return ["The process may require elevated privileges to stop"]


class ProtectedProcessError(ProcessError):
    """Refused to act on a process this server depends on."""
    code = "PROTECTED_PROCESS"
    severity = ErrorSeverity.WARNING

    def __init__(self, pid: int, **kwargs):
        self.pid = pid
        super().__init__(f"Refusing to stop protected process {pid}", **kwargs)


class PartialFailureError(ProcessError):
    """Restart stopped the old process but could not start a replacement."""
    code = "PARTIAL_FAILURE"
    severity = ErrorSeverity.CRITICAL

    def __init__(self, stopped_pid: int, cause: SpawnError, **kwargs):
        self.stopped_pid = stopped_pid
        super().__init__(
            f"Process {stopped_pid} was stopped but its replacement failed to start: "
            f"{cause.message}",
            cause=cause,
            **kwargs,
        )

    def get_suggestions(self) -> List[str]:
        return [
            f"Process {self.stopped_pid} is no longer running",
            "Start the server again with start_server once the cause is fixed",
        ]


__all__ = [
    'DevServerError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'ValidationError',
    'EnumerationError',
    'ProcessError',
    'NotFoundError',
    'SpawnError',
    'TerminationError',
    'ProtectedProcessError',
    'PartialFailureError',
]
