"""
Process inventory for devserver-mcp.

This package enumerates OS processes, classifies development servers,
correlates them with listening ports, caches the result and performs
lifecycle operations that keep that cache consistent.
"""

from .models import ProcessRecord, ProcessState, ServerInfo, SocketBinding, format_uptime
from .classifier import is_server
from .cache import InventoryCache, CacheEntry, CacheStats
from .sources import (
    ProcessSource,
    PsutilProcessSource,
    SocketSource,
    PsutilSocketSource,
    NetstatSocketSource,
    LsofSocketSource,
    SsSocketSource,
    select_socket_source,
)
from .detector import ProcessDetector, DetectionResult, ALL_SERVERS_KEY
from .lifecycle import LifecycleController

__all__ = [
    # Models
    'ProcessRecord',
    'ProcessState',
    'ServerInfo',
    'SocketBinding',
    'format_uptime',

    # Classification and caching
    'is_server',
    'InventoryCache',
    'CacheEntry',
    'CacheStats',

    # Sources
    'ProcessSource',
    'PsutilProcessSource',
    'SocketSource',
    'PsutilSocketSource',
    'NetstatSocketSource',
    'LsofSocketSource',
    'SsSocketSource',
    'select_socket_source',

    # Orchestration
    'ProcessDetector',
    'DetectionResult',
    'ALL_SERVERS_KEY',
    'LifecycleController',
]
