"""
Registers devserver-mcp in an MCP host configuration file.

The host file is a JSON document with an ``mcpServers`` map of named server
entries. Only the named entry is touched; every other key is preserved.
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .utils.errors import ConfigurationError
from .utils.logging import get_logger

logger = get_logger("devserver-mcp.installer")

DEFAULT_SERVER_NAME = "server-manager"
SERVERS_KEY = "mcpServers"


def default_config_file(platform: Optional[str] = None) -> Path:
    """Claude Desktop configuration file for the given platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"
    if platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return base / "Claude" / "claude_desktop_config.json"
    return Path.home() / ".config" / "Claude" / "claude_desktop_config.json"


def default_server_entry() -> Dict[str, Any]:
    """Entry that launches this server with the current interpreter."""
    return {
        "command": sys.executable,
        "args": ["-m", "devserver_mcp", "serve"],
    }


def _read_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", cause=e) from e

    if not content.strip():
        return {}
    try:
        config = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}", cause=e) from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Expected a JSON object in {path}")
    return config


def _write_config(path: Path, config: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)
        f.write("\n")


def _servers_map(config: Dict[str, Any], path: Path) -> Dict[str, Any]:
    servers = config.setdefault(SERVERS_KEY, {})
    if not isinstance(servers, dict):
        raise ConfigurationError(f"'{SERVERS_KEY}' in {path} is not an object")
    return servers


def ensure_server_entry(path: Path, name: str, entry: Dict[str, Any]) -> bool:
    """
    Add or replace one named server entry.

    Args:
        path: Host configuration file (created if missing)
        name: Key under mcpServers
        entry: Server definition (command, args, env)

    Returns:
        True if the file was written, False if it already held this entry
    """
    path = Path(path).expanduser()
    config = _read_config(path)
    had_servers = SERVERS_KEY in config
    servers = _servers_map(config, path)

    if had_servers and servers.get(name) == entry:
        logger.info("server_entry_unchanged", path=str(path), name=name)
        return False

    servers[name] = entry
    _write_config(path, config)
    logger.info("server_entry_written", path=str(path), name=name)
    return True


def remove_server_entry(path: Path, name: str) -> bool:
    """
    Remove one named server entry.

    Returns:
        True if the entry existed and was removed
    """
    path = Path(path).expanduser()
    config = _read_config(path)
    servers = config.get(SERVERS_KEY)
    if not isinstance(servers, dict) or name not in servers:
        logger.info("server_entry_absent", path=str(path), name=name)
        return False

    del servers[name]
    _write_config(path, config)
    logger.info("server_entry_removed", path=str(path), name=name)
    return True


__all__ = [
    'DEFAULT_SERVER_NAME',
    'default_config_file',
    'default_server_entry',
    'ensure_server_entry',
    'remove_server_entry',
]
