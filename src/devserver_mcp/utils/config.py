"""
Configuration loader for the devserver MCP server.

This module provides configuration management with:
- Multiple configuration sources (JSON, YAML, TOML files, dicts)
- Environment variable overrides (DEVSERVER_ prefix)
- Priority-ordered deep merging
- Schema validation through pydantic
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

import toml
import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("devserver-mcp.config")

ENV_PREFIX = "DEVSERVER_"


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"
    directory: Path = Field(default_factory=lambda: Path.home() / ".devserver-mcp" / "logs")
    max_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_sentry: bool = False
    sentry_dsn: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class InventoryConfig(BaseModel):
    """Process inventory configuration."""
    socket_source: str = "auto"
    socket_timeout: float = 10.0  # seconds, for netstat/lsof/ss

    @field_validator('socket_source')
    @classmethod
    def validate_socket_source(cls, v):
        """Validate socket source name."""
        valid_sources = ["auto", "psutil", "netstat", "lsof", "ss"]
        if v.lower() not in valid_sources:
            raise ValueError(f"Invalid socket source: {v}")
        return v.lower()


class LifecycleConfig(BaseModel):
    """Process lifecycle configuration."""
    stop_timeout: float = 5.0  # grace period after SIGTERM
    kill_timeout: float = 3.0  # wait after SIGKILL
    restart_delay: float = 1.0
    refresh_after_mutation: bool = False


class MCPConfig(BaseModel):
    """MCP protocol configuration."""
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator('transport')
    @classmethod
    def validate_transport(cls, v):
        """Validate transport name."""
        if v not in ("stdio", "sse", "http"):
            raise ValueError(f"Invalid transport: {v}")
        return v


class DevServerConfig(BaseModel):
    """Main devserver MCP configuration."""
    app_name: str = "devserver-mcp"
    version: str = "0.1.0"
    debug: bool = False

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    inventory: InventoryConfig = Field(default_factory=InventoryConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)

    model_config = ConfigDict(validate_assignment=True)


# Nested sections addressable from DEVSERVER_<SECTION>_<FIELD> variables
_SECTIONS = ("logging", "inventory", "lifecycle", "mcp")


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self, env_prefix: str = ENV_PREFIX):
        """Initialize configuration loader."""
        self.env_prefix = env_prefix
        self._sources: List[ConfigSource] = []
        self._config: Optional[DevServerConfig] = None
        self._lock = asyncio.Lock()

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)
            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

        # Lowest priority first so later merges win
        self._sources.sort(key=lambda s: s.priority)

    def _detect_source_type(self, path: Path) -> str:
        """Detect configuration file type."""
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        else:
            raise ConfigurationError(f"Unknown config file type: {suffix}")

    async def load(self) -> DevServerConfig:
        """
        Load configuration from all sources.

        Returns:
            Merged configuration
        """
        async with self._lock:
            merged_data: Dict[str, Any] = {}

            for source in self._sources:
                try:
                    data = self._load_source(source)
                except ConfigurationError:
                    raise
                except Exception as e:
                    raise ConfigurationError(
                        f"Failed to load configuration from {source.path or 'dict'}: {e}",
                        cause=e,
                    ) from e
                merged_data = self._deep_merge(merged_data, data)

            merged_data = self._deep_merge(merged_data, self._load_env_vars())

            try:
                self._config = DevServerConfig(**merged_data)
            except ValidationError as e:
                errors = []
                for error in e.errors():
                    field = ".".join(str(x) for x in error["loc"])
                    errors.append(f"{field}: {error['msg']}")
                raise ConfigurationError(
                    f"Configuration validation failed: {'; '.join(errors)}"
                ) from e

            logger.info("configuration_loaded", sources=len(self._sources))
            return self._config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        """Load data from a configuration source."""
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        content = source.path.read_text(encoding="utf-8")

        if source.source_type == "json":
            return json.loads(content)
        elif source.source_type == "yaml":
            return yaml.safe_load(content) or {}
        elif source.source_type == "toml":
            return toml.loads(content)
        else:
            raise ConfigurationError(f"Unknown source type: {source.source_type}")

    def _load_env_vars(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        result: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue
            key = key[len(self.env_prefix):].lower()

            section, _, field_name = key.partition("_")
            if section in _SECTIONS and field_name:
                result.setdefault(section, {})[field_name] = self._convert_value(value)
            elif key in DevServerConfig.model_fields:
                result[key] = self._convert_value(value)

        return result

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        if value.startswith("~"):
            return Path(value).expanduser()

        return value

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_config(self) -> DevServerConfig:
        """Get current configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


def default_config_paths() -> List[Path]:
    """Standard configuration file locations, lowest priority first."""
    return [
        Path.home() / ".devserver-mcp" / "config.yaml",
        Path.home() / ".devserver-mcp" / "config.json",
        Path("./devserver-mcp.yaml"),
        Path("./devserver-mcp.json"),
    ]


async def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None
) -> DevServerConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Extra configuration to merge

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader()

    for path in default_config_paths():
        if path.exists():
            loader.add_source(path, priority=10)

    env_path = os.environ.get(f"{ENV_PREFIX}CONFIG_PATH")
    if env_path:
        loader.add_source(env_path, priority=15)

    if config_paths:
        for i, path in enumerate(config_paths):
            loader.add_source(path, priority=20 + i)

    if extra_config:
        loader.add_source(extra_config, priority=100)

    return await loader.load()


__all__ = [
    'DevServerConfig',
    'LoggingConfig',
    'InventoryConfig',
    'LifecycleConfig',
    'MCPConfig',
    'ConfigLoader',
    'default_config_paths',
    'load_config',
]
