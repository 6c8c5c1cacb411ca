"""
Unit tests for configuration loading.
"""

import json
from pathlib import Path

import pytest

from devserver_mcp.utils.config import ConfigLoader, DevServerConfig, load_config
from devserver_mcp.utils.errors import ConfigurationError


class TestDefaults:

    def test_defaults(self):
        config = DevServerConfig()
        assert config.inventory.socket_source == "auto"
        assert config.lifecycle.stop_timeout == 5.0
        assert config.lifecycle.refresh_after_mutation is False
        assert config.mcp.transport == "stdio"

    def test_invalid_socket_source(self):
        with pytest.raises(Exception):
            DevServerConfig(inventory={"socket_source": "procfs"})


class TestConfigLoader:

    @pytest.mark.asyncio
    async def test_priority_merge(self, clean_env, temp_dir):
        low = temp_dir / "low.json"
        low.write_text(json.dumps({"lifecycle": {"stop_timeout": 2.0, "kill_timeout": 9.0}}))
        high = temp_dir / "high.yaml"
        high.write_text("lifecycle:\n  stop_timeout: 7.5\n")

        loader = ConfigLoader()
        loader.add_source(high, priority=20)
        loader.add_source(low, priority=10)
        config = await loader.load()

        assert config.lifecycle.stop_timeout == 7.5
        assert config.lifecycle.kill_timeout == 9.0

    @pytest.mark.asyncio
    async def test_toml_source(self, clean_env, temp_dir):
        path = temp_dir / "devserver.toml"
        path.write_text('[inventory]\nsocket_source = "lsof"\nsocket_timeout = 4.0\n')

        loader = ConfigLoader()
        loader.add_source(path)
        config = await loader.load()

        assert config.inventory.socket_source == "lsof"
        assert config.inventory.socket_timeout == 4.0

    @pytest.mark.asyncio
    async def test_env_overrides_files(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"lifecycle": {"stop_timeout": 2.0}}))
        clean_env.setenv("DEVSERVER_LIFECYCLE_STOP_TIMEOUT", "10")
        clean_env.setenv("DEVSERVER_LIFECYCLE_REFRESH_AFTER_MUTATION", "yes")
        clean_env.setenv("DEVSERVER_DEBUG", "true")

        loader = ConfigLoader()
        loader.add_source(path)
        config = await loader.load()

        assert config.lifecycle.stop_timeout == 10.0
        assert config.lifecycle.refresh_after_mutation is True
        assert config.debug is True

    @pytest.mark.asyncio
    async def test_validation_failure(self, clean_env):
        loader = ConfigLoader()
        loader.add_source({"logging": {"level": "LOUD"}})

        with pytest.raises(ConfigurationError, match="logging.level"):
            await loader.load()

    @pytest.mark.asyncio
    async def test_broken_file(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{")

        loader = ConfigLoader()
        loader.add_source(path)

        with pytest.raises(ConfigurationError):
            await loader.load()

    def test_unknown_extension(self):
        with pytest.raises(ConfigurationError):
            ConfigLoader().add_source(Path("config.ini"))

    def test_get_config_before_load(self):
        with pytest.raises(ConfigurationError):
            ConfigLoader().get_config()


class TestLoadConfig:

    @pytest.mark.asyncio
    async def test_config_path_env(self, clean_env, temp_dir):
        path = temp_dir / "custom.yaml"
        path.write_text("inventory:\n  socket_source: ss\n")
        clean_env.setenv("DEVSERVER_CONFIG_PATH", str(path))

        config = await load_config()

        assert config.inventory.socket_source == "ss"

    @pytest.mark.asyncio
    async def test_extra_config_wins(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"mcp": {"port": 9000}}))

        config = await load_config([path], extra_config={"mcp": {"port": 9100}})

        assert config.mcp.port == 9100
