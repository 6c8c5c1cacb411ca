"""
Unit tests for the command line entry point.
"""

import json
import logging
import os

import pytest

from devserver_mcp import __main__ as cli
from devserver_mcp import __version__
from devserver_mcp.utils.errors import NotFoundError, PartialFailureError, SpawnError
from devserver_mcp.utils.logging import MODE_ENV_VAR, setup_logging


@pytest.fixture
def quiet_logging(monkeypatch):
    """Skip log file setup for CLI commands."""
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: {})


class TestInstallCommands:

    def test_install_then_uninstall(self, quiet_logging, temp_dir, capsys):
        path = temp_dir / "claude_desktop_config.json"

        assert cli.main(["install", "--config-file", str(path)]) == 0
        assert "server-manager" in json.loads(path.read_text())["mcpServers"]
        assert "Added" in capsys.readouterr().out

        assert cli.main(["install", "--config-file", str(path)]) == 0
        assert "already configured" in capsys.readouterr().out

        assert cli.main(["uninstall", "--config-file", str(path)]) == 0
        assert json.loads(path.read_text())["mcpServers"] == {}

    def test_custom_name(self, quiet_logging, temp_dir):
        path = temp_dir / "config.json"
        cli.main(["install", "--config-file", str(path), "--name", "dev-servers"])
        assert list(json.loads(path.read_text())["mcpServers"]) == ["dev-servers"]

    def test_error_exit_code(self, quiet_logging, temp_dir, capsys):
        path = temp_dir / "config.json"
        path.write_text("[1, 2]")

        assert cli.main(["install", "--config-file", str(path)]) == 1
        assert "CONFIG_ERROR" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            cli.main(["--version"])
        assert __version__ in capsys.readouterr().out


class TestServeCommand:

    @pytest.fixture
    def fake_run(self, monkeypatch, clean_env):
        # Pre-set so monkeypatch restores them after serve() writes os.environ
        clean_env.setenv(MODE_ENV_VAR, "")
        clean_env.setenv("DEVSERVER_DEBUG", "false")
        clean_env.setenv("DEVSERVER_CONFIG_PATH", "")
        calls = {"logging": []}
        monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: calls["logging"].append(kwargs))

        import devserver_mcp.server as server_module
        import devserver_mcp.utils.config as config_module
        monkeypatch.setattr(config_module, "default_config_paths", lambda: [])
        monkeypatch.setattr(server_module, "run_server", lambda **kwargs: calls.setdefault("run", kwargs))
        return calls

    def test_stdio_mode_set(self, fake_run):
        assert cli.main(["serve", "--debug"]) == 0

        assert fake_run["run"]["transport"] == "stdio"
        assert fake_run["logging"][0]["log_level"] == "DEBUG"
        assert os.environ[MODE_ENV_VAR] == "stdio"
        assert os.environ["DEVSERVER_DEBUG"] == "true"

    def test_default_command_is_serve(self, fake_run):
        assert cli.main([]) == 0
        assert fake_run["run"]["transport"] == "stdio"

    def test_transport_from_config(self, fake_run, clean_env):
        clean_env.setenv("DEVSERVER_MCP_TRANSPORT", "sse")
        clean_env.setenv("DEVSERVER_MCP_PORT", "9100")

        assert cli.main(["serve"]) == 0

        assert fake_run["run"] == {"transport": "sse", "host": "127.0.0.1", "port": 9100}
        assert MODE_ENV_VAR not in os.environ
        # Reconfigured once the network transport was known
        assert len(fake_run["logging"]) == 2

    def test_config_file_transport(self, fake_run, temp_dir):
        config_file = temp_dir / "devserver.json"
        config_file.write_text(json.dumps({"mcp": {"transport": "http", "port": 8765}}))

        assert cli.main(["serve", "--config", str(config_file)]) == 0

        assert fake_run["run"]["transport"] == "http"
        assert fake_run["run"]["port"] == 8765

    def test_cli_flags_override_config(self, fake_run, clean_env):
        clean_env.setenv("DEVSERVER_MCP_TRANSPORT", "sse")
        clean_env.setenv("DEVSERVER_MCP_PORT", "9100")

        assert cli.main(["serve", "--transport", "http", "--port", "9200"]) == 0

        assert fake_run["run"]["transport"] == "http"
        assert fake_run["run"]["port"] == 9200
        assert len(fake_run["logging"]) == 1

    def test_invalid_config_exit_code(self, fake_run, clean_env, capsys):
        clean_env.setenv("DEVSERVER_MCP_TRANSPORT", "carrier-pigeon")

        assert cli.main(["serve"]) == 1
        assert "run" not in fake_run
        assert "CONFIG_ERROR" in capsys.readouterr().err


class TestErrors:

    def test_partial_failure_carries_stopped_pid(self):
        cause = SpawnError("Command not found or not executable: node")
        error = PartialFailureError(4321, cause)

        payload = error.to_dict()["error"]
        assert error.stopped_pid == 4321
        assert payload["code"] == "PARTIAL_FAILURE"
        assert payload["cause"] == str(cause)
        assert any("4321" in s for s in payload["suggestions"])

    def test_str_includes_code(self):
        assert str(NotFoundError(99)) == "[NOT_FOUND] Process with PID 99 not found"


class TestLogging:

    def test_stdio_mode_has_no_console_handler(self, temp_dir, monkeypatch):
        monkeypatch.setenv(MODE_ENV_VAR, "stdio")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            result = setup_logging("devserver-mcp-test", log_dir=temp_dir)

            assert result["log_dir"] == temp_dir
            assert (temp_dir / "devserver-mcp-test.log").exists()
            assert any(isinstance(h, logging.NullHandler) for h in root.handlers)
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
