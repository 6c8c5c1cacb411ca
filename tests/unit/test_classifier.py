"""
Unit tests for the server classifier.
"""

import pytest

from devserver_mcp.inventory.classifier import is_server
from devserver_mcp.inventory.models import ProcessRecord

from tests.fixtures.inventory_fixtures import make_record


class TestRejection:
    """Records that can never be servers."""

    def test_none_record(self):
        assert is_server(None) is False

    @pytest.mark.parametrize("pid", [0, -1, None])
    def test_missing_pid(self, pid):
        record = ProcessRecord(pid=pid, name="node", command="node server.js")
        assert is_server(record) is False

    @pytest.mark.parametrize("name", ["", None])
    def test_missing_name(self, name):
        record = ProcessRecord(pid=10, name=name, command="node server.js --port 3000")
        assert is_server(record) is False


class TestNameKeywords:
    """Name matching takes priority over the command line."""

    @pytest.mark.parametrize("name", ["nginx", "node", "postgres", "Python3.exe", "javaw.exe", "vite"])
    def test_keyword_name(self, name):
        assert is_server(make_record(42, name, "")) is True

    def test_keyword_ignores_command(self):
        record = make_record(42, "nginx", "totally unrelated arguments")
        assert is_server(record) is True

    def test_keyword_substring_match(self):
        # Substring matching accepts incidental hits
        assert is_server(make_record(42, "nodemon-helper", "x")) is True


class TestCommandLine:
    """Command line rules for names outside the keyword set."""

    def test_port_flag(self):
        record = make_record(42, "myapp", "myapp --port 4000")
        assert is_server(record) is True

    @pytest.mark.parametrize("command", [
        "serve -p 4000",
        "gunicorn 0.0.0.0:8080",
        "uvicorn main:app --host 127.0.0.1:5000",
        "caddy run :9000",
        "hugo server --bind :3000",
    ])
    def test_port_patterns(self, command):
        assert is_server(make_record(42, "tool", command)) is True

    @pytest.mark.parametrize("entry", ["server.js", "app.js", "main.js", "index.js"])
    def test_entry_files(self, entry):
        assert is_server(make_record(42, "runner", f"runner ./src/{entry}")) is True

    def test_case_insensitive(self):
        assert is_server(make_record(42, "MyApp", "MYAPP --PORT 1234")) is True

    def test_plain_shell_rejected(self):
        assert is_server(make_record(42, "bash", "bash")) is False

    def test_unrelated_port_rejected(self):
        assert is_server(make_record(42, "sshd", "/usr/sbin/sshd -D")) is False
