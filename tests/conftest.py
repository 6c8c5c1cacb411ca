"""
Pytest configuration and shared fixtures for devserver-mcp tests.
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from devserver_mcp.inventory.detector import ProcessDetector
from devserver_mcp.inventory.lifecycle import LifecycleController
from devserver_mcp.tools.server_tools import ServerTools

from tests.fixtures.inventory_fixtures import (
    FakeClock,
    FakeProcessSource,
    FakeSocketSource,
    reap,
    seeded_inventory,
    spawn_sleeper,
)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Temporary directory for tests."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def process_source() -> FakeProcessSource:
    """Process source seeded with five processes."""
    return FakeProcessSource(seeded_inventory()["records"])


@pytest.fixture
def socket_source() -> FakeSocketSource:
    """Socket source with listeners on 3000, 8080 and 22."""
    return FakeSocketSource(seeded_inventory()["bindings"])


@pytest.fixture
def detector(process_source, socket_source, clock) -> ProcessDetector:
    return ProcessDetector(process_source, socket_source, clock=clock, own_pid=os.getpid())


@pytest.fixture
def controller(detector) -> LifecycleController:
    """Controller with short waits."""
    return LifecycleController(
        detector,
        stop_timeout=3.0,
        kill_timeout=3.0,
        restart_delay=0.0,
    )


@pytest.fixture
def server_tools(detector, controller) -> ServerTools:
    return ServerTools(detector, controller)


@pytest.fixture
def sleeper() -> Generator:
    """A real child process that sleeps; always reaped after the test."""
    process = spawn_sleeper()
    yield process
    reap(process)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove DEVSERVER_* variables so config tests see only their own."""
    for key in list(os.environ):
        if key.startswith("DEVSERVER_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
