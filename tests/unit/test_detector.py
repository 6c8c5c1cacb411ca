"""
Unit tests for the process detector.
"""

import asyncio
import os

import pytest

from devserver_mcp.inventory.detector import ALL_SERVERS_KEY, ProcessDetector
from devserver_mcp.inventory.models import SocketBinding
from devserver_mcp.utils.errors import EnumerationError

from tests.fixtures.inventory_fixtures import (
    FakeClock,
    FakeProcessSource,
    FakeSocketSource,
    make_record,
)


class TestDetectServers:
    """Bulk detection, classification and port join."""

    @pytest.mark.asyncio
    async def test_node_and_bash(self):
        process_source = FakeProcessSource([
            make_record(1, "node", "node server.js"),
            make_record(2, "bash", "bash"),
        ])
        socket_source = FakeSocketSource([SocketBinding(pid=1, port=5173)])
        detector = ProcessDetector(process_source, socket_source, clock=FakeClock(), own_pid=999)

        servers = await detector.detect_servers()

        assert len(servers) == 1
        assert servers[0].pid == 1
        assert servers[0].port == 5173

    @pytest.mark.asyncio
    async def test_seeded_inventory(self, detector):
        servers = await detector.detect_servers()

        assert [s.pid for s in servers] == [101, 102, 104]
        assert {s.pid: s.port for s in servers} == {101: 3000, 102: 8080, 104: None}

    @pytest.mark.asyncio
    async def test_first_binding_wins(self):
        process_source = FakeProcessSource([make_record(7, "node", "node app.js")])
        socket_source = FakeSocketSource([
            SocketBinding(7, 9229),
            SocketBinding(7, 3000),
        ])
        detector = ProcessDetector(process_source, socket_source, own_pid=999)

        servers = await detector.detect_servers()

        assert servers[0].port == 9229

    @pytest.mark.asyncio
    async def test_own_process_excluded(self):
        own = os.getpid()
        process_source = FakeProcessSource([
            make_record(own, "python3", "python3 -m devserver_mcp serve"),
            make_record(8, "python3", "python3 manage.py runserver"),
        ])
        detector = ProcessDetector(process_source, FakeSocketSource(), own_pid=own)

        servers = await detector.detect_servers()

        assert [s.pid for s in servers] == [8]

    @pytest.mark.asyncio
    async def test_exited_processes_excluded(self):
        process_source = FakeProcessSource([
            make_record(11, "node", "node server.js", status="zombie"),
            make_record(12, "node", "node api.js"),
        ])
        socket_source = FakeSocketSource([SocketBinding(12, 4000)])
        detector = ProcessDetector(process_source, socket_source, own_pid=999)

        servers = await detector.detect_servers()

        assert [s.pid for s in servers] == [12]
        assert await detector.get_server_by_pid(11) is None


class TestCaching:
    """Staleness window behaviour."""

    @pytest.mark.asyncio
    async def test_second_call_hits_cache(self, detector, process_source, socket_source):
        first = await detector.detect()
        second = await detector.detect()

        assert process_source.list_calls == 1
        assert socket_source.calls == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.servers == first.servers

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, detector, process_source, clock):
        await detector.detect_servers()
        clock.advance(30.0)
        await detector.detect_servers()

        assert process_source.list_calls == 2

    @pytest.mark.asyncio
    async def test_callers_get_new_lists(self, detector):
        servers = await detector.detect_servers()
        servers.clear()

        assert len(await detector.detect_servers()) == 3

    @pytest.mark.asyncio
    async def test_clear_cache(self, detector, process_source):
        await detector.detect_servers()
        detector.clear_cache()
        await detector.detect_servers()

        assert process_source.list_calls == 2
        assert ALL_SERVERS_KEY in detector.cache

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_once(self, detector, process_source):
        results = await asyncio.gather(*(detector.detect() for _ in range(5)))

        assert process_source.list_calls == 1
        assert sum(1 for r in results if not r.from_cache) == 1


class TestDetectionFailure:
    """Enumeration failures are reported, not cached."""

    @pytest.mark.asyncio
    async def test_error_reported(self):
        process_source = FakeProcessSource(fail=True)
        detector = ProcessDetector(process_source, FakeSocketSource(), own_pid=999)

        result = await detector.detect()

        assert result.ok is False
        assert isinstance(result.error, EnumerationError)
        assert result.servers == []

    @pytest.mark.asyncio
    async def test_degrades_to_empty_and_retries(self):
        process_source = FakeProcessSource([make_record(1, "node")], fail=True)
        detector = ProcessDetector(process_source, FakeSocketSource(), own_pid=999)

        assert await detector.detect_servers() == []

        process_source.fail = False
        servers = await detector.detect_servers()

        assert [s.pid for s in servers] == [1]
        assert process_source.list_calls == 2


class TestLookups:
    """Port and pid lookups."""

    @pytest.mark.asyncio
    async def test_by_port(self, detector):
        server = await detector.get_server_by_port(3000)
        assert server is not None
        assert server.pid == 101
        assert server.port == 3000

        other = await detector.get_server_by_port(8080)
        assert other.pid == 102

    @pytest.mark.asyncio
    async def test_by_port_missing(self, detector):
        assert await detector.get_server_by_port(5000) is None

    @pytest.mark.asyncio
    async def test_by_port_ignores_non_servers(self, detector):
        # sshd listens on 22 but is not a development server
        assert await detector.get_server_by_port(22) is None

    @pytest.mark.asyncio
    async def test_by_pid_bypasses_cache(self, detector, process_source, socket_source):
        server = await detector.get_server_by_pid(101)

        assert server.port == 3000
        assert process_source.get_calls == 1
        assert process_source.list_calls == 0
        assert ALL_SERVERS_KEY not in detector.cache

    @pytest.mark.asyncio
    async def test_by_pid_rejected_or_absent(self, detector):
        assert await detector.get_server_by_pid(103) is None
        assert await detector.get_server_by_pid(4242) is None

    @pytest.mark.asyncio
    async def test_by_pid_own_process(self, detector):
        assert await detector.get_server_by_pid(os.getpid()) is None


class TestListProcesses:

    @pytest.mark.asyncio
    async def test_all(self, detector):
        assert len(await detector.list_processes()) == 5

    @pytest.mark.asyncio
    async def test_filter(self, detector):
        records = await detector.list_processes("HTTP.SERVER")
        assert [r.pid for r in records] == [102]

    @pytest.mark.asyncio
    async def test_not_cached(self, detector, process_source):
        await detector.list_processes()
        await detector.list_processes()
        assert process_source.list_calls == 2

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        detector = ProcessDetector(FakeProcessSource(fail=True), FakeSocketSource(), own_pid=999)
        with pytest.raises(EnumerationError):
            await detector.list_processes()
