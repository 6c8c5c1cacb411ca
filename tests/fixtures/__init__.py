"""
Test fixtures for devserver-mcp.

Provides fake inventory sources and helpers for real child processes.
"""

from .inventory_fixtures import (
    FakeClock,
    FakeProcessSource,
    FakeSocketSource,
    make_record,
    seeded_inventory,
    spawn_sleeper,
    reap,
)

__all__ = [
    'FakeClock',
    'FakeProcessSource',
    'FakeSocketSource',
    'make_record',
    'seeded_inventory',
    'spawn_sleeper',
    'reap',
]
