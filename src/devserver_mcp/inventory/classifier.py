"""
Heuristic classification of processes as development servers.

A pure function over a ProcessRecord: no I/O, deterministic. The rules are
checked in order and the first match wins. False positives (a keyword that
appears incidentally) and false negatives (a server with an unlisted name
and no port flag) are accepted.
"""

from typing import Optional

from .models import ProcessRecord


# Runtimes, web servers, databases and frontend/build tools
SERVER_KEYWORDS = (
    'node', 'npm', 'python', 'python3', 'java', 'javaw',
    'httpd', 'apache', 'nginx', 'mysqld', 'postgres',
    'mongod', 'redis', 'deno', 'bun', 'pm2', 'nodemon',
    'next', 'react', 'vue', 'angular', 'express', 'fastapi',
    'flask', 'django', 'rails', 'laravel', 'spring',
    'tomcat', 'jetty', 'webpack', 'vite', 'parcel',
)

PORT_PATTERNS = ('--port', '-p ', ':3000', ':8080', ':5000', ':9000')

ENTRY_FILES = ('server.js', 'app.js', 'main.js', 'index.js')


def is_server(record: Optional[ProcessRecord]) -> bool:
    """Return True if the record looks like a development server."""
    if record is None or not record.name or not record.pid or record.pid <= 0:
        return False

    name = record.name.lower()
    if any(keyword in name for keyword in SERVER_KEYWORDS):
        return True

    command = (record.command or '').lower()
    if any(pattern in command for pattern in PORT_PATTERNS):
        return True

    return any(entry in command for entry in ENTRY_FILES)


__all__ = [
    'is_server',
    'SERVER_KEYWORDS',
    'PORT_PATTERNS',
    'ENTRY_FILES',
]
